"""Coupon entity.

Coupons are owned by an external admin collaborator.  Settlement reads
them to price an order and, on commit, bumps ``used_count``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from checkout.domain.model.value_objects import Money


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def canonical_code(code: str) -> str:
    """Coupon codes are matched case-insensitively, ignoring outer spaces."""
    return code.strip().upper()


@dataclass(frozen=True)
class Coupon:
    """A discount code with its redemption rules.

    Invariant (maintained by the store): ``used_count <= usage_limit``
    whenever a limit is set.
    """

    id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    minimum_order_amount: Money | None = None
    maximum_discount: Money | None = None
    usage_limit: int | None = None
    used_count: int = 0
    per_user_limit: int | None = None
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    is_active: bool = True

    def has_started(self, now: datetime) -> bool:
        return self.starts_at is None or self.starts_at <= now

    def has_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def is_redeemable(self, now: datetime) -> bool:
        """Active, inside its validity window, and under its usage limit."""
        return (
            self.is_active
            and self.has_started(now)
            and not self.has_expired(now)
            and not self.is_exhausted
        )
