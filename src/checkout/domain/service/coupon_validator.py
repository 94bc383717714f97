"""Domain service: coupon validation and discount calculation.

Reads live coupon state from the store and never mutates it.  Every
business reason for refusing a coupon comes back as an invalid result
with a specific message; only store failures raise.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

import structlog

from checkout.domain.model.coupon import Coupon, DiscountType, canonical_code
from checkout.domain.model.value_objects import Money, round_half_up
from checkout.domain.repository.settlement_store import SettlementStore

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CouponValidation:
    valid: bool
    discount_amount: Money
    message: str
    coupon: Coupon | None = None


def compute_discount(coupon: Coupon, subtotal: Money) -> Money:
    """Discount for *subtotal*, rounded half-up once at the end.

    Never negative, never above the subtotal, and for percentage coupons
    never above ``maximum_discount``.
    """
    value = max(coupon.discount_value, Decimal("0"))
    if coupon.discount_type is DiscountType.PERCENTAGE:
        raw = subtotal.amount * value / Decimal("100")
        if coupon.maximum_discount is not None:
            raw = min(raw, coupon.maximum_discount.amount)
    else:
        raw = value
    raw = min(raw, subtotal.amount)
    return Money(round_half_up(raw), subtotal.currency)


class CouponValidator:

    def __init__(self, store: SettlementStore, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    def validate(
        self,
        code: str,
        order_subtotal: Money,
        customer_id: str | None = None,
        *,
        timeout: float | None = None,
    ) -> CouponValidation:
        """Decide whether *code* applies to an order of *order_subtotal*."""
        zero = Money.zero(order_subtotal.currency)
        normalized = canonical_code(code or "")
        if not normalized:
            return CouponValidation(False, zero, "Coupon code is required")

        coupon = self._store.read_coupon(normalized, timeout=timeout)
        if coupon is None:
            return self._reject(normalized, zero, "Invalid coupon code")

        now = self._clock()
        if not coupon.is_active:
            return self._reject(normalized, zero, "Coupon is no longer active", coupon)
        if not coupon.has_started(now):
            return self._reject(normalized, zero, "Coupon is not valid yet", coupon)
        if coupon.has_expired(now):
            return self._reject(normalized, zero, "Coupon has expired", coupon)
        if coupon.is_exhausted:
            return self._reject(normalized, zero, "Coupon usage limit reached", coupon)

        if coupon.per_user_limit is not None and customer_id:
            used = self._store.count_coupon_usages(coupon.id, customer_id, timeout=timeout)
            if used >= coupon.per_user_limit:
                return self._reject(
                    normalized,
                    zero,
                    f"You have already used this coupon {coupon.per_user_limit} time(s)",
                    coupon,
                )

        minimum = coupon.minimum_order_amount
        if minimum is not None and order_subtotal < minimum:
            return self._reject(
                normalized,
                zero,
                f"Minimum order amount of {minimum} required "
                f"(order subtotal is {order_subtotal})",
                coupon,
            )

        discount = compute_discount(coupon, order_subtotal)
        logger.debug("coupon.accepted", code=normalized, discount=str(discount.amount))
        return CouponValidation(True, discount, "Coupon applied successfully", coupon)

    @staticmethod
    def _reject(
        code: str, zero: Money, message: str, coupon: Coupon | None = None
    ) -> CouponValidation:
        logger.info("coupon.rejected", code=code, reason=message)
        return CouponValidation(False, zero, message, coupon)
