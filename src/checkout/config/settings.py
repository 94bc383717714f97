"""Unified settings — CLI flags, env vars, and code defaults in one object.

Priority chain (highest to lowest):
  1. Init kwargs  — CLI flags passed by Click
  2. Env vars     — ``CHECKOUT_*`` prefix, ``__`` for nested sections
  3. Code defaults
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from checkout.domain.model.shipping import ShippingSettings
from checkout.domain.model.value_objects import Money


class DefaultShippingConfig(BaseModel):
    """Fallback used when the store has no shipping settings row."""

    model_config = {"frozen": True}

    free_shipping_threshold: Decimal = Decimal("10000")
    distance_free_radius_km: Decimal = Decimal("5")
    per_km_rate: Decimal = Decimal("50")
    base_rate: Decimal = Decimal("500")

    def to_domain(self, currency: str) -> ShippingSettings:
        return ShippingSettings(
            free_shipping_threshold=Money.of(self.free_shipping_threshold, currency),
            distance_free_radius_km=self.distance_free_radius_km,
            per_km_rate=Money.of(self.per_km_rate, currency),
            base_rate=Money.of(self.base_rate, currency),
        )


class CheckoutSettings(BaseSettings):
    """Settings for the settlement core and its CLI.

    Attributes:
        database_path: SQLite file holding catalog, coupons and orders.
        tax_rate: Percentage applied to the subtotal.
        read_timeout: Seconds allowed for the reads before commit.
        commit_timeout: Seconds allowed for the commit itself.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "CHECKOUT_",
        "env_nested_delimiter": "__",
    }

    database_path: Path = Field(default_factory=lambda: Path.cwd() / "data" / "checkout.db")
    currency: str = "INR"
    tax_rate: Decimal = Field(default=Decimal("18"), ge=0)
    order_number_prefix: str = "GT"
    max_commit_attempts: int = Field(default=3, ge=1)
    read_timeout: float = Field(default=5.0, gt=0)
    commit_timeout: float = Field(default=5.0, gt=0)

    verbose: bool = False
    log_json: bool = False

    default_shipping: DefaultShippingConfig = Field(default_factory=DefaultShippingConfig)

    @classmethod
    def from_cli(cls, **cli_flags: Any) -> CheckoutSettings:
        """Construct settings, dropping flags the user did not pass."""
        return cls(**{k: v for k, v in cli_flags.items() if v is not None})
