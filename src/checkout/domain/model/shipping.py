"""Shipping configuration and quote types.

``ShippingSettings`` is the store-wide default.  A ``ShippingZone`` may
override any of its fields; the first active zone wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from checkout.domain.model.value_objects import Money


@dataclass(frozen=True)
class ShippingSettings:
    free_shipping_threshold: Money
    distance_free_radius_km: Decimal
    per_km_rate: Money
    base_rate: Money

    @staticmethod
    def defaults(currency: str = "INR") -> ShippingSettings:
        return ShippingSettings(
            free_shipping_threshold=Money.of("10000", currency),
            distance_free_radius_km=Decimal("5"),
            per_km_rate=Money.of("50", currency),
            base_rate=Money.of("500", currency),
        )


@dataclass(frozen=True)
class ShippingZone:
    """Optional override of the store-wide settings.

    ``None`` fields fall through to ``ShippingSettings``.
    ``max_shipping_distance_km`` has no store-wide counterpart: when set,
    the billed distance is capped at it.
    """

    base_rate: Money
    free_shipping_threshold: Money | None = None
    distance_free_radius_km: Decimal | None = None
    per_km_rate: Money | None = None
    max_shipping_distance_km: Decimal | None = None
    is_active: bool = True
    name: str | None = None


@dataclass(frozen=True)
class ShippingBreakdown:
    """Every resolved parameter and intermediate amount of a quote."""

    base_rate: Money
    distance_km: Decimal  # after clamping to the zone maximum
    distance_free_radius_km: Decimal
    distance_charged_km: Decimal
    per_km_rate: Money
    distance_charge: Money
    is_free_shipping: bool
    order_value: Money
    free_shipping_threshold: Money
    total_shipping_charge: Money
    zone_name: str | None = None

    def to_dict(self) -> dict[str, str | bool | None]:
        return {
            "base_rate": str(self.base_rate.amount),
            "distance_km": str(self.distance_km),
            "distance_free_radius_km": str(self.distance_free_radius_km),
            "distance_charged_km": str(self.distance_charged_km),
            "per_km_rate": str(self.per_km_rate.amount),
            "distance_charge": str(self.distance_charge.amount),
            "is_free_shipping": self.is_free_shipping,
            "order_value": str(self.order_value.amount),
            "free_shipping_threshold": str(self.free_shipping_threshold.amount),
            "total_shipping_charge": str(self.total_shipping_charge.amount),
            "zone_name": self.zone_name,
        }


@dataclass(frozen=True)
class ShippingQuote:
    amount: Money
    breakdown: ShippingBreakdown
