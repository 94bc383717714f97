"""Domain service: distance- and threshold-tiered shipping.

A pure function of its inputs, with no store access and no clock, so checkout
screens can show the exact figure settlement will charge.

Rules:
  * Order value >= free-shipping threshold:
      - within the free radius: free
      - beyond it: (distance - radius) x per-km rate
  * Order value below the threshold:
      - base rate, plus (distance - radius) x per-km rate beyond the radius
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from checkout.domain.exceptions import InvalidInputError
from checkout.domain.model.shipping import (
    ShippingBreakdown,
    ShippingQuote,
    ShippingSettings,
    ShippingZone,
)
from checkout.domain.model.value_objects import Money, to_decimal


@dataclass(frozen=True)
class _EffectiveRates:
    free_shipping_threshold: Money
    distance_free_radius_km: Decimal
    per_km_rate: Money
    base_rate: Money
    max_distance_km: Decimal | None
    zone_name: str | None


def active_zone(zones: Sequence[ShippingZone]) -> ShippingZone | None:
    """The first active zone is authoritative; the rest are ignored."""
    for zone in zones:
        if zone.is_active:
            return zone
    return None


def _resolve(settings: ShippingSettings, zone: ShippingZone | None) -> _EffectiveRates:
    if zone is None:
        return _EffectiveRates(
            free_shipping_threshold=settings.free_shipping_threshold,
            distance_free_radius_km=settings.distance_free_radius_km,
            per_km_rate=settings.per_km_rate,
            base_rate=settings.base_rate,
            max_distance_km=None,
            zone_name=None,
        )
    return _EffectiveRates(
        free_shipping_threshold=_pick(zone.free_shipping_threshold, settings.free_shipping_threshold),
        distance_free_radius_km=_pick(zone.distance_free_radius_km, settings.distance_free_radius_km),
        per_km_rate=_pick(zone.per_km_rate, settings.per_km_rate),
        base_rate=zone.base_rate,
        max_distance_km=zone.max_shipping_distance_km or None,
        zone_name=zone.name,
    )


def _pick(override, fallback):
    return fallback if override is None else override


def compute_shipping(
    subtotal: Money,
    distance_km: Decimal | int | float | str,
    settings: ShippingSettings,
    zones: Sequence[ShippingZone] = (),
) -> ShippingQuote:
    """Compute the shipping charge and its itemized breakdown.

    Raises InvalidInputError for a negative distance; it is never
    silently clamped to zero.
    """
    distance = to_decimal(distance_km, "distance")
    if distance < 0:
        raise InvalidInputError(f"Delivery distance cannot be negative, got {distance}")

    rates = _resolve(settings, active_zone(zones))

    effective_distance = distance
    if rates.max_distance_km is not None:
        effective_distance = min(distance, rates.max_distance_km)

    radius = rates.distance_free_radius_km
    chargeable = max(Decimal("0"), effective_distance - radius)
    beyond_radius = effective_distance > radius
    meets_threshold = subtotal >= rates.free_shipping_threshold

    zero = Money.zero(subtotal.currency)
    distance_charge = rates.per_km_rate * chargeable if beyond_radius else zero

    if meets_threshold:
        total = distance_charge
    else:
        total = rates.base_rate + distance_charge

    breakdown = ShippingBreakdown(
        base_rate=rates.base_rate,
        distance_km=effective_distance,
        distance_free_radius_km=radius,
        distance_charged_km=chargeable,
        per_km_rate=rates.per_km_rate,
        distance_charge=distance_charge.rounded(),
        is_free_shipping=meets_threshold and not beyond_radius,
        order_value=subtotal,
        free_shipping_threshold=rates.free_shipping_threshold,
        total_shipping_charge=total.rounded(),
        zone_name=rates.zone_name,
    )
    return ShippingQuote(amount=total.rounded(), breakdown=breakdown)
