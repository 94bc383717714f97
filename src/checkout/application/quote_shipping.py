"""Application service: Quote Shipping use case (query).

Lets checkout screens show the same shipping figure settlement will
charge, computed from the live store configuration.
"""

from __future__ import annotations

import structlog

from checkout.application.dto import ShippingQuoteDTO
from checkout.domain.model.shipping import ShippingSettings, ShippingZone
from checkout.domain.model.value_objects import Money
from checkout.domain.repository.settlement_store import SettlementStore
from checkout.domain.service.shipping_calculator import compute_shipping

logger = structlog.get_logger(__name__)


def load_shipping_config(
    store: SettlementStore,
    fallback: ShippingSettings,
    *,
    timeout: float | None = None,
) -> tuple[ShippingSettings, list[ShippingZone]]:
    """Read shipping configuration, falling back to *fallback* with a warning."""
    settings, zones = store.read_shipping_config(timeout=timeout)
    if settings is None:
        logger.warning(
            "shipping.settings_missing",
            fallback_threshold=str(fallback.free_shipping_threshold.amount),
            fallback_base_rate=str(fallback.base_rate.amount),
        )
        settings = fallback
    return settings, zones


class QuoteShippingHandler:

    def __init__(
        self,
        store: SettlementStore,
        default_settings: ShippingSettings | None = None,
        currency: str = "INR",
    ) -> None:
        self._store = store
        self._currency = currency
        self._default_settings = default_settings or ShippingSettings.defaults(currency)

    def handle(self, subtotal: str, distance_km: str) -> ShippingQuoteDTO:
        settings, zones = load_shipping_config(self._store, self._default_settings)
        quote = compute_shipping(
            Money.of(subtotal, self._currency), distance_km, settings, zones
        )
        b = quote.breakdown
        return ShippingQuoteDTO(
            amount=str(quote.amount),
            is_free_shipping=b.is_free_shipping,
            base_rate=str(b.base_rate),
            distance_km=str(b.distance_km),
            distance_free_radius_km=str(b.distance_free_radius_km),
            distance_charged_km=str(b.distance_charged_km),
            per_km_rate=str(b.per_km_rate),
            distance_charge=str(b.distance_charge),
            free_shipping_threshold=str(b.free_shipping_threshold),
            zone_name=b.zone_name,
        )
