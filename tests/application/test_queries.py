"""Tests for the read-only use cases: shipping quote, coupon check, show order."""

from decimal import Decimal

import pytest

from checkout.application.check_coupon import CheckCouponHandler
from checkout.application.quote_shipping import QuoteShippingHandler
from checkout.application.settle_order import OrderSettlementCoordinator
from checkout.application.show_order import ShowOrderHandler
from checkout.domain.exceptions import EntityNotFoundError, InvalidInputError
from checkout.domain.model.order import CartLine, Customer
from checkout.domain.model.shipping import ShippingSettings, ShippingZone
from checkout.domain.model.value_objects import Money
from tests.fakes import (
    FakeSettlementStore,
    fixed_clock,
    make_address,
    make_coupon,
    make_product,
    sequential_order_numbers,
)


class TestQuoteShipping:

    def test_uses_stored_settings(self):
        settings = ShippingSettings(
            free_shipping_threshold=Money.of("2000"),
            distance_free_radius_km=Decimal("10"),
            per_km_rate=Money.of("20"),
            base_rate=Money.of("99"),
        )
        handler = QuoteShippingHandler(FakeSettlementStore(settings=settings))
        dto = handler.handle("1500", "12")
        assert dto.amount == "₹139.00"
        assert not dto.is_free_shipping
        assert dto.distance_charged_km == "2"

    def test_falls_back_to_defaults(self):
        handler = QuoteShippingHandler(FakeSettlementStore())
        dto = handler.handle("12000", "8")
        assert dto.amount == "₹150.00"
        assert dto.free_shipping_threshold == "₹10,000.00"

    def test_reports_zone(self):
        store = FakeSettlementStore(
            settings=ShippingSettings.defaults(),
            zones=[ShippingZone(base_rate=Money.of("250"), name="Metro")],
        )
        dto = QuoteShippingHandler(store).handle("100", "1")
        assert dto.amount == "₹250.00"
        assert dto.zone_name == "Metro"

    def test_free(self):
        dto = QuoteShippingHandler(FakeSettlementStore()).handle("15000", "2")
        assert dto.is_free_shipping
        assert dto.amount == "₹0.00"

    def test_bad_subtotal(self):
        with pytest.raises(InvalidInputError, match="Invalid money amount"):
            QuoteShippingHandler(FakeSettlementStore()).handle("lots", "2")


class TestCheckCoupon:

    def test_valid(self):
        store = FakeSettlementStore(coupons=[make_coupon(maximum_discount=Money.of("500"))])
        dto = CheckCouponHandler(store, clock=fixed_clock()).handle("save10", "8000")
        assert dto.valid
        assert dto.code == "SAVE10"
        assert dto.discount_amount == "₹500.00"

    def test_invalid(self):
        dto = CheckCouponHandler(FakeSettlementStore(), clock=fixed_clock()).handle("NOPE", "8000")
        assert not dto.valid
        assert dto.message == "Invalid coupon code"
        assert dto.discount_amount == "₹0.00"


class TestShowOrder:

    def test_shows_settled_order(self):
        store = FakeSettlementStore(
            products=[make_product("p1", "1000", 5, name="Desk Lamp")],
            settings=ShippingSettings.defaults(),
        )
        coordinator = OrderSettlementCoordinator(
            store, clock=fixed_clock(), order_numbers=sequential_order_numbers("GT-SHOW")
        )
        coordinator.settle(Customer.guest("g@example.com"), [CartLine("p1", 2)], make_address(), "0")

        dto = ShowOrderHandler(store).handle(" GT-SHOW-000001 ")
        assert dto.customer == "guest:g@example.com"
        assert dto.status == "pending"
        assert dto.payment_status == "pending"
        assert dto.items[0].product_name == "Desk Lamp"
        assert dto.items[0].total_price == "₹2,000.00"
        # 2000 + 360 tax + 500 shipping
        assert dto.total_amount == "₹2,860.00"

    def test_missing_order(self):
        with pytest.raises(EntityNotFoundError, match="GT-NONE not found"):
            ShowOrderHandler(FakeSettlementStore()).handle("GT-NONE")
