"""Composition root — wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

from sqlalchemy.engine import Engine

from checkout.application.check_coupon import CheckCouponHandler
from checkout.application.quote_shipping import QuoteShippingHandler
from checkout.application.settle_order import OrderSettlementCoordinator
from checkout.application.show_order import ShowOrderHandler
from checkout.config.settings import CheckoutSettings
from checkout.domain.service.order_numbers import order_number_factory
from checkout.infrastructure.persistence.engine import init_database
from checkout.infrastructure.persistence.sql_settlement_store import SqlSettlementStore


def database_engine(settings: CheckoutSettings) -> Engine:
    return init_database(settings.database_path, busy_timeout=settings.commit_timeout)


def settlement_store(settings: CheckoutSettings) -> SqlSettlementStore:
    return SqlSettlementStore(
        database_engine(settings),
        currency=settings.currency,
        default_timeout=settings.read_timeout,
    )


def settlement_coordinator(settings: CheckoutSettings) -> OrderSettlementCoordinator:
    return OrderSettlementCoordinator(
        settlement_store(settings),
        tax_rate=settings.tax_rate,
        currency=settings.currency,
        default_shipping=settings.default_shipping.to_domain(settings.currency),
        max_commit_attempts=settings.max_commit_attempts,
        order_numbers=order_number_factory(settings.order_number_prefix),
    )


def quote_shipping_handler(settings: CheckoutSettings) -> QuoteShippingHandler:
    return QuoteShippingHandler(
        settlement_store(settings),
        default_settings=settings.default_shipping.to_domain(settings.currency),
        currency=settings.currency,
    )


def check_coupon_handler(settings: CheckoutSettings) -> CheckCouponHandler:
    return CheckCouponHandler(settlement_store(settings), currency=settings.currency)


def show_order_handler(settings: CheckoutSettings) -> ShowOrderHandler:
    return ShowOrderHandler(settlement_store(settings))
