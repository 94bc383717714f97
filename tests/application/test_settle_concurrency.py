"""Concurrent settlements racing for the same stock, coupon or key.

A barrier inside the fake store holds every thread at the commit until
all of them have finished their reads, so each race really happens.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

from checkout.application.settle_order import OrderSettlementCoordinator
from checkout.domain.exceptions import CouponInvalidError, InsufficientStockError
from checkout.domain.model.order import CartLine, Customer
from checkout.domain.model.shipping import ShippingSettings
from tests.fakes import (
    FakeSettlementStore,
    fixed_clock,
    make_address,
    make_coupon,
    make_product,
    sequential_order_numbers,
)

BUYERS = 6


def _race_at_commit(store: FakeSettlementStore, parties: int) -> None:
    barrier = threading.Barrier(parties)
    local = threading.local()

    def wait_for_everyone():
        # Only the first commit of each thread joins the race.
        if not getattr(local, "raced", False):
            local.raced = True
            barrier.wait(timeout=5)

    store.before_commit = wait_for_everyone


def _run_all(fn, n):
    outcomes = []
    with ThreadPoolExecutor(max_workers=n) as pool:
        futures = [pool.submit(fn, i) for i in range(n)]
        for future in futures:
            try:
                outcomes.append(future.result())
            except Exception as exc:
                outcomes.append(exc)
    return outcomes


def _coordinator(store):
    return OrderSettlementCoordinator(
        store, clock=fixed_clock(), order_numbers=sequential_order_numbers()
    )


class TestLastUnitRace:

    def test_exactly_one_buyer_gets_the_last_unit(self):
        store = FakeSettlementStore(
            products=[make_product("p1", "999", 1)],
            settings=ShippingSettings.defaults(),
        )
        _race_at_commit(store, BUYERS)
        coordinator = _coordinator(store)

        outcomes = _run_all(
            lambda i: coordinator.settle(
                Customer.registered(f"u{i}"), [CartLine("p1", 1)], make_address(), "2"
            ),
            BUYERS,
        )

        winners = [o for o in outcomes if not isinstance(o, Exception)]
        losers = [o for o in outcomes if isinstance(o, Exception)]
        assert len(winners) == 1
        assert len(losers) == BUYERS - 1
        assert all(isinstance(e, InsufficientStockError) for e in losers)
        assert store.stock_of("p1") == 0
        assert len(store.orders) == 1


class TestCouponUsageLimitRace:

    def test_single_use_coupon_is_redeemed_once(self):
        store = FakeSettlementStore(
            products=[make_product("p1", "100", 100)],
            coupons=[make_coupon(usage_limit=1)],
            settings=ShippingSettings.defaults(),
        )
        _race_at_commit(store, BUYERS)
        coordinator = _coordinator(store)

        outcomes = _run_all(
            lambda i: coordinator.settle(
                Customer.registered(f"u{i}"), [CartLine("p1", 1)], make_address(), "1", "SAVE10"
            ),
            BUYERS,
        )

        losers = [o for o in outcomes if isinstance(o, Exception)]
        assert len(losers) == BUYERS - 1
        assert all(isinstance(e, CouponInvalidError) for e in losers)
        assert all(e.reason == "Coupon usage limit reached" for e in losers)
        assert store.used_count_of("coupon-save10") == 1
        # Losers never touched stock.
        assert store.stock_of("p1") == 99


class TestIdempotentTwins:

    def test_concurrent_retries_with_one_key_create_one_order(self):
        store = FakeSettlementStore(
            products=[make_product("p1", "100", 10)],
            settings=ShippingSettings.defaults(),
        )
        _race_at_commit(store, 2)
        coordinator = _coordinator(store)

        outcomes = _run_all(
            lambda i: coordinator.settle(
                Customer.registered("u1"),
                [CartLine("p1", 1)],
                make_address(),
                "1",
                idempotency_key="checkout-42",
            ),
            2,
        )

        assert not any(isinstance(o, Exception) for o in outcomes)
        assert outcomes[0].order_number == outcomes[1].order_number
        assert len(store.orders) == 1
        assert store.stock_of("p1") == 9
