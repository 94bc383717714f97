"""Tests for loading seed documents into the database."""

import json

import pytest

from checkout.application.settle_order import OrderSettlementCoordinator
from checkout.domain.exceptions import InvalidInputError
from checkout.domain.model.order import CartLine, Customer
from checkout.infrastructure.persistence.engine import init_database
from checkout.infrastructure.persistence.seed import load_seed_file, seed_database
from checkout.infrastructure.persistence.sql_settlement_store import SqlSettlementStore
from tests.fakes import fixed_clock, make_address, sequential_order_numbers

CATALOG = {
    "products": [{"id": "p1", "name": "Chair", "price": "4500", "stock_quantity": 3}],
    "coupons": [{"id": "c1", "code": "save10", "discount_type": "percentage", "discount_value": "10"}],
}


@pytest.fixture
def engine(tmp_path):
    engine = init_database(tmp_path / "seed.db")
    yield engine
    engine.dispose()


class TestSeed:

    def test_counts(self, engine):
        counts = seed_database(
            engine,
            {
                "products": [{"id": "p1", "name": "Chair", "price": "4500", "stock_quantity": 3}],
                "coupons": [{"id": "c1", "code": "new50", "discount_type": "fixed", "discount_value": "50"}],
                "shipping_settings": {"base_rate": "400"},
                "shipping_zones": [{"name": "City", "base_rate": "350"}],
            },
        )
        assert counts == {"products": 1, "coupons": 1, "shipping_settings": 1, "shipping_zones": 1}

    def test_reseeding_updates_in_place(self, engine):
        seed_database(engine, {"products": [{"id": "p1", "name": "Chair", "price": "4500", "stock_quantity": 3}]})
        seed_database(engine, {"products": [{"id": "p1", "name": "Chair", "price": "4200", "stock_quantity": 7}]})
        product = SqlSettlementStore(engine).read_products_for_order(["p1"])["p1"]
        assert product.stock_quantity == 7
        assert str(product.price) == "₹4,200.00"

    def test_zones_replaced_wholesale(self, engine):
        seed_database(engine, {"shipping_zones": [{"name": "A", "base_rate": "1"}, {"name": "B", "base_rate": "2"}]})
        seed_database(engine, {"shipping_zones": [{"name": "C", "base_rate": "3"}]})
        _, zones = SqlSettlementStore(engine).read_shipping_config()
        assert [z.name for z in zones] == ["C"]

    def test_unknown_shipping_key_rejected(self, engine):
        with pytest.raises(InvalidInputError, match="Unknown shipping settings: free_radius"):
            seed_database(engine, {"shipping_settings": {"free_radius": "5"}})

    def test_unknown_discount_type_rejected(self, engine):
        with pytest.raises(InvalidInputError, match="Unknown discount type"):
            seed_database(
                engine,
                {"coupons": [{"id": "c1", "code": "X", "discount_type": "bogo", "discount_value": "1"}]},
            )

    def test_unparseable_timestamp_rejected(self, engine):
        coupon = {"id": "c1", "code": "X", "discount_type": "fixed", "discount_value": "1", "expires_at": "tomorrow"}
        with pytest.raises(InvalidInputError, match="Invalid expires_at: 'tomorrow'"):
            seed_database(engine, {"coupons": [coupon]})

    def test_constraint_violation_rejected(self, engine):
        coupon = {
            "id": "c1", "code": "X", "discount_type": "fixed", "discount_value": "1",
            "usage_limit": 1, "used_count": 5,
        }
        with pytest.raises(InvalidInputError, match="violates a database constraint"):
            seed_database(engine, {"coupons": [coupon]})

    def test_failed_seed_writes_nothing(self, engine):
        with pytest.raises(InvalidInputError):
            seed_database(
                engine,
                {
                    "products": [{"id": "p1", "name": "Chair", "price": "1", "stock_quantity": 1}],
                    "shipping_settings": {"nope": "1"},
                },
            )
        assert SqlSettlementStore(engine).read_products_for_order(["p1"]) == {}


class TestLoadSeedFile:

    def test_reads_json(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text(json.dumps({"products": []}), encoding="utf-8")
        assert load_seed_file(path) == {"products": []}

    def test_bad_json(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(InvalidInputError, match="Invalid JSON"):
            load_seed_file(path)


class TestReseedAfterOrders:

    @pytest.fixture
    def store(self, engine):
        seed_database(engine, CATALOG)
        store = SqlSettlementStore(engine)
        coordinator = OrderSettlementCoordinator(
            store, clock=fixed_clock(), order_numbers=sequential_order_numbers()
        )
        coordinator.settle(Customer.registered("u1"), [CartLine("p1", 1)], make_address(), "5", "SAVE10")
        return store

    def test_referenced_rows_are_updated(self, engine, store):
        changed = {
            "products": [{"id": "p1", "name": "Chair", "price": "4200", "stock_quantity": 9}],
            "coupons": [dict(CATALOG["coupons"][0], discount_value="15")],
        }
        assert seed_database(engine, changed)["products"] == 1

        product = store.read_products_for_order(["p1"])["p1"]
        assert str(product.price) == "₹4,200.00"
        assert product.stock_quantity == 9
        assert store.read_coupon("SAVE10").discount_value == 15
        assert store.find_order_by_number("GT-TEST-000001") is not None

    def test_counters_kept_when_omitted(self, engine, store):
        seed_database(
            engine,
            {
                "products": [{"id": "p1", "name": "Chair", "price": "4500"}],
                "coupons": CATALOG["coupons"],
            },
        )
        assert store.read_products_for_order(["p1"])["p1"].stock_quantity == 2
        assert store.read_coupon("SAVE10").used_count == 1
