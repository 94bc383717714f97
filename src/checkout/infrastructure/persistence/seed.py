"""Load catalog, coupons and shipping configuration from a JSON document.

The document shape::

    {
      "products": [{"id": "p1", "name": "Teak Chair", "sku": "TC-1",
                    "price": "4500", "stock_quantity": 3}],
      "coupons": [{"id": "c1", "code": "save10", "discount_type": "percentage",
                   "discount_value": "10", "maximum_discount": "500"}],
      "shipping_settings": {"free_shipping_threshold": "10000", ...},
      "shipping_zones": [{"name": "City", "base_rate": "400", "per_km_rate": "60"}]
    }

Products and coupons are upserted in place by id, so rows already
referenced by orders and coupon usages survive a re-seed.  Counters the
document leaves out (``stock_quantity``, ``used_count``) keep their
current value on existing rows.  Zones are replaced wholesale.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from sqlalchemy import delete, insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql.schema import Table

from checkout.domain.exceptions import InvalidInputError
from checkout.domain.model.coupon import DiscountType, canonical_code
from checkout.infrastructure.persistence.schema import (
    coupons,
    products,
    shipping_settings,
    shipping_zones,
)
from checkout.infrastructure.persistence.sql_settlement_store import (
    SHIPPING_SETTING_KEYS,
    parse_timestamp,
)


def load_seed_file(path: Path) -> dict[str, Any]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"Invalid JSON in {path}: {exc}") from exc


def seed_database(engine: Engine, data: dict[str, Any]) -> dict[str, int]:
    """Upsert everything in *data*; returns counts per section.

    Runs in one transaction: a row that breaks a constraint rejects the
    whole document with ``InvalidInputError``.
    """
    counts = {"products": 0, "coupons": 0, "shipping_settings": 0, "shipping_zones": 0}
    try:
        with engine.begin() as conn:
            _seed(conn, data, counts)
    except IntegrityError as exc:
        raise InvalidInputError(f"Seed data violates a database constraint: {exc.orig}") from exc
    return counts


def _seed(conn: Connection, data: dict[str, Any], counts: dict[str, int]) -> None:
    for raw in data.get("products", []):
        _upsert_product(conn, raw)
        counts["products"] += 1
    for raw in data.get("coupons", []):
        _upsert_coupon(conn, raw)
        counts["coupons"] += 1

    settings = data.get("shipping_settings") or {}
    unknown = set(settings) - set(SHIPPING_SETTING_KEYS)
    if unknown:
        raise InvalidInputError(f"Unknown shipping settings: {', '.join(sorted(unknown))}")
    for key, value in settings.items():
        _upsert(conn, shipping_settings, "key", {"key": key, "value": str(value)})
        counts["shipping_settings"] += 1

    if "shipping_zones" in data:
        conn.execute(delete(shipping_zones))
        for position, raw in enumerate(data["shipping_zones"]):
            conn.execute(
                insert(shipping_zones).values(
                    name=raw.get("name"),
                    base_rate=raw["base_rate"],
                    free_shipping_threshold=raw.get("free_shipping_threshold"),
                    distance_free_radius_km=raw.get("distance_free_radius_km"),
                    per_km_rate=raw.get("per_km_rate"),
                    max_shipping_distance_km=raw.get("max_shipping_distance_km"),
                    is_active=raw.get("is_active", True),
                    position=position,
                )
            )
            counts["shipping_zones"] += 1


def _upsert(
    conn: Connection,
    table: Table,
    key: str,
    values: dict[str, Any],
    keep_on_update: tuple[str, ...] = (),
) -> None:
    """INSERT ... ON CONFLICT (key) DO UPDATE, leaving *keep_on_update* alone."""
    stmt = sqlite_insert(table).values(**values)
    changes = {
        name: stmt.excluded[name]
        for name in values
        if name != key and name not in keep_on_update
    }
    conn.execute(stmt.on_conflict_do_update(index_elements=[table.c[key]], set_=changes))


def _upsert_product(conn: Connection, raw: dict[str, Any]) -> None:
    _upsert(
        conn,
        products,
        "id",
        {
            "id": str(raw["id"]),
            "name": raw["name"],
            "sku": raw.get("sku"),
            "price": raw["price"],
            "stock_quantity": int(raw.get("stock_quantity", 0)),
            "is_active": raw.get("is_active", True),
        },
        keep_on_update=() if "stock_quantity" in raw else ("stock_quantity",),
    )


def _upsert_coupon(conn: Connection, raw: dict[str, Any]) -> None:
    try:
        discount_type = DiscountType(raw["discount_type"])
    except ValueError as exc:
        raise InvalidInputError(f"Unknown discount type: {raw['discount_type']!r}") from exc
    for field in ("starts_at", "expires_at"):
        try:
            parse_timestamp(raw.get(field))
        except ValueError as exc:
            raise InvalidInputError(f"Invalid {field}: {raw[field]!r}") from exc

    _upsert(
        conn,
        coupons,
        "id",
        {
            "id": str(raw["id"]),
            "code": canonical_code(raw["code"]),
            "discount_type": discount_type.value,
            "discount_value": raw["discount_value"],
            "minimum_order_amount": raw.get("minimum_order_amount"),
            "maximum_discount": raw.get("maximum_discount"),
            "usage_limit": raw.get("usage_limit"),
            "used_count": int(raw.get("used_count", 0)),
            "per_user_limit": raw.get("per_user_limit"),
            "starts_at": raw.get("starts_at"),
            "expires_at": raw.get("expires_at"),
            "is_active": raw.get("is_active", True),
        },
        keep_on_update=() if "used_count" in raw else ("used_count",),
    )
