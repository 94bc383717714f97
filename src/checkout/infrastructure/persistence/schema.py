"""SQLAlchemy Core table definitions for the checkout database.

SQLite has no exact decimal storage, so money and distances are kept as
canonical decimal text and read back as Decimal.  Timestamps are
ISO-8601 text in UTC.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
)
from sqlalchemy.types import TypeDecorator


class DecimalText(TypeDecorator):
    """Decimal stored as its string form."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str | None:
        if value is None:
            return None
        return str(Decimal(str(value)))

    def process_result_value(self, value: Any, dialect: Any) -> Decimal | None:
        if value is None:
            return None
        return Decimal(str(value))


metadata = MetaData()

MONEY = DecimalText()
DISTANCE = DecimalText()

products = Table(
    "products",
    metadata,
    Column("id", Text, primary_key=True),
    Column("name", Text, nullable=False),
    Column("sku", Text),
    Column("price", MONEY, nullable=False),
    Column("stock_quantity", Integer, nullable=False, default=0, server_default="0"),
    Column("is_active", Boolean, nullable=False, default=True, server_default="1"),
    CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
)

coupons = Table(
    "coupons",
    metadata,
    Column("id", Text, primary_key=True),
    Column("code", Text, nullable=False, unique=True),  # stored upper-case
    Column("discount_type", Text, nullable=False),
    Column("discount_value", MONEY, nullable=False),
    Column("minimum_order_amount", MONEY),
    Column("maximum_discount", MONEY),
    Column("usage_limit", Integer),
    Column("used_count", Integer, nullable=False, default=0, server_default="0"),
    Column("per_user_limit", Integer),
    Column("starts_at", Text),
    Column("expires_at", Text),
    Column("is_active", Boolean, nullable=False, default=True, server_default="1"),
    CheckConstraint(
        "usage_limit IS NULL OR used_count <= usage_limit",
        name="ck_coupons_usage_within_limit",
    ),
)

coupon_usages = Table(
    "coupon_usages",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("coupon_id", Text, ForeignKey("coupons.id"), nullable=False),
    Column("user_id", Text, nullable=False),
    Column("order_id", Integer, ForeignKey("orders.id")),
    Column("used_at", Text, nullable=False),
    Index("ix_coupon_usages_coupon_user", "coupon_id", "user_id"),
)

# Key/value rows, as in the storefront's store_settings table.
shipping_settings = Table(
    "shipping_settings",
    metadata,
    Column("key", Text, primary_key=True),
    Column("value", Text, nullable=False),
)

shipping_zones = Table(
    "shipping_zones",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text),
    Column("base_rate", MONEY, nullable=False),
    Column("free_shipping_threshold", MONEY),
    Column("distance_free_radius_km", DISTANCE),
    Column("per_km_rate", MONEY),
    Column("max_shipping_distance_km", DISTANCE),
    Column("is_active", Boolean, nullable=False, default=True, server_default="1"),
    Column("position", Integer, nullable=False, default=0, server_default="0"),
)

orders = Table(
    "orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_number", Text, nullable=False, unique=True),
    Column("idempotency_key", Text, unique=True),
    Column("user_id", Text),
    Column("guest_email", Text),
    Column("status", Text, nullable=False),
    Column("payment_status", Text, nullable=False),
    Column("subtotal", MONEY, nullable=False),
    Column("tax_amount", MONEY, nullable=False),
    Column("shipping_amount", MONEY, nullable=False),
    Column("discount_amount", MONEY, nullable=False),
    Column("total_amount", MONEY, nullable=False),
    Column("currency", Text, nullable=False),
    Column("shipping_address", Text, nullable=False),  # JSON
    Column("delivery_distance_km", DISTANCE, nullable=False),
    Column("shipping_breakdown", Text),  # JSON
    Column("coupon_code", Text),
    Column("tracking_number", Text),
    Column("shipped_at", Text),
    Column("delivered_at", Text),
    Column("created_at", Text, nullable=False),
    CheckConstraint(
        "(user_id IS NULL) <> (guest_email IS NULL)",
        name="ck_orders_one_customer_identity",
    ),
)

order_items = Table(
    "order_items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", Integer, ForeignKey("orders.id"), nullable=False),
    Column("product_id", Text, ForeignKey("products.id")),
    Column("product_name", Text, nullable=False),
    Column("product_sku", Text),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", MONEY, nullable=False),
    Column("total_price", MONEY, nullable=False),
    CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
)
