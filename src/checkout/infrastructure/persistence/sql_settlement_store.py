"""SQLite-backed implementation of SettlementStore.

The commit runs in a single ``BEGIN IMMEDIATE`` transaction.  Stock and
coupon usage are changed with conditional UPDATEs, so a row that no
longer satisfies the check is simply not updated; the transaction is
then rolled back and ``ConcurrencyConflictError`` raised for the caller
to re-read and re-check.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, insert, or_, select, update
from sqlalchemy.engine import Connection, Engine, Row
from sqlalchemy.exc import DBAPIError, IntegrityError

from checkout.domain.exceptions import ConcurrencyConflictError, PersistenceFailureError
from checkout.domain.model.coupon import Coupon, DiscountType, canonical_code
from checkout.domain.model.order import (
    Customer,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    ShippingAddress,
)
from checkout.domain.model.product import ProductSnapshot
from checkout.domain.model.shipping import ShippingSettings, ShippingZone
from checkout.domain.model.value_objects import Money, Quantity
from checkout.domain.repository.settlement_store import SettlementStore
from checkout.infrastructure.persistence.engine import DEFAULT_BUSY_TIMEOUT
from checkout.infrastructure.persistence.schema import (
    coupon_usages,
    coupons,
    order_items,
    orders,
    products,
    shipping_settings,
    shipping_zones,
)

SHIPPING_SETTING_KEYS = (
    "free_shipping_threshold",
    "distance_free_radius_km",
    "per_km_rate",
    "base_rate",
)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse ISO-8601 text; naive values are taken as UTC."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class SqlSettlementStore(SettlementStore):

    def __init__(
        self,
        engine: Engine,
        currency: str = "INR",
        default_timeout: float = DEFAULT_BUSY_TIMEOUT,
    ) -> None:
        self._engine = engine
        self._currency = currency
        self._default_timeout = default_timeout

    # --- Reads ----------------------------------------------------------------

    def read_shipping_config(
        self, *, timeout: float | None = None
    ) -> tuple[ShippingSettings | None, list[ShippingZone]]:
        with self._transaction(timeout) as conn:
            raw = {
                row.key: row.value
                for row in conn.execute(select(shipping_settings.c.key, shipping_settings.c.value))
            }
            zone_rows = conn.execute(
                select(shipping_zones).order_by(shipping_zones.c.position, shipping_zones.c.id)
            ).all()

        zones = [self._zone_to_domain(row) for row in zone_rows]
        if not raw:
            return None, zones

        # A partially configured table fills the gaps from the defaults.
        defaults = ShippingSettings.defaults(self._currency)
        settings = ShippingSettings(
            free_shipping_threshold=self._money(
                raw.get("free_shipping_threshold"), defaults.free_shipping_threshold
            ),
            distance_free_radius_km=Decimal(raw["distance_free_radius_km"])
            if "distance_free_radius_km" in raw
            else defaults.distance_free_radius_km,
            per_km_rate=self._money(raw.get("per_km_rate"), defaults.per_km_rate),
            base_rate=self._money(raw.get("base_rate"), defaults.base_rate),
        )
        return settings, zones

    def read_coupon(self, code: str, *, timeout: float | None = None) -> Coupon | None:
        with self._transaction(timeout) as conn:
            row = conn.execute(
                select(coupons).where(coupons.c.code == canonical_code(code))
            ).first()
        return self._coupon_to_domain(row) if row is not None else None

    def count_coupon_usages(
        self, coupon_id: str, user_id: str, *, timeout: float | None = None
    ) -> int:
        with self._transaction(timeout) as conn:
            return self._count_usages(conn, coupon_id, user_id)

    def read_products_for_order(
        self, product_ids: Iterable[str], *, timeout: float | None = None
    ) -> dict[str, ProductSnapshot]:
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        with self._transaction(timeout) as conn:
            rows = conn.execute(select(products).where(products.c.id.in_(ids))).all()
        return {
            row.id: ProductSnapshot(
                id=row.id,
                name=row.name,
                sku=row.sku,
                price=Money(row.price, self._currency),
                stock_quantity=row.stock_quantity,
                is_active=bool(row.is_active),
            )
            for row in rows
        }

    def find_order_by_number(
        self, order_number: str, *, timeout: float | None = None
    ) -> Order | None:
        with self._transaction(timeout) as conn:
            row = conn.execute(
                select(orders).where(orders.c.order_number == order_number)
            ).first()
            return self._load_order(conn, row) if row is not None else None

    def find_order_by_idempotency_key(
        self, key: str, *, timeout: float | None = None
    ) -> Order | None:
        with self._transaction(timeout) as conn:
            row = conn.execute(select(orders).where(orders.c.idempotency_key == key)).first()
            return self._load_order(conn, row) if row is not None else None

    # --- Commit ---------------------------------------------------------------

    def commit_order(
        self,
        draft: Order,
        stock_decrements: dict[str, int],
        coupon_id: str | None = None,
        *,
        timeout: float | None = None,
    ) -> int:
        with self._transaction(timeout) as conn:
            # Fixed lock order keeps concurrent multi-product commits deterministic.
            for product_id in sorted(stock_decrements):
                qty = stock_decrements[product_id]
                result = conn.execute(
                    update(products)
                    .where(
                        products.c.id == product_id,
                        products.c.is_active.is_(True),
                        products.c.stock_quantity >= qty,
                    )
                    .values(stock_quantity=products.c.stock_quantity - qty)
                )
                if result.rowcount != 1:
                    raise ConcurrencyConflictError(
                        f"Stock for product '{product_id}' changed before commit"
                    )

            if coupon_id is not None:
                self._claim_coupon(conn, coupon_id, draft.customer.user_id)

            try:
                order_id = conn.execute(
                    insert(orders).values(**self._order_to_row(draft))
                ).inserted_primary_key[0]
            except IntegrityError as exc:
                raise ConcurrencyConflictError(
                    f"Order number or idempotency key already used: {draft.order_number}"
                ) from exc

            conn.execute(
                insert(order_items),
                [
                    {
                        "order_id": order_id,
                        "product_id": item.product_id,
                        "product_name": item.product_name,
                        "product_sku": item.product_sku,
                        "quantity": item.quantity.value,
                        "unit_price": item.unit_price.amount,
                        "total_price": item.total_price.amount,
                    }
                    for item in draft.items
                ],
            )

            if coupon_id is not None and draft.customer.user_id is not None:
                conn.execute(
                    insert(coupon_usages).values(
                        coupon_id=coupon_id,
                        user_id=draft.customer.user_id,
                        order_id=order_id,
                        used_at=datetime.now(timezone.utc).isoformat(),
                    )
                )
        return int(order_id)

    def _claim_coupon(self, conn: Connection, coupon_id: str, user_id: str | None) -> None:
        result = conn.execute(
            update(coupons)
            .where(
                coupons.c.id == coupon_id,
                coupons.c.is_active.is_(True),
                or_(
                    coupons.c.usage_limit.is_(None),
                    coupons.c.used_count < coupons.c.usage_limit,
                ),
            )
            .values(used_count=coupons.c.used_count + 1)
        )
        if result.rowcount != 1:
            raise ConcurrencyConflictError(f"Coupon {coupon_id} can no longer be redeemed")

        if user_id is None:
            return
        per_user_limit = conn.execute(
            select(coupons.c.per_user_limit).where(coupons.c.id == coupon_id)
        ).scalar_one()
        if per_user_limit is not None and self._count_usages(conn, coupon_id, user_id) >= per_user_limit:
            raise ConcurrencyConflictError(
                f"Coupon {coupon_id} already used {per_user_limit} time(s) by {user_id}"
            )

    # --- Transactions ---------------------------------------------------------

    @contextmanager
    def _transaction(self, timeout: float | None) -> Iterator[Connection]:
        """One transaction whose lock wait is bounded by *timeout* seconds."""
        wait = self._default_timeout if timeout is None else timeout
        try:
            with self._engine.connect() as conn:
                conn.connection.driver_connection.execute(
                    f"PRAGMA busy_timeout = {max(int(wait * 1000), 0)}"
                )
                with conn.begin():
                    yield conn
        except DBAPIError as exc:
            raise PersistenceFailureError(f"Store unavailable: {exc.orig}") from exc

    # --- Mapping --------------------------------------------------------------

    @staticmethod
    def _count_usages(conn: Connection, coupon_id: str, user_id: str) -> int:
        return conn.execute(
            select(func.count())
            .select_from(coupon_usages)
            .where(coupon_usages.c.coupon_id == coupon_id, coupon_usages.c.user_id == user_id)
        ).scalar_one()

    def _money(self, value: Any, fallback: Money | None = None) -> Money | None:
        if value is None:
            return fallback
        return Money(Decimal(str(value)), self._currency)

    def _zone_to_domain(self, row: Row) -> ShippingZone:
        return ShippingZone(
            name=row.name,
            base_rate=Money(row.base_rate, self._currency),
            free_shipping_threshold=self._money(row.free_shipping_threshold),
            distance_free_radius_km=row.distance_free_radius_km,
            per_km_rate=self._money(row.per_km_rate),
            max_shipping_distance_km=row.max_shipping_distance_km,
            is_active=bool(row.is_active),
        )

    def _coupon_to_domain(self, row: Row) -> Coupon:
        return Coupon(
            id=row.id,
            code=row.code,
            discount_type=DiscountType(row.discount_type),
            discount_value=row.discount_value,
            minimum_order_amount=self._money(row.minimum_order_amount),
            maximum_discount=self._money(row.maximum_discount),
            usage_limit=row.usage_limit,
            used_count=row.used_count,
            per_user_limit=row.per_user_limit,
            starts_at=parse_timestamp(row.starts_at),
            expires_at=parse_timestamp(row.expires_at),
            is_active=bool(row.is_active),
        )

    @staticmethod
    def _order_to_row(order: Order) -> dict[str, Any]:
        return {
            "order_number": order.order_number,
            "idempotency_key": order.idempotency_key,
            "user_id": order.customer.user_id,
            "guest_email": order.customer.guest_email,
            "status": order.status.value,
            "payment_status": order.payment_status.value,
            "subtotal": order.subtotal.amount,
            "tax_amount": order.tax_amount.amount,
            "shipping_amount": order.shipping_amount.amount,
            "discount_amount": order.discount_amount.amount,
            "total_amount": order.total_amount.amount,
            "currency": order.total_amount.currency,
            "shipping_address": json.dumps(order.shipping_address.to_dict()),
            "delivery_distance_km": order.delivery_distance_km,
            "shipping_breakdown": json.dumps(order.shipping_breakdown)
            if order.shipping_breakdown is not None
            else None,
            "coupon_code": order.coupon_code,
            "tracking_number": order.tracking_number,
            "shipped_at": _iso(order.shipped_at),
            "delivered_at": _iso(order.delivered_at),
            "created_at": order.created_at.isoformat(),
        }

    @staticmethod
    def _load_order(conn: Connection, row: Row) -> Order:
        currency = row.currency
        item_rows = conn.execute(
            select(order_items).where(order_items.c.order_id == row.id).order_by(order_items.c.id)
        ).all()
        items = [
            OrderItem(
                product_id=i.product_id,
                product_name=i.product_name,
                product_sku=i.product_sku,
                quantity=Quantity(i.quantity),
                unit_price=Money(i.unit_price, currency),
            )
            for i in item_rows
        ]
        return Order(
            id=row.id,
            order_number=row.order_number,
            customer=Customer(user_id=row.user_id, guest_email=row.guest_email),
            items=items,
            shipping_address=ShippingAddress.from_dict(json.loads(row.shipping_address)),
            subtotal=Money(row.subtotal, currency),
            tax_amount=Money(row.tax_amount, currency),
            shipping_amount=Money(row.shipping_amount, currency),
            discount_amount=Money(row.discount_amount, currency),
            total_amount=Money(row.total_amount, currency),
            status=OrderStatus(row.status),
            payment_status=PaymentStatus(row.payment_status),
            delivery_distance_km=row.delivery_distance_km,
            shipping_breakdown=json.loads(row.shipping_breakdown)
            if row.shipping_breakdown
            else None,
            coupon_code=row.coupon_code,
            idempotency_key=row.idempotency_key,
            created_at=parse_timestamp(row.created_at),  # type: ignore[arg-type]
            tracking_number=row.tracking_number,
            shipped_at=parse_timestamp(row.shipped_at),
            delivered_at=parse_timestamp(row.delivered_at),
        )
