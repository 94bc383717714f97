"""Order aggregate — the output of settlement.

The Order is an aggregate root that owns its line items.  It is created
exactly once, together with its items, and the monetary invariants are
enforced here.  Later status changes belong to fulfillment and payment
collaborators outside this package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from checkout.domain.exceptions import InvalidInputError
from checkout.domain.model.value_objects import Money, Quantity


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


@dataclass(frozen=True)
class CartLine:
    """Input: what the customer asked for.  Any client-side price is ignored."""

    product_id: str
    quantity: int


@dataclass(frozen=True)
class Customer:
    """Either a registered user or a guest identified by e-mail, never both."""

    user_id: str | None = None
    guest_email: str | None = None

    def __post_init__(self) -> None:
        has_user = bool(self.user_id and self.user_id.strip())
        has_guest = bool(self.guest_email and self.guest_email.strip())
        if has_user == has_guest:
            raise InvalidInputError(
                "Exactly one of user_id or guest_email is required"
            )
        if has_guest and not _looks_like_email(self.guest_email):  # type: ignore[arg-type]
            raise InvalidInputError(f"Invalid guest e-mail: {self.guest_email!r}")

    @staticmethod
    def registered(user_id: str) -> Customer:
        return Customer(user_id=user_id.strip())

    @staticmethod
    def guest(email: str) -> Customer:
        return Customer(guest_email=email.strip())

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    def __str__(self) -> str:
        return self.user_id or f"guest:{self.guest_email}"


def _looks_like_email(value: str) -> bool:
    local, sep, domain = value.strip().partition("@")
    return bool(sep and local and "." in domain and " " not in value.strip())


_REQUIRED_ADDRESS_FIELDS = (
    "full_name",
    "phone",
    "address_line_1",
    "city",
    "state",
    "postal_code",
    "country",
)


@dataclass(frozen=True)
class ShippingAddress:
    full_name: str
    phone: str
    address_line_1: str
    city: str
    state: str
    postal_code: str
    country: str = "India"
    address_line_2: str | None = None

    def __post_init__(self) -> None:
        missing = [
            name
            for name in _REQUIRED_ADDRESS_FIELDS
            if not str(getattr(self, name) or "").strip()
        ]
        if missing:
            raise InvalidInputError(
                f"Shipping address is missing: {', '.join(missing)}"
            )

    def to_dict(self) -> dict[str, str | None]:
        return {
            "full_name": self.full_name,
            "phone": self.phone,
            "address_line_1": self.address_line_1,
            "address_line_2": self.address_line_2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
        }

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> ShippingAddress:
        return ShippingAddress(
            full_name=raw.get("full_name", ""),
            phone=raw.get("phone", ""),
            address_line_1=raw.get("address_line_1", ""),
            address_line_2=raw.get("address_line_2"),
            city=raw.get("city", ""),
            state=raw.get("state", ""),
            postal_code=raw.get("postal_code", ""),
            country=raw.get("country", "India"),
        )


@dataclass(frozen=True)
class OrderItem:
    """Captures the catalog price of a product at settlement time.

    Immutable: the unit price is never recomputed after the order exists.
    """

    product_id: str
    product_name: str
    product_sku: str | None
    quantity: Quantity
    unit_price: Money  # locked at settlement time

    @property
    def total_price(self) -> Money:
        return self.unit_price * self.quantity.value


MAX_LINE_ITEMS = 50


@dataclass
class Order:
    """Aggregate root for a settled order.

    Use the ``Order.create()`` factory for new orders; it enforces the
    monetary invariants.  The ``__init__`` is intentionally simple so the
    store can reconstitute persisted orders without re-validating.  An
    order whose ``id`` is still ``None`` is a draft that has not been
    committed yet.
    """

    id: int | None
    order_number: str
    customer: Customer
    items: list[OrderItem]
    shipping_address: ShippingAddress
    subtotal: Money
    tax_amount: Money
    shipping_amount: Money
    discount_amount: Money
    total_amount: Money
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    delivery_distance_km: Decimal = Decimal("0")
    shipping_breakdown: dict[str, Any] | None = None
    coupon_code: str | None = None
    idempotency_key: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    # Owned by fulfillment; carried so reads are complete.
    tracking_number: str | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None

    # --- Factory (used for NEW orders only) -----------------------------------

    @staticmethod
    def create(
        *,
        order_number: str,
        customer: Customer,
        items: list[OrderItem],
        shipping_address: ShippingAddress,
        tax_amount: Money,
        shipping_amount: Money,
        discount_amount: Money,
        delivery_distance_km: Decimal = Decimal("0"),
        shipping_breakdown: dict[str, Any] | None = None,
        coupon_code: str | None = None,
        idempotency_key: str | None = None,
        created_at: datetime | None = None,
    ) -> Order:
        """Build a draft order, enforcing all invariants."""
        if not order_number or not order_number.strip():
            raise InvalidInputError("Order number is required")
        if not items:
            raise InvalidInputError("Order must contain at least one item")
        if len(items) > MAX_LINE_ITEMS:
            raise InvalidInputError(f"Maximum {MAX_LINE_ITEMS} items per order")

        currency = items[0].unit_price.currency
        subtotal = Money.zero(currency)
        for item in items:
            subtotal = subtotal + item.total_price
        subtotal = subtotal.rounded()

        if discount_amount > subtotal:
            raise InvalidInputError(
                f"Discount {discount_amount} exceeds subtotal {subtotal}"
            )

        gross = subtotal + tax_amount + shipping_amount
        total = gross.minus_floor_zero(discount_amount).rounded()

        return Order(
            id=None,
            order_number=order_number.strip(),
            customer=customer,
            items=list(items),
            shipping_address=shipping_address,
            subtotal=subtotal,
            tax_amount=tax_amount,
            shipping_amount=shipping_amount,
            discount_amount=discount_amount,
            total_amount=total,
            delivery_distance_km=delivery_distance_km,
            shipping_breakdown=shipping_breakdown,
            coupon_code=coupon_code,
            idempotency_key=idempotency_key,
            created_at=created_at or datetime.now(timezone.utc),
        )

    # --- Computed properties --------------------------------------------------

    @property
    def is_draft(self) -> bool:
        return self.id is None

    @property
    def stock_decrements(self) -> dict[str, int]:
        """Quantity to take off the shelf, per product."""
        result: dict[str, int] = {}
        for item in self.items:
            result[item.product_id] = result.get(item.product_id, 0) + item.quantity.value
        return result

    def totals_balance(self) -> bool:
        """True when ``total = subtotal + tax + shipping - discount`` (floored at 0)."""
        expected = (
            self.subtotal.amount
            + self.tax_amount.amount
            + self.shipping_amount.amount
            - self.discount_amount.amount
        )
        return self.total_amount.amount == max(expected, Decimal("0"))
