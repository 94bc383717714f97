"""Data Transfer Objects — plain containers that cross layer boundaries.

DTOs carry data between the CLI and application layers without
exposing domain internals to the outside world.
"""

from __future__ import annotations

from dataclasses import dataclass

from checkout.domain.model.order import Order


@dataclass(frozen=True)
class CartLineSpec:
    """Input: product id + quantity as typed by the caller."""

    product_id: str
    quantity: int


@dataclass(frozen=True)
class OrderItemDTO:
    """Output: a single line item as displayed to the user."""

    product_name: str
    product_sku: str | None
    quantity: int
    unit_price: str  # formatted, e.g. "₹1,500.00"
    total_price: str


@dataclass(frozen=True)
class OrderDTO:
    """Output: a complete order as displayed to the user."""

    id: int
    order_number: str
    customer: str
    status: str
    payment_status: str
    items: list[OrderItemDTO]
    subtotal: str
    tax_amount: str
    shipping_amount: str
    discount_amount: str
    total_amount: str
    coupon_code: str | None
    created_at: str


@dataclass(frozen=True)
class ShippingQuoteDTO:
    amount: str
    is_free_shipping: bool
    base_rate: str
    distance_km: str
    distance_free_radius_km: str
    distance_charged_km: str
    per_km_rate: str
    distance_charge: str
    free_shipping_threshold: str
    zone_name: str | None


@dataclass(frozen=True)
class CouponCheckDTO:
    code: str
    valid: bool
    discount_amount: str
    message: str


def order_to_dto(order: Order) -> OrderDTO:
    return OrderDTO(
        id=order.id,  # type: ignore[arg-type]
        order_number=order.order_number,
        customer=str(order.customer),
        status=order.status.value,
        payment_status=order.payment_status.value,
        items=[
            OrderItemDTO(
                product_name=item.product_name,
                product_sku=item.product_sku,
                quantity=item.quantity.value,
                unit_price=str(item.unit_price),
                total_price=str(item.total_price),
            )
            for item in order.items
        ],
        subtotal=str(order.subtotal),
        tax_amount=str(order.tax_amount),
        shipping_amount=str(order.shipping_amount),
        discount_amount=str(order.discount_amount),
        total_amount=str(order.total_amount),
        coupon_code=order.coupon_code,
        created_at=order.created_at.strftime("%Y-%m-%d %H:%M UTC"),
    )
