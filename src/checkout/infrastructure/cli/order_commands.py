"""CLI commands for settling and inspecting orders."""

from __future__ import annotations

import click

from checkout.application.dto import CartLineSpec, OrderDTO, order_to_dto
from checkout.config.settings import CheckoutSettings
from checkout.domain.exceptions import DomainException, PersistenceFailureError
from checkout.domain.model.order import CartLine, Customer, ShippingAddress
from checkout.infrastructure.bootstrap import settlement_coordinator, show_order_handler


def _parse_items(raw: str) -> list[CartLineSpec]:
    """Parse 'p1:3,p2:5' into CartLineSpec list."""
    specs: list[CartLineSpec] = []
    for pair in raw.split(","):
        pair = pair.strip()
        if ":" not in pair:
            raise click.BadParameter(
                f"Invalid item format '{pair}'. Expected 'ProductId:Quantity'."
            )
        product_id, qty_str = pair.rsplit(":", 1)
        try:
            qty = int(qty_str)
        except ValueError:
            raise click.BadParameter(
                f"Invalid quantity '{qty_str}' for product '{product_id}'."
            )
        specs.append(CartLineSpec(product_id=product_id.strip(), quantity=qty))
    return specs


def _display_order(dto: OrderDTO) -> None:
    """Shared formatting for displaying an order."""
    click.echo(f"Order {dto.order_number}  (status={dto.status}, payment={dto.payment_status})")
    click.echo(f"Customer: {dto.customer}")
    click.echo(f"Created:  {dto.created_at}")
    click.echo()
    click.echo(f"  {'Product':<24} {'Qty':>5} {'Price':>14} {'Total':>14}")
    click.echo(f"  {'-'*60}")
    for item in dto.items:
        click.echo(
            f"  {item.product_name:<24} {item.quantity:>5} {item.unit_price:>14} {item.total_price:>14}"
        )
    click.echo(f"  {'-'*60}")
    click.echo(f"  {'Subtotal':<30} {dto.subtotal:>29}")
    click.echo(f"  {'Tax':<30} {dto.tax_amount:>29}")
    click.echo(f"  {'Shipping':<30} {dto.shipping_amount:>29}")
    if dto.coupon_code:
        click.echo(f"  {'Discount (' + dto.coupon_code + ')':<30} {'-' + dto.discount_amount:>29}")
    click.echo(f"  {'Order Total':<30} {dto.total_amount:>29}")


@click.command("settle")
@click.option("--user", "user_id", default=None, help="Registered user id.")
@click.option("--guest-email", default=None, help="E-mail for a guest checkout.")
@click.option("--items", required=True, help="Items as 'ProductId:Qty,ProductId:Qty'.")
@click.option("--distance", required=True, help="Delivery distance in km.")
@click.option("--name", "full_name", required=True, help="Recipient name.")
@click.option("--phone", required=True, help="Recipient phone.")
@click.option("--line1", required=True, help="Address line 1.")
@click.option("--line2", default=None, help="Address line 2.")
@click.option("--city", required=True)
@click.option("--state", required=True)
@click.option("--postal-code", required=True)
@click.option("--country", default="India", show_default=True)
@click.option("--coupon", default=None, help="Coupon code to apply.")
@click.option("--idempotency-key", default=None, help="Client token for safe retries.")
@click.pass_obj
def order_settle(
    settings: CheckoutSettings,
    user_id: str | None,
    guest_email: str | None,
    items: str,
    distance: str,
    full_name: str,
    phone: str,
    line1: str,
    line2: str | None,
    city: str,
    state: str,
    postal_code: str,
    country: str,
    coupon: str | None,
    idempotency_key: str | None,
) -> None:
    """Price, stock-check and commit an order."""
    specs = _parse_items(items)
    coordinator = settlement_coordinator(settings)

    try:
        order = coordinator.settle(
            Customer(user_id=user_id, guest_email=guest_email),
            [CartLine(product_id=s.product_id, quantity=s.quantity) for s in specs],
            ShippingAddress(
                full_name=full_name,
                phone=phone,
                address_line_1=line1,
                address_line_2=line2,
                city=city,
                state=state,
                postal_code=postal_code,
                country=country,
            ),
            distance,
            coupon,
            idempotency_key=idempotency_key,
            timeout=settings.read_timeout,
            commit_timeout=settings.commit_timeout,
        )
    except PersistenceFailureError as exc:
        hint = ""
        if exc.indeterminate:
            hint = f" Check order {exc.order_number} before retrying."
        raise click.ClickException(f"{exc}.{hint}")
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {order.order_number} placed.")
    _display_order(order_to_dto(order))


@click.command("show")
@click.option("--number", "order_number", required=True, help="Order number to display.")
@click.pass_obj
def order_show(settings: CheckoutSettings, order_number: str) -> None:
    """Show details of a settled order."""
    handler = show_order_handler(settings)

    try:
        dto = handler.handle(order_number)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_order(dto)
