"""CLI commands for shipping quotes and coupon checks."""

from __future__ import annotations

import click

from checkout.config.settings import CheckoutSettings
from checkout.domain.exceptions import DomainException
from checkout.infrastructure.bootstrap import check_coupon_handler, quote_shipping_handler


@click.command("quote")
@click.option("--subtotal", required=True, help="Cart subtotal.")
@click.option("--distance", required=True, help="Delivery distance in km.")
@click.pass_obj
def shipping_quote(settings: CheckoutSettings, subtotal: str, distance: str) -> None:
    """Show the shipping charge for a cart."""
    handler = quote_shipping_handler(settings)

    try:
        dto = handler.handle(subtotal, distance)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if dto.zone_name:
        click.echo(f"Zone:              {dto.zone_name}")
    click.echo(f"Free threshold:    {dto.free_shipping_threshold}")
    click.echo(f"Distance:          {dto.distance_km} km (free within {dto.distance_free_radius_km} km)")
    click.echo(f"Charged distance:  {dto.distance_charged_km} km x {dto.per_km_rate}/km = {dto.distance_charge}")
    if dto.is_free_shipping:
        click.echo("Shipping:          FREE")
    else:
        click.echo(f"Shipping:          {dto.amount}")


@click.command("check")
@click.option("--code", required=True, help="Coupon code.")
@click.option("--subtotal", required=True, help="Order subtotal.")
@click.option("--user", "user_id", default=None, help="Registered user id.")
@click.pass_obj
def coupon_check(settings: CheckoutSettings, code: str, subtotal: str, user_id: str | None) -> None:
    """Check whether a coupon applies to an order subtotal."""
    handler = check_coupon_handler(settings)

    try:
        dto = handler.handle(code, subtotal, user_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if dto.valid:
        click.echo(f"{dto.code}: {dto.message}, you save {dto.discount_amount}")
    else:
        raise click.ClickException(f"{dto.code}: {dto.message}")
