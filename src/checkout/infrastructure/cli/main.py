from __future__ import annotations

from pathlib import Path

import click

from checkout.config.logging import configure_logging
from checkout.config.settings import CheckoutSettings
from checkout.infrastructure.cli.db_commands import db_init, db_seed
from checkout.infrastructure.cli.order_commands import order_settle, order_show
from checkout.infrastructure.cli.pricing_commands import coupon_check, shipping_quote


@click.group()
@click.option(
    "--db",
    "database_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="SQLite database file (default: ./data/checkout.db).",
)
@click.option("-v", "--verbose", is_flag=True, help="Debug logging.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.pass_context
def cli(
    ctx: click.Context,
    database_path: Path | None,
    verbose: bool,
    log_json: bool,
) -> None:
    """checkout — order settlement for the storefront"""
    settings = CheckoutSettings.from_cli(
        database_path=database_path,
        verbose=verbose or None,
        log_json=log_json or None,
    )
    configure_logging(verbose=settings.verbose, log_json=settings.log_json)
    ctx.obj = settings


@cli.group()
def db() -> None:
    """Manage the database."""


@cli.group()
def order() -> None:
    """Settle and inspect orders."""


@cli.group()
def shipping() -> None:
    """Shipping quotes."""


@cli.group()
def coupon() -> None:
    """Coupon checks."""


# Register subcommands
db.add_command(db_init)
db.add_command(db_seed)
order.add_command(order_settle)
order.add_command(order_show)
shipping.add_command(shipping_quote)
coupon.add_command(coupon_check)
