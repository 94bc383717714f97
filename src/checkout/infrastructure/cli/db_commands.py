"""CLI commands for the checkout database."""

from __future__ import annotations

from pathlib import Path

import click

from checkout.config.settings import CheckoutSettings
from checkout.domain.exceptions import DomainException
from checkout.infrastructure.bootstrap import database_engine
from checkout.infrastructure.persistence.seed import load_seed_file, seed_database


@click.command("init")
@click.pass_obj
def db_init(settings: CheckoutSettings) -> None:
    """Create the database and its tables."""
    database_engine(settings).dispose()
    click.echo(f"Database ready at {settings.database_path}")


@click.command("seed")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def db_seed(settings: CheckoutSettings, file: Path) -> None:
    """Load products, coupons and shipping configuration from FILE."""
    engine = database_engine(settings)
    try:
        counts = seed_database(engine, load_seed_file(file))
    except (DomainException, KeyError) as exc:
        raise click.ClickException(f"Cannot seed from {file}: {exc}")
    finally:
        engine.dispose()

    summary = ", ".join(f"{n} {section}" for section, n in counts.items())
    click.echo(f"Seeded {summary}")
