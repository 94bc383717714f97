"""Human-readable order numbers: ``GT-20250101-7F3A9C``.

Numbers are minted before the commit so that an attempt whose commit
outcome is unknown can be looked up afterwards.  Uniqueness is finally
enforced by the store; a collision surfaces as a concurrency conflict and
the attempt is retried with a fresh number.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import datetime, timezone

OrderNumberFactory = Callable[[], str]


def generate_order_number(prefix: str = "GT", now: datetime | None = None) -> str:
    moment = now or datetime.now(timezone.utc)
    return f"{prefix}-{moment:%Y%m%d}-{secrets.token_hex(3).upper()}"


def order_number_factory(prefix: str = "GT") -> OrderNumberFactory:
    return lambda: generate_order_number(prefix)
