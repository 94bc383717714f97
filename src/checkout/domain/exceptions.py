"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the CLI layer can catch them uniformly and display user-friendly messages.

Settlement failures additionally derive from SettlementError, which records
the stage an attempt aborted in.  Business-rule failures (unavailable
product, insufficient stock, invalid coupon) are expected outcomes and
never leave side effects behind.
"""

from __future__ import annotations

from dataclasses import dataclass


class DomainException(Exception):
    """Base class for all domain errors."""


class InvalidInputError(DomainException):
    """Malformed request: empty cart, bad quantity, negative distance, bad address."""


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""


class SettlementError(DomainException):
    """A settlement attempt aborted.

    ``stage`` is filled in by the coordinator with the last stage the
    attempt reached before aborting.
    """

    stage: str | None = None


class ProductUnavailableError(SettlementError):
    """A cart line references an unknown or inactive product."""

    def __init__(self, product_id: str, message: str | None = None) -> None:
        self.product_id = product_id
        super().__init__(message or f"Product '{product_id}' is not available")


@dataclass(frozen=True)
class StockShortage:
    product_id: str
    product_name: str
    requested: int
    available: int

    def __str__(self) -> str:
        return (
            f"{self.product_name} (requested {self.requested}, "
            f"available {self.available})"
        )


class InsufficientStockError(SettlementError):
    """One or more lines ask for more than is in stock."""

    def __init__(self, shortages: list[StockShortage]) -> None:
        self.shortages = list(shortages)
        detail = "; ".join(str(s) for s in self.shortages)
        super().__init__(f"Insufficient stock for {detail}")


class CouponInvalidError(SettlementError):
    """The supplied coupon cannot be applied to this order."""

    def __init__(self, code: str, reason: str) -> None:
        self.code = code
        self.reason = reason
        super().__init__(f"Coupon {code}: {reason}")


class ConcurrencyConflictError(SettlementError):
    """Stock or coupon usage changed between the check and the commit.

    Safe to retry the whole settlement from the price/stock re-read.
    """


class PersistenceFailureError(SettlementError):
    """The store was unreachable or the commit outcome is unknown.

    When ``indeterminate`` is true the order may or may not exist;
    callers must look it up by ``order_number`` or ``idempotency_key``
    before retrying.
    """

    def __init__(
        self,
        message: str,
        *,
        order_number: str | None = None,
        idempotency_key: str | None = None,
        indeterminate: bool = False,
    ) -> None:
        self.order_number = order_number
        self.idempotency_key = idempotency_key
        self.indeterminate = indeterminate
        super().__init__(message)


class SettlementTimeoutError(SettlementError):
    """The caller's deadline expired before the commit was attempted."""
