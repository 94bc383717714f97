"""Application service: Settle Order use case.

Turns a proposed cart into a priced, stock-checked, committed order.
This is the only place that coordinates the catalog snapshot, coupon
rules, shipping rules and the store's atomic commit.

An attempt moves through fixed stages::

    started -> prices_resolved -> stock_reserved -> priced -> persisted

and any stage may end in ``aborted``.  Nothing is written before the
final commit, and the commit is all-or-nothing, so an aborted attempt
leaves no trace in the store.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

import structlog

from checkout.application.quote_shipping import load_shipping_config
from checkout.domain.exceptions import (
    ConcurrencyConflictError,
    CouponInvalidError,
    InsufficientStockError,
    InvalidInputError,
    PersistenceFailureError,
    ProductUnavailableError,
    SettlementError,
    SettlementTimeoutError,
    StockShortage,
)
from checkout.domain.model.coupon import Coupon, canonical_code
from checkout.domain.model.order import (
    CartLine,
    Customer,
    Order,
    OrderItem,
    ShippingAddress,
)
from checkout.domain.model.product import ProductSnapshot
from checkout.domain.model.shipping import ShippingSettings
from checkout.domain.model.value_objects import Money, Quantity, to_decimal
from checkout.domain.repository.settlement_store import SettlementStore
from checkout.domain.service.coupon_validator import Clock, CouponValidator, utc_now
from checkout.domain.service.order_numbers import (
    OrderNumberFactory,
    order_number_factory,
)
from checkout.domain.service.shipping_calculator import compute_shipping

logger = structlog.get_logger(__name__)


class SettlementStage(Enum):
    STARTED = "started"
    PRICES_RESOLVED = "prices_resolved"
    STOCK_RESERVED = "stock_reserved"
    PRICED = "priced"
    PERSISTED = "persisted"
    ABORTED = "aborted"


@dataclass(frozen=True)
class _Request:
    customer: Customer
    quantities: dict[str, int]  # merged per product, in cart order
    shipping_address: ShippingAddress
    distance_km: Decimal
    coupon_code: str | None
    idempotency_key: str | None


class _Deadline:
    """Time budget for the read phase of one settlement."""

    def __init__(self, timeout: float | None) -> None:
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def check(self) -> None:
        if self._expires_at is not None and time.monotonic() >= self._expires_at:
            raise SettlementTimeoutError("Settlement timed out before commit")


class _StageTracker:

    def __init__(self, log: structlog.stdlib.BoundLogger) -> None:
        self._log = log
        self.stage = SettlementStage.STARTED
        self._log.debug("settlement.stage", stage=self.stage.value)

    def advance(self, stage: SettlementStage, **fields: object) -> None:
        self.stage = stage
        self._log.debug("settlement.stage", stage=stage.value, **fields)

    def abort(self, exc: SettlementError) -> None:
        if exc.stage is None:
            exc.stage = self.stage.value
        self._log.info(
            "settlement.aborted",
            stage=self.stage.value,
            error=type(exc).__name__,
            reason=str(exc),
        )
        self.stage = SettlementStage.ABORTED


class OrderSettlementCoordinator:

    def __init__(
        self,
        store: SettlementStore,
        *,
        tax_rate: Decimal = Decimal("18"),
        currency: str = "INR",
        default_shipping: ShippingSettings | None = None,
        max_commit_attempts: int = 3,
        order_numbers: OrderNumberFactory | None = None,
        clock: Clock = utc_now,
    ) -> None:
        if max_commit_attempts < 1:
            raise ValueError("max_commit_attempts must be at least 1")
        self._store = store
        self._tax_rate = tax_rate
        self._currency = currency
        self._default_shipping = default_shipping or ShippingSettings.defaults(currency)
        self._max_commit_attempts = max_commit_attempts
        self._order_numbers = order_numbers or order_number_factory()
        self._clock = clock
        self._validator = CouponValidator(store, clock)

    def settle(
        self,
        customer: Customer,
        cart_lines: Sequence[CartLine],
        shipping_address: ShippingAddress,
        distance_km: Decimal | int | float | str,
        coupon_code: str | None = None,
        *,
        idempotency_key: str | None = None,
        timeout: float | None = None,
        commit_timeout: float | None = None,
    ) -> Order:
        """Settle a cart into a committed order.

        ``timeout`` bounds the reads before the commit; ``commit_timeout``
        (defaulting to ``timeout``) bounds the commit itself.  A commit
        whose outcome is unknown is resolved by looking the order number
        up before reporting ``PersistenceFailureError``.

        If ``idempotency_key`` is given and the same customer already
        committed an order under it, that order is returned instead of
        creating a new one.  A key held by another customer is rejected.
        """
        request = self._validate_request(
            customer, cart_lines, shipping_address, distance_km, coupon_code, idempotency_key
        )
        if timeout is not None and timeout <= 0:
            raise InvalidInputError("Timeout must be positive")
        if commit_timeout is None:
            commit_timeout = timeout

        deadline = _Deadline(timeout)
        log = logger.bind(customer=str(request.customer), idempotency_key=request.idempotency_key)

        attempt = 0
        while True:
            attempt += 1
            if request.idempotency_key:
                existing = self._store.find_order_by_idempotency_key(
                    request.idempotency_key, timeout=deadline.remaining()
                )
                if existing is not None:
                    if existing.customer != request.customer:
                        raise InvalidInputError(
                            f"Idempotency key {request.idempotency_key!r} belongs to another customer's order"
                        )
                    log.info("settlement.replayed", order_number=existing.order_number)
                    return existing
            try:
                return self._run_attempt(
                    request, deadline, commit_timeout, log.bind(attempt=attempt)
                )
            except ConcurrencyConflictError:
                if attempt >= self._max_commit_attempts:
                    raise
                log.info("settlement.retry", attempt=attempt)

    # --- One attempt ----------------------------------------------------------

    def _run_attempt(
        self,
        request: _Request,
        deadline: _Deadline,
        commit_timeout: float | None,
        log: structlog.stdlib.BoundLogger,
    ) -> Order:
        order_number = self._order_numbers()
        log = log.bind(order_number=order_number)
        tracker = _StageTracker(log)
        try:
            products = self._store.read_products_for_order(
                list(request.quantities), timeout=deadline.remaining()
            )
            deadline.check()
            snapshots = self._resolve_products(request.quantities, products)
            tracker.advance(SettlementStage.PRICES_RESOLVED)

            self._check_stock(request.quantities, snapshots)
            tracker.advance(SettlementStage.STOCK_RESERVED)

            items = [
                OrderItem(
                    product_id=pid,
                    product_name=snapshots[pid].name,
                    product_sku=snapshots[pid].sku,
                    quantity=Quantity(qty),
                    unit_price=snapshots[pid].price,  # <-- catalog price snapshot
                )
                for pid, qty in request.quantities.items()
            ]
            subtotal = Money.zero(self._currency)
            for item in items:
                subtotal = subtotal + item.total_price
            subtotal = subtotal.rounded()

            discount, coupon = self._apply_coupon(request, subtotal, deadline)
            deadline.check()

            settings, zones = load_shipping_config(
                self._store, self._default_shipping, timeout=deadline.remaining()
            )
            quote = compute_shipping(subtotal, request.distance_km, settings, zones)
            tax = subtotal.percent(self._tax_rate).rounded()

            draft = Order.create(
                order_number=order_number,
                customer=request.customer,
                items=items,
                shipping_address=request.shipping_address,
                tax_amount=tax,
                shipping_amount=quote.amount,
                discount_amount=discount,
                delivery_distance_km=request.distance_km,
                shipping_breakdown=quote.breakdown.to_dict(),
                coupon_code=coupon.code.upper() if coupon else None,
                idempotency_key=request.idempotency_key,
                created_at=self._clock(),
            )
            tracker.advance(
                SettlementStage.PRICED,
                subtotal=str(draft.subtotal.amount),
                total=str(draft.total_amount.amount),
            )
            deadline.check()

            order = self._commit(draft, coupon, commit_timeout, log)
            tracker.advance(SettlementStage.PERSISTED, order_id=order.id)
            return order
        except SettlementError as exc:
            tracker.abort(exc)
            raise

    # --- Steps ----------------------------------------------------------------

    @staticmethod
    def _validate_request(
        customer: Customer,
        cart_lines: Sequence[CartLine],
        shipping_address: ShippingAddress,
        distance_km: Decimal | int | float | str,
        coupon_code: str | None,
        idempotency_key: str | None,
    ) -> _Request:
        if not isinstance(customer, Customer):
            raise InvalidInputError("A registered user or guest e-mail is required")
        if not isinstance(shipping_address, ShippingAddress):
            raise InvalidInputError("Shipping address is required")
        if not cart_lines:
            raise InvalidInputError("Cart is empty")

        quantities: dict[str, int] = {}
        for line in cart_lines:
            pid = str(line.product_id or "").strip()
            if not pid:
                raise InvalidInputError("Cart line is missing a product id")
            if isinstance(line.quantity, bool) or not isinstance(line.quantity, int):
                raise InvalidInputError(f"Quantity for product '{pid}' must be an integer")
            if line.quantity <= 0:
                raise InvalidInputError(f"Quantity for product '{pid}' must be positive")
            quantities[pid] = quantities.get(pid, 0) + line.quantity

        distance = to_decimal(distance_km, "distance")
        if distance < 0:
            raise InvalidInputError(f"Delivery distance cannot be negative, got {distance}")

        code = canonical_code(coupon_code) if coupon_code else ""
        key = (idempotency_key or "").strip()
        return _Request(
            customer=customer,
            quantities=quantities,
            shipping_address=shipping_address,
            distance_km=distance,
            coupon_code=code or None,
            idempotency_key=key or None,
        )

    @staticmethod
    def _resolve_products(
        quantities: dict[str, int], products: dict[str, ProductSnapshot]
    ) -> dict[str, ProductSnapshot]:
        resolved: dict[str, ProductSnapshot] = {}
        for pid in quantities:
            snapshot = products.get(pid)
            if snapshot is None:
                raise ProductUnavailableError(pid, f"Product not found: '{pid}'")
            if not snapshot.is_active:
                raise ProductUnavailableError(
                    pid, f"Product {snapshot.name} is no longer available"
                )
            resolved[pid] = snapshot
        return resolved

    @staticmethod
    def _check_stock(
        quantities: dict[str, int], snapshots: dict[str, ProductSnapshot]
    ) -> None:
        shortages = [
            StockShortage(
                product_id=pid,
                product_name=snapshots[pid].name,
                requested=qty,
                available=snapshots[pid].stock_quantity,
            )
            for pid, qty in quantities.items()
            if not snapshots[pid].can_supply(qty)
        ]
        if shortages:
            raise InsufficientStockError(shortages)

    def _apply_coupon(
        self, request: _Request, subtotal: Money, deadline: _Deadline
    ) -> tuple[Money, Coupon | None]:
        if request.coupon_code is None:
            return Money.zero(subtotal.currency), None
        result = self._validator.validate(
            request.coupon_code,
            subtotal,
            request.customer.user_id,
            timeout=deadline.remaining(),
        )
        if not result.valid:
            raise CouponInvalidError(request.coupon_code, result.message)
        return result.discount_amount, result.coupon

    def _commit(
        self,
        draft: Order,
        coupon: Coupon | None,
        timeout: float | None,
        log: structlog.stdlib.BoundLogger,
    ) -> Order:
        try:
            order_id = self._store.commit_order(
                draft,
                draft.stock_decrements,
                coupon.id if coupon else None,
                timeout=timeout,
            )
        except PersistenceFailureError as exc:
            return self._reconcile(draft, exc, timeout, log)
        draft.id = order_id
        return draft

    def _reconcile(
        self,
        draft: Order,
        cause: PersistenceFailureError,
        timeout: float | None,
        log: structlog.stdlib.BoundLogger,
    ) -> Order:
        """Find out whether a commit that reported failure actually landed."""
        log.warning("settlement.commit_indeterminate", reason=str(cause))
        try:
            persisted = self._store.find_order_by_number(draft.order_number, timeout=timeout)
        except PersistenceFailureError as exc:
            raise PersistenceFailureError(
                f"Commit outcome unknown for order {draft.order_number}: {cause}",
                order_number=draft.order_number,
                idempotency_key=draft.idempotency_key,
                indeterminate=True,
            ) from exc
        if persisted is not None:
            log.info("settlement.reconciled", order_id=persisted.id)
            return persisted
        raise PersistenceFailureError(
            f"Order {draft.order_number} was not persisted: {cause}",
            order_number=draft.order_number,
            idempotency_key=draft.idempotency_key,
        ) from cause
