"""Abstract store consulted and written by settlement.

Defined in the domain layer so the domain never depends on
infrastructure.  Concrete implementations (SQL, in-memory) live in the
infrastructure layer and in the test fakes.

Every method takes an optional ``timeout`` in seconds.  Implementations
raise ``PersistenceFailureError`` when the store cannot be reached or a
lock cannot be obtained in time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from checkout.domain.model.coupon import Coupon
from checkout.domain.model.order import Order
from checkout.domain.model.product import ProductSnapshot
from checkout.domain.model.shipping import ShippingSettings, ShippingZone


class SettlementStore(ABC):

    # --- Reads ----------------------------------------------------------------

    @abstractmethod
    def read_shipping_config(
        self, *, timeout: float | None = None
    ) -> tuple[ShippingSettings | None, list[ShippingZone]]:
        """Return store-wide settings (``None`` if never configured) and zones."""

    @abstractmethod
    def read_coupon(self, code: str, *, timeout: float | None = None) -> Coupon | None:
        """Case-insensitive lookup of a coupon by code."""

    @abstractmethod
    def count_coupon_usages(
        self, coupon_id: str, user_id: str, *, timeout: float | None = None
    ) -> int:
        """How many committed orders of *user_id* redeemed *coupon_id*."""

    @abstractmethod
    def read_products_for_order(
        self, product_ids: Iterable[str], *, timeout: float | None = None
    ) -> dict[str, ProductSnapshot]:
        """Snapshot of every requested product that exists (active or not)."""

    @abstractmethod
    def find_order_by_number(
        self, order_number: str, *, timeout: float | None = None
    ) -> Order | None:
        """Return a committed order by its order number, or None."""

    @abstractmethod
    def find_order_by_idempotency_key(
        self, key: str, *, timeout: float | None = None
    ) -> Order | None:
        """Return the order committed under *key*, or None."""

    # --- The single write boundary --------------------------------------------

    @abstractmethod
    def commit_order(
        self,
        draft: Order,
        stock_decrements: dict[str, int],
        coupon_id: str | None = None,
        *,
        timeout: float | None = None,
    ) -> int:
        """Atomically persist *draft* with its items and side effects.

        In one transaction: decrement stock for every product in
        *stock_decrements*, increment the coupon's ``used_count`` (and
        record a per-user usage for registered customers), and insert the
        order and its items.  Returns the new order id.

        Raises ``ConcurrencyConflictError`` without writing anything if a
        decrement would drive stock negative, the coupon would exceed its
        usage or per-user limit, or the order number / idempotency key is
        already taken.
        """
