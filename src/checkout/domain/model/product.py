"""Product snapshot as seen by settlement.

Products live in the catalog, outside this core.  Settlement only reads
a point-in-time copy of the fields it needs: price, stock, and whether
the product can still be sold.
"""

from __future__ import annotations

from dataclasses import dataclass

from checkout.domain.model.value_objects import Money


@dataclass(frozen=True)
class ProductSnapshot:
    """Authoritative price and availability for one product.

    Settlement never trusts a client-supplied price; every line is
    repriced from this record.
    """

    id: str
    name: str
    sku: str | None
    price: Money
    stock_quantity: int
    is_active: bool = True

    def can_supply(self, quantity: int) -> bool:
        return self.is_active and self.stock_quantity >= quantity
