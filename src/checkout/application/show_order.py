"""Application service: Show Order use case (query)."""

from __future__ import annotations

from checkout.application.dto import OrderDTO, order_to_dto
from checkout.domain.exceptions import EntityNotFoundError
from checkout.domain.repository.settlement_store import SettlementStore


class ShowOrderHandler:

    def __init__(self, store: SettlementStore) -> None:
        self._store = store

    def handle(self, order_number: str) -> OrderDTO:
        order = self._store.find_order_by_number(order_number.strip())
        if order is None:
            raise EntityNotFoundError(f"Order {order_number} not found")
        return order_to_dto(order)
