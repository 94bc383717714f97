"""Application service: Check Coupon use case (query).

Preview for the checkout screen.  Settlement re-validates the coupon
against live state when the order is placed, so a positive answer here
is not a reservation.
"""

from __future__ import annotations

from checkout.application.dto import CouponCheckDTO
from checkout.domain.model.coupon import canonical_code
from checkout.domain.model.value_objects import Money
from checkout.domain.repository.settlement_store import SettlementStore
from checkout.domain.service.coupon_validator import Clock, CouponValidator, utc_now


class CheckCouponHandler:

    def __init__(
        self,
        store: SettlementStore,
        currency: str = "INR",
        clock: Clock = utc_now,
    ) -> None:
        self._validator = CouponValidator(store, clock)
        self._currency = currency

    def handle(self, code: str, subtotal: str, user_id: str | None = None) -> CouponCheckDTO:
        result = self._validator.validate(code, Money.of(subtotal, self._currency), user_id)
        return CouponCheckDTO(
            code=canonical_code(code or ""),
            valid=result.valid,
            discount_amount=str(result.discount_amount),
            message=result.message,
        )
