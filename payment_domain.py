from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from lifecycle import LifecycleStatus


@dataclass(frozen=True, slots=True)
class Payment:
    id: Optional[int]
    contract_id: int
    amount: Decimal
    payment_date: datetime
    is_deleted: bool = False

    @property
    def status(self) -> LifecycleStatus:
        return LifecycleStatus.of(self.is_deleted)


@dataclass(frozen=True, slots=True)
class PaymentBalance:
    contract_id: int
    price: Decimal
    paid: Decimal
    is_paid: bool

    @property
    def outstanding(self) -> Decimal:
        return max(self.price - self.paid, Decimal("0.00"))


def is_fully_paid(active_total: Decimal, price: Decimal) -> bool:
    """Договор оплачен, когда сумма неудалённых платежей не меньше цены. Переплата допустима."""
    return active_total >= price
