from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from client_ref import ClientKind, ClientRef
from errors import InvalidWindow, InvariantViolation, ValidationError
from lifecycle import LifecycleStatus
from payment_domain import is_fully_paid


class ContractType(str, Enum):
    PRIVATE = "private"
    CORPORATE = "corporate"

    @property
    def client_kind(self) -> ClientKind:
        return ClientKind.PERSONAL if self is ContractType.PRIVATE else ClientKind.COMPANY

    @classmethod
    def parse(cls, value: ContractType | str) -> ContractType:
        if isinstance(value, ContractType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"contract_type должен быть 'private' или 'corporate', получено {value!r}."
            ) from None


class ContractState(str, Enum):
    DRAFTED = "Drafted"
    SIGNED = "Signed"
    PAID = "Paid"
    CLOSED = "Closed"
    CANCELLED = "Cancelled"


@dataclass(frozen=True, slots=True)
class Contract:
    """
    Единый договор для личных и корпоративных клиентов.
    Ровно одна из ссылок personal_client_id/company_client_id заполнена,
    и её вид соответствует contract_type. is_paid меняется только журналом платежей.
    """

    id: Optional[int]
    contract_type: ContractType
    personal_client_id: Optional[str]
    company_client_id: Optional[str]
    software_id: int
    price: Decimal
    start_date: date
    end_date: date
    years_supported: int
    discount_id: Optional[int] = None
    is_signed: bool = False
    is_paid: bool = False
    is_deleted: bool = False
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        ref = ClientRef.from_parts(self.personal_client_id, self.company_client_id)
        if ref.kind is not self.contract_type.client_kind:
            raise InvariantViolation(
                f"InvariantViolation: договор типа '{self.contract_type.value}' "
                f"не может ссылаться на клиента вида '{ref.kind.value}'.",
                contract_id=self.id,
            )
        if not self.start_date < self.end_date:
            raise InvalidWindow(
                f"InvalidWindow: start_date ({self.start_date}) должна быть раньше end_date ({self.end_date}).",
                contract_id=self.id,
            )

    @classmethod
    def draft(
        cls,
        contract_type: ContractType,
        client: ClientRef,
        *,
        software_id: int,
        price: Decimal,
        start_date: date,
        end_date: date,
        years_supported: int,
        discount_id: Optional[int] = None,
    ) -> Contract:
        """
        Новый неподписанный договор; ссылка на клиента раскладывается по нужному столбцу.
        Платежей ещё нет, поэтому бесплатный договор (цена 0.00) сразу оплачен.
        """
        return cls(
            id=None,
            contract_type=contract_type,
            personal_client_id=client.identity if client.kind is ClientKind.PERSONAL else None,
            company_client_id=client.identity if client.kind is ClientKind.COMPANY else None,
            software_id=software_id,
            price=price,
            start_date=start_date,
            end_date=end_date,
            years_supported=years_supported,
            discount_id=discount_id,
            is_paid=is_fully_paid(Decimal("0.00"), price),
        )

    @property
    def client_ref(self) -> ClientRef:
        return ClientRef.from_parts(self.personal_client_id, self.company_client_id)

    @property
    def status(self) -> LifecycleStatus:
        return LifecycleStatus.of(self.is_deleted)

    def state(self, today: date) -> ContractState:
        """
        Drafted/Signed/Paid — по флагам; удалённый договор закрыт,
        если его окно уже прошло, иначе отменён.
        """
        if self.is_deleted:
            return ContractState.CLOSED if self.end_date < today else ContractState.CANCELLED
        if self.is_paid:
            return ContractState.PAID
        if self.is_signed:
            return ContractState.SIGNED
        return ContractState.DRAFTED
