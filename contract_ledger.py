from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional

import structlog

from catalog_rep_db import DiscountRepDB, SoftwareRepDB
from client_ref import ClientRef
from clients_rep_db import ClientsRepDB
from contract_domain import Contract, ContractState, ContractType
from contracts_rep_db import ContractFilter, ContractSort, ContractsRepDB
from db_singleton import PgDB
from errors import (
    AlreadyDeleted,
    ClientNotFound,
    ContractNotFound,
    DiscountNotApplicable,
    DuplicateContract,
    InvariantViolation,
    ProductNotFound,
)
from pricing import combine_percentages, effective_price
from validators import Validator as V

logger = structlog.get_logger(__name__)


class ContractLedger:
    """
    Договоры лицензирования: Drafted -> Signed -> Paid -> (Closed | Cancelled).
    Цена фиксируется при создании и дальше от каталога не зависит.
    """

    def __init__(
        self,
        db: Optional[PgDB] = None,
        *,
        contracts: Optional[ContractsRepDB] = None,
        clients: Optional[ClientsRepDB] = None,
        software: Optional[SoftwareRepDB] = None,
        discounts: Optional[DiscountRepDB] = None,
        clock: Callable[[], datetime] = datetime.now,
        loyalty_bonus_percent: Decimal = Decimal(0),
    ) -> None:
        self.db = db or PgDB.get()
        self.contracts = contracts or ContractsRepDB()
        self.clients = clients or ClientsRepDB()
        self.software = software or SoftwareRepDB()
        self.discounts = discounts or DiscountRepDB()
        self.clock = clock
        self.loyalty_bonus_percent = Decimal(loyalty_bonus_percent)

    def _client_ref(self, contract_type: ContractType, client: Any) -> ClientRef:
        """Голая строка трактуется как PESEL или KRS по типу договора."""
        if isinstance(client, str):
            return ClientRef(contract_type.client_kind, client)
        try:
            ref = ClientRef.parse(client)
            if ref.kind is not contract_type.client_kind:
                raise InvariantViolation(
                    f"InvariantViolation: договор типа '{contract_type.value}' "
                    f"не может ссылаться на клиента вида '{ref.kind.value}'.",
                    client=str(ref),
                )
        except InvariantViolation as exc:
            logger.error("contract_client_invariant_violation", contract_type=contract_type.value, error=str(exc))
            raise
        return ref

    # ===== создание =====
    def create(
        self,
        contract_type: ContractType | str,
        client: ClientRef | dict[str, Any] | str,
        software_id: int,
        start_date: date | str,
        end_date: date | str,
        years_supported: int,
        discount_id: Optional[int] = None,
    ) -> Contract:
        """
        Новый неподписанный договор.
        Клиент, продукт и скидка блокируются FOR SHARE до конца транзакции,
        чтобы их нельзя было удалить параллельно.
        """
        ctype = ContractType.parse(contract_type)
        ref = self._client_ref(ctype, client)
        start, end = V.date_window(start_date, end_date)
        years = V.years_supported(years_supported)
        today = self.clock().date()

        with self.db.transaction() as tx:
            if self.clients.get_by_ref(tx, ref, lock="share") is None:
                raise ClientNotFound(f"ClientNotFound: {ref}", client=str(ref))
            product = self.software.get_by_id(tx, software_id, lock="share")
            if product is None:
                raise ProductNotFound(f"ProductNotFound: {software_id}", software_id=software_id)

            discount = None
            if discount_id is not None:
                discount = self.discounts.get_by_id(tx, discount_id, include_retired=True, lock="share")
                if discount is None or not discount.is_applicable(software_id, today):
                    raise DiscountNotApplicable(
                        f"DiscountNotApplicable: скидку {discount_id} нельзя применить "
                        f"к продукту {software_id} на {today}",
                        discount_id=discount_id,
                        software_id=software_id,
                    )

            if self.contracts.count(tx, flt=ContractFilter(client=ref, software_id=software_id)):
                raise DuplicateContract(
                    f"DuplicateContract: у клиента {ref} уже есть договор на продукт {software_id}",
                    client=str(ref),
                    software_id=software_id,
                )

            bonus = None
            if self.loyalty_bonus_percent > 0 and self.contracts.count(
                tx, flt=ContractFilter(client=ref, active_on=today)
            ):
                bonus = self.loyalty_bonus_percent

            percentage = combine_percentages(discount.percentage if discount else None, bonus)
            price = effective_price(product.price, percentage)
            saved = self.contracts.create(tx, Contract.draft(
                ctype, ref,
                software_id=software_id, price=price,
                start_date=start, end_date=end,
                years_supported=years, discount_id=discount_id,
            ))
        logger.info(
            "contract_created",
            contract_id=saved.id,
            contract_type=ctype.value,
            client=str(ref),
            software_id=software_id,
            discount_id=discount_id,
            price=str(saved.price),
        )
        return saved

    # ===== переходы =====
    def sign(self, cid: int) -> Contract:
        """Повторная подпись ничего не меняет."""
        with self.db.transaction() as tx:
            c = self._locked(tx, cid)
            if c.is_signed:
                return c
            signed = self.contracts.set_signed(tx, cid)
        logger.info("contract_signed", contract_id=cid)
        return signed  # type: ignore[return-value]

    def cancel(self, cid: int) -> Contract:
        return self._delete(cid, "contract_cancelled")

    def close(self, cid: int) -> Contract:
        return self._delete(cid, "contract_closed")

    def _delete(self, cid: int, event: str) -> Contract:
        with self.db.transaction() as tx:
            self._locked(tx, cid)
            deleted = self.contracts.mark_deleted(tx, cid)
        state = deleted.state(self.clock().date())  # type: ignore[union-attr]
        logger.info(event, contract_id=cid, state=state.value)
        return deleted  # type: ignore[return-value]

    def _locked(self, tx: Any, cid: int) -> Contract:
        c = self.contracts.get_by_id(tx, cid, lock="update")
        if c is None:
            raise ContractNotFound(f"ContractNotFound: {cid}", contract_id=cid)
        if c.is_deleted:
            raise AlreadyDeleted(f"AlreadyDeleted: договор {cid} уже удалён", contract_id=cid)
        return c

    # ===== чтение =====
    def get(self, cid: int, *, include_deleted: bool = False) -> Contract:
        c = self.contracts.get_by_id(self.db, cid)
        if c is None or (c.is_deleted and not include_deleted):
            raise ContractNotFound(f"ContractNotFound: {cid}", contract_id=cid)
        return c

    def state(self, cid: int) -> ContractState:
        return self.get(cid, include_deleted=True).state(self.clock().date())

    def find(
        self,
        flt: Optional[ContractFilter] = None,
        sort: Optional[ContractSort] = None,
        page: int = 1,
        size: int = 20,
    ) -> list[Contract]:
        return self.contracts.get_k_n(self.db, page, size, flt=flt, sort=sort)

    def count(self, flt: Optional[ContractFilter] = None) -> int:
        return self.contracts.count(self.db, flt=flt)
