from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Optional

import structlog

from contract_domain import Contract
from contracts_rep_db import ContractsRepDB
from db_singleton import PgDB
from errors import AlreadyDeleted, ContractDeleted, ContractNotFound, InstallmentsMismatch, PaymentNotFound
from payment_domain import Payment, PaymentBalance, is_fully_paid
from payments_rep_db import PaymentsRepDB
from validators import Validator as V

logger = structlog.get_logger(__name__)


class PaymentJournal:
    """
    Журнал платежей. Любое изменение платежей пересчитывает contract.is_paid
    в той же транзакции, под блокировкой строки договора (FOR UPDATE).
    """

    def __init__(
        self,
        db: Optional[PgDB] = None,
        *,
        payments: Optional[PaymentsRepDB] = None,
        contracts: Optional[ContractsRepDB] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.db = db or PgDB.get()
        self.payments = payments or PaymentsRepDB()
        self.contracts = contracts or ContractsRepDB()
        self.clock = clock

    def _recompute(self, tx: Any, c: Contract) -> PaymentBalance:
        total = self.payments.total_active(tx, c.id)
        paid = is_fully_paid(total, c.price)
        if paid != c.is_paid:
            self.contracts.set_paid(tx, c.id, paid)
            logger.info("contract_paid_flag_changed", contract_id=c.id, is_paid=paid, paid_total=str(total))
        return PaymentBalance(contract_id=c.id, price=c.price, paid=total, is_paid=paid)  # type: ignore[arg-type]

    def _payment_date(self, value: date | datetime | str | None) -> datetime:
        if value is None:
            return self.clock()
        if isinstance(value, datetime):
            return value
        return datetime.combine(V.to_date("payment_date", value), time.min)

    def _open_contract(self, tx: Any, contract_id: int) -> Contract:
        c = self.contracts.get_by_id(tx, contract_id, lock="update")
        if c is None:
            raise ContractNotFound(f"ContractNotFound: {contract_id}", contract_id=contract_id)
        if c.is_deleted:
            raise ContractDeleted(f"ContractDeleted: договор {contract_id} удалён", contract_id=contract_id)
        return c

    # ===== запись =====
    def record(
        self, contract_id: int, amount: Decimal | int | str, payment_date: date | datetime | str | None = None
    ) -> Payment:
        amount = V.positive_amount(amount)
        when = self._payment_date(payment_date)
        with self.db.transaction() as tx:
            c = self._open_contract(tx, contract_id)
            saved = self.payments.create(tx, Payment(
                id=None, contract_id=contract_id, amount=amount, payment_date=when,
            ))
            balance = self._recompute(tx, c)
        logger.info(
            "payment_recorded",
            payment_id=saved.id,
            contract_id=contract_id,
            amount=str(amount),
            is_paid=balance.is_paid,
        )
        return saved

    def record_installments(
        self,
        contract_id: int,
        per_installment: Decimal | int | str,
        count: int,
        payment_date: date | datetime | str | None = None,
    ) -> list[Payment]:
        """
        Рассрочка: count одинаковых взносов, сумма которых должна точно совпасть
        с ценой договора. Взносы пишутся одной транзакцией с общей датой.
        """
        per = V.positive_amount(per_installment)
        n = V.installments_count(count)
        when = self._payment_date(payment_date)
        with self.db.transaction() as tx:
            c = self._open_contract(tx, contract_id)
            if per * n != c.price:
                raise InstallmentsMismatch(
                    f"InstallmentsMismatch: {n} x {per} = {per * n}, а цена договора {c.price}",
                    contract_id=contract_id,
                    total=str(per * n),
                    price=str(c.price),
                )
            saved = [
                self.payments.create(tx, Payment(
                    id=None, contract_id=contract_id, amount=per, payment_date=when,
                ))
                for _ in range(n)
            ]
            balance = self._recompute(tx, c)
        logger.info(
            "installments_recorded",
            contract_id=contract_id,
            per_installment=str(per),
            count=n,
            payment_ids=[p.id for p in saved],
            is_paid=balance.is_paid,
        )
        return saved

    def void(self, payment_id: int) -> Payment:
        """
        Мягко удаляет платёж. Договор может снова стать неоплаченным.
        Платёж по уже удалённому договору аннулировать можно.
        """
        with self.db.transaction() as tx:
            found = self.payments.get_by_id(tx, payment_id)
            if found is None:
                raise PaymentNotFound(f"PaymentNotFound: {payment_id}", payment_id=payment_id)
            # порядок блокировок: сначала договор, затем платёж
            c = self.contracts.get_by_id(tx, found.contract_id, lock="update")
            if c is None:
                raise ContractNotFound(f"ContractNotFound: {found.contract_id}", contract_id=found.contract_id)
            p = self.payments.get_by_id(tx, payment_id, lock="update")
            if p is None or p.is_deleted:
                raise AlreadyDeleted(f"AlreadyDeleted: платёж {payment_id} уже аннулирован", payment_id=payment_id)
            voided = self.payments.mark_deleted(tx, payment_id)
            balance = self._recompute(tx, c)
        logger.info(
            "payment_voided",
            payment_id=payment_id,
            contract_id=c.id,
            amount=str(p.amount),
            is_paid=balance.is_paid,
        )
        return voided  # type: ignore[return-value]

    # ===== чтение =====
    def get(self, payment_id: int, *, include_voided: bool = False) -> Payment:
        p = self.payments.get_by_id(self.db, payment_id)
        if p is None or (p.is_deleted and not include_voided):
            raise PaymentNotFound(f"PaymentNotFound: {payment_id}", payment_id=payment_id)
        return p

    def list_for_contract(self, contract_id: int, *, include_voided: bool = False) -> list[Payment]:
        with self.db.transaction() as tx:
            if self.contracts.get_by_id(tx, contract_id) is None:
                raise ContractNotFound(f"ContractNotFound: {contract_id}", contract_id=contract_id)
            return self.payments.list_for_contract(tx, contract_id, include_deleted=include_voided)

    def balance(self, contract_id: int) -> PaymentBalance:
        with self.db.transaction() as tx:
            c = self.contracts.get_by_id(tx, contract_id)
            if c is None:
                raise ContractNotFound(f"ContractNotFound: {contract_id}", contract_id=contract_id)
            total = self.payments.total_active(tx, contract_id)
        return PaymentBalance(contract_id=contract_id, price=c.price, paid=total, is_paid=c.is_paid)
