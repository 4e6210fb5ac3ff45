from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from catalog_domain import Discount, Software
from catalog_rep_db import DiscountRepDB, SoftwareRepDB
from contracts_rep_db import ContractFilter, ContractsRepDB
from db_singleton import PgDB
from errors import (
    AlreadyDeleted,
    DiscountNotActivatable,
    DiscountNotFound,
    HasActiveContracts,
    ProductNotFound,
)

logger = structlog.get_logger(__name__)


class Catalog:
    """Программные продукты и скидки на них."""

    def __init__(
        self,
        db: Optional[PgDB] = None,
        *,
        software: Optional[SoftwareRepDB] = None,
        discounts: Optional[DiscountRepDB] = None,
        contracts: Optional[ContractsRepDB] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.db = db or PgDB.get()
        self.software = software or SoftwareRepDB()
        self.discounts = discounts or DiscountRepDB()
        self.contracts = contracts or ContractsRepDB()
        self.clock = clock

    # ===== продукты =====
    def create_software(self, data: dict[str, Any]) -> Software:
        s = Software.from_payload(data)
        with self.db.transaction() as tx:
            saved = self.software.create(tx, s)
        logger.info("software_created", software_id=saved.id, version=saved.version, price=str(saved.price))
        return saved

    def update_software(self, sid: int, data: dict[str, Any]) -> Software:
        """
        Частичное обновление продукта. Цены уже заключённых договоров не меняются:
        договор хранит собственную цену.
        """
        with self.db.transaction() as tx:
            current = self.software.get_by_id(tx, sid, lock="update")
            if current is None:
                raise ProductNotFound(f"ProductNotFound: {sid}", software_id=sid)
            saved = self.software.update(tx, current.with_changes(data))
            if saved is None:
                raise ProductNotFound(f"ProductNotFound: {sid}", software_id=sid)
        logger.info("software_updated", software_id=sid, fields=sorted(data))
        return saved

    def retire_software(self, sid: int) -> Software:
        with self.db.transaction() as tx:
            current = self.software.get_by_id(tx, sid, include_retired=True, lock="update")
            if current is None:
                raise ProductNotFound(f"ProductNotFound: {sid}", software_id=sid)
            if current.is_deleted:
                raise AlreadyDeleted(f"AlreadyDeleted: продукт {sid} уже удалён", software_id=sid)
            active = self.contracts.count(tx, flt=ContractFilter(software_id=sid))
            if active:
                raise HasActiveContracts(
                    f"HasActiveContracts: на продукт {sid} ссылаются действующие договоры ({active})",
                    software_id=sid,
                    contracts=active,
                )
            retired = self.software.mark_deleted(tx, sid)
        logger.info("software_retired", software_id=sid)
        return retired  # type: ignore[return-value]

    def get_software(self, sid: int, *, include_retired: bool = False) -> Software:
        s = self.software.get_by_id(self.db, sid, include_retired=include_retired)
        if s is None:
            raise ProductNotFound(f"ProductNotFound: {sid}", software_id=sid)
        return s

    def list_software(self, category: Optional[str] = None, *, include_retired: bool = False) -> list[Software]:
        return self.software.list(self.db, category=category, include_retired=include_retired)

    # ===== скидки =====
    def create_discount(self, data: dict[str, Any]) -> Discount:
        d = Discount.from_payload(data)
        with self.db.transaction() as tx:
            if self.software.get_by_id(tx, d.software_id, lock="share") is None:
                raise ProductNotFound(f"ProductNotFound: {d.software_id}", software_id=d.software_id)
            saved = self.discounts.create(tx, d)
        logger.info(
            "discount_created",
            discount_id=saved.id,
            software_id=saved.software_id,
            percentage=str(saved.percentage),
            start_date=saved.start_date.isoformat(),
            end_date=saved.end_date.isoformat(),
        )
        return saved

    def activate_discount(self, did: int) -> Discount:
        """
        Подписывает скидку. Допустимо только внутри её окна;
        повторная активация уже подписанной скидки ничего не меняет.
        """
        today = self.clock().date()
        with self.db.transaction() as tx:
            d = self.discounts.get_by_id(tx, did, lock="update")
            if d is None:
                raise DiscountNotFound(f"DiscountNotFound: {did}", discount_id=did)
            if d.is_signed:
                return d
            if not d.covers(today):
                raise DiscountNotActivatable(
                    f"DiscountNotActivatable: {today} вне окна скидки [{d.start_date}, {d.end_date}]",
                    discount_id=did,
                    today=today.isoformat(),
                )
            signed = self.discounts.mark_signed(tx, did)
        logger.info("discount_activated", discount_id=did)
        return signed  # type: ignore[return-value]

    def retire_discount(self, did: int) -> Discount:
        with self.db.transaction() as tx:
            d = self.discounts.get_by_id(tx, did, include_retired=True, lock="update")
            if d is None:
                raise DiscountNotFound(f"DiscountNotFound: {did}", discount_id=did)
            if d.is_deleted:
                raise AlreadyDeleted(f"AlreadyDeleted: скидка {did} уже удалена", discount_id=did)
            active = self.contracts.count(tx, flt=ContractFilter(discount_id=did))
            if active:
                raise HasActiveContracts(
                    f"HasActiveContracts: скидка {did} применена в действующих договорах ({active})",
                    discount_id=did,
                    contracts=active,
                )
            retired = self.discounts.mark_deleted(tx, did)
        logger.info("discount_retired", discount_id=did)
        return retired  # type: ignore[return-value]

    def get_discount(self, did: int, *, include_retired: bool = False) -> Discount:
        d = self.discounts.get_by_id(self.db, did, include_retired=include_retired)
        if d is None:
            raise DiscountNotFound(f"DiscountNotFound: {did}", discount_id=did)
        return d

    def list_discounts(self, software_id: Optional[int] = None, *, include_retired: bool = False) -> list[Discount]:
        return self.discounts.list(self.db, software_id=software_id, include_retired=include_retired)
