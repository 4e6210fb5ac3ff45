from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

import psycopg2
import structlog
from psycopg2 import errorcodes

from client_ref import ClientRef
from contract_domain import Contract, ContractType
from db_singleton import lock_clause
from errors import DuplicateContract, InvalidWindow, InvariantViolation

logger = structlog.get_logger(__name__)

_COLS = ("id, contract_type, personal_client_id, company_client_id, software_id, discount_id, "
         "price, start_date, end_date, years_supported, is_signed, is_paid, is_deleted, created_at")


@dataclass
class ContractFilter:
    client: Optional[ClientRef] = None
    software_id: Optional[int] = None
    discount_id: Optional[int] = None
    contract_type: Optional[ContractType] = None
    is_signed: Optional[bool] = None
    is_paid: Optional[bool] = None
    start_from: Optional[date] = None
    start_to: Optional[date] = None
    end_from: Optional[date] = None
    end_to: Optional[date] = None
    # окно договора содержит эту дату
    active_on: Optional[date] = None
    include_deleted: bool = False


@dataclass
class ContractSort:
    by: str = "id"       # id | start_date | end_date | price
    asc: bool = False


class ContractsRepDB:
    _ALLOWED_SORT = {"id": "c.id", "start_date": "c.start_date", "end_date": "c.end_date", "price": "c.price"}

    def _where(self, flt: Optional[ContractFilter]) -> tuple[str, list[Any]]:
        flt = flt or ContractFilter()
        conds, p = [], []
        if flt.client is not None:
            conds += [f"c.{flt.client.kind.contract_column} = %s"]; p += [flt.client.identity]
        if flt.software_id is not None: conds += ["c.software_id = %s"];   p += [flt.software_id]
        if flt.discount_id is not None: conds += ["c.discount_id = %s"];   p += [flt.discount_id]
        if flt.contract_type:         conds += ["c.contract_type = %s"]; p += [flt.contract_type.value]
        if flt.is_signed is not None: conds += ["c.is_signed = %s"];     p += [flt.is_signed]
        if flt.is_paid is not None:   conds += ["c.is_paid = %s"];       p += [flt.is_paid]
        if flt.start_from:            conds += ["c.start_date >= %s"];   p += [flt.start_from]
        if flt.start_to:              conds += ["c.start_date <= %s"];   p += [flt.start_to]
        if flt.end_from:              conds += ["c.end_date >= %s"];     p += [flt.end_from]
        if flt.end_to:                conds += ["c.end_date <= %s"];     p += [flt.end_to]
        if flt.active_on:
            conds += ["c.start_date <= %s AND c.end_date >= %s"]; p += [flt.active_on, flt.active_on]
        if not flt.include_deleted:   conds += ["c.is_deleted = FALSE"]
        return ("WHERE " + " AND ".join(conds), p) if conds else ("", [])

    def _order(self, sort: Optional[ContractSort]) -> str:
        if not sort: return "ORDER BY c.id DESC"
        col = self._ALLOWED_SORT.get((sort.by or "").lower(), "c.id")
        return f"ORDER BY {col} {'ASC' if sort.asc else 'DESC'}, c.id ASC"

    @staticmethod
    def _row_to_contract(r: dict[str, Any]) -> Contract:
        try:
            return Contract(
                id=r["id"], contract_type=ContractType(r["contract_type"]),
                personal_client_id=_strip(r["personal_client_id"]),
                company_client_id=_strip(r["company_client_id"]),
                software_id=r["software_id"], discount_id=r["discount_id"],
                price=r["price"], start_date=r["start_date"], end_date=r["end_date"],
                years_supported=r["years_supported"], is_signed=r["is_signed"],
                is_paid=r["is_paid"], is_deleted=r["is_deleted"], created_at=r.get("created_at"),
            )
        except (InvariantViolation, InvalidWindow) as exc:
            # строка в БД нарушает модель: запись в обход сервисов или ошибка в коде
            logger.error("contract_row_invariant_violation", contract_id=r.get("id"), error=str(exc))
            raise InvariantViolation(str(exc), contract_id=r.get("id")) from exc

    # ===== API =====
    def count(self, ex: Any, *, flt: Optional[ContractFilter] = None) -> int:
        wsql, p = self._where(flt)
        row = ex.fetch_one(f"SELECT COUNT(*) cnt FROM contract c {wsql}", p)
        return int(row["cnt"]) if row else 0

    def get_k_n(self, ex: Any, k: int, n: int, *, flt: Optional[ContractFilter] = None,
                sort: Optional[ContractSort] = None) -> list[Contract]:
        if not (isinstance(k, int) and isinstance(n, int) and k > 0 and n > 0):
            raise ValueError("k,n должны быть > 0")
        wsql, p = self._where(flt)
        osql = self._order(sort)
        rows = ex.fetch_all(
            f"SELECT {_COLS} FROM contract c {wsql} {osql} LIMIT %s OFFSET %s",
            p + [n, (k-1)*n]
        )
        return [self._row_to_contract(r) for r in rows]

    def get_by_id(self, ex: Any, cid: int, *, lock: Optional[str] = None) -> Optional[Contract]:
        """Возвращает договор независимо от is_deleted; решение — за сервисом."""
        r = ex.fetch_one(f"SELECT {_COLS} FROM contract WHERE id=%s" + lock_clause(lock), [cid])
        return self._row_to_contract(r) if r else None

    def create(self, ex: Any, c: Contract) -> Contract:
        try:
            r = ex.execute_returning(f"""
              INSERT INTO contract(contract_type, personal_client_id, company_client_id, software_id,
                                   discount_id, price, start_date, end_date, years_supported, is_paid)
              VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s,%s) RETURNING {_COLS}""",
              [c.contract_type.value, c.personal_client_id, c.company_client_id, c.software_id,
               c.discount_id, c.price, c.start_date, c.end_date, c.years_supported, c.is_paid]
            )
        except psycopg2.IntegrityError as exc:
            if getattr(exc, "pgcode", None) == errorcodes.UNIQUE_VIOLATION:
                # uq_contract_personal_software / uq_contract_company_software
                raise DuplicateContract(
                    f"DuplicateContract: у клиента {c.client_ref} уже есть договор на продукт {c.software_id}",
                    client=str(c.client_ref),
                    software_id=c.software_id,
                ) from exc
            if getattr(exc, "pgcode", None) in (errorcodes.CHECK_VIOLATION, errorcodes.FOREIGN_KEY_VIOLATION):
                logger.error("contract_insert_invariant_violation", pgcode=exc.pgcode, error=str(exc))
                raise InvariantViolation(f"InvariantViolation: БД отклонила договор: {exc}") from exc
            raise
        return self._row_to_contract(r)

    def set_signed(self, ex: Any, cid: int) -> Optional[Contract]:
        r = ex.execute_returning(
            f"UPDATE contract SET is_signed = TRUE WHERE id=%s AND is_deleted = FALSE RETURNING {_COLS}", [cid]
        )
        return self._row_to_contract(r) if r else None

    def set_paid(self, ex: Any, cid: int, is_paid: bool) -> Optional[Contract]:
        r = ex.execute_returning(
            f"UPDATE contract SET is_paid = %s WHERE id=%s RETURNING {_COLS}", [is_paid, cid]
        )
        return self._row_to_contract(r) if r else None

    def mark_deleted(self, ex: Any, cid: int) -> Optional[Contract]:
        r = ex.execute_returning(
            f"UPDATE contract SET is_deleted = TRUE WHERE id=%s AND is_deleted = FALSE RETURNING {_COLS}", [cid]
        )
        return self._row_to_contract(r) if r else None


def _strip(v: Optional[str]) -> Optional[str]:
    return v.strip() if isinstance(v, str) else v
