from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from db_singleton import lock_clause
from payment_domain import Payment

_COLS = "id, contract_id, amount, payment_date, is_deleted"


class PaymentsRepDB:
    """Платежи по договорам. Строки только добавляются и помечаются is_deleted."""

    @staticmethod
    def _row_to_payment(r: dict[str, Any]) -> Payment:
        return Payment(
            id=r["id"], contract_id=r["contract_id"], amount=r["amount"],
            payment_date=r["payment_date"], is_deleted=r["is_deleted"],
        )

    def get_by_id(self, ex: Any, pid: int, *, lock: Optional[str] = None) -> Optional[Payment]:
        r = ex.fetch_one(f"SELECT {_COLS} FROM payment WHERE id=%s" + lock_clause(lock), [pid])
        return self._row_to_payment(r) if r else None

    def list_for_contract(self, ex: Any, contract_id: int, *, include_deleted: bool = False) -> list[Payment]:
        sql = f"SELECT {_COLS} FROM payment WHERE contract_id=%s"
        if not include_deleted:
            sql += " AND is_deleted = FALSE"
        rows = ex.fetch_all(sql + " ORDER BY payment_date ASC, id ASC", [contract_id])
        return [self._row_to_payment(r) for r in rows]

    def total_active(self, ex: Any, contract_id: int) -> Decimal:
        row = ex.fetch_one(
            "SELECT COALESCE(SUM(amount), 0) AS total FROM payment WHERE contract_id=%s AND is_deleted = FALSE",
            [contract_id],
        )
        return Decimal(row["total"]) if row else Decimal("0.00")

    def create(self, ex: Any, p: Payment) -> Payment:
        r = ex.execute_returning(f"""
          INSERT INTO payment(contract_id, amount, payment_date)
          VALUES (%s,%s,%s) RETURNING {_COLS}""",
          [p.contract_id, p.amount, p.payment_date]
        )
        return self._row_to_payment(r)

    def mark_deleted(self, ex: Any, pid: int) -> Optional[Payment]:
        r = ex.execute_returning(
            f"UPDATE payment SET is_deleted = TRUE WHERE id=%s AND is_deleted = FALSE RETURNING {_COLS}", [pid]
        )
        return self._row_to_payment(r) if r else None
