from __future__ import annotations

from typing import Any, Optional

from catalog_domain import Discount, Software
from db_singleton import lock_clause

_SOFTWARE_COLS = "id, name, description, version, category, price, is_deleted"
_DISCOUNT_COLS = "id, name, software_id, percentage, start_date, end_date, is_signed, is_deleted"


class SoftwareRepDB:
    @staticmethod
    def _row_to_software(r: dict[str, Any]) -> Software:
        return Software(
            id=r["id"], name=r["name"], description=r["description"],
            version=r["version"], category=r["category"], price=r["price"],
            is_deleted=r["is_deleted"],
        )

    def get_by_id(
        self, ex: Any, sid: int, *, include_retired: bool = False, lock: Optional[str] = None
    ) -> Optional[Software]:
        sql = f"SELECT {_SOFTWARE_COLS} FROM software WHERE id = %s"
        if not include_retired:
            sql += " AND is_deleted = FALSE"
        r = ex.fetch_one(sql + lock_clause(lock), [sid])
        return self._row_to_software(r) if r else None

    def list(
        self, ex: Any, *, category: Optional[str] = None, include_retired: bool = False
    ) -> list[Software]:
        conds, p = [], []
        if category:        conds += ["category = %s"];     p += [category]
        if not include_retired: conds += ["is_deleted = FALSE"]
        wsql = ("WHERE " + " AND ".join(conds)) if conds else ""
        rows = ex.fetch_all(f"SELECT {_SOFTWARE_COLS} FROM software {wsql} ORDER BY id ASC", p)
        return [self._row_to_software(r) for r in rows]

    def create(self, ex: Any, s: Software) -> Software:
        r = ex.execute_returning(f"""
          INSERT INTO software(name, description, version, category, price)
          VALUES (%s,%s,%s,%s,%s) RETURNING {_SOFTWARE_COLS}""",
          [s.name, s.description, s.version, s.category, s.price]
        )
        return self._row_to_software(r)

    def update(self, ex: Any, s: Software) -> Optional[Software]:
        r = ex.execute_returning(f"""
          UPDATE software SET name=%s, description=%s, version=%s, category=%s, price=%s
          WHERE id=%s AND is_deleted = FALSE RETURNING {_SOFTWARE_COLS}""",
          [s.name, s.description, s.version, s.category, s.price, s.id]
        )
        return self._row_to_software(r) if r else None

    def mark_deleted(self, ex: Any, sid: int) -> Optional[Software]:
        r = ex.execute_returning(
            f"UPDATE software SET is_deleted = TRUE WHERE id=%s AND is_deleted = FALSE RETURNING {_SOFTWARE_COLS}",
            [sid],
        )
        return self._row_to_software(r) if r else None


class DiscountRepDB:
    @staticmethod
    def _row_to_discount(r: dict[str, Any]) -> Discount:
        return Discount(
            id=r["id"], name=r["name"], software_id=r["software_id"],
            percentage=r["percentage"], start_date=r["start_date"], end_date=r["end_date"],
            is_signed=r["is_signed"], is_deleted=r["is_deleted"],
        )

    def get_by_id(
        self, ex: Any, did: int, *, include_retired: bool = False, lock: Optional[str] = None
    ) -> Optional[Discount]:
        sql = f"SELECT {_DISCOUNT_COLS} FROM discount WHERE id = %s"
        if not include_retired:
            sql += " AND is_deleted = FALSE"
        r = ex.fetch_one(sql + lock_clause(lock), [did])
        return self._row_to_discount(r) if r else None

    def list(
        self, ex: Any, *, software_id: Optional[int] = None, include_retired: bool = False
    ) -> list[Discount]:
        conds, p = [], []
        if software_id is not None: conds += ["software_id = %s"]; p += [software_id]
        if not include_retired:     conds += ["is_deleted = FALSE"]
        wsql = ("WHERE " + " AND ".join(conds)) if conds else ""
        rows = ex.fetch_all(f"SELECT {_DISCOUNT_COLS} FROM discount {wsql} ORDER BY id ASC", p)
        return [self._row_to_discount(r) for r in rows]

    def create(self, ex: Any, d: Discount) -> Discount:
        r = ex.execute_returning(f"""
          INSERT INTO discount(name, software_id, percentage, start_date, end_date)
          VALUES (%s,%s,%s,%s,%s) RETURNING {_DISCOUNT_COLS}""",
          [d.name, d.software_id, d.percentage, d.start_date, d.end_date]
        )
        return self._row_to_discount(r)

    def mark_signed(self, ex: Any, did: int) -> Optional[Discount]:
        r = ex.execute_returning(
            f"UPDATE discount SET is_signed = TRUE WHERE id=%s AND is_deleted = FALSE RETURNING {_DISCOUNT_COLS}",
            [did],
        )
        return self._row_to_discount(r) if r else None

    def mark_deleted(self, ex: Any, did: int) -> Optional[Discount]:
        r = ex.execute_returning(
            f"UPDATE discount SET is_deleted = TRUE WHERE id=%s AND is_deleted = FALSE RETURNING {_DISCOUNT_COLS}",
            [did],
        )
        return self._row_to_discount(r) if r else None
