# clients_rep_db.py
from __future__ import annotations

from typing import Any

import psycopg2
from psycopg2 import errorcodes

from client import CompanyClient, PersonalClient
from client_ref import ClientKind, ClientRef
from db_singleton import lock_clause
from errors import DuplicateIdentity

_COLUMNS = {
    ClientKind.PERSONAL: ("pesel", "first_name", "last_name", "email", "phone_number"),
    ClientKind.COMPANY: ("krs", "name", "address", "email", "phone_number"),
}


class ClientsRepDB:
    """
    Личные и корпоративные клиенты в PostgreSQL.
    Таблица выбирается по виду ClientRef; ex — PgDB или открытая PgTx.
    Строки никогда не удаляются физически, только помечаются is_deleted.
    """

    @staticmethod
    def _select_list(kind: ClientKind) -> str:
        return ", ".join(_COLUMNS[kind] + ("created_at", "is_deleted"))

    @staticmethod
    def _row_to_client(kind: ClientKind, row: dict[str, Any]) -> PersonalClient | CompanyClient:
        payload = dict(row)
        # VARCHAR(n) может вернуться с хвостовыми пробелами у старых строк
        key = kind.key_column
        payload[key] = (payload.get(key) or "").strip()
        if kind is ClientKind.PERSONAL:
            return PersonalClient(payload)
        return CompanyClient(payload)

    # ------------------------------- чтение -------------------------------

    def get_by_ref(
        self,
        ex: Any,
        ref: ClientRef,
        *,
        include_retired: bool = False,
        lock: str | None = None,
    ) -> PersonalClient | CompanyClient | None:
        """
        Возвращает клиента или None.
        lock: None | "share" | "update" — блокировка строки до конца транзакции.
        """
        kind = ref.kind
        sql = f"SELECT {self._select_list(kind)} FROM {kind.table} WHERE {kind.key_column} = %s"
        if not include_retired:
            sql += " AND is_deleted = FALSE"
        sql += lock_clause(lock)
        row = ex.fetch_one(sql, (ref.identity,))
        return self._row_to_client(kind, row) if row is not None else None

    def get_k_n_list(
        self,
        ex: Any,
        kind: ClientKind,
        k: int,
        n: int,
        *,
        include_retired: bool = False,
    ) -> list[PersonalClient | CompanyClient]:
        """
        Возвращает страницу k (нумерация с 1) размером n.
        Порядок фиксированный: по дате регистрации, затем по идентификатору.
        """
        if not (isinstance(k, int) and isinstance(n, int) and k > 0 and n > 0):
            raise ValueError("k и n должны быть положительными целыми числами")
        where = "" if include_retired else "WHERE is_deleted = FALSE"
        sql = f"""
        SELECT {self._select_list(kind)}
        FROM {kind.table}
        {where}
        ORDER BY created_at ASC, {kind.key_column} ASC
        LIMIT %s OFFSET %s;
        """
        rows = ex.fetch_all(sql, (n, (k - 1) * n))
        return [self._row_to_client(kind, r) for r in rows]

    def get_count(self, ex: Any, kind: ClientKind, *, include_retired: bool = False) -> int:
        where = "" if include_retired else "WHERE is_deleted = FALSE"
        row = ex.fetch_one(f"SELECT COUNT(*) AS cnt FROM {kind.table} {where};")
        return int(row["cnt"]) if row else 0

    # ------------------------------- запись -------------------------------

    def add_client(
        self, ex: Any, client: PersonalClient | CompanyClient
    ) -> PersonalClient | CompanyClient:
        """
        Вставляет клиента. Дубликат идентичности (PESEL/KRS) защищён первичным ключом.
        Возвращает клиента с created_at из БД.
        """
        kind = client.kind
        cols = _COLUMNS[kind]
        data = client.to_dict()
        placeholders = ", ".join(["%s"] * len(cols))
        sql = f"""
        INSERT INTO {kind.table} ({", ".join(cols)})
        VALUES ({placeholders})
        RETURNING {self._select_list(kind)};
        """
        try:
            row = ex.execute_returning(sql, [data[c] for c in cols])
        except psycopg2.IntegrityError as exc:
            if getattr(exc, "pgcode", None) == errorcodes.UNIQUE_VIOLATION:
                raise DuplicateIdentity(
                    f"DuplicateIdentity: клиент {client.ref} уже существует",
                    client=str(client.ref),
                ) from exc
            raise

        if not row:
            raise RuntimeError("INSERT вернул пустой результат (RETURNING).")
        return self._row_to_client(kind, row)

    def update_client(
        self, ex: Any, client: PersonalClient | CompanyClient
    ) -> PersonalClient | CompanyClient | None:
        """Обновляет контактные поля неудалённого клиента. Идентичность не меняется."""
        kind = client.kind
        cols = _COLUMNS[kind][1:]
        data = client.to_dict()
        assignments = ",\n            ".join(f"{c} = %s" for c in cols)
        sql = f"""
        UPDATE {kind.table}
        SET
            {assignments}
        WHERE {kind.key_column} = %s AND is_deleted = FALSE
        RETURNING {self._select_list(kind)};
        """
        row = ex.execute_returning(sql, [data[c] for c in cols] + [client.identity])
        return self._row_to_client(kind, row) if row else None

    def mark_deleted(self, ex: Any, ref: ClientRef) -> PersonalClient | CompanyClient | None:
        kind = ref.kind
        sql = f"""
        UPDATE {kind.table}
        SET is_deleted = TRUE
        WHERE {kind.key_column} = %s AND is_deleted = FALSE
        RETURNING {self._select_list(kind)};
        """
        row = ex.execute_returning(sql, (ref.identity,))
        return self._row_to_client(kind, row) if row else None
