# db_singleton.py
from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2 import errorcodes, extensions
from psycopg2.extensions import connection as pg_connection
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

ISOLATION_LEVELS = {
    "read_committed": extensions.ISOLATION_LEVEL_READ_COMMITTED,
    "repeatable_read": extensions.ISOLATION_LEVEL_REPEATABLE_READ,
    "serializable": extensions.ISOLATION_LEVEL_SERIALIZABLE,
}


class PgTx:
    """
    Открытая транзакция: те же fetch_one/fetch_all/execute/execute_returning,
    что и у PgDB, но все запросы идут через один курсор одного соединения.
    """

    def __init__(self, cursor: RealDictCursor) -> None:
        self._cur = cursor

    def fetch_one(self, sql: str, params: Iterable[Any] | None = None) -> dict[str, Any] | None:
        self._cur.execute(sql, params)
        row = self._cur.fetchone()
        return dict(row) if row is not None else None

    def fetch_all(self, sql: str, params: Iterable[Any] | None = None) -> list[dict[str, Any]]:
        self._cur.execute(sql, params)
        return [dict(r) for r in self._cur.fetchall()]

    def execute(self, sql: str, params: Iterable[Any] | None = None) -> int:
        self._cur.execute(sql, params)
        return self._cur.rowcount

    def execute_returning(
        self, sql: str, params: Iterable[Any] | None = None
    ) -> dict[str, Any] | None:
        """
        Выполняет запрос с RETURNING и возвращает первую строку результата (dict) либо None.
        """
        self._cur.execute(sql, params)
        row = self._cur.fetchone()
        return dict(row) if row is not None else None


class PgDB:
    """
    Singleton для работы с PostgreSQL (без ORM) поверх пула соединений.
    Каждая мутация выполняется в transaction(): commit при успехе, rollback при любой ошибке.
    """

    _instance: PgDB | None = None
    _lock = threading.Lock()

    def __init__(
        self,
        *,
        minconn: int = 1,
        maxconn: int = 10,
        statement_timeout_ms: int = 0,
        **conn_params: Any,
    ) -> None:
        self._conn_params = dict(conn_params)
        if statement_timeout_ms:
            # Каждый запрос ограничен по времени на стороне сервера
            options = self._conn_params.get("options", "")
            self._conn_params["options"] = f"{options} -c statement_timeout={int(statement_timeout_ms)}".strip()
        self._minconn = minconn
        self._maxconn = maxconn
        self._pool: ThreadedConnectionPool | None = None

    @classmethod
    def init(cls, **params: Any) -> PgDB:
        """
        Однократная инициализация (создаёт/пересоздаёт Singleton).
        Старый пул, если был, закрывается.
        """
        with cls._lock:
            if cls._instance is not None:
                cls._instance.close()
            cls._instance = PgDB(**params)
            return cls._instance

    @classmethod
    def get(cls) -> PgDB:
        if cls._instance is None:
            raise RuntimeError("PgDB не инициализирован. Сначала вызовите PgDB.init(...).")
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            if cls._instance is not None:
                cls._instance.close()
            cls._instance = None

    def _get_pool(self) -> ThreadedConnectionPool:
        if self._pool is None:
            with self._lock:
                if self._pool is None:
                    self._pool = ThreadedConnectionPool(
                        self._minconn, self._maxconn, **self._conn_params
                    )
        return self._pool

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None

    @contextmanager
    def connection(self) -> Iterator[pg_connection]:
        pool = self._get_pool()
        conn: pg_connection = pool.getconn()
        try:
            yield conn
        finally:
            # Соединение в сломанном состоянии пулу не возвращаем
            pool.putconn(conn, close=bool(conn.closed))

    @contextmanager
    def transaction(self, isolation: str = "read_committed") -> Iterator[PgTx]:
        """
        Всё-или-ничего: commit при выходе без исключения, rollback при любом исключении
        (включая ошибки бизнес-проверок), после чего исключение пробрасывается дальше.
        """
        if isolation not in ISOLATION_LEVELS:
            raise ValueError(f"Неизвестный уровень изоляции: {isolation!r}")
        with self.connection() as conn:
            conn.set_session(isolation_level=ISOLATION_LEVELS[isolation], autocommit=False)
            cur = conn.cursor(cursor_factory=RealDictCursor)
            try:
                yield PgTx(cur)
                conn.commit()
            except BaseException:
                if not conn.closed:
                    conn.rollback()
                raise
            finally:
                cur.close()

    # --- Простые обёртки: один запрос в собственной транзакции. ---

    def fetch_one(self, sql: str, params: Iterable[Any] | None = None) -> dict[str, Any] | None:
        with self.transaction() as tx:
            return tx.fetch_one(sql, params)

    def fetch_all(self, sql: str, params: Iterable[Any] | None = None) -> list[dict[str, Any]]:
        with self.transaction() as tx:
            return tx.fetch_all(sql, params)

    def execute(self, sql: str, params: Iterable[Any] | None = None) -> int:
        with self.transaction() as tx:
            return tx.execute(sql, params)

    def execute_returning(
        self, sql: str, params: Iterable[Any] | None = None
    ) -> dict[str, Any] | None:
        with self.transaction() as tx:
            return tx.execute_returning(sql, params)


def is_serialization_failure(exc: BaseException) -> bool:
    """Повторять такие ошибки должен вызывающий на границе транзакции, ядро их не маскирует."""
    return isinstance(exc, psycopg2.Error) and getattr(exc, "pgcode", None) in (
        errorcodes.SERIALIZATION_FAILURE,
        errorcodes.DEADLOCK_DETECTED,
    )


def lock_clause(lock: str | None) -> str:
    """Хвост SELECT: None — без блокировки, "share" — FOR SHARE, "update" — FOR UPDATE."""
    if lock is None:
        return ";"
    if lock == "share":
        return " FOR SHARE;"
    if lock == "update":
        return " FOR UPDATE;"
    raise ValueError(f"Неизвестный режим блокировки: {lock!r}")
