# schema.py
from __future__ import annotations

import structlog

from db_singleton import PgDB

logger = structlog.get_logger(__name__)

DDL_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS personal_client (
        pesel         VARCHAR(11) PRIMARY KEY
            CHECK (pesel ~ '^[0-9]{11}$'),
        first_name    TEXT      NOT NULL,
        last_name     TEXT      NOT NULL,
        email         TEXT      NOT NULL,
        phone_number  TEXT      NOT NULL,
        created_at    TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        is_deleted    BOOLEAN   NOT NULL DEFAULT FALSE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS company_client (
        krs           VARCHAR(10) PRIMARY KEY
            CHECK (krs ~ '^[0-9]{10}$'),
        name          TEXT      NOT NULL,
        address       TEXT      NOT NULL,
        email         TEXT      NOT NULL,
        phone_number  TEXT      NOT NULL,
        created_at    TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
        is_deleted    BOOLEAN   NOT NULL DEFAULT FALSE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS software (
        id            SERIAL PRIMARY KEY,
        name          TEXT          NOT NULL,
        description   TEXT          NOT NULL,
        version       TEXT          NOT NULL,
        category      TEXT          NOT NULL,
        price         NUMERIC(10, 2) NOT NULL CHECK (price >= 0),
        is_deleted    BOOLEAN       NOT NULL DEFAULT FALSE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS discount (
        id            SERIAL PRIMARY KEY,
        name          TEXT          NOT NULL,
        software_id   INTEGER       NOT NULL REFERENCES software(id),
        percentage    NUMERIC(8, 5) NOT NULL
            CHECK (percentage >= 0 AND percentage <= 100),
        start_date    DATE          NOT NULL,
        end_date      DATE          NOT NULL,
        is_signed     BOOLEAN       NOT NULL DEFAULT FALSE,
        is_deleted    BOOLEAN       NOT NULL DEFAULT FALSE,
        CONSTRAINT ck_discount_window CHECK (start_date < end_date)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS contract (
        id                  SERIAL PRIMARY KEY,
        contract_type       VARCHAR(9)     NOT NULL
            CHECK (contract_type IN ('private', 'corporate')),
        personal_client_id  VARCHAR(11)    REFERENCES personal_client(pesel),
        company_client_id   VARCHAR(10)    REFERENCES company_client(krs),
        software_id         INTEGER        NOT NULL REFERENCES software(id),
        discount_id         INTEGER        REFERENCES discount(id),
        price               NUMERIC(10, 2) NOT NULL CHECK (price >= 0),
        start_date          DATE           NOT NULL,
        end_date            DATE           NOT NULL,
        years_supported     INTEGER        NOT NULL CHECK (years_supported >= 0),
        is_signed           BOOLEAN        NOT NULL DEFAULT FALSE,
        is_paid             BOOLEAN        NOT NULL DEFAULT FALSE,
        is_deleted          BOOLEAN        NOT NULL DEFAULT FALSE,
        created_at          TIMESTAMP      NOT NULL DEFAULT CURRENT_TIMESTAMP,
        CONSTRAINT ck_contract_client_kind CHECK (
            (contract_type = 'private'
                AND personal_client_id IS NOT NULL AND company_client_id IS NULL)
            OR
            (contract_type = 'corporate'
                AND company_client_id IS NOT NULL AND personal_client_id IS NULL)
        ),
        CONSTRAINT ck_contract_window CHECK (start_date < end_date)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS payment (
        id            SERIAL PRIMARY KEY,
        contract_id   INTEGER        NOT NULL REFERENCES contract(id),
        amount        NUMERIC(10, 2) NOT NULL CHECK (amount > 0),
        payment_date  TIMESTAMP      NOT NULL DEFAULT CURRENT_TIMESTAMP,
        is_deleted    BOOLEAN        NOT NULL DEFAULT FALSE
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_discount_software ON discount(software_id);",
    "CREATE INDEX IF NOT EXISTS idx_contract_personal_client ON contract(personal_client_id);",
    "CREATE INDEX IF NOT EXISTS idx_contract_company_client ON contract(company_client_id);",
    "CREATE INDEX IF NOT EXISTS idx_contract_software ON contract(software_id);",
    # один живой договор на пару (клиент, продукт)
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_contract_personal_software
        ON contract(personal_client_id, software_id)
        WHERE is_deleted = FALSE AND personal_client_id IS NOT NULL;
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_contract_company_software
        ON contract(company_client_id, software_id)
        WHERE is_deleted = FALSE AND company_client_id IS NOT NULL;
    """,
    "CREATE INDEX IF NOT EXISTS idx_payment_contract ON payment(contract_id);",
)

TABLES: tuple[str, ...] = (
    "payment",
    "contract",
    "discount",
    "software",
    "company_client",
    "personal_client",
)


def ensure_schema(db: PgDB | None = None) -> None:
    """
    Создаёт таблицы и индексы, если их ещё нет. Всё в одной транзакции.
    """
    db = db or PgDB.get()
    with db.transaction() as tx:
        for ddl in DDL_STATEMENTS:
            tx.execute(ddl)
    logger.info("schema_ensured", tables=len(TABLES))


def truncate_all(db: PgDB | None = None) -> None:
    """Очищает все таблицы (для интеграционных тестов и локальной разработки)."""
    db = db or PgDB.get()
    with db.transaction() as tx:
        tx.execute(f"TRUNCATE TABLE {', '.join(TABLES)} RESTART IDENTITY CASCADE;")
    logger.warning("schema_truncated", tables=list(TABLES))


if __name__ == "__main__":
    from config import load_settings
    from logging_config import configure_logging

    settings = load_settings()
    configure_logging(settings.log_level, settings.json_logs)
    PgDB.init(
        minconn=settings.pool_min,
        maxconn=settings.pool_max,
        statement_timeout_ms=settings.statement_timeout_ms,
        **settings.db_params,
    )
    ensure_schema()
    print("✓ Схема создана (или уже существовала).")
