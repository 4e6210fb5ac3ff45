# licensing_core.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import structlog

from catalog import Catalog
from client_registry import ClientRegistry
from config import Settings, load_settings
from contract_ledger import ContractLedger
from db_singleton import PgDB
from logging_config import configure_logging
from payment_journal import PaymentJournal
from schema import ensure_schema

logger = structlog.get_logger(__name__)


@dataclass
class LicensingCore:
    """Четыре сервиса вокруг одного PgDB. Других путей изменить данные нет."""

    db: PgDB
    clients: ClientRegistry
    catalog: Catalog
    contracts: ContractLedger
    payments: PaymentJournal


def make_core(
    settings: Optional[Settings] = None,
    *,
    db: Optional[PgDB] = None,
    clock: Callable[[], datetime] = datetime.now,
    setup_logging: bool = True,
) -> LicensingCore:
    """
    Собирает ядро. Без db инициализирует singleton PgDB по настройкам;
    при auto_migrate создаёт недостающие таблицы.
    """
    settings = settings or load_settings()
    if setup_logging:
        configure_logging(settings.log_level, settings.json_logs)
    if db is None:
        db = PgDB.init(
            minconn=settings.pool_min,
            maxconn=settings.pool_max,
            statement_timeout_ms=settings.statement_timeout_ms,
            **settings.db_params,
        )
    if settings.auto_migrate:
        ensure_schema(db)

    core = LicensingCore(
        db=db,
        clients=ClientRegistry(db),
        catalog=Catalog(db, clock=clock),
        contracts=ContractLedger(db, clock=clock, loyalty_bonus_percent=settings.loyalty_bonus_percent),
        payments=PaymentJournal(db, clock=clock),
    )
    logger.info(
        "licensing_core_ready",
        auto_migrate=settings.auto_migrate,
        loyalty_bonus_percent=str(settings.loyalty_bonus_percent),
    )
    return core
