# config.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from decouple import Config
from decouple import config as env_config

# Значения по умолчанию для локальной разработки
DB_DEFAULTS: dict[str, Any] = {
    "host": "127.0.0.1",
    "port": 5432,
    "dbname": "licensing",
    "user": "postgres",
    "password": "password",
}


@dataclass
class Settings:
    db_params: dict[str, Any] = field(default_factory=lambda: dict(DB_DEFAULTS))
    pool_min: int = 1
    pool_max: int = 10
    # 0: без ограничения
    statement_timeout_ms: int = 5000
    auto_migrate: bool = False
    log_level: str = "INFO"
    json_logs: bool = False
    loyalty_bonus_percent: Decimal = Decimal(0)


def _source(environ: Mapping[str, str] | None) -> Any:
    """
    Без environ — decouple.config (переменные окружения и .env);
    иначе переданный словарь поверх окружения процесса.
    """
    return env_config if environ is None else Config(environ)


def load_db_params(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Параметры подключения к PostgreSQL.
    DATABASE_URL имеет приоритет; иначе LICENSING_DB_* поверх значений по умолчанию.
    """
    cfg = _source(environ)
    url = cfg("DATABASE_URL", default="")
    if url:
        return {"dsn": url}
    return {
        "host": cfg("LICENSING_DB_HOST", default=DB_DEFAULTS["host"]),
        "port": cfg("LICENSING_DB_PORT", default=DB_DEFAULTS["port"], cast=int),
        "dbname": cfg("LICENSING_DB_NAME", default=DB_DEFAULTS["dbname"]),
        "user": cfg("LICENSING_DB_USER", default=DB_DEFAULTS["user"]),
        "password": cfg("LICENSING_DB_PASSWORD", default=DB_DEFAULTS["password"]),
    }


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    cfg = _source(environ)

    raw_bonus = cfg("LICENSING_LOYALTY_BONUS_PERCENT", default="0")
    try:
        bonus = Decimal(str(raw_bonus))
    except InvalidOperation:
        raise ValueError(
            f"LICENSING_LOYALTY_BONUS_PERCENT должен быть числом, получено {raw_bonus!r}"
        ) from None
    if not (Decimal(0) <= bonus <= Decimal(100)):
        raise ValueError("LICENSING_LOYALTY_BONUS_PERCENT должен быть в диапазоне 0..100")

    settings = Settings(
        db_params=load_db_params(environ),
        pool_min=cfg("LICENSING_DB_POOL_MIN", default=1, cast=int),
        pool_max=cfg("LICENSING_DB_POOL_MAX", default=10, cast=int),
        statement_timeout_ms=cfg("LICENSING_DB_STATEMENT_TIMEOUT_MS", default=5000, cast=int),
        auto_migrate=cfg("LICENSING_AUTO_MIGRATE", default=False, cast=bool),
        log_level=str(cfg("LICENSING_LOG_LEVEL", default="INFO")).upper(),
        json_logs=cfg("JSON_LOGS", default=False, cast=bool),
        loyalty_bonus_percent=bonus,
    )
    if settings.pool_min < 1 or settings.pool_max < settings.pool_min:
        raise ValueError("Размер пула: нужно 1 <= LICENSING_DB_POOL_MIN <= LICENSING_DB_POOL_MAX")
    return settings
