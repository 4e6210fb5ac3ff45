from __future__ import annotations

from enum import Enum


class LifecycleStatus(str, Enum):
    """Статус записи на уровне домена; в БД хранится как is_deleted."""

    ACTIVE = "Active"
    RETIRED = "Retired"

    @classmethod
    def of(cls, is_deleted: bool) -> LifecycleStatus:
        return cls.RETIRED if is_deleted else cls.ACTIVE
