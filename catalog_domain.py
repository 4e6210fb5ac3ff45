from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from errors import InvalidWindow, ValidationError
from lifecycle import LifecycleStatus
from validators import Validator as V


@dataclass(frozen=True, slots=True)
class Software:
    id: Optional[int]
    name: str
    description: str
    version: str
    category: str
    price: Decimal
    is_deleted: bool = False

    @classmethod
    def from_payload(cls, data: dict[str, Any], *, id: Optional[int] = None) -> Software:
        missing = [k for k in ("name", "description", "version", "category", "price") if data.get(k) is None]
        if missing:
            raise ValidationError("Отсутствуют обязательные поля: " + ", ".join(missing))
        return cls(
            id=id,
            name=V.require_non_empty("name", data["name"]),
            description=V.require_non_empty("description", data["description"]),
            version=V.semver(data["version"]),
            category=V.require_non_empty("category", data["category"]),
            price=V.money("price", data["price"]),
            is_deleted=bool(data.get("is_deleted", False)),
        )

    def with_changes(self, changes: dict[str, Any]) -> Software:
        """Частичное обновление: id и флаг удаления не меняются."""
        allowed = {"name", "description", "version", "category", "price"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError("Недопустимые поля для обновления: " + ", ".join(sorted(unknown)))
        merged = {
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "category": self.category,
            "price": self.price,
            **changes,
        }
        updated = Software.from_payload(merged, id=self.id)
        return replace(updated, is_deleted=self.is_deleted)

    @property
    def status(self) -> LifecycleStatus:
        return LifecycleStatus.of(self.is_deleted)


@dataclass(frozen=True, slots=True)
class Discount:
    """
    Процентная скидка на один продукт в окне [start_date, end_date] (обе границы включительно).
    is_signed — скидка официально активирована, а не просто заведена.
    """

    id: Optional[int]
    name: str
    software_id: int
    percentage: Decimal
    start_date: date
    end_date: date
    is_signed: bool = False
    is_deleted: bool = False

    def __post_init__(self) -> None:
        if not self.start_date < self.end_date:
            raise InvalidWindow(
                f"InvalidWindow: start_date ({self.start_date}) должна быть раньше end_date ({self.end_date}).",
                start_date=self.start_date.isoformat(),
                end_date=self.end_date.isoformat(),
            )

    @classmethod
    def from_payload(cls, data: dict[str, Any], *, id: Optional[int] = None) -> Discount:
        missing = [
            k for k in ("name", "software_id", "percentage", "start_date", "end_date") if data.get(k) is None
        ]
        if missing:
            raise ValidationError("Отсутствуют обязательные поля: " + ", ".join(missing))
        start, end = V.date_window(data["start_date"], data["end_date"])
        software_id = data["software_id"]
        if isinstance(software_id, bool) or not isinstance(software_id, int):
            raise ValidationError("Поле 'software_id' должно быть целым числом.")
        return cls(
            id=id,
            name=V.require_non_empty("name", data["name"]),
            software_id=software_id,
            percentage=V.percentage(data["percentage"]),
            start_date=start,
            end_date=end,
            is_signed=bool(data.get("is_signed", False)),
            is_deleted=bool(data.get("is_deleted", False)),
        )

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def is_applicable(self, software_id: int, day: date) -> bool:
        """Скидку можно применить к договору: активна, подписана, тот же продукт, день в окне."""
        return (
            not self.is_deleted
            and self.is_signed
            and self.software_id == software_id
            and self.covers(day)
        )

    @property
    def status(self) -> LifecycleStatus:
        return LifecycleStatus.of(self.is_deleted)
