# client_ref.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from errors import InvariantViolation, ValidationError
from validators import Validator


class ClientKind(str, Enum):
    PERSONAL = "personal"
    COMPANY = "company"

    @property
    def table(self) -> str:
        return "personal_client" if self is ClientKind.PERSONAL else "company_client"

    @property
    def key_column(self) -> str:
        """Столбец идентичности в таблице клиента."""
        return "pesel" if self is ClientKind.PERSONAL else "krs"

    @property
    def contract_column(self) -> str:
        """Столбец ссылки на клиента в таблице contract."""
        return "personal_client_id" if self is ClientKind.PERSONAL else "company_client_id"


@dataclass(frozen=True, slots=True)
class ClientRef:
    """
    Ссылка на клиента: ровно один из вариантов Personal(pesel) / Company(krs).
    Формат идентификатора проверяется при создании ссылки.
    """

    kind: ClientKind
    identity: str

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ClientKind):
            raise ValidationError(f"Неизвестный тип клиента: {self.kind!r}")
        if self.kind is ClientKind.PERSONAL:
            normalized = Validator.pesel(self.identity)
        else:
            normalized = Validator.krs(self.identity)
        object.__setattr__(self, "identity", normalized)

    @classmethod
    def personal(cls, pesel: str) -> ClientRef:
        return cls(ClientKind.PERSONAL, pesel)

    @classmethod
    def company(cls, krs: str) -> ClientRef:
        return cls(ClientKind.COMPANY, krs)

    @classmethod
    def from_parts(
        cls,
        personal_client_id: str | None = None,
        company_client_id: str | None = None,
    ) -> ClientRef:
        """
        Строит ссылку из пары nullable-полей (как они лежат в строке contract).
        Ровно одно поле должно быть заполнено, иначе — InvariantViolation.
        """
        has_personal = personal_client_id is not None
        has_company = company_client_id is not None
        if has_personal and has_company:
            raise InvariantViolation(
                "InvariantViolation: указаны одновременно личный и корпоративный клиент.",
                personal_client_id=personal_client_id,
                company_client_id=company_client_id,
            )
        if not (has_personal or has_company):
            raise InvariantViolation("InvariantViolation: клиент не указан.")
        if has_personal:
            return cls.personal(str(personal_client_id))
        return cls.company(str(company_client_id))

    @classmethod
    def parse(cls, source: ClientRef | dict[str, Any]) -> ClientRef:
        """
        Принимает:
          - ClientRef;
          - {"type": "personal"|"company", "value": "<id>"};
          - {"personal_client_id": ..., "company_client_id": ...}.
        """
        if isinstance(source, ClientRef):
            return source
        if not isinstance(source, dict):
            raise ValidationError(
                f"Ссылка на клиента должна быть ClientRef или dict, получено {type(source).__name__}."
            )
        if "type" in source:
            try:
                kind = ClientKind(str(source["type"]).lower())
            except ValueError:
                raise ValidationError(f"Неизвестный тип клиента: {source['type']!r}") from None
            return cls(kind, source.get("value"))  # type: ignore[arg-type]
        return cls.from_parts(
            source.get("personal_client_id"),
            source.get("company_client_id"),
        )

    def to_dict(self) -> dict[str, str]:
        return {"type": self.kind.value, "value": self.identity}

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.identity}"
