# client.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from client_ref import ClientKind, ClientRef
from errors import ValidationError
from lifecycle import LifecycleStatus
from validators import Validator as V


class BaseClient:
    """
    Общая часть клиента: контакты, момент регистрации и флаг мягкого удаления.
    Идентичность (PESEL/KRS) задаётся наследником и после создания не меняется.
    """

    kind: ClientKind
    required: tuple[str, ...] = ()

    @staticmethod
    def from_kwargs(data: dict[str, Any]) -> dict[str, Any]:
        return dict(data)

    @staticmethod
    def from_json(text: str) -> dict[str, Any]:
        obj = json.loads(text)
        if not isinstance(obj, dict):
            raise ValidationError("JSON должен описывать объект ({}), а не список/значение.")
        return dict(obj)

    @classmethod
    def _payload(cls, source: dict[str, Any] | str | None, fields: dict[str, Any]) -> dict[str, Any]:
        if source is None:
            payload = cls.from_kwargs(fields)
        elif isinstance(source, dict):
            payload = cls.from_kwargs(source)
        elif isinstance(source, str):
            payload = cls.from_json(source.strip())
        else:
            raise TypeError(f"Неизвестный тип для создания {cls.__name__}. Должен быть dict или str.")

        missing = [k for k in cls.required if payload.get(k) is None]
        if missing:
            raise ValidationError("Отсутствуют обязательные поля: " + ", ".join(missing))
        return payload

    def _init_common(self, payload: dict[str, Any]) -> None:
        self.__email = V.email_strict(payload["email"])
        self.__phone_number = V.phone_number(payload["phone_number"])
        created_at = payload.get("created_at")
        if created_at is not None and not isinstance(created_at, datetime):
            raise ValidationError("created_at должен быть datetime.")
        self.__created_at: datetime | None = created_at
        self.__is_deleted = bool(payload.get("is_deleted", False))

    # ===== Общие свойства =====
    @property
    def email(self) -> str:
        return self.__email

    @email.setter
    def email(self, value: str) -> None:
        self.__email = V.email_strict(value)

    @property
    def phone_number(self) -> str:
        return self.__phone_number

    @phone_number.setter
    def phone_number(self, value: str) -> None:
        self.__phone_number = V.phone_number(value)

    @property
    def created_at(self) -> datetime | None:
        return self.__created_at

    @property
    def is_deleted(self) -> bool:
        return self.__is_deleted

    @property
    def status(self) -> LifecycleStatus:
        return LifecycleStatus.of(self.__is_deleted)

    @property
    def identity(self) -> str:
        raise NotImplementedError

    @property
    def ref(self) -> ClientRef:
        return ClientRef(self.kind, self.identity)

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BaseClient):
            return self.kind is other.kind and self.identity == other.identity
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.kind, self.identity))


class PersonalClient(BaseClient):
    """Физическое лицо. Идентичность — PESEL (11 цифр)."""

    kind = ClientKind.PERSONAL
    required = ("pesel", "first_name", "last_name", "email", "phone_number")

    def __init__(
        self,
        source: dict[str, Any] | str | None = None,
        *,
        pesel: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        email: str | None = None,
        phone_number: str | None = None,
        created_at: datetime | None = None,
        is_deleted: bool = False,
    ) -> None:
        payload = self._payload(
            source,
            {
                "pesel": pesel,
                "first_name": first_name,
                "last_name": last_name,
                "email": email,
                "phone_number": phone_number,
                "created_at": created_at,
                "is_deleted": is_deleted,
            },
        )
        self.__pesel = V.pesel(payload["pesel"])
        self.__first_name = V.letters_only("first_name", payload["first_name"])
        self.__last_name = V.letters_only("last_name", payload["last_name"])
        self._init_common(payload)

    @property
    def pesel(self) -> str:
        return self.__pesel

    @property
    def identity(self) -> str:
        return self.__pesel

    @property
    def first_name(self) -> str:
        return self.__first_name

    @first_name.setter
    def first_name(self, value: str) -> None:
        self.__first_name = V.letters_only("first_name", value)

    @property
    def last_name(self) -> str:
        return self.__last_name

    @last_name.setter
    def last_name(self, value: str) -> None:
        self.__last_name = V.letters_only("last_name", value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "pesel": self.pesel,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone_number": self.phone_number,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "is_deleted": self.is_deleted,
        }

    def __str__(self) -> str:
        return f"{self.first_name} {self.last_name} (PESEL {self.pesel})"


class CompanyClient(BaseClient):
    """Юридическое лицо. Идентичность — номер KRS (10 цифр)."""

    kind = ClientKind.COMPANY
    required = ("krs", "name", "address", "email", "phone_number")

    def __init__(
        self,
        source: dict[str, Any] | str | None = None,
        *,
        krs: str | None = None,
        name: str | None = None,
        address: str | None = None,
        email: str | None = None,
        phone_number: str | None = None,
        created_at: datetime | None = None,
        is_deleted: bool = False,
    ) -> None:
        payload = self._payload(
            source,
            {
                "krs": krs,
                "name": name,
                "address": address,
                "email": email,
                "phone_number": phone_number,
                "created_at": created_at,
                "is_deleted": is_deleted,
            },
        )
        self.__krs = V.krs(payload["krs"])
        self.__name = V.require_non_empty("name", payload["name"])
        self.__address = V.address_required(payload["address"])
        self._init_common(payload)

    @property
    def krs(self) -> str:
        return self.__krs

    @property
    def identity(self) -> str:
        return self.__krs

    @property
    def name(self) -> str:
        return self.__name

    @name.setter
    def name(self, value: str) -> None:
        self.__name = V.require_non_empty("name", value)

    @property
    def address(self) -> str:
        return self.__address

    @address.setter
    def address(self, value: str) -> None:
        self.__address = V.address_required(value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "krs": self.krs,
            "name": self.name,
            "address": self.address,
            "email": self.email,
            "phone_number": self.phone_number,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "is_deleted": self.is_deleted,
        }

    def __str__(self) -> str:
        return f"{self.name} (KRS {self.krs})"


AnyClient = PersonalClient | CompanyClient

CLIENT_CLASSES: dict[ClientKind, type[BaseClient]] = {
    ClientKind.PERSONAL: PersonalClient,
    ClientKind.COMPANY: CompanyClient,
}


def client_from_payload(data: dict[str, Any] | str) -> AnyClient:
    """
    Создаёт клиента нужного вида по полю "type" ("personal"/"company").
    Без "type" вид определяется по наличию pesel/krs.
    """
    payload = BaseClient.from_json(data) if isinstance(data, str) else dict(data)
    raw_type = payload.pop("type", None)
    if raw_type is None:
        if "pesel" in payload and "krs" not in payload:
            raw_type = ClientKind.PERSONAL.value
        elif "krs" in payload and "pesel" not in payload:
            raw_type = ClientKind.COMPANY.value
        else:
            raise ValidationError("Не удалось определить тип клиента: укажите 'type'.")
    try:
        kind = ClientKind(str(raw_type).lower())
    except ValueError:
        raise ValidationError(f"Неизвестный тип клиента: {raw_type!r}") from None
    return CLIENT_CLASSES[kind](payload)  # type: ignore[return-value]
