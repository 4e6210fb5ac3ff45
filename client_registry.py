from __future__ import annotations

from typing import Any, Iterable, Optional, TypedDict

import structlog

from client import AnyClient, CompanyClient, PersonalClient, client_from_payload
from client_ref import ClientKind, ClientRef
from clients_rep_db import ClientsRepDB
from contracts_rep_db import ContractFilter, ContractsRepDB
from db_singleton import PgDB
from errors import (
    AlreadyDeleted,
    ClientNotFound,
    DuplicateIdentity,
    HasActiveContracts,
    LicensingError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

_EDITABLE = {
    ClientKind.PERSONAL: ("first_name", "last_name", "email", "phone_number"),
    ClientKind.COMPANY: ("name", "address", "email", "phone_number"),
}


class ImportErrorItem(TypedDict):
    index: int
    error_type: str
    message: str


class ImportSummary(TypedDict):
    total: int
    inserted: int
    skipped_conflict: int
    invalid: int
    errors: list[ImportErrorItem]


class ClientRegistry:
    """
    Регистрация, изменение и мягкое удаление личных и корпоративных клиентов.
    Каждая операция выполняется в собственной транзакции.
    """

    def __init__(
        self,
        db: Optional[PgDB] = None,
        *,
        repo: Optional[ClientsRepDB] = None,
        contracts: Optional[ContractsRepDB] = None,
    ) -> None:
        self.db = db or PgDB.get()
        self.repo = repo or ClientsRepDB()
        self.contracts = contracts or ContractsRepDB()

    # ===== регистрация =====
    def register_personal(self, data: dict[str, Any]) -> PersonalClient:
        return self._insert(PersonalClient(_without_type(data)))  # type: ignore[return-value]

    def register_company(self, data: dict[str, Any]) -> CompanyClient:
        return self._insert(CompanyClient(_without_type(data)))  # type: ignore[return-value]

    def register(self, data: dict[str, Any]) -> AnyClient:
        """Вид клиента берётся из data["type"] ("personal"/"company")."""
        return self._insert(client_from_payload(data))

    def _insert(self, client: AnyClient) -> AnyClient:
        with self.db.transaction() as tx:
            if self.repo.get_by_ref(tx, client.ref, include_retired=True) is not None:
                raise DuplicateIdentity(
                    f"DuplicateIdentity: клиент {client.ref} уже существует",
                    client=str(client.ref),
                )
            saved = self.repo.add_client(tx, client)
        logger.info("client_registered", client=str(saved.ref))
        return saved

    # ===== изменение =====
    def update(self, ref: ClientRef | dict[str, Any], data: dict[str, Any]) -> AnyClient:
        """Меняет контактные данные. PESEL/KRS не меняются."""
        ref = ClientRef.parse(ref)
        changes = _without_type(data)
        key = ref.kind.key_column
        if key in changes and str(changes.pop(key)).strip() != ref.identity:
            raise ValidationError(f"Поле '{key}' изменить нельзя.")
        unknown = set(changes) - set(_EDITABLE[ref.kind])
        if unknown:
            raise ValidationError("Недопустимые поля для обновления: " + ", ".join(sorted(unknown)))

        with self.db.transaction() as tx:
            client = self.repo.get_by_ref(tx, ref, lock="update")
            if client is None:
                raise ClientNotFound(f"ClientNotFound: {ref}", client=str(ref))
            for field, value in changes.items():
                setattr(client, field, value)
            saved = self.repo.update_client(tx, client)
            if saved is None:
                raise ClientNotFound(f"ClientNotFound: {ref}", client=str(ref))
        logger.info("client_updated", client=str(ref), fields=sorted(changes))
        return saved

    def retire(self, ref: ClientRef | dict[str, Any]) -> AnyClient:
        """
        Мягкое удаление. Запрещено, пока на клиента ссылается хоть один неудалённый договор.
        """
        ref = ClientRef.parse(ref)
        with self.db.transaction() as tx:
            client = self.repo.get_by_ref(tx, ref, include_retired=True, lock="update")
            if client is None:
                raise ClientNotFound(f"ClientNotFound: {ref}", client=str(ref))
            if client.is_deleted:
                raise AlreadyDeleted(f"AlreadyDeleted: клиент {ref} уже удалён", client=str(ref))
            active = self.contracts.count(tx, flt=ContractFilter(client=ref))
            if active:
                raise HasActiveContracts(
                    f"HasActiveContracts: у клиента {ref} есть действующие договоры ({active})",
                    client=str(ref),
                    contracts=active,
                )
            retired = self.repo.mark_deleted(tx, ref)
        logger.info("client_retired", client=str(ref))
        return retired  # type: ignore[return-value]

    # ===== чтение =====
    def get(self, ref: ClientRef | dict[str, Any], *, include_retired: bool = False) -> AnyClient:
        ref = ClientRef.parse(ref)
        client = self.repo.get_by_ref(self.db, ref, include_retired=include_retired)
        if client is None:
            raise ClientNotFound(f"ClientNotFound: {ref}", client=str(ref))
        return client

    def list(
        self, kind: ClientKind | str, page: int = 1, size: int = 20, *, include_retired: bool = False
    ) -> list[AnyClient]:
        return self.repo.get_k_n_list(
            self.db, ClientKind(kind), page, size, include_retired=include_retired
        )

    def count(self, kind: ClientKind | str, *, include_retired: bool = False) -> int:
        return self.repo.get_count(self.db, ClientKind(kind), include_retired=include_retired)

    # ===== массовый импорт =====
    def import_records(self, records: Iterable[dict[str, Any]]) -> ImportSummary:
        """
        Регистрирует клиентов по одному; ошибочные записи не прерывают импорт.
        Уже существующие идентичности считаются пропущенными, а не ошибкой.
        """
        summary: ImportSummary = {
            "total": 0, "inserted": 0, "skipped_conflict": 0, "invalid": 0, "errors": [],
        }
        for index, record in enumerate(records):
            summary["total"] += 1
            try:
                if not isinstance(record, dict):
                    raise ValidationError("Запись должна быть объектом.")
                self.register(record)
                summary["inserted"] += 1
            except DuplicateIdentity:
                summary["skipped_conflict"] += 1
            except (LicensingError, ValueError, TypeError) as exc:
                summary["invalid"] += 1
                summary["errors"].append({
                    "index": index,
                    "error_type": getattr(exc, "error_type", type(exc).__name__),
                    "message": str(exc),
                })
        logger.info(
            "clients_imported",
            total=summary["total"],
            inserted=summary["inserted"],
            skipped_conflict=summary["skipped_conflict"],
            invalid=summary["invalid"],
        )
        return summary


def _without_type(data: dict[str, Any]) -> dict[str, Any]:
    payload = dict(data)
    payload.pop("type", None)
    return payload
