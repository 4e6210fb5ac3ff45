"""In-memory stand-ins for PgDB and the *RepDB classes, with the same method signatures."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator, Optional

from client import CompanyClient, PersonalClient
from client_ref import ClientKind, ClientRef
from contracts_rep_db import ContractFilter, ContractSort
from errors import DuplicateContract, DuplicateIdentity


class Store:
    def __init__(self) -> None:
        self.clients: dict[ClientKind, dict[str, dict[str, Any]]] = {
            ClientKind.PERSONAL: {},
            ClientKind.COMPANY: {},
        }
        self.software: dict[int, Any] = {}
        self.discounts: dict[int, Any] = {}
        self.contracts: dict[int, Any] = {}
        self.payments: dict[int, Any] = {}
        self.seq = {"software": 0, "discount": 0, "contract": 0, "payment": 0}
        # (table, key, lock) для каждого чтения с блокировкой
        self.locks: list[tuple[str, Any, str]] = []
        self.commits = 0
        self.rollbacks = 0

    def next_id(self, table: str) -> int:
        self.seq[table] += 1
        return self.seq[table]

    def note_lock(self, table: str, key: Any, lock: Optional[str]) -> None:
        if lock is not None:
            self.locks.append((table, key, lock))

    def snapshot(self) -> dict[str, Any]:
        return {
            "clients": {k: {i: dict(r) for i, r in rows.items()} for k, rows in self.clients.items()},
            "software": dict(self.software),
            "discounts": dict(self.discounts),
            "contracts": dict(self.contracts),
            "payments": dict(self.payments),
            "seq": dict(self.seq),
        }

    def restore(self, snap: dict[str, Any]) -> None:
        for name, value in snap.items():
            setattr(self, name, value)


class FakeDB:
    """Транзакция = снимок хранилища; при исключении снимок восстанавливается."""

    def __init__(self, store: Store) -> None:
        self.store = store

    @contextmanager
    def transaction(self, isolation: str = "read_committed") -> Iterator[FakeDB]:
        snap = self.store.snapshot()
        try:
            yield self
        except BaseException:
            self.store.restore(snap)
            self.store.rollbacks += 1
            raise
        self.store.commits += 1


# ------------------------------- clients -------------------------------


class FakeClientsRepo:
    def __init__(self, store: Store) -> None:
        self.store = store

    @staticmethod
    def _build(kind: ClientKind, row: dict[str, Any]) -> PersonalClient | CompanyClient:
        return PersonalClient(dict(row)) if kind is ClientKind.PERSONAL else CompanyClient(dict(row))

    def get_by_ref(self, ex: Any, ref: ClientRef, *, include_retired: bool = False, lock: Optional[str] = None):
        self.store.note_lock(ref.kind.table, ref.identity, lock)
        row = self.store.clients[ref.kind].get(ref.identity)
        if row is None or (row["is_deleted"] and not include_retired):
            return None
        return self._build(ref.kind, row)

    def get_k_n_list(self, ex: Any, kind: ClientKind, k: int, n: int, *, include_retired: bool = False):
        if not (isinstance(k, int) and isinstance(n, int) and k > 0 and n > 0):
            raise ValueError("k и n должны быть положительными целыми числами")
        rows = [r for r in self.store.clients[kind].values() if include_retired or not r["is_deleted"]]
        return [self._build(kind, r) for r in rows[(k - 1) * n: k * n]]

    def get_count(self, ex: Any, kind: ClientKind, *, include_retired: bool = False) -> int:
        return sum(1 for r in self.store.clients[kind].values() if include_retired or not r["is_deleted"])

    def add_client(self, ex: Any, client):
        rows = self.store.clients[client.kind]
        if client.identity in rows:
            raise DuplicateIdentity(f"DuplicateIdentity: клиент {client.ref} уже существует")
        row = client.to_dict()
        row.pop("type")
        row["created_at"] = datetime(2025, 1, 1, 9, 0)
        rows[client.identity] = row
        return self._build(client.kind, row)

    def update_client(self, ex: Any, client):
        row = self.store.clients[client.kind].get(client.identity)
        if row is None or row["is_deleted"]:
            return None
        data = client.to_dict()
        for key in data:
            if key not in ("type", "created_at", "is_deleted", client.kind.key_column):
                row[key] = data[key]
        return self._build(client.kind, row)

    def mark_deleted(self, ex: Any, ref: ClientRef):
        row = self.store.clients[ref.kind].get(ref.identity)
        if row is None or row["is_deleted"]:
            return None
        row["is_deleted"] = True
        return self._build(ref.kind, row)


# ------------------------------- catalog -------------------------------


class FakeSoftwareRepo:
    def __init__(self, store: Store) -> None:
        self.store = store

    def get_by_id(self, ex: Any, sid: int, *, include_retired: bool = False, lock: Optional[str] = None):
        self.store.note_lock("software", sid, lock)
        s = self.store.software.get(sid)
        if s is None or (s.is_deleted and not include_retired):
            return None
        return s

    def list(self, ex: Any, *, category: Optional[str] = None, include_retired: bool = False):
        return [
            s for s in self.store.software.values()
            if (category is None or s.category == category) and (include_retired or not s.is_deleted)
        ]

    def create(self, ex: Any, s):
        saved = replace(s, id=self.store.next_id("software"))
        self.store.software[saved.id] = saved
        return saved

    def update(self, ex: Any, s):
        current = self.store.software.get(s.id)
        if current is None or current.is_deleted:
            return None
        self.store.software[s.id] = s
        return s

    def mark_deleted(self, ex: Any, sid: int):
        current = self.store.software.get(sid)
        if current is None or current.is_deleted:
            return None
        self.store.software[sid] = replace(current, is_deleted=True)
        return self.store.software[sid]


class FakeDiscountRepo:
    def __init__(self, store: Store) -> None:
        self.store = store

    def get_by_id(self, ex: Any, did: int, *, include_retired: bool = False, lock: Optional[str] = None):
        self.store.note_lock("discount", did, lock)
        d = self.store.discounts.get(did)
        if d is None or (d.is_deleted and not include_retired):
            return None
        return d

    def list(self, ex: Any, *, software_id: Optional[int] = None, include_retired: bool = False):
        return [
            d for d in self.store.discounts.values()
            if (software_id is None or d.software_id == software_id) and (include_retired or not d.is_deleted)
        ]

    def create(self, ex: Any, d):
        saved = replace(d, id=self.store.next_id("discount"))
        self.store.discounts[saved.id] = saved
        return saved

    def mark_signed(self, ex: Any, did: int):
        current = self.store.discounts.get(did)
        if current is None or current.is_deleted:
            return None
        self.store.discounts[did] = replace(current, is_signed=True)
        return self.store.discounts[did]

    def mark_deleted(self, ex: Any, did: int):
        current = self.store.discounts.get(did)
        if current is None or current.is_deleted:
            return None
        self.store.discounts[did] = replace(current, is_deleted=True)
        return self.store.discounts[did]


# ------------------------------ contracts ------------------------------


def _matches(c, flt: ContractFilter) -> bool:
    if flt.client is not None and c.client_ref != flt.client:
        return False
    checks = [
        (flt.software_id, lambda: c.software_id == flt.software_id),
        (flt.discount_id, lambda: c.discount_id == flt.discount_id),
        (flt.contract_type, lambda: c.contract_type is flt.contract_type),
        (flt.is_signed, lambda: c.is_signed == flt.is_signed),
        (flt.is_paid, lambda: c.is_paid == flt.is_paid),
        (flt.start_from, lambda: c.start_date >= flt.start_from),
        (flt.start_to, lambda: c.start_date <= flt.start_to),
        (flt.end_from, lambda: c.end_date >= flt.end_from),
        (flt.end_to, lambda: c.end_date <= flt.end_to),
        (flt.active_on, lambda: c.start_date <= flt.active_on <= c.end_date),
    ]
    if any(value is not None and not check() for value, check in checks):
        return False
    return flt.include_deleted or not c.is_deleted


class FakeContractsRepo:
    def __init__(self, store: Store) -> None:
        self.store = store

    def _select(self, flt: Optional[ContractFilter]):
        flt = flt or ContractFilter()
        return [c for c in self.store.contracts.values() if _matches(c, flt)]

    def count(self, ex: Any, *, flt: Optional[ContractFilter] = None) -> int:
        return len(self._select(flt))

    def get_k_n(self, ex: Any, k: int, n: int, *, flt: Optional[ContractFilter] = None,
                sort: Optional[ContractSort] = None):
        if not (isinstance(k, int) and isinstance(n, int) and k > 0 and n > 0):
            raise ValueError("k,n должны быть > 0")
        rows = self._select(flt)
        sort = sort or ContractSort()
        by = sort.by if sort.by in ("id", "start_date", "end_date", "price") else "id"
        rows.sort(key=lambda c: c.id)
        rows.sort(key=lambda c: getattr(c, by), reverse=not sort.asc)
        return rows[(k - 1) * n: k * n]

    def get_by_id(self, ex: Any, cid: int, *, lock: Optional[str] = None):
        self.store.note_lock("contract", cid, lock)
        return self.store.contracts.get(cid)

    def create(self, ex: Any, c):
        # частичные уникальные индексы uq_contract_*_software
        if any(
            not o.is_deleted and o.client_ref == c.client_ref and o.software_id == c.software_id
            for o in self.store.contracts.values()
        ):
            raise DuplicateContract(f"DuplicateContract: {c.client_ref} / {c.software_id}")
        saved = replace(c, id=self.store.next_id("contract"), created_at=datetime(2025, 6, 1, 12, 0))
        self.store.contracts[saved.id] = saved
        return saved

    def _update(self, cid: int, only_active: bool, **changes):
        current = self.store.contracts.get(cid)
        if current is None or (only_active and current.is_deleted):
            return None
        self.store.contracts[cid] = replace(current, **changes)
        return self.store.contracts[cid]

    def set_signed(self, ex: Any, cid: int):
        return self._update(cid, True, is_signed=True)

    def set_paid(self, ex: Any, cid: int, is_paid: bool):
        return self._update(cid, False, is_paid=is_paid)

    def mark_deleted(self, ex: Any, cid: int):
        return self._update(cid, True, is_deleted=True)


# ------------------------------- payments -------------------------------


class FakePaymentsRepo:
    def __init__(self, store: Store) -> None:
        self.store = store

    def get_by_id(self, ex: Any, pid: int, *, lock: Optional[str] = None):
        self.store.note_lock("payment", pid, lock)
        return self.store.payments.get(pid)

    def list_for_contract(self, ex: Any, contract_id: int, *, include_deleted: bool = False):
        return [
            p for p in self.store.payments.values()
            if p.contract_id == contract_id and (include_deleted or not p.is_deleted)
        ]

    def total_active(self, ex: Any, contract_id: int) -> Decimal:
        return sum(
            (p.amount for p in self.list_for_contract(ex, contract_id)),
            Decimal("0.00"),
        )

    def create(self, ex: Any, p):
        saved = replace(p, id=self.store.next_id("payment"))
        self.store.payments[saved.id] = saved
        return saved

    def mark_deleted(self, ex: Any, pid: int):
        current = self.store.payments.get(pid)
        if current is None or current.is_deleted:
            return None
        self.store.payments[pid] = replace(current, is_deleted=True)
        return self.store.payments[pid]
