"""SQL produced by the *RepDB classes, checked against a recording executor."""

from datetime import date, datetime
from decimal import Decimal

import psycopg2
import pytest
from psycopg2 import errorcodes

from catalog_rep_db import SoftwareRepDB
from client import PersonalClient
from client_ref import ClientKind, ClientRef
from clients_rep_db import ClientsRepDB
from contract_domain import Contract, ContractType
from contracts_rep_db import ContractFilter, ContractSort, ContractsRepDB
from errors import DuplicateContract, DuplicateIdentity, InvariantViolation
from payments_rep_db import PaymentsRepDB
from schema import DDL_STATEMENTS


class RecordingEx:
    def __init__(self, row=None, rows=(), error=None):
        self.calls = []
        self.row = row
        self.rows = list(rows)
        self.error = error

    def _record(self, sql, params):
        self.calls.append((" ".join(sql.split()), list(params or [])))
        if self.error is not None:
            raise self.error

    def fetch_one(self, sql, params=None):
        self._record(sql, params)
        return self.row

    def fetch_all(self, sql, params=None):
        self._record(sql, params)
        return self.rows

    def execute_returning(self, sql, params=None):
        self._record(sql, params)
        return self.row


def _pg_error(base, code):
    cls = type("PgError", (base,), {"pgcode": code})
    return cls("boom")


CONTRACT_ROW = {
    "id": 3, "contract_type": "private", "personal_client_id": "12345678901",
    "company_client_id": None, "software_id": 1, "discount_id": None,
    "price": Decimal("100.00"), "start_date": date(2025, 1, 1), "end_date": date(2026, 1, 1),
    "years_supported": 1, "is_signed": False, "is_paid": False, "is_deleted": False,
    "created_at": datetime(2025, 6, 1, 12, 0),
}


def test_contract_where_builds_parameters_in_order():
    repo = ContractsRepDB()
    ex = RecordingEx(row={"cnt": 2})
    flt = ContractFilter(
        client=ClientRef.company("0000123456"),
        is_paid=False,
        active_on=date(2025, 6, 1),
    )
    assert repo.count(ex, flt=flt) == 2
    sql, params = ex.calls[0]
    assert "c.company_client_id = %s" in sql
    assert "c.is_paid = %s" in sql
    assert "c.start_date <= %s AND c.end_date >= %s" in sql
    assert sql.endswith("c.is_deleted = FALSE")
    assert params == ["0000123456", False, date(2025, 6, 1), date(2025, 6, 1)]


def test_contract_where_include_deleted_and_empty():
    repo = ContractsRepDB()
    assert repo._where(ContractFilter(include_deleted=True)) == ("", [])


def test_contract_sort_whitelist():
    repo = ContractsRepDB()
    assert repo._order(None) == "ORDER BY c.id DESC"
    assert repo._order(ContractSort("price", asc=True)) == "ORDER BY c.price ASC, c.id ASC"
    assert repo._order(ContractSort("price; DROP TABLE contract", asc=True)) == "ORDER BY c.id ASC, c.id ASC"


def test_contract_page_offset():
    repo = ContractsRepDB()
    ex = RecordingEx(rows=[CONTRACT_ROW])
    out = repo.get_k_n(ex, 3, 10)
    assert out[0].client_ref == ClientRef.personal("12345678901")
    assert ex.calls[0][1][-2:] == [10, 20]
    with pytest.raises(ValueError):
        repo.get_k_n(ex, 0, 10)


def test_contract_lock_clause():
    ex = RecordingEx(row=CONTRACT_ROW)
    ContractsRepDB().get_by_id(ex, 3, lock="update")
    assert ex.calls[0][0].endswith("WHERE id=%s FOR UPDATE;")


def test_corrupted_contract_row_raises_invariant_violation():
    row = dict(CONTRACT_ROW, company_client_id="0000123456")
    with pytest.raises(InvariantViolation):
        ContractsRepDB().get_by_id(RecordingEx(row=row), 3)


def test_check_violation_on_insert_becomes_invariant_violation():
    c = Contract.draft(
        ContractType.PRIVATE, ClientRef.personal("12345678901"),
        software_id=1, price=Decimal("1.00"),
        start_date=date(2025, 1, 1), end_date=date(2025, 2, 1), years_supported=0,
    )
    ex = RecordingEx(error=_pg_error(psycopg2.IntegrityError, errorcodes.CHECK_VIOLATION))
    with pytest.raises(InvariantViolation):
        ContractsRepDB().create(ex, c)


def _free_draft():
    return Contract.draft(
        ContractType.PRIVATE, ClientRef.personal("12345678901"),
        software_id=1, price=Decimal("0.00"),
        start_date=date(2025, 1, 1), end_date=date(2025, 2, 1), years_supported=0,
    )


def test_insert_writes_is_paid_of_the_draft():
    ex = RecordingEx(row=dict(CONTRACT_ROW, price=Decimal("0.00"), is_paid=True))
    saved = ContractsRepDB().create(ex, _free_draft())
    sql, params = ex.calls[0]
    assert "years_supported, is_paid)" in sql
    assert params[-1] is True
    assert saved.is_paid


def test_unique_violation_on_insert_becomes_duplicate_contract():
    ex = RecordingEx(error=_pg_error(psycopg2.IntegrityError, errorcodes.UNIQUE_VIOLATION))
    with pytest.raises(DuplicateContract) as info:
        ContractsRepDB().create(ex, _free_draft())
    assert info.value.details == {"client": "personal:12345678901", "software_id": 1}


def test_one_live_contract_per_client_and_product_is_indexed():
    ddl = [" ".join(s.split()) for s in DDL_STATEMENTS]
    for column in ("personal_client_id", "company_client_id"):
        assert any(
            s.startswith("CREATE UNIQUE INDEX") and f"ON contract({column}, software_id)" in s
            and "WHERE is_deleted = FALSE" in s
            for s in ddl
        )



def test_unique_violation_becomes_duplicate_identity():
    client = PersonalClient(
        pesel="12345678901", first_name="Jan", last_name="Kowalski",
        email="jan@example.pl", phone_number="600700800",
    )
    ex = RecordingEx(error=_pg_error(psycopg2.IntegrityError, errorcodes.UNIQUE_VIOLATION))
    with pytest.raises(DuplicateIdentity):
        ClientsRepDB().add_client(ex, client)


def test_client_queries_use_kind_table():
    ex = RecordingEx(row=None)
    repo = ClientsRepDB()
    assert repo.get_by_ref(ex, ClientRef.company("0000123456"), lock="share") is None
    sql, params = ex.calls[0]
    assert "FROM company_client WHERE krs = %s AND is_deleted = FALSE FOR SHARE;" in sql
    assert params == ["0000123456"]
    ex.row = {"cnt": 7}
    assert repo.get_count(ex, ClientKind.PERSONAL, include_retired=True) == 7
    assert "WHERE" not in ex.calls[1][0]


def test_software_list_by_category():
    ex = RecordingEx(rows=[{
        "id": 1, "name": "Suite", "description": "desc", "version": "1.0",
        "category": "office", "price": Decimal("100.00"), "is_deleted": False,
    }])
    out = SoftwareRepDB().list(ex, category="office")
    assert out[0].name == "Suite"
    assert "WHERE category = %s AND is_deleted = FALSE" in ex.calls[0][0]


def test_payment_total_active():
    ex = RecordingEx(row={"total": Decimal("60.00")})
    assert PaymentsRepDB().total_active(ex, 3) == Decimal("60.00")
    assert "is_deleted = FALSE" in ex.calls[0][0]
