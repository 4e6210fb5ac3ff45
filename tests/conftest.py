"""Pytest fixtures: services wired to in-memory repositories and a controllable clock."""

from datetime import datetime

import pytest

from catalog import Catalog
from client_registry import ClientRegistry
from contract_ledger import ContractLedger
from payment_journal import PaymentJournal

from tests.fakes import (
    FakeClientsRepo,
    FakeContractsRepo,
    FakeDB,
    FakeDiscountRepo,
    FakePaymentsRepo,
    FakeSoftwareRepo,
    Store,
)

PESEL = "12345678901"
KRS = "0000123456"


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def store():
    return Store()


@pytest.fixture
def db(store):
    """In-memory PgDB stub for tests."""
    return FakeDB(store)


@pytest.fixture
def clock():
    return Clock(datetime(2025, 6, 1, 12, 0))


@pytest.fixture
def repos(store):
    return {
        "clients": FakeClientsRepo(store),
        "software": FakeSoftwareRepo(store),
        "discounts": FakeDiscountRepo(store),
        "contracts": FakeContractsRepo(store),
        "payments": FakePaymentsRepo(store),
    }


@pytest.fixture
def registry(db, repos):
    return ClientRegistry(db, repo=repos["clients"], contracts=repos["contracts"])


@pytest.fixture
def catalog(db, repos, clock):
    return Catalog(
        db,
        software=repos["software"],
        discounts=repos["discounts"],
        contracts=repos["contracts"],
        clock=clock,
    )


@pytest.fixture
def make_ledger(db, repos, clock):
    def _make(loyalty_bonus_percent=0):
        return ContractLedger(
            db,
            contracts=repos["contracts"],
            clients=repos["clients"],
            software=repos["software"],
            discounts=repos["discounts"],
            clock=clock,
            loyalty_bonus_percent=loyalty_bonus_percent,
        )
    return _make


@pytest.fixture
def ledger(make_ledger):
    return make_ledger()


@pytest.fixture
def journal(db, repos, clock):
    return PaymentJournal(db, payments=repos["payments"], contracts=repos["contracts"], clock=clock)


@pytest.fixture
def person(registry):
    return registry.register_personal({
        "pesel": PESEL,
        "first_name": "Jan",
        "last_name": "Kowalski",
        "email": "jan.kowalski@example.pl",
        "phone_number": "+48123456789",
    })


@pytest.fixture
def company(registry):
    return registry.register_company({
        "krs": KRS,
        "name": "Untergang Sp. z o.o.",
        "address": "ul. Złota 44, Warszawa",
        "email": "biuro@untergang.pl",
        "phone_number": "221234567",
    })


@pytest.fixture
def suite(catalog):
    return catalog.create_software({
        "name": "Suite",
        "description": "desc",
        "version": "1.0",
        "category": "office",
        "price": "100.00",
    })
