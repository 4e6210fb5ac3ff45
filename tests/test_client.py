import json

import pytest

from client import CompanyClient, PersonalClient, client_from_payload
from client_ref import ClientRef
from errors import InvalidIdentityFormat, ValidationError
from lifecycle import LifecycleStatus

PERSON = {
    "pesel": "12345678901",
    "first_name": "Jan",
    "last_name": "Kowalski",
    "email": "jan.kowalski@example.pl",
    "phone_number": "+48123456789",
}


def test_personal_client_from_dict_kwargs_and_json():
    a = PersonalClient(PERSON)
    b = PersonalClient(**PERSON)
    c = PersonalClient(json.dumps(PERSON))
    assert a == b == c
    assert a.ref == ClientRef.personal("12345678901")
    assert a.status is LifecycleStatus.ACTIVE
    assert str(a) == "Jan Kowalski (PESEL 12345678901)"


def test_missing_fields_are_listed():
    with pytest.raises(ValidationError) as exc:
        PersonalClient({"pesel": "12345678901"})
    assert "first_name" in str(exc.value)


def test_bad_pesel():
    with pytest.raises(InvalidIdentityFormat):
        PersonalClient({**PERSON, "pesel": "123"})


def test_setters_validate():
    c = PersonalClient(PERSON)
    with pytest.raises(ValidationError):
        c.email = "no-at-sign"
    c.phone_number = "600 700 800"
    assert c.phone_number == "600700800"


def test_company_to_dict_has_type():
    c = CompanyClient(
        krs="0000123456",
        name="Untergang Sp. z o.o.",
        address="ul. Złota 44, Warszawa",
        email="biuro@untergang.pl",
        phone_number="221234567",
    )
    d = c.to_dict()
    assert d["type"] == "company"
    assert d["krs"] == "0000123456"
    assert d["is_deleted"] is False


def test_client_from_payload_dispatch_and_inference():
    assert isinstance(client_from_payload({**PERSON, "type": "personal"}), PersonalClient)
    assert isinstance(client_from_payload(PERSON), PersonalClient)
    with pytest.raises(ValidationError):
        client_from_payload({"email": "a@b.pl"})
    with pytest.raises(ValidationError):
        client_from_payload({**PERSON, "type": "alien"})
