import json

import pytest
import yaml

from client_import import ClientsFileJson, ClientsFileYaml, open_clients_file

RECORDS = [
    {"type": "personal", "pesel": "12345678901", "first_name": "Jan", "last_name": "Kowalski",
     "email": "jan.kowalski@example.pl", "phone_number": "+48123456789"},
    {"type": "company", "krs": "0000123456", "name": "Untergang", "address": "Warszawa",
     "email": "biuro@untergang.pl", "phone_number": "221234567"},
    "not-an-object",
]


def test_open_by_extension(tmp_path):
    assert isinstance(open_clients_file(str(tmp_path / "a.json")), ClientsFileJson)
    assert isinstance(open_clients_file(str(tmp_path / "a.yml")), ClientsFileYaml)
    with pytest.raises(ValueError):
        open_clients_file(str(tmp_path / "a.csv"))


def test_read_json_wraps_non_objects(tmp_path):
    path = tmp_path / "clients.json"
    path.write_text(json.dumps(RECORDS), encoding="utf-8")
    records = open_clients_file(str(path)).read_records()
    assert records[0]["pesel"] == "12345678901"
    assert records[2] == {"__raw__": "not-an-object"}


def test_read_yaml_and_empty_yaml(tmp_path):
    path = tmp_path / "clients.yaml"
    path.write_text(yaml.safe_dump(RECORDS, allow_unicode=True), encoding="utf-8")
    assert len(open_clients_file(str(path)).read_records()) == 3
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert open_clients_file(str(empty)).read_records() == []


def test_root_must_be_a_list(tmp_path):
    path = tmp_path / "clients.json"
    path.write_text(json.dumps({"pesel": "1"}), encoding="utf-8")
    with pytest.raises(ValueError):
        open_clients_file(str(path)).read_records()


def test_import_file_into_registry_and_write_errors(tmp_path, registry):
    path = tmp_path / "clients.yaml"
    path.write_text(yaml.safe_dump(RECORDS, allow_unicode=True), encoding="utf-8")
    file = open_clients_file(str(path))

    summary = registry.import_records(file.read_records())
    assert (summary["inserted"], summary["invalid"]) == (2, 1)

    again = registry.import_records(file.read_records())
    assert again["skipped_conflict"] == 2

    err_path = file.write_errors(list(summary["errors"]))
    assert err_path.endswith("clients_errors.yaml")
    with open(err_path, encoding="utf-8") as f:
        report = yaml.safe_load(f)
    assert report["source"] == "clients.yaml"
    assert report["errors"][0]["index"] == 2


def test_export_records_as_json(tmp_path, registry):
    registry.import_records(RECORDS[:2])
    file = ClientsFileJson(str(tmp_path / "clients.json"))
    out = file.write_records([c.to_dict() for c in registry.list("personal")])
    with open(out, encoding="utf-8") as f:
        exported = json.load(f)
    assert out.endswith("clients_export.json")
    assert exported[0]["pesel"] == "12345678901"
