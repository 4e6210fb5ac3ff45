# client_import.py
from __future__ import annotations

import json
import os
import sys
from abc import ABC, abstractmethod
from typing import Any

import yaml  # type: ignore[import-untyped]


class ClientsFile(ABC):
    """
    Файл с массивом записей клиентов для массовой загрузки в реестр.
    Конкретные форматы (JSON/YAML) переопределяют _read_array/_write_array/derive_out_path.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    @abstractmethod
    def derive_out_path(self, base_path: str, suffix: str) -> str:
        """Путь для вывода с учётом расширения формата и суффикса."""
        raise NotImplementedError

    @abstractmethod
    def _read_array(self, path: str) -> list[Any]:
        """
        Прочитать массив записей из `path`.
        FileNotFoundError — файла нет; ValueError — корень не список.
        """
        raise NotImplementedError

    @abstractmethod
    def _write_array(self, path: str, payload: Any, pretty: bool) -> None:
        raise NotImplementedError

    def read_records(self) -> list[dict[str, Any]]:
        """
        Возвращает записи как есть. Элементы, не являющиеся объектами,
        заворачиваются в {"__raw__": ...}: импорт пометит их как невалидные.
        """
        result: list[dict[str, Any]] = []
        for item in self._read_array(self.path):
            result.append(item if isinstance(item, dict) else {"__raw__": item})
        return result

    def write_records(self, records: list[dict[str, Any]], out_path: str | None = None, *, pretty: bool = True) -> str:
        if out_path is None:
            out_path = self.derive_out_path(self.path, "_export")
        self._write_array(out_path, records, pretty)
        return out_path

    def write_errors(
        self,
        errors: list[dict[str, Any]],
        out_path: str | None = None,
        *,
        pretty: bool = True,
    ) -> str:
        """Отчёт об ошибках импорта рядом с исходным файлом."""
        if out_path is None:
            out_path = self.derive_out_path(self.path, "_errors")
        payload = {"errors": errors, "source": os.path.basename(self.path)}
        self._write_array(out_path, payload, pretty)
        return out_path


class ClientsFileJson(ClientsFile):
    def derive_out_path(self, base_path: str, suffix: str) -> str:
        root, ext = os.path.splitext(base_path)
        if ext.lower() == ".json":
            return f"{root}{suffix}{ext}"
        return f"{base_path}{suffix}.json"

    def _read_array(self, path: str) -> list[Any]:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError("JSON должен быть массивом объектов (списком).")
        return data

    def _write_array(self, path: str, payload: Any, pretty: bool) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2 if pretty else None, default=str)


class ClientsFileYaml(ClientsFile):
    def derive_out_path(self, base_path: str, suffix: str) -> str:
        root, ext = os.path.splitext(base_path)
        if ext.lower() in (".yaml", ".yml"):
            return f"{root}{suffix}{ext}"
        return f"{base_path}{suffix}.yaml"

    def _read_array(self, path: str) -> list[Any]:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            return []
        if not isinstance(data, list):
            raise ValueError("YAML должен быть массивом объектов (списком).")
        return data

    def _write_array(self, path: str, payload: Any, pretty: bool) -> None:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                payload,
                f,
                allow_unicode=True,
                sort_keys=False,
                indent=2,
                default_flow_style=not pretty,
            )


def open_clients_file(path: str) -> ClientsFile:
    """Формат определяется по расширению: .json, .yaml/.yml."""
    ext = os.path.splitext(path)[1].lower()
    if ext == ".json":
        return ClientsFileJson(path)
    if ext in (".yaml", ".yml"):
        return ClientsFileYaml(path)
    raise ValueError(f"Неподдерживаемый формат файла клиентов: {ext or path!r}")


if __name__ == "__main__":
    from licensing_core import make_core

    src = sys.argv[1] if len(sys.argv) > 1 else "clients.yaml"
    file = open_clients_file(src)
    core = make_core()

    summary = core.clients.import_records(file.read_records())
    print(f"==== Импорт {src} ====")
    print(f"Всего: {summary['total']}; добавлено: {summary['inserted']}; "
          f"уже были: {summary['skipped_conflict']}; с ошибками: {summary['invalid']}")
    if summary["errors"]:
        err_path = file.write_errors(list(summary["errors"]))
        print(f"✓ Отчёт об ошибках: {err_path}")
