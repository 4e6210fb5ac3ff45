import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from errors import InvalidIdentityFormat, InvalidWindow, NonPositiveAmount, ValidationError

MONEY_QUANT = Decimal("0.01")
PERCENT_QUANT = Decimal("0.00001")
# NUMERIC(10, 2)
MONEY_LIMIT = Decimal("100000000")

_SEMVER_RE = re.compile(
    r"(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)(?:\.(0|[1-9][0-9]*))?"
    r"(?:-[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*)?"
    r"(?:\+[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*)?"
)


class Validator:
    """Общий класс валидации для полей клиентов, каталога, договоров и платежей."""

    # Строки

    @staticmethod
    def require_non_empty(name: str, value: Any) -> str:
        """Требуем, чтобы не было пустых полей."""
        if value is None:
            raise ValidationError(f"Поле '{name}' обязательно и не может быть пустым.")
        v = str(value).strip()
        if not v:
            raise ValidationError(f"Поле '{name}' обязательно и не может быть пустым.")
        return v

    @staticmethod
    def letters_only(field: str, value: Any) -> str:
        """Только буквы. Дефис допускается лишь между буквами (двойные фамилии)."""
        v = Validator.require_non_empty(field, value)
        parts = v.split("-")
        if not all(p and all(ch.isalpha() for ch in p) for p in parts):
            raise ValidationError(
                f"Поле '{field}' может содержать только буквы (и дефис внутри слова)."
            )
        return v

    # Идентификаторы клиентов

    @staticmethod
    def pesel(value: Any) -> str:
        """PESEL: ровно 11 цифр."""
        v = "" if value is None else str(value).strip()
        if not re.fullmatch(r"[0-9]{11}", v):
            raise InvalidIdentityFormat(
                "Поле 'pesel' должно содержать ровно 11 цифр (например, '12345678901').",
                value=v,
            )
        return v

    @staticmethod
    def krs(value: Any) -> str:
        """KRS: ровно 10 цифр."""
        v = "" if value is None else str(value).strip()
        if not re.fullmatch(r"[0-9]{10}", v):
            raise InvalidIdentityFormat(
                "Поле 'krs' должно содержать ровно 10 цифр (например, '0000123456').",
                value=v,
            )
        return v

    # Контакты

    @staticmethod
    def _clean_phone(raw: str) -> str:
        # Убираем скобки, пробелы и дефисы: телефон можно писать в любом формате.
        return re.sub(r"[()\s\-]", "", str(raw))

    @staticmethod
    def phone_number(value: Any) -> str:
        """Телефон: необязательный ведущий '+', затем от 9 до 15 цифр."""
        v = Validator._clean_phone(Validator.require_non_empty("phone_number", value))
        if v.count("+") > 1 or (v.count("+") == 1 and not v.startswith("+")):
            raise ValidationError(
                "Поле 'phone_number' имеет недопустимый '+'. Разрешён только ведущий '+'."
            )
        if not re.fullmatch(r"\+?[0-9]{9,15}", v):
            raise ValidationError("Поле 'phone_number' должно содержать от 9 до 15 цифр.")
        return v

    @staticmethod
    def email_strict(value: Any) -> str:
        """Валидация email"""
        v = Validator.require_non_empty("email", value)

        if v.count("@") != 1:
            raise ValidationError("Поле 'email' должно содержать ровно один символ '@'.")
        local, domain = v.split("@", 1)

        # Локальная часть
        if not local:
            raise ValidationError("Локальная часть email не может быть пустой.")
        if local.startswith(".") or local.endswith("."):
            raise ValidationError(
                "Локальная часть email не может начинаться или заканчиваться точкой."
            )
        if ".." in local:
            raise ValidationError("Локальная часть email не может содержать две точки подряд.")
        if not re.fullmatch(r"[A-Za-z0-9._%+\-]+", local):
            raise ValidationError("Локальная часть email содержит недопустимые символы.")

        # Домен
        labels = domain.split(".")
        if len(labels) < 2:
            raise ValidationError("Домен должен содержать хотя бы одну точку (например, firma.pl).")
        label_re = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9\-]*[A-Za-z0-9])?$")
        for lab in labels:
            if not lab:
                raise ValidationError(
                    "Домен содержит пустую метку (две точки подряд или точка на краю)."
                )
            if not label_re.fullmatch(lab):
                raise ValidationError(
                    "Метка домена содержит недопустимые символы или начинается/заканчивается дефисом."
                )
        if not re.fullmatch(r"[A-Za-z]{2,}", labels[-1]):
            raise ValidationError("Доменная зона должна состоять минимум из двух букв.")
        return v

    @staticmethod
    def address_required(value: Any) -> str:
        """Валидация адреса. Просто проверка на 'Не пустой'"""
        return Validator.require_non_empty("address", value)

    # Каталог

    @staticmethod
    def semver(value: Any) -> str:
        """Версия в формате MAJOR.MINOR[.PATCH][-pre][+build], например '1.0' или '2.3.1-rc.1'."""
        v = Validator.require_non_empty("version", value)
        if not _SEMVER_RE.fullmatch(v):
            raise ValidationError(
                f"Поле 'version' должно быть семантической версией (например, '1.0.0'), получено '{v}'."
            )
        return v

    @staticmethod
    def _decimal(field: str, value: Any) -> Decimal:
        if isinstance(value, bool) or value is None:
            raise ValidationError(f"Поле '{field}' должно быть числом.")
        try:
            d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"Поле '{field}' должно быть числом, получено '{value}'.") from None
        if not d.is_finite():
            raise ValidationError(f"Поле '{field}' должно быть конечным числом.")
        return d

    @staticmethod
    def money(field: str, value: Any) -> Decimal:
        """Денежная сумма >= 0 с точностью до 0.01 (NUMERIC(10, 2))."""
        d = Validator._decimal(field, value)
        if d < 0:
            raise ValidationError(f"Поле '{field}' не может быть отрицательным.")
        if d != d.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP):
            raise ValidationError(f"Поле '{field}' допускает не более двух знаков после запятой.")
        if d >= MONEY_LIMIT:
            raise ValidationError(f"Поле '{field}' слишком велико.")
        return d.quantize(MONEY_QUANT)

    @staticmethod
    def positive_amount(value: Any) -> Decimal:
        """Сумма платежа: строго больше нуля."""
        d = Validator._decimal("amount", value)
        if d <= 0:
            raise NonPositiveAmount(
                f"Сумма платежа должна быть положительной, получено {d}.", amount=str(d)
            )
        return Validator.money("amount", d)

    @staticmethod
    def percentage(value: Any) -> Decimal:
        """Процент скидки 0..100, хранится с 5 знаками после запятой."""
        d = Validator._decimal("percentage", value)
        if not (Decimal(0) <= d <= Decimal(100)):
            raise ValidationError("Поле 'percentage' должно быть в диапазоне 0..100.")
        if d != d.quantize(PERCENT_QUANT, rounding=ROUND_HALF_UP):
            raise ValidationError("Поле 'percentage' допускает не более пяти знаков после запятой.")
        return d.quantize(PERCENT_QUANT)

    # Даты

    @staticmethod
    def to_date(field: str, value: Any) -> date:
        """Принимаем date, datetime или строку 'YYYY-MM-DD'."""
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        v = Validator.require_non_empty(field, value)
        try:
            return date.fromisoformat(v)
        except ValueError:
            raise ValidationError(
                f"Поле '{field}' должно быть датой в формате 'YYYY-MM-DD', получено '{v}'."
            ) from None

    @staticmethod
    def date_window(start: Any, end: Any) -> tuple[date, date]:
        """Окно [start_date, end_date]: начало строго раньше конца."""
        s = Validator.to_date("start_date", start)
        e = Validator.to_date("end_date", end)
        if not s < e:
            raise InvalidWindow(
                f"InvalidWindow: start_date ({s}) должна быть раньше end_date ({e}).",
                start_date=s.isoformat(),
                end_date=e.isoformat(),
            )
        return s, e

    @staticmethod
    def years_supported(value: Any) -> int:
        """Срок поддержки в годах: целое >= 0, не связан с окном договора."""
        if isinstance(value, bool):
            raise ValidationError("Поле 'years_supported' должно быть целым числом.")
        if isinstance(value, int):
            v = value
        elif isinstance(value, str) and re.fullmatch(r"[0-9]+", value.strip()):
            v = int(value.strip())
        else:
            raise ValidationError("Поле 'years_supported' должно быть целым числом.")
        if v < 0:
            raise ValidationError("Поле 'years_supported' не может быть отрицательным.")
        return v

    @staticmethod
    def installments_count(value: Any) -> int:
        """Число взносов рассрочки: целое >= 1."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("Поле 'amount_of_installments' должно быть целым числом.")
        if value < 1:
            raise ValidationError("Поле 'amount_of_installments' должно быть не меньше 1.")
        return value
