# errors.py
from __future__ import annotations

from typing import Any


class LicensingError(Exception):
    """
    Базовая ошибка ядра лицензирования.
    kind       — одна из четырёх категорий (NotFound/Conflict/Validation/InvariantViolation);
    error_type — имя конкретного класса (как поле error_type в отчётах импорта).
    """

    kind = "Error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def error_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "error_type": self.error_type,
            "message": self.message,
            **self.details,
        }


# ------------------------------- NotFound -------------------------------


class NotFoundError(LicensingError):
    kind = "NotFound"


class ClientNotFound(NotFoundError):
    pass


class ProductNotFound(NotFoundError):
    pass


class DiscountNotFound(NotFoundError):
    pass


class ContractNotFound(NotFoundError):
    pass


class ContractDeleted(NotFoundError):
    pass


class PaymentNotFound(NotFoundError):
    pass


# ------------------------------- Conflict -------------------------------


class ConflictError(LicensingError):
    kind = "Conflict"


class DuplicateIdentity(ConflictError):
    pass


class DuplicateContract(ConflictError):
    pass


class HasActiveContracts(ConflictError):
    pass


class DiscountNotActivatable(ConflictError):
    pass


class AlreadyDeleted(ConflictError):
    pass


# ------------------------------ Validation ------------------------------


class ValidationError(LicensingError, ValueError):
    """Ошибка входных данных. Наследует ValueError, как и валидаторы полей."""

    kind = "Validation"


class InvalidIdentityFormat(ValidationError):
    pass


class InvalidWindow(ValidationError):
    pass


class NonPositiveAmount(ValidationError):
    pass


class InstallmentsMismatch(ValidationError):
    pass


class DiscountNotApplicable(ValidationError):
    pass


# -------------------------- InvariantViolation --------------------------


class InvariantViolation(LicensingError):
    """
    Нарушение инварианта модели (например, договор с двумя клиентами).
    При корректной работе сервисов недостижимо: означает ошибку либо
    запись в БД в обход сервисов. Фатально для запроса, но не для процесса.
    """

    kind = "InvariantViolation"
