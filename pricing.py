from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from errors import ValidationError
from validators import MONEY_QUANT

HUNDRED = Decimal(100)


def combine_percentages(discount: Decimal | None, loyalty_bonus: Decimal | None) -> Decimal:
    """Суммарный процент скидки: скидка по акции плюс бонус постоянного клиента, не более 100."""
    total = (discount or Decimal(0)) + (loyalty_bonus or Decimal(0))
    return min(total, HUNDRED)


def effective_price(catalog_price: Decimal, percentage: Decimal) -> Decimal:
    """
    Цена договора: каталожная цена минус процент скидки,
    округление до копеек по правилу half-up.
    """
    if catalog_price < 0:
        raise ValidationError("Цена продукта не может быть отрицательной.")
    if not (Decimal(0) <= percentage <= HUNDRED):
        raise ValidationError("Процент скидки должен быть в диапазоне 0..100.")
    discounted = catalog_price * (HUNDRED - percentage) / HUNDRED
    return discounted.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
