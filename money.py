"""Exact decimal arithmetic for amounts, balances and percentages.

Amounts are persisted as integer cents and surfaced as ``Decimal`` with two
fraction digits. Ratios are quantized to four fraction digits with
``ROUND_HALF_UP`` before being scaled to a percentage, so ``0.12445`` becomes
``0.1245`` and then ``12.45``.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")
RATIO_QUANTUM = Decimal("0.0001")
HUNDRED = Decimal("100")
ZERO = Decimal("0")

Number = Union[Decimal, int, str]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, float):
        raise TypeError("Binary floats are not accepted for money")
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(int(cents)) / HUNDRED).quantize(CENT)


def decimal_to_cents(amount: Number) -> int:
    value = to_decimal(amount)
    cents = (value * HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def balance(income: Number, expenses: Number) -> Decimal:
    return to_decimal(income) - to_decimal(expenses)


def _ratio_percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    ratio = (numerator / denominator).quantize(RATIO_QUANTUM, rounding=ROUND_HALF_UP)
    return ratio * HUNDRED


def savings_rate(income: Number, expenses: Number) -> Decimal:
    """Share of ``income`` left after ``expenses``, as a percentage.

    Returns ``0`` when there is no income. The result may be negative when
    expenses exceed income.
    """
    income_value = to_decimal(income)
    if income_value == ZERO:
        return ZERO
    return _ratio_percent(income_value - to_decimal(expenses), income_value)


def category_percentage(category_amount: Number, total_amount: Number) -> Decimal:
    total_value = to_decimal(total_amount)
    if total_value == ZERO:
        return ZERO
    return _ratio_percent(to_decimal(category_amount), total_value)
