"""
Formatting helpers for printed orders.
Brazilian style: dot as thousands separator, comma as decimal separator.
"""
from decimal import Decimal, InvalidOperation
from datetime import date, datetime
from typing import Union


def _group_thousands(integer_part: str) -> str:
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    return '.'.join(groups)[::-1]


def money_br(value: Union[int, float, Decimal, str, None], symbol: str = 'R$') -> str:
    """
    Format a monetary amount with exactly 2 decimals.

    Examples:
        money_br(1500) -> "R$ 1.500,00"
        money_br(Decimal('13.5')) -> "R$ 13,50"
        money_br(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = "-" if num < 0 else ""
    integer_part, decimal_part = f"{abs(num):.2f}".split(".")
    formatted = f"{sign}{_group_thousands(integer_part)},{decimal_part}"
    return f"{symbol} {formatted}" if symbol else formatted


def percent_br(value: Union[int, float, Decimal, str, None]) -> str:
    """Format a percentage without trailing zeros: 10.00 -> "10%", 12.50 -> "12,5%"."""
    if value is None or value == "":
        return "-"
    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"
    text = f"{num:.2f}".rstrip('0').rstrip('.')
    return f"{text.replace('.', ',')}%"


def date_br(value: Union[date, datetime, None]) -> str:
    """
    Format a date as DD/MM/YYYY.

    Examples:
        date_br(date(2026, 1, 12)) -> "12/01/2026"
    """
    if value is None:
        return "-"

    if isinstance(value, datetime):
        value = value.date()

    if not isinstance(value, date):
        return "-"

    return value.strftime("%d/%m/%Y")
