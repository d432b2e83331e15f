"""Money and quantity arithmetic shared by every pricing computation."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Union

from orderdesk.exceptions import ValidationError

MONEY_QUANT = Decimal('0.01')
ZERO = Decimal('0')
HUNDRED = Decimal('100')

Number = Union[int, float, str, Decimal]


def round2(value: Number) -> Decimal:
    """
    Round a monetary value to exactly 2 decimal places (half away from zero).

    NaN (and infinity) propagates unchanged; callers must reject it before
    persisting.
    """
    value = value if isinstance(value, Decimal) else Decimal(str(value))
    if not value.is_finite():
        return value
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def apply_percentage(base: Number, pct: Number) -> Decimal:
    """
    Return base * pct / 100 without rounding.

    pct is expected to already be in [0, 100]. Rounding happens only where the
    value is stored or displayed, so multi-step formulas do not compound it.
    """
    base = base if isinstance(base, Decimal) else Decimal(str(base))
    pct = pct if isinstance(pct, Decimal) else Decimal(str(pct))
    return base * pct / HUNDRED


def to_decimal(value: Any, field: str = 'value') -> Decimal:
    """
    Convert a boundary value (JSON number, string, Decimal) to Decimal.

    Rules:
    - int, float, str and Decimal are accepted
    - None, booleans, NaN and infinities are rejected

    Raises:
        ValidationError: if the value is missing or not a finite number.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f'{field} must be a number', field=field)

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f'{field} must be a number', field=field)
    else:
        raise ValidationError(f'{field} must be a number', field=field)

    if not result.is_finite():
        raise ValidationError(f'{field} must be a finite number', field=field)
    return result


def to_quantity(value: Any, field: str = 'quantity') -> int:
    """
    Convert a boundary value to a positive whole quantity.

    Accepts 3, 3.0 and "3". Rejects zero, negatives and fractions.

    Raises:
        ValidationError: if the value is not a positive integer.
    """
    number = to_decimal(value, field)
    if number != number.to_integral_value():
        raise ValidationError(f'{field} must be a whole number', field=field)
    if number <= 0:
        raise ValidationError(f'{field} must be greater than 0', field=field)
    return int(number)


def to_money(value: Any, field: str = 'amount', default: Any = None) -> Decimal:
    """Convert an optional, non-negative monetary boundary value to Decimal."""
    if value is None or value == '':
        if default is None:
            raise ValidationError(f'{field} is required', field=field)
        value = default
    amount = to_decimal(value, field)
    if amount < 0:
        raise ValidationError(f'{field} cannot be negative', field=field)
    return amount


def money_str(value: Any) -> str:
    """Serialize a money value as a fixed 2-decimal string for JSON."""
    if value is None:
        return '0.00'
    return str(round2(value))
