"""Module for miscellaneous multi-use functions"""

__all__ = ['ensure_finite', 'to_decimal']

from decimal import Decimal
import math
from typing import Union

from geoanchor.errors import InvalidPosition


def ensure_finite(name: str, value: Union[float, int, Decimal]) -> float:
    """
    Coerces a value to float, rejecting NaN and infinities.

    Args:
        name:
            The name of the value, used in the error message

        value:
            The value to check

    Returns:
        float
    """
    try:
        _value = float(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidPosition(f'{name} must be a number, got {value!r}') from exc

    if not math.isfinite(_value):
        raise InvalidPosition(f'{name} must be finite, got {value!r}')

    return _value


def to_decimal(value: Union[float, int, str, Decimal]) -> Decimal:
    """Exact conversion of a number to Decimal (floats keep their full binary expansion)"""
    if isinstance(value, Decimal):
        return value

    return Decimal(value)
