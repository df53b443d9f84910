"""
Registry Engine — Numeric coercion.

Population and area values arrive from forms, spreadsheet imports and older
database rows in every shape imaginable. All of them pass through
`coerce_non_negative` before they are summed or stored.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Union

Number = Union[int, float]


def _parse_text(text: str) -> float:
    cleaned = text.strip().replace("\u00a0", "").replace(" ", "")
    if not cleaned:
        return 0.0
    # Decimal comma ("1,5") unless a dot is already the decimal separator
    if "," in cleaned and "." not in cleaned:
        cleaned = cleaned.replace(",", ".")
    else:
        cleaned = cleaned.replace(",", "")
    return float(cleaned)


def coerce_non_negative(value: Any, integer: bool = False) -> Number:
    """
    Coerce `value` to a finite, non-negative number.

    Args:
        value: int, float, Decimal, numeric string or None
        integer: truncate toward zero and return an int

    Returns:
        The coerced number; 0 for None, booleans, unparsable text, NaN,
        infinities and negative values.
    """
    if value is None or isinstance(value, bool):
        number = 0.0
    elif isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            # Integers past the float range count as non-finite
            number = 0.0
    elif isinstance(value, Decimal):
        try:
            number = float(value)
        except (InvalidOperation, OverflowError, ValueError):
            number = 0.0
    elif isinstance(value, str):
        try:
            number = _parse_text(value)
        except (OverflowError, ValueError):
            number = 0.0
    else:
        try:
            number = float(value)
        except (OverflowError, TypeError, ValueError):
            number = 0.0

    if math.isnan(number) or math.isinf(number) or number < 0:
        number = 0.0

    if integer:
        return int(number)
    return number
