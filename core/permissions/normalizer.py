"""
Value normalisation for change detection.

Two field values are considered equal when their normalised forms are
deep-equal. Normalisation folds the encodings a resource field picks up on
its way through forms, JSON columns and Numeric columns:

    None, ''             -> None
    5, 5.0, '5', '5.00'  -> '5.00'
    {'b': 1, 'a': 2}     -> {'a': '2.00', 'b': '1.00'}   (key order ignored)
    [1, 2]               -> ['1.00', '2.00']             (order kept)
    anything else        -> its string form

Booleans are not numbers here: True normalises to 'true'.
"""
from __future__ import annotations

import json
import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Iterable, Mapping, Union

from core.permissions.constants import TIMESTAMP_KEYS

# A resource field value: null, number, string, boolean, array or object.
FieldValue = Union[None, bool, int, float, Decimal, str, list, dict]
Normalized = Union[None, str, list, dict]

_NUMERIC_RE = re.compile(r'^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?\s*$')


def _fixed2(number) -> str:
    amount = number if isinstance(number, Decimal) else Decimal(str(number))
    with localcontext() as ctx:
        ctx.prec = max(28, amount.adjusted() + 4)
        quantized = amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    if quantized == 0:
        quantized = abs(quantized)
    return f'{quantized:.2f}'


def _parse_numeric(text: str):
    if not _NUMERIC_RE.match(text):
        return None
    try:
        value = Decimal(text.strip())
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def normalize(value: FieldValue) -> Normalized:
    """Canonicalise a field value for equality comparison."""
    if value is None or value == '':
        return None

    if isinstance(value, bool):
        return 'true' if value else 'false'

    if isinstance(value, Decimal) and not value.is_finite():
        return str(value)

    if isinstance(value, (int, Decimal)):
        return _fixed2(value)

    if isinstance(value, float):
        if not math.isfinite(value):
            return str(value)
        return _fixed2(value)

    if isinstance(value, str):
        number = _parse_numeric(value)
        if number is not None:
            return _fixed2(number)
        return value

    if isinstance(value, (list, tuple)):
        return [normalize(item) for item in value]

    if isinstance(value, Mapping):
        return {str(key): normalize(value[key]) for key in sorted(value, key=str)}

    if isinstance(value, (datetime, date)):
        return value.isoformat()

    return str(value)


def canonical(value: FieldValue) -> str:
    """Stable serialisation of the normalised value."""
    return json.dumps(normalize(value), sort_keys=True, separators=(',', ':'))


def values_equal(a: FieldValue, b: FieldValue) -> bool:
    return canonical(a) == canonical(b)


def changed_keys(old_values: Mapping[str, Any] | None,
                 new_values: Mapping[str, Any] | None,
                 exclude: Iterable[str] = TIMESTAMP_KEYS) -> list[str]:
    """Keys of ``new_values`` whose value differs from ``old_values``.

    Keys keep the insertion order of ``new_values``. A missing pre-image
    reports every non-excluded key as changed.
    """
    if not new_values:
        return []
    excluded = set(exclude)
    old_values = old_values or {}
    return [
        key for key in new_values
        if key not in excluded and not values_equal(old_values.get(key), new_values[key])
    ]
