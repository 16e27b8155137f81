"""
Value coercion from database-native values to declared Python types.

Coercion is a closed table keyed by (source kind, target kind). Any pair
missing from the table, and any conversion that fails inside a tabulated
function, raises `TypeMismatchError` naming both types and the diagnostic.

Kinds are: str, int, float, decimal, bool, date, datetime, time, bytes.
NumPy and Pandas scalars are reduced to Python values before lookup.
"""
import datetime
import logging
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from typing import Any

import dateutil.parser
import numpy as np
import pandas as pd
from dbcall.exceptions import TypeMismatchError

logger = logging.getLogger(__name__)

__all__ = [
    'COERCIONS',
    'coerce',
    'kind_of',
    'target_kind',
    'to_python_scalar',
    'to_text',
]

# Order matters: bool before int, datetime before date.
_SOURCE_KINDS: list[tuple[str, tuple[type, ...]]] = [
    ('bool', (bool,)),
    ('int', (int,)),
    ('float', (float,)),
    ('decimal', (Decimal,)),
    ('str', (str,)),
    ('datetime', (datetime.datetime,)),
    ('date', (datetime.date,)),
    ('time', (datetime.time,)),
    ('bytes', (bytes, bytearray, memoryview)),
]

_TARGET_KINDS: dict[type, str] = {
    str: 'str',
    int: 'int',
    float: 'float',
    Decimal: 'decimal',
    bool: 'bool',
    datetime.date: 'date',
    datetime.datetime: 'datetime',
    datetime.time: 'time',
    bytes: 'bytes',
}

_TRUE_STRINGS = {'1', 't', 'true', 'y', 'yes', 'on'}
_FALSE_STRINGS = {'0', 'f', 'false', 'n', 'no', 'off'}


def to_python_scalar(value: Any) -> Any:
    """Reduce NumPy and Pandas scalars to plain Python values.

    NaT becomes None, timestamps become `datetime.datetime`.
    """
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.datetime64):
        if np.isnat(value):
            return None
        return pd.Timestamp(value).to_pydatetime()
    if isinstance(value, np.generic):
        return value.item()
    return value


def kind_of(value: Any) -> str | None:
    """Return the coercion kind of a Python value, or None if untabulated."""
    for kind, types in _SOURCE_KINDS:
        if isinstance(value, types):
            return kind
    return None


def target_kind(target: type) -> str | None:
    """Return the coercion kind of a declared type, or None if untabulated."""
    return _TARGET_KINDS.get(target)


def _integral(value: Decimal) -> int:
    if value != value.to_integral_value():
        raise ValueError(f'{value} is not integral')
    return int(value)


def _str_to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_STRINGS:
        return True
    if lowered in _FALSE_STRINGS:
        return False
    raise ValueError(f'{value!r} is not a boolean string')


def _float_to_int(value: float) -> int:
    if not value.is_integer():
        raise ValueError(f'{value} is not integral')
    return int(value)


def _date_to_datetime(value: datetime.date) -> datetime.datetime:
    return datetime.datetime.combine(value, datetime.time())


COERCIONS: dict[tuple[str, str], Callable[[Any], Any]] = {
    ('str', 'str'): str,
    ('str', 'int'): lambda v: _integral(Decimal(v.strip())),
    ('str', 'float'): float,
    ('str', 'decimal'): lambda v: Decimal(v.strip()),
    ('str', 'bool'): _str_to_bool,
    ('str', 'date'): lambda v: dateutil.parser.isoparse(v.strip()).date(),
    ('str', 'datetime'): lambda v: dateutil.parser.isoparse(v.strip()),
    ('str', 'time'): lambda v: datetime.time.fromisoformat(v.strip()),
    ('str', 'bytes'): lambda v: v.encode('utf-8'),

    ('int', 'int'): int,
    ('int', 'str'): str,
    ('int', 'float'): float,
    ('int', 'decimal'): Decimal,
    ('int', 'bool'): lambda v: v != 0,

    ('float', 'float'): float,
    ('float', 'int'): _float_to_int,
    ('float', 'str'): str,
    ('float', 'decimal'): lambda v: Decimal(str(v)),
    ('float', 'bool'): lambda v: v != 0,

    ('decimal', 'decimal'): Decimal,
    ('decimal', 'int'): _integral,
    ('decimal', 'float'): float,
    ('decimal', 'str'): str,
    ('decimal', 'bool'): lambda v: v != 0,

    ('bool', 'bool'): bool,
    ('bool', 'int'): int,
    ('bool', 'float'): float,
    ('bool', 'str'): str,

    ('date', 'date'): lambda v: v,
    ('date', 'datetime'): _date_to_datetime,
    ('date', 'str'): lambda v: v.isoformat(),

    ('datetime', 'datetime'): lambda v: v,
    ('datetime', 'date'): lambda v: v.date(),
    ('datetime', 'time'): lambda v: v.time(),
    ('datetime', 'str'): lambda v: v.isoformat(sep=' '),

    ('time', 'time'): lambda v: v,
    ('time', 'str'): lambda v: v.isoformat(),

    ('bytes', 'bytes'): bytes,
    ('bytes', 'str'): lambda v: bytes(v).decode('utf-8'),
}


def coerce(value: Any, target: type, column: str | None = None,
           field: str | None = None) -> Any:
    """Convert a native value to the declared target type.

    `None` passes through. Targets `object` and `typing.Any` accept the
    value unchanged.

    :raises TypeMismatchError: If the pair is untabulated or conversion fails.
    """
    value = to_python_scalar(value)
    if value is None or target is object or target is Any:
        return value

    source = kind_of(value)
    dest = target_kind(target)
    source_name = type(value).__name__
    target_name = getattr(target, '__name__', repr(target))

    func = COERCIONS.get((source, dest))
    if func is None:
        raise TypeMismatchError(source_name, target_name, 'no conversion is defined',
                                column=column, field=field)

    try:
        return func(value)
    except (ValueError, ArithmeticError, InvalidOperation, TypeError) as err:
        raise TypeMismatchError(source_name, target_name, str(err),
                                column=column, field=field) from err


def to_text(value: Any) -> str | None:
    """Render any native value as text.

    Tabulated kinds use their `str` conversion; anything else a driver may
    return (UUID, interval, JSON, arrays) falls back to `str()`.
    """
    value = to_python_scalar(value)
    if value is None:
        return None
    func = COERCIONS.get((kind_of(value), 'str'))
    if func is None:
        return str(value)
    return func(value)
