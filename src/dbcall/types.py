"""
Result column metadata.

- Column: name and resolved Python type of a result column
- resolve_type: map a driver type code to a Python type
"""
import datetime
import logging
from decimal import Decimal
from typing import Any, Self

from psycopg.postgres import types as pg_types

logger = logging.getLogger(__name__)

__all__ = ['Column', 'columns_from_description', 'postgres_types', 'resolve_type']

_oid = lambda x: pg_types.get(x).oid

postgres_types: dict[int, type] = {}

for v in [_oid('"char"'), _oid('bpchar'), _oid('varchar'), _oid('name'),
          _oid('text'), _oid('uuid'), _oid('json')]:
    postgres_types[v] = str

for v in [_oid('int2'), _oid('int4'), _oid('int8')]:
    postgres_types[v] = int

for v in [_oid('float4'), _oid('float8')]:
    postgres_types[v] = float

postgres_types[_oid('numeric')] = Decimal
postgres_types[_oid('date')] = datetime.date

for v in [_oid('time'), _oid('timetz')]:
    postgres_types[v] = datetime.time

for v in [_oid('timestamp'), _oid('timestamptz')]:
    postgres_types[v] = datetime.datetime

postgres_types[_oid('bool')] = bool
postgres_types[_oid('bytea')] = bytes


def resolve_type(dialect: str, type_code: Any) -> type | None:
    """Resolve a cursor description type code to a Python type.

    SQLite cursors do not report column types, so the result is None there.
    """
    if isinstance(type_code, type):
        return type_code
    if dialect == 'postgresql':
        return postgres_types.get(type_code)
    return None


class Column:
    """Result column metadata."""

    def __init__(self, name: str, type_code: Any = None,
                 python_type: type | None = None) -> None:
        self.name = name
        self.type_code = type_code
        self.python_type = python_type

    @classmethod
    def from_description(cls, description_item: Any, dialect: str) -> Self:
        """Create a Column from a DB-API cursor description item."""
        name = description_item[0]
        type_code = description_item[1] if len(description_item) > 1 else None
        return cls(name, type_code, resolve_type(dialect, type_code))

    def __repr__(self) -> str:
        return (f'Column(name={self.name!r}, type_code={self.type_code!r}, '
                f'python_type={self.python_type.__name__ if self.python_type else None})')

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'type_code': self.type_code,
            'python_type': self.python_type.__name__ if self.python_type else None,
        }

    @staticmethod
    def get_names(columns: list[Self]) -> list[str]:
        return [col.name for col in columns]

    @staticmethod
    def get_column_types_dict(columns: list[Self]) -> dict[str, dict]:
        return {col.name: col.to_dict() for col in columns}


def columns_from_description(description: Any, dialect: str) -> list[Column]:
    """Create Column objects from a cursor description."""
    if description is None:
        return []
    return [Column.from_description(desc, dialect) for desc in description]
