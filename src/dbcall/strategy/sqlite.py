"""
SQLite-specific call strategy.

SQLite has no stored procedures. It supports:
- Free-form queries and commands with `:name` placeholders
- Function calls against scalar functions registered with
  `register_function`, rendered as `SELECT fn(CAST(:arg AS type), ...)`
  with arguments passed positionally in parameter order
"""
import datetime
import logging
import sqlite3
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import dateutil.parser
import sqlalchemy as sa
from dbcall.callspec import CallKind
from dbcall.parameters import DbType
from dbcall.strategy.base import CallStrategy, register_strategy

if TYPE_CHECKING:
    from dbcall.options import CallOptions

logger = logging.getLogger(__name__)

__all__ = ['SQLiteStrategy', 'register_function', 'unregister_function']

# name -> (number of arguments, callable, deterministic)
_FUNCTIONS: dict[str, tuple[int, Callable[..., Any], bool]] = {}


def register_function(name: str, num_params: int, func: Callable[..., Any],
                      deterministic: bool = False) -> None:
    """Register a scalar function created on every new SQLite connection.
    """
    _FUNCTIONS[name] = (num_params, func, deterministic)
    logger.debug(f'Registered SQLite function {name}/{num_params}')


def unregister_function(name: str) -> None:
    _FUNCTIONS.pop(name, None)


def convert_date(val: bytes) -> datetime.date:
    """Convert ISO 8601 date string to date object."""
    return dateutil.parser.isoparse(val.decode()).date()


def convert_datetime(val: bytes) -> datetime.datetime:
    """Convert ISO 8601 datetime string to datetime object."""
    return dateutil.parser.isoparse(val.decode())


def _adapt_datetime(val: datetime.datetime) -> str:
    return val.isoformat(sep=' ')


@register_strategy('sqlite')
class SQLiteStrategy(CallStrategy):
    """SQLite call handling.
    """

    supported_kinds = frozenset({CallKind.QUERY, CallKind.COMMAND, CallKind.FUNCTION})

    type_names = {
        DbType.STRING: 'TEXT',
        DbType.INTEGER: 'INTEGER',
        DbType.DECIMAL: 'NUMERIC',
        DbType.DOUBLE: 'REAL',
        DbType.BOOLEAN: 'INTEGER',
    }

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for SQLite."""
        return 'sqlite'

    def build_connection_url(self, options: 'CallOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for SQLite."""
        return sa.URL.create(drivername='sqlite', database=options.database)

    def get_engine_kwargs(self, options: 'CallOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQLite."""
        connect_args: dict[str, Any] = {
            'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES
        }
        if options.timeout:
            connect_args['timeout'] = options.timeout
        return {'connect_args': connect_args}

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']

    def configure_connection(self, dbapi_connection: Any) -> None:
        """Register type adapters, converters and scalar functions.

        Adapters (Python -> SQLite) store temporal values as ISO 8601 text;
        converters (SQLite -> Python) parse columns declared date/datetime.
        """
        sqlite3.register_adapter(datetime.date, datetime.date.isoformat)
        sqlite3.register_adapter(datetime.datetime, _adapt_datetime)
        sqlite3.register_adapter(datetime.time, datetime.time.isoformat)
        sqlite3.register_converter('date', convert_date)
        sqlite3.register_converter('datetime', convert_datetime)

        for name, (num_params, func, deterministic) in _FUNCTIONS.items():
            dbapi_connection.create_function(name, num_params, func,
                                             deterministic=deterministic)

    def placeholder(self, name: str) -> str:
        return f':{name}'
