"""
Row cursor over a DB-API cursor.

`ResultCursor` exposes the result set the way the binder consumes it:
ordered column names, `next()` to advance, `value_at()` to read a cell.
Rows are fetched from the driver in chunks.
"""
import logging
import time
from collections.abc import Iterator
from functools import wraps
from typing import Any

import pandas as pd
from dbcall.types import Column, columns_from_description

logger = logging.getLogger(__name__)

__all__ = ['ResultCursor', 'IterChunk', 'dumpsql', 'load_frame']

DEFAULT_CHUNK_SIZE = 5000


def dumpsql(func):
    """Decorator for logging SQL text and parameter names of a driver call."""
    @wraps(func)
    def wrapper(self, cursor: Any, sql: str, params: dict | None = None, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{sql}\nparams: {sorted(params or {})}')
        try:
            return func(self, cursor, sql, params, *args, **kwargs)
        except Exception:
            logger.error(f'Error with call:\nSQL:\n{sql}\nparams: {sorted(params or {})}')
            raise
        finally:
            logger.debug(f'Call time: {time.time() - start:.4f}s')
    return wrapper


def IterChunk(cursor: Any, size: int = DEFAULT_CHUNK_SIZE) -> Iterator[tuple]:
    """Iterate through cursor results in chunks."""
    while True:
        chunked = cursor.fetchmany(size)
        if not chunked:
            break
        yield from chunked


class ResultCursor:
    """Forward-only cursor over one result set.
    """

    def __init__(self, dbapi_cursor: Any, dialect: str = '',
                 chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.dbapi_cursor = dbapi_cursor
        self.dialect = dialect
        self.columns: list[Column] = columns_from_description(dbapi_cursor.description, dialect)
        self._rows: Iterator[tuple] | None = (
            IterChunk(dbapi_cursor, chunk_size) if self.columns else None)
        self._current: tuple | None = None
        self.rownumber = 0
        self.closed = False

    @classmethod
    def empty(cls) -> 'ResultCursor':
        """A cursor with no columns and no rows."""
        return cls(_EmptyCursor())

    def __iter__(self) -> Iterator[tuple]:
        while self.next():
            yield self._current

    @property
    def column_names(self) -> list[str]:
        return Column.get_names(self.columns)

    def next(self) -> bool:
        """Advance to the next row. Returns False once the rows are exhausted."""
        if self._rows is None:
            return False
        row = next(self._rows, None)
        if row is None:
            self._rows = None
            self._current = None
            return False
        self._current = tuple(row)
        self.rownumber += 1
        return True

    def value_at(self, index: int) -> Any:
        """Value of column `index` in the current row (None for SQL NULL)."""
        if self._current is None:
            raise IndexError('No current row, call next() first')
        return self._current[index]

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._rows = None
        self.dbapi_cursor.close()


class _EmptyCursor:
    """Stand-in DB-API cursor for calls that produce no result set."""

    description = None

    def fetchmany(self, size: int = 1) -> list:
        return []

    def close(self) -> None:
        pass


def load_frame(cursor: ResultCursor) -> pd.DataFrame:
    """Load the remaining rows of a cursor into a DataFrame.

    Column type information is kept in `df.attrs['column_types']`.
    """
    df = pd.DataFrame.from_records(list(cursor), columns=cursor.column_names)
    df.attrs['column_types'] = Column.get_column_types_dict(cursor.columns)
    return df
