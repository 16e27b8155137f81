"""
Call execution.

A `Call` drives one query, command, procedure or function call through its
lifecycle:

    UNCONFIGURED --connect()--> CONNECTED --execute*()--> EXECUTED --close()--> CLOSED

Any unrecoverable error moves the call to FAILED. The connection and cursor
are owned by the call and released when its `with` block exits, whichever
path it exits by.

Usage:
    with Call(CallKind.PROCEDURE, 'P_EMP_RS') as call:
        call.connect(options)
        call.add_parameter('P_DEPARTMENT_ID', DbType.DECIMAL, Direction.IN, 50)
        call.add_parameter('P_RECORDSET', DbType.CURSOR, Direction.OUT)
        employees = call.execute(Employee)
"""
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Self

import pandas as pd
from dbcall.binder import ResultBinder
from dbcall.binding import Binding, BindingTable
from dbcall.callspec import CallKind, CallSpec
from dbcall.coercion import coerce, to_text
from dbcall.connection import open_connection, resolve_options
from dbcall.cursor import ResultCursor, load_frame
from dbcall.exceptions import CallKindError, ConfigurationError
from dbcall.exceptions import NoBindingsError, NotConnectedError
from dbcall.options import CallOptions
from dbcall.parameters import DbType, Direction, Parameter, ParameterSet
from dbcall.records import RecordSchema, unwrap_optional
from dbcall.strategy import CallStrategy, Command, Outcome

from libb import attrdict

logger = logging.getLogger(__name__)

__all__ = ['Call', 'CallState']


class CallState(Enum):
    """Lifecycle state of a call."""
    UNCONFIGURED = 'unconfigured'
    CONNECTED = 'connected'
    EXECUTED = 'executed'
    CLOSED = 'closed'
    FAILED = 'failed'


_REGISTRATION_STATES = (CallState.UNCONFIGURED, CallState.CONNECTED)


class Call:
    """One database call and the resources it owns.

    Set `auto_bind` to False to populate typed results from explicit
    bindings only.
    """

    def __init__(self, kind: CallKind | str, statement: str, auto_bind: bool = True) -> None:
        self.spec = CallSpec(kind, statement)
        self.auto_bind = auto_bind
        self.parameters = ParameterSet()
        self.bindings = BindingTable()
        self.state = CallState.UNCONFIGURED
        self.options: CallOptions | None = None
        self.outputs = attrdict()
        self.rowcount = -1
        self._sa_connection = None
        self._strategy: CallStrategy | None = None
        self._command: Command | None = None
        self._dbapi_cursor = None

    def __repr__(self) -> str:
        return f'Call({self.kind.value}, {self.statement!r}, state={self.state.name})'

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        if exc_type is None:
            self.close()
            return
        try:
            self.close()
        except Exception as e:
            logger.debug(f'Error closing call after {exc_type.__name__}: {e}')

    @property
    def kind(self) -> CallKind:
        return self.spec.kind

    @property
    def statement(self) -> str:
        return self.spec.statement

    def _require(self, states: tuple[CallState, ...], action: str) -> None:
        if self.state not in states:
            raise NotConnectedError(f'Cannot {action} while the call is {self.state.value}')

    # Configuration

    def connect(self, connection_info: CallOptions | dict[str, Any] | str,
                config: Any | None = None, **kw: Any) -> Self:
        """Open the connection and prepare the command for the call kind.

        Args:
            connection_info: CallOptions, a dict of options, or the name of a
                settings attribute on `config`
            config: Configuration object (for loading from config files)
            **kw: Keyword overrides for the options

        Raises
            ConnectionFailure: If the driver cannot open or prepare the call
        """
        self._require((CallState.UNCONFIGURED,), 'connect')
        try:
            self.options = resolve_options(connection_info, config, **kw)
            self._sa_connection, self._strategy = open_connection(self.options)
            self._command = self._strategy.prepare(self.spec)
        except Exception:
            self.state = CallState.FAILED
            self._release()
            raise
        self.state = CallState.CONNECTED
        logger.debug(f'{self!r} connected')
        return self

    def add_parameter(self, name: str, db_type: DbType,
                      direction: Direction = Direction.IN,
                      value: Any = None, size: int = 0) -> Parameter:
        """Add a parameter for the call.

        Args:
            name: Parameter name (case-sensitive, unique within the call)
            db_type: Declared database type
            direction: IN, OUT or INOUT
            value: Value for IN and INOUT parameters
            size: Size for non-IN parameters (not needed for cursors)
        """
        self._require(_REGISTRATION_STATES, 'add parameters')
        return self.parameters.add_parameter(name, db_type, direction, value, size)

    def add_return_value(self, db_type: DbType, size: int = 0) -> Parameter:
        """Add the return value of a function call. Must come before any parameter.
        """
        if len(self.parameters):
            raise ConfigurationError('The return value must be added before any parameters')
        self._require(_REGISTRATION_STATES, 'add a return value')
        return self.parameters.add_return_value(db_type, size)

    def add_binding(self, column: str, field: str) -> Binding:
        """Bind a result column to a record field explicitly.
        """
        self._require(_REGISTRATION_STATES, 'add bindings')
        return self.bindings.add_binding(column, field)

    # Execution

    @contextmanager
    def _executing(self):
        """Own the DB-API cursor for one execution; commit on success,
        roll back and mark the call failed otherwise.
        """
        self._dbapi_cursor = self._sa_connection.connection.cursor()
        try:
            yield self._dbapi_cursor
            self._sa_connection.connection.commit()
        except Exception:
            self.state = CallState.FAILED
            self._rollback()
            raise
        self.state = CallState.EXECUTED
        logger.debug(f'{self!r} executed, rowcount {self.rowcount}')

    def _apply(self, outcome: Outcome) -> None:
        self.rowcount = outcome.rowcount
        self.outputs = attrdict(outcome.outputs)

    def _check_executable(self) -> None:
        self._require((CallState.CONNECTED,), 'execute')
        if self.kind is CallKind.FUNCTION:
            raise CallKindError('Functions must be called with execute_function')

    def _resolve_bindings(self, cursor: ResultCursor, schema: RecordSchema) -> BindingTable:
        """Explicit bindings plus auto-fill, validated against the live columns."""
        columns = cursor.column_names
        table = self.bindings.copy()
        table.validate_against_columns(columns)
        if self.auto_bind:
            table.auto_fill(columns, schema.field_names)
        return table

    def execute(self, record_type: type | RecordSchema | None = None) -> list[Any]:
        """Execute the call and return its rows.

        Without `record_type`, returns the first column of each row as text.
        With a dataclass or `RecordSchema`, returns one record per row, fields
        filled from bound columns (auto-bound by name unless `auto_bind` is
        off). Commands return an empty list and set `rowcount`.

        Raises
            NotConnectedError: If the call is not connected or already executed
            CallKindError: For function calls
            NoBindingsError: Typed execution with auto_bind off and no bindings
            UnknownColumnError, UnknownFieldError, TypeMismatchError: On binding
        """
        self._check_executable()

        schema = None
        if record_type is not None:
            if not self.auto_bind and not len(self.bindings):
                raise NoBindingsError('No output bindings are set (call add_binding)')
            self.bindings.check_unambiguous()
            schema = RecordSchema.resolve(record_type)

        with self._executing() as cursor:
            if self.kind is CallKind.COMMAND:
                self._apply(self._strategy.execute_non_query(cursor, self._command, self.parameters))
                return []

            result, outcome = self._strategy.execute_reader(cursor, self._command, self.parameters)
            self._apply(outcome)

            if schema is None:
                if not result.columns:
                    return []
                return [to_text(row[0]) for row in result]

            table = self._resolve_bindings(result, schema)
            return ResultBinder(schema).bind(result, table)

    def execute_function(self, result_type: Any = str) -> Any:
        """Execute a function call and return its value as `result_type`.

        Raises
            NotConnectedError: If the call is not connected or already executed
            CallKindError: Unless the call kind is FUNCTION
            ConfigurationError: If no return value was added
            TypeMismatchError: If the value cannot be converted
        """
        self._require((CallState.CONNECTED,), 'execute')
        if self.kind is not CallKind.FUNCTION:
            raise CallKindError('Call must be created with kind FUNCTION to call execute_function')
        if self.parameters.return_value is None:
            raise ConfigurationError('Function calls need a return value (call add_return_value)')

        with self._executing() as cursor:
            outcome = self._strategy.execute_non_query(cursor, self._command, self.parameters)
            self._apply(outcome)
            return coerce(outcome.return_value, unwrap_optional(result_type))

    def execute_frame(self) -> pd.DataFrame:
        """Execute a query or procedure and return every column as a DataFrame.
        """
        self._check_executable()
        if self.kind is CallKind.COMMAND:
            raise CallKindError('Commands return no rows')

        with self._executing() as cursor:
            result, outcome = self._strategy.execute_reader(cursor, self._command, self.parameters)
            self._apply(outcome)
            return load_frame(result)

    # Cleanup

    def _rollback(self) -> None:
        if self._sa_connection is None or self._sa_connection.closed:
            return
        try:
            self._sa_connection.connection.rollback()
        except Exception as e:
            logger.debug(f'Rollback failed: {e}')

    def _release(self) -> None:
        cursor, self._dbapi_cursor = self._dbapi_cursor, None
        connection, self._sa_connection = self._sa_connection, None
        try:
            if cursor is not None:
                cursor.close()
        finally:
            if connection is not None and not connection.closed:
                connection.close()
                logger.debug('Connection closed')

    def close(self) -> None:
        """Release the cursor and connection. Calling it again is a no-op.
        """
        if self.state is CallState.CLOSED:
            return
        try:
            self._release()
        finally:
            self.state = CallState.CLOSED
