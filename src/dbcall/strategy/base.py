"""
Base strategy interface for database calls.

A strategy is the driver collaborator of a `Call`: it knows how a dialect
opens connections, which call kinds it can prepare, how the text of a call
is rendered with its parameters and how results and output values are read
back. Concrete strategies register themselves by dialect name.
"""
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from dbcall.callspec import CallKind, CallSpec
from dbcall.cursor import ResultCursor, dumpsql
from dbcall.exceptions import ConfigurationError, ConnectionFailure
from dbcall.parameters import DbType, Parameter, ParameterSet
from dbcall.sql import is_routine_name, standardize_placeholders

if TYPE_CHECKING:
    from dbcall.options import CallOptions

logger = logging.getLogger(__name__)

# Registry of dialect name -> strategy class
_STRATEGY_REGISTRY: dict[str, type['CallStrategy']] = {}

_ARGUMENT_NAME = re.compile(r'^[A-Za-z_]\w*$')


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(CallStrategy):
            ...
    """
    def decorator(cls: type['CallStrategy']) -> type['CallStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


@dataclass(frozen=True)
class Command:
    """A call prepared for one dialect."""
    spec: CallSpec
    dialect: str

    @property
    def kind(self) -> CallKind:
        return self.spec.kind


@dataclass
class Outcome:
    """What a non-row-returning execution reports back."""
    rowcount: int = -1
    return_value: Any = None
    outputs: dict[str, Any] = field(default_factory=dict)


class CallStrategy(ABC):
    """Base class for dialect-specific call handling.
    """

    supported_kinds: frozenset[CallKind] = frozenset(CallKind)

    # DbType -> SQL type name used to cast staged text values
    type_names: dict[DbType, str | None] = {}

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier."""

    @abstractmethod
    def build_connection_url(self, options: 'CallOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL."""

    def get_engine_kwargs(self, options: 'CallOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs."""
        return {}

    def configure_connection(self, dbapi_connection: Any) -> None:
        """Register adapters or functions on a freshly opened connection."""

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for this dialect."""
        return []

    @classmethod
    def validate_options(cls, options: 'CallOptions') -> None:
        """Validate options for this dialect.

        Raises
            ValueError: If any required field is None or 0
        """
        for name in cls.get_required_options():
            if not getattr(options, name):
                raise ValueError(f'field {name} cannot be None or 0')

    def prepare(self, spec: CallSpec) -> Command:
        """Prepare a call for this dialect.

        Raises
            ConnectionFailure: If the call kind is unsupported or the routine
                name cannot be used in call text
        """
        if spec.kind not in self.supported_kinds:
            raise ConnectionFailure(
                f'{self.dialect_name} cannot prepare {spec.kind.value} calls')
        if spec.kind.is_routine and not is_routine_name(spec.statement):
            raise ConnectionFailure(f'Invalid routine name {spec.statement!r}')
        if not spec.statement or not spec.statement.strip():
            raise ConnectionFailure('Statement text is empty')
        logger.debug(f'Prepared {spec.kind.value} call {spec.statement[:60]!r}')
        return Command(spec=spec, dialect=self.dialect_name)

    def cast(self, text: str, db_type: DbType) -> str:
        """Wrap a placeholder in a cast to the declared type, if it has one."""
        type_name = self.type_names.get(db_type)
        if type_name is None:
            return text
        return f'CAST({text} AS {type_name})'

    def argument(self, param: Parameter) -> str:
        """Render one routine argument."""
        if not _ARGUMENT_NAME.match(param.name):
            raise ConfigurationError(
                f'Parameter name {param.name} cannot be used as a routine argument')
        if param.direction.carries_value:
            return self.cast(self.placeholder(param.name), param.db_type)
        return self.cast('NULL', param.db_type)

    @abstractmethod
    def placeholder(self, name: str) -> str:
        """Return the named placeholder for this dialect."""

    def render_text(self, command: Command, parameters: ParameterSet) -> tuple[str, dict | None]:
        """Render a free-form query or command."""
        params = parameters.inputs() or None
        sql = standardize_placeholders(command.spec.statement, self.dialect_name,
                                       escape_percent=params is not None)
        return sql, params

    def render_function(self, command: Command, parameters: ParameterSet) -> tuple[str, dict | None]:
        """Render a scalar function call returning one column named retval."""
        if parameters.outputs():
            raise ConfigurationError('Function calls take input parameters only')
        args = ', '.join(self.argument(p) for p in parameters.arguments())
        return f'SELECT {command.spec.statement}({args}) AS retval', parameters.inputs() or None

    def render_procedure(self, command: Command, parameters: ParameterSet) -> tuple[str, dict | None]:
        """Render a stored-procedure call."""
        raise ConnectionFailure(f'{self.dialect_name} cannot prepare procedure calls')

    def render(self, command: Command, parameters: ParameterSet) -> tuple[str, dict | None]:
        """Render the text and parameter mapping of a call."""
        if command.kind is CallKind.FUNCTION:
            return self.render_function(command, parameters)
        if command.kind is CallKind.PROCEDURE:
            return self.render_procedure(command, parameters)
        return self.render_text(command, parameters)

    @dumpsql
    def run(self, cursor: Any, sql: str, params: dict | None = None) -> None:
        """Execute rendered call text on a DB-API cursor."""
        if params is None:
            cursor.execute(sql)
        else:
            cursor.execute(sql, params)

    def execute_reader(self, cursor: Any, command: Command,
                       parameters: ParameterSet) -> tuple[ResultCursor, Outcome]:
        """Execute a row-returning call.

        Returns the row cursor and the outcome (output values for procedures).
        """
        sql, params = self.render(command, parameters)
        self.run(cursor, sql, params)
        return ResultCursor(cursor, self.dialect_name), Outcome(rowcount=cursor.rowcount)

    def execute_non_query(self, cursor: Any, command: Command,
                          parameters: ParameterSet) -> Outcome:
        """Execute a call for its effect, return value or output values."""
        sql, params = self.render(command, parameters)
        self.run(cursor, sql, params)
        if command.kind is CallKind.FUNCTION:
            row = cursor.fetchone()
            return Outcome(rowcount=cursor.rowcount, return_value=row[0] if row else None)
        return Outcome(rowcount=cursor.rowcount)
