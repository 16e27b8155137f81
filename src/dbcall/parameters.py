"""
Call parameters.

A `ParameterSet` holds the named parameters of one call in the order they
were added. Values are staged when they are added: temporal values stay
native, everything else is converted to its textual representation and the
dialect strategy casts it back to the declared type in the call text.
"""
import datetime
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from dbcall.coercion import to_python_scalar
from dbcall.exceptions import ConfigurationError, TypeMismatchError

logger = logging.getLogger(__name__)

__all__ = [
    'DbType',
    'Direction',
    'Parameter',
    'ParameterSet',
    'RETURN_VALUE_NAME',
    'stage_value',
]

RETURN_VALUE_NAME = 'retval'


class Direction(Enum):
    """Parameter direction."""
    IN = 'in'
    OUT = 'out'
    INOUT = 'inout'
    RETURN_VALUE = 'return_value'

    @property
    def carries_value(self) -> bool:
        return self in {Direction.IN, Direction.INOUT}


class DbType(Enum):
    """Declared database type of a parameter."""
    STRING = 'string'
    INTEGER = 'integer'
    DECIMAL = 'decimal'
    DOUBLE = 'double'
    BOOLEAN = 'boolean'
    DATE = 'date'
    TIMESTAMP = 'timestamp'
    TIME = 'time'
    BINARY = 'binary'
    CURSOR = 'cursor'

    @property
    def is_temporal(self) -> bool:
        return self in {DbType.DATE, DbType.TIMESTAMP, DbType.TIME}

    @property
    def is_self_describing(self) -> bool:
        """Types whose size the driver determines (no explicit size needed)."""
        return self is DbType.CURSOR


_TEMPORAL_TYPES: dict[DbType, tuple[type, ...]] = {
    DbType.DATE: (datetime.date,),
    DbType.TIMESTAMP: (datetime.date,),
    DbType.TIME: (datetime.time,),
}


@dataclass(frozen=True)
class Parameter:
    """A named call parameter with its staged value."""
    name: str
    db_type: DbType
    direction: Direction = Direction.IN
    value: Any = None
    size: int = 0

    @property
    def is_cursor(self) -> bool:
        return self.db_type is DbType.CURSOR


def stage_value(value: Any, db_type: DbType) -> Any:
    """Convert an input value to the form handed to the driver.

    Temporal types require native date/time values and pass them through;
    binary values pass through as bytes; everything else becomes text.
    """
    value = to_python_scalar(value)
    if value is None:
        return None

    if db_type.is_temporal:
        if not isinstance(value, _TEMPORAL_TYPES[db_type]):
            raise TypeMismatchError(
                type(value).__name__, db_type.name,
                'dates and times must be passed as date, datetime or time values')
        return value

    if db_type is DbType.BINARY and isinstance(value, bytes | bytearray | memoryview):
        return bytes(value)

    if isinstance(value, bool):
        return '1' if value else '0'

    return str(value)


class ParameterSet:
    """Ordered, uniquely named parameters of one call.
    """

    def __init__(self) -> None:
        self._params: list[Parameter] = []

    def __len__(self) -> int:
        return len(self._params)

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self._params)

    def __contains__(self, name: object) -> bool:
        return any(p.name == name for p in self._params)

    def __repr__(self) -> str:
        return f'ParameterSet({self.names!r})'

    @property
    def names(self) -> list[str]:
        return [p.name for p in self._params]

    @property
    def return_value(self) -> Parameter | None:
        """The return-value parameter, which is always first when present."""
        if self._params and self._params[0].direction is Direction.RETURN_VALUE:
            return self._params[0]
        return None

    def get(self, name: str) -> Parameter | None:
        for param in self._params:
            if param.name == name:
                return param
        return None

    def add_parameter(self, name: str, db_type: DbType,
                      direction: Direction = Direction.IN,
                      value: Any = None, size: int = 0) -> Parameter:
        """Add a parameter for a query, procedure or function call.

        :param name: Parameter name, case-sensitive and unique within the call.
        :param db_type: Declared database type.
        :param direction: IN, OUT or INOUT (return values use `add_return_value`).
        :param value: Value for IN and INOUT parameters.
        :param size: Size for non-IN parameters of sized types.
        :raises ConfigurationError: On a duplicate name, a missing value or a
            missing size.
        :raises TypeMismatchError: When a temporal type gets a non-temporal value.
        """
        if not isinstance(name, str) or not name:
            raise ConfigurationError('Parameter name must be a non-empty string')

        if name in self:
            raise ConfigurationError(f'Parameter name {name} is already set')

        if direction is Direction.RETURN_VALUE:
            raise ConfigurationError('Return values must be added with add_return_value')

        if direction is not Direction.IN and not db_type.is_self_describing and not size:
            raise ConfigurationError(
                f'Must specify size for non-input parameter {name}')

        staged = stage_value(value, db_type) if direction.carries_value else None
        if direction.carries_value and staged is None:
            raise ConfigurationError(
                f'Must specify value for input or input/output parameter {name}')

        param = Parameter(name=name, db_type=db_type, direction=direction,
                          value=staged, size=size)
        self._params.append(param)
        logger.debug(f'Added {direction.value} parameter {name} ({db_type.name})')
        return param

    def add_return_value(self, db_type: DbType, size: int = 0) -> Parameter:
        """Add the return value of a function call.

        :raises ConfigurationError: If any parameter has already been added.
        """
        if self._params:
            raise ConfigurationError('The return value must be added before any parameters')

        param = Parameter(name=RETURN_VALUE_NAME, db_type=db_type,
                          direction=Direction.RETURN_VALUE, size=size)
        self._params.append(param)
        logger.debug(f'Added return value ({db_type.name})')
        return param

    def arguments(self) -> list[Parameter]:
        """All parameters except the return value, in call order."""
        return [p for p in self._params if p.direction is not Direction.RETURN_VALUE]

    def inputs(self) -> dict[str, Any]:
        """Staged values of IN and INOUT parameters keyed by name."""
        return {p.name: p.value for p in self._params if p.direction.carries_value}

    def outputs(self) -> list[Parameter]:
        """OUT and INOUT parameters in call order."""
        return [p for p in self._params
                if p.direction in {Direction.OUT, Direction.INOUT}]

    def cursors(self) -> list[Parameter]:
        """Cursor-typed output parameters in call order."""
        return [p for p in self.outputs() if p.is_cursor]
