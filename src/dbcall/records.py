"""
Record type descriptors.

A `RecordSchema` is the explicit field map the binder works against: field
name -> declared type, plus a factory that builds a record from the values
collected for one row. Schemas are built from dataclasses or assembled with
the `field()` builder for any other callable.
"""
import dataclasses
import logging
import types
import typing
from collections.abc import Callable, Iterator
from typing import Any, Self

from dbcall.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = ['FieldSpec', 'RecordSchema', 'unwrap_optional']


def unwrap_optional(annotation: Any) -> Any:
    """Return `T` for `Optional[T]` / `T | None`, otherwise the annotation.
    """
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


@dataclasses.dataclass(frozen=True)
class FieldSpec:
    """A target field: its name and the type values are coerced to."""
    name: str
    type: Any
    nullable: bool = False
    has_default: bool = True


class RecordSchema:
    """Field-descriptor map for one record type.
    """

    def __init__(self, factory: Callable[..., Any], name: str | None = None) -> None:
        self.factory = factory
        self.name = name or getattr(factory, '__name__', repr(factory))
        self._fields: dict[str, FieldSpec] = {}

    def __repr__(self) -> str:
        return f'RecordSchema({self.name}, fields={list(self._fields)})'

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self._fields.values())

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    @property
    def field_names(self) -> list[str]:
        return list(self._fields)

    def get(self, name: str) -> FieldSpec | None:
        return self._fields.get(name)

    def field(self, name: str, type_: Any = object, has_default: bool = True) -> Self:
        """Register a field. Returns the schema for chaining.

        Set `has_default` to False when the factory requires the field; a
        nullable required field then receives None when its cell is NULL or
        unbound.
        """
        if name in self._fields:
            raise ConfigurationError(f'Field {name} is already defined on {self.name}')
        target = unwrap_optional(type_)
        self._fields[name] = FieldSpec(name=name, type=target, nullable=target is not type_,
                                      has_default=has_default)
        return self

    def build(self, values: dict[str, Any]) -> Any:
        """Create a record from the field values collected for a row.

        Nullable fields without a default are passed None when the row left
        them unset. A required non-nullable field that is unset makes the
        factory fail.
        """
        for spec in self._fields.values():
            if spec.nullable and not spec.has_default and spec.name not in values:
                values[spec.name] = None
        return self.factory(**values)

    @classmethod
    def from_dataclass(cls, record_type: type) -> 'RecordSchema':
        """Build a schema from the fields of a dataclass.

        Fields with `init=False` are not settable through the constructor and
        are left out.
        """
        if not dataclasses.is_dataclass(record_type):
            raise ConfigurationError(f'{record_type!r} is not a dataclass')
        hints = typing.get_type_hints(record_type)
        schema = cls(record_type)
        for f in dataclasses.fields(record_type):
            if f.init:
                has_default = (f.default is not dataclasses.MISSING
                               or f.default_factory is not dataclasses.MISSING)
                schema.field(f.name, hints.get(f.name, object), has_default)
        logger.debug(f'Schema for {schema.name}: {schema.field_names}')
        return schema

    @classmethod
    def resolve(cls, record_type: 'type | RecordSchema') -> 'RecordSchema':
        """Accept a schema as-is or derive one from a dataclass."""
        if isinstance(record_type, RecordSchema):
            return record_type
        return cls.from_dataclass(record_type)
