"""
Column to field bindings.

A `BindingTable` holds the (column -> field) associations used to populate
result records. Explicit bindings come from the caller; automatic bindings
are added by `auto_fill` for columns whose normalized name matches exactly
one record field.
"""
import logging
from collections import Counter
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from dbcall.exceptions import AmbiguousBindingError, UnknownColumnError
from dbcall.naming import normalize_name

logger = logging.getLogger(__name__)

__all__ = ['Binding', 'BindingTable']


@dataclass(frozen=True)
class Binding:
    """Assignment of a result column to a record field."""
    column: str
    field: str
    explicit: bool = True


class BindingTable:
    """Ordered set of column-to-field bindings for one execution.
    """

    def __init__(self, bindings: Iterable[Binding] = ()) -> None:
        self._bindings: list[Binding] = list(bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __iter__(self) -> Iterator[Binding]:
        return iter(self._bindings)

    def __repr__(self) -> str:
        pairs = ', '.join(f'{b.column}->{b.field}' for b in self._bindings)
        return f'BindingTable({pairs})'

    @property
    def explicit(self) -> list[Binding]:
        return [b for b in self._bindings if b.explicit]

    def copy(self) -> 'BindingTable':
        return BindingTable(self._bindings)

    def add_binding(self, column: str, field: str) -> Binding:
        """Add an explicit binding. Conflicts surface at validation time.
        """
        binding = Binding(column=column, field=field)
        self._bindings.append(binding)
        return binding

    def for_column(self, column: str) -> Binding | None:
        """Return the binding reading `column`, if any."""
        for binding in self._bindings:
            if binding.column == column:
                return binding
        return None

    def check_unambiguous(self) -> None:
        """Reject explicit bindings that share a column or a target field.

        :raises AmbiguousBindingError: Naming the duplicated column or field.
        """
        explicit = self.explicit
        for column, count in Counter(b.column for b in explicit).items():
            if count > 1:
                raise AmbiguousBindingError(f'Column {column} is bound {count} times')
        for field, count in Counter(b.field for b in explicit).items():
            if count > 1:
                columns = ', '.join(b.column for b in explicit if b.field == field)
                raise AmbiguousBindingError(
                    f'Field {field} is the target of several bindings ({columns})')

    def auto_fill(self, columns: Sequence[str], field_names: Iterable[str]) -> list[Binding]:
        """Bind unbound columns to the field sharing their normalized name.

        A column binds only when exactly one field matches its key and that
        field is not already a binding target. Unmatched columns are ignored.

        :returns: The bindings that were added.
        """
        candidates: dict[str, list[str]] = {}
        for name in field_names:
            candidates.setdefault(normalize_name(name), []).append(name)

        targeted = {b.field for b in self._bindings}
        added = []
        for column in columns:
            if self.for_column(column) is not None:
                continue
            matches = candidates.get(normalize_name(column), [])
            if len(matches) != 1:
                if matches:
                    logger.debug(f'Column {column} matches several fields {matches}, not bound')
                continue
            field = matches[0]
            if field in targeted:
                logger.debug(f'Field {field} already bound, skipping column {column}')
                continue
            binding = Binding(column=column, field=field, explicit=False)
            self._bindings.append(binding)
            targeted.add(field)
            added.append(binding)

        logger.debug(f'Auto-bound {len(added)} of {len(columns)} columns')
        return added

    def validate_against_columns(self, columns: Sequence[str]) -> None:
        """Ensure every binding reads a column of the current result set.

        :raises UnknownColumnError: Naming the first missing column.
        """
        available = set(columns)
        for binding in self._bindings:
            if binding.column not in available:
                raise UnknownColumnError(binding.column)
