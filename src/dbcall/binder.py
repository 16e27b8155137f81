"""
Binding of result rows onto typed records.
"""
import logging
from typing import Any

from dbcall.binding import BindingTable
from dbcall.coercion import coerce
from dbcall.cursor import ResultCursor
from dbcall.exceptions import AmbiguousBindingError, BindingError
from dbcall.exceptions import UnknownFieldError
from dbcall.records import RecordSchema

logger = logging.getLogger(__name__)

__all__ = ['ResultBinder']


class ResultBinder:
    """Turns the rows of a cursor into records of one schema.

    The binding table must already be resolved (explicit bindings plus any
    auto-fill) and validated against the cursor's columns.
    """

    def __init__(self, schema: RecordSchema) -> None:
        self.schema = schema

    def plan(self, cursor: ResultCursor, table: BindingTable) -> list[tuple[int, str, str, Any]]:
        """Resolve each bound column position to its target field and type.

        :raises UnknownFieldError: If a binding targets a field the schema lacks.
        :raises AmbiguousBindingError: If two result columns share a name and
            so would both fill the same field.
        """
        plan = []
        filled = {}
        for index, column in enumerate(cursor.column_names):
            binding = table.for_column(column)
            if binding is None:
                continue
            spec = self.schema.get(binding.field)
            if spec is None:
                raise UnknownFieldError(binding.field, self.schema.name)
            if spec.name in filled:
                raise AmbiguousBindingError(
                    f'Field {spec.name} is filled by columns at positions '
                    f'{filled[spec.name]} and {index} (both named {column})')
            filled[spec.name] = index
            plan.append((index, column, spec.name, spec.type))
        return plan

    def bind(self, cursor: ResultCursor, table: BindingTable) -> list[Any]:
        """Produce one record per remaining row of `cursor`, in cursor order.

        NULL cells are skipped so the field keeps its default.
        """
        plan = self.plan(cursor, table)
        results = []
        while cursor.next():
            values = {}
            for index, column, field, target in plan:
                value = cursor.value_at(index)
                if value is None:
                    continue
                values[field] = coerce(value, target, column=column, field=field)
            results.append(self._build(values, cursor.rownumber))
        logger.debug(f'Bound {len(results)} {self.schema.name} records')
        return results

    def _build(self, values: dict[str, Any], rownumber: int) -> Any:
        try:
            return self.schema.build(values)
        except TypeError as err:
            raise BindingError(
                f'Cannot build {self.schema.name} from row {rownumber}: {err}') from err
