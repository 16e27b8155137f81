"""
PostgreSQL-specific call strategy (psycopg 3).

- Free-form statements use `%(name)s` placeholders (`:name` is rewritten)
- Functions: `SELECT fn(arg => CAST(%(arg)s AS type)) AS retval`
- Procedures: `CALL proc(arg => ..., out_arg => CAST(NULL AS type))`; the
  OUT/INOUT values come back as a single row, and rows are fetched from the
  first refcursor output
"""
import logging
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from dbcall.callspec import CallKind
from dbcall.cursor import ResultCursor
from dbcall.parameters import DbType, Parameter, ParameterSet
from dbcall.sql import quote_identifier
from dbcall.strategy.base import CallStrategy, Command, Outcome, register_strategy

if TYPE_CHECKING:
    from dbcall.options import CallOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(CallStrategy):
    """PostgreSQL call handling.
    """

    type_names = {
        DbType.STRING: 'text',
        DbType.INTEGER: 'integer',
        DbType.DECIMAL: 'numeric',
        DbType.DOUBLE: 'double precision',
        DbType.BOOLEAN: 'boolean',
        DbType.DATE: 'date',
        DbType.TIMESTAMP: 'timestamp',
        DbType.TIME: 'time',
        DbType.BINARY: 'bytea',
        DbType.CURSOR: 'refcursor',
    }

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    def build_connection_url(self, options: 'CallOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for PostgreSQL."""
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)
        if options.appname:
            query['application_name'] = options.appname

        return sa.URL.create(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            query=query,
        )

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'database']

    def placeholder(self, name: str) -> str:
        return f'%({name})s'

    def argument(self, param: Parameter) -> str:
        """Arguments are passed in named notation, so binding is by name."""
        return f'{param.name} => {super().argument(param)}'

    def render_procedure(self, command: Command, parameters: ParameterSet) -> tuple[str, dict | None]:
        args = ', '.join(self.argument(p) for p in parameters.arguments())
        return f'CALL {command.spec.statement}({args})', parameters.inputs() or None

    def _read_outputs(self, cursor: Any, parameters: ParameterSet) -> dict[str, Any]:
        """Map the row returned by CALL onto the OUT/INOUT parameters."""
        outputs = parameters.outputs()
        if not outputs or cursor.description is None:
            return {}
        row = cursor.fetchone()
        if row is None:
            return {}
        names = [desc[0].lower() for desc in cursor.description]
        values = {}
        for position, param in enumerate(outputs):
            key = param.name.lower()
            if key in names:
                values[param.name] = row[names.index(key)]
            elif position < len(row):
                values[param.name] = row[position]
        logger.debug(f'Procedure returned outputs {sorted(values)}')
        return values

    def execute_non_query(self, cursor: Any, command: Command,
                          parameters: ParameterSet) -> Outcome:
        if command.kind is not CallKind.PROCEDURE:
            return super().execute_non_query(cursor, command, parameters)
        sql, params = self.render(command, parameters)
        self.run(cursor, sql, params)
        rowcount = cursor.rowcount
        return Outcome(rowcount=rowcount, outputs=self._read_outputs(cursor, parameters))

    def execute_reader(self, cursor: Any, command: Command,
                       parameters: ParameterSet) -> tuple[ResultCursor, Outcome]:
        if command.kind is not CallKind.PROCEDURE:
            return super().execute_reader(cursor, command, parameters)

        outcome = self.execute_non_query(cursor, command, parameters)
        refcursors = parameters.cursors()
        if not refcursors:
            return ResultCursor.empty(), outcome

        portal = outcome.outputs.get(refcursors[0].name)
        if portal is None:
            logger.debug(f'Cursor parameter {refcursors[0].name} was not opened')
            return ResultCursor.empty(), outcome

        self.run(cursor, f'FETCH ALL FROM {quote_identifier(str(portal))}')
        return ResultCursor(cursor, self.dialect_name), outcome
