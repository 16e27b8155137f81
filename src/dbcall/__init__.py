"""
Typed calls to database queries, commands, stored procedures and functions.

A `Call` registers typed parameters, executes against PostgreSQL or SQLite
and binds result columns to record fields:

    with Call('query', 'SELECT * FROM employees WHERE department_id = :dept') as call:
        call.connect({'drivername': 'sqlite', 'database': 'hr.db'})
        call.add_parameter('dept', DbType.INTEGER, value=50)
        employees = call.execute(Employee)
"""
__version__ = '0.1.0'

from dbcall.call import Call, CallState
from dbcall.callspec import CallKind, CallSpec
from dbcall.connection import check_connection, dispose_all_engines
from dbcall.exceptions import AmbiguousBindingError, BindingError, CallError
from dbcall.exceptions import CallKindError, ConfigurationError
from dbcall.exceptions import ConnectionFailure, NoBindingsError
from dbcall.exceptions import NotConnectedError, TypeMismatchError
from dbcall.exceptions import UnknownColumnError, UnknownFieldError
from dbcall.options import CallOptions
from dbcall.parameters import RETURN_VALUE_NAME, DbType, Direction, Parameter
from dbcall.records import RecordSchema
from dbcall.strategy import register_function

__all__ = [
    'RETURN_VALUE_NAME',
    'AmbiguousBindingError',
    'BindingError',
    'Call',
    'CallError',
    'CallKind',
    'CallKindError',
    'CallOptions',
    'CallSpec',
    'CallState',
    'ConfigurationError',
    'ConnectionFailure',
    'DbType',
    'Direction',
    'NoBindingsError',
    'NotConnectedError',
    'Parameter',
    'RecordSchema',
    'TypeMismatchError',
    'UnknownColumnError',
    'UnknownFieldError',
    'check_connection',
    'dispose_all_engines',
    'register_function',
]
