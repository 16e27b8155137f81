import datetime
import sqlite3
import uuid
from decimal import Decimal

import pytest
from dbcall import Call, CallKind, CallState, DbType, RecordSchema
from dbcall.exceptions import AmbiguousBindingError, NoBindingsError
from dbcall.exceptions import NotConnectedError, TypeMismatchError
from dbcall.exceptions import UnknownColumnError, UnknownFieldError
from tests.fixtures.records import BadlyTypedEmployee, Employee, Person
from tests.fixtures.sqlite import run_command

BY_DEPARTMENT = 'SELECT * FROM employees WHERE DEPARTMENT_ID = :dept ORDER BY EMPLOYEE_ID'


def department_call(options, record_type=None, auto_bind=True, bindings=()):
    with Call(CallKind.QUERY, BY_DEPARTMENT, auto_bind=auto_bind) as call:
        call.connect(options)
        call.add_parameter('dept', DbType.INTEGER, value=50)
        for column, field in bindings:
            call.add_binding(column, field)
        return call.execute(record_type)


def test_untyped_first_column(sqlite_options):
    with Call(CallKind.QUERY, 'SELECT LAST_NAME FROM employees WHERE DEPARTMENT_ID = :dept ORDER BY EMPLOYEE_ID') as call:
        call.connect(sqlite_options)
        call.add_parameter('dept', DbType.INTEGER, value=50)
        assert call.execute() == ['Weiss', 'Fripp', 'Kaufling']
        assert call.state is CallState.EXECUTED


def test_untyped_non_text_and_null(sqlite_options):
    with Call(CallKind.QUERY, 'SELECT DEPARTMENT_ID FROM employees ORDER BY EMPLOYEE_ID') as call:
        call.connect(sqlite_options)
        assert call.execute() == ['90', '90', '50', '50', '50', None, '10']


@pytest.fixture
def uuid_converter():
    sqlite3.register_converter('UUID', lambda b: uuid.UUID(b.decode()))
    yield
    sqlite3.converters.pop('UUID', None)


def test_untyped_driver_native_values(sqlite_options, uuid_converter):
    badge = uuid.UUID('6f1c2a4e-9b7d-4c3e-8a51-2d0f6e9b7c14')
    run_command(sqlite_options, 'CREATE TABLE badges (ID UUID, EMPLOYEE_ID INTEGER)')
    run_command(sqlite_options, f"INSERT INTO badges VALUES ('{badge}', 100)")
    with Call(CallKind.QUERY, 'SELECT ID FROM badges') as call:
        call.connect(sqlite_options)
        assert call.execute() == [str(badge)]
        assert call.state is CallState.EXECUTED


def test_auto_bind(sqlite_options):
    employees = department_call(sqlite_options, Employee)
    assert [e.last_name for e in employees] == ['Weiss', 'Fripp', 'Kaufling']
    assert employees[0] == Employee(first_name='Matthew', last_name='Weiss', employee_id=120,
                                    department_id=50, salary=Decimal(8000),
                                    hire_date=datetime.date(2004, 7, 18))


def test_null_keeps_default(sqlite_options):
    with Call(CallKind.QUERY, 'SELECT * FROM employees WHERE EMPLOYEE_ID IN (178, 200) ORDER BY EMPLOYEE_ID') as call:
        call.connect(sqlite_options)
        grant, whalen = call.execute(Employee)
    assert grant.department_id is None
    assert grant.salary == Decimal('7000.5')
    assert whalen.first_name is None
    assert whalen.last_name == 'Whalen'


def test_no_rows(sqlite_options):
    with Call(CallKind.QUERY, BY_DEPARTMENT) as call:
        call.connect(sqlite_options)
        call.add_parameter('dept', DbType.INTEGER, value=999)
        assert call.execute(Employee) == []


def test_explicit_bindings_only(sqlite_options):
    employees = department_call(sqlite_options, Employee, auto_bind=False,
                                bindings=[('LAST_NAME', 'last_name')])
    assert [e.last_name for e in employees] == ['Weiss', 'Fripp', 'Kaufling']
    assert all(e.first_name is None and e.employee_id is None for e in employees)


def test_explicit_binding_to_other_field(sqlite_options):
    people = department_call(sqlite_options, Person, bindings=[('LAST_NAME', 'surname')])
    assert [p.surname for p in people] == ['Weiss', 'Fripp', 'Kaufling']
    assert all(p.name is None for p in people)


def test_explicit_binding_is_not_overridden(sqlite_options):
    employees = department_call(sqlite_options, Employee, bindings=[('FIRST_NAME', 'last_name')])
    assert [e.last_name for e in employees] == ['Matthew', 'Adam', 'Payam']
    assert [e.first_name for e in employees] == [None, None, None]
    assert employees[0].employee_id == 120


def test_builder_schema(sqlite_options):
    schema = RecordSchema(dict, name='row').field('last_name', str).field('hire_date', datetime.date)
    rows = department_call(sqlite_options, schema)
    assert rows[0] == {'last_name': 'Weiss', 'hire_date': datetime.date(2004, 7, 18)}


def test_no_bindings(sqlite_options):
    with Call(CallKind.QUERY, BY_DEPARTMENT, auto_bind=False) as call:
        call.connect(sqlite_options)
        call.add_parameter('dept', DbType.INTEGER, value=50)
        with pytest.raises(NoBindingsError):
            call.execute(Employee)
        assert call.state is CallState.CONNECTED
        # untyped execution needs no bindings
        assert call.execute() == ['120', '121', '122']


def test_unknown_column(sqlite_options):
    with Call(CallKind.QUERY, BY_DEPARTMENT) as call:
        call.connect(sqlite_options)
        call.add_parameter('dept', DbType.INTEGER, value=50)
        call.add_binding('SURNAME', 'last_name')
        with pytest.raises(UnknownColumnError, match='SURNAME'):
            call.execute(Employee)
        assert call.state is CallState.FAILED


def test_unknown_field(sqlite_options):
    with pytest.raises(UnknownFieldError) as exc_info:
        department_call(sqlite_options, Employee, bindings=[('LAST_NAME', 'surname')])
    assert exc_info.value.field == 'surname'


def test_ambiguous_bindings(sqlite_options):
    with Call(CallKind.QUERY, BY_DEPARTMENT) as call:
        call.connect(sqlite_options)
        call.add_parameter('dept', DbType.INTEGER, value=50)
        call.add_binding('FIRST_NAME', 'last_name')
        call.add_binding('LAST_NAME', 'last_name')
        with pytest.raises(AmbiguousBindingError):
            call.execute(Employee)
        assert call.state is CallState.CONNECTED


def test_type_mismatch(sqlite_options):
    with pytest.raises(TypeMismatchError) as exc_info:
        department_call(sqlite_options, BadlyTypedEmployee)
    assert exc_info.value.column == 'LAST_NAME'
    assert exc_info.value.field == 'last_name'


def test_execute_twice(sqlite_options):
    with Call(CallKind.QUERY, 'SELECT 1') as call:
        call.connect(sqlite_options)
        call.execute()
        with pytest.raises(NotConnectedError):
            call.execute()
        with pytest.raises(NotConnectedError):
            call.add_parameter('a', DbType.INTEGER, value=1)


def test_command_commits(sqlite_options):
    insert = ('INSERT INTO employees (EMPLOYEE_ID, FIRST_NAME, LAST_NAME, DEPARTMENT_ID, SALARY, HIRE_DATE) '
              'VALUES (:id, :first, :last, :dept, :salary, :hired)')
    with Call(CallKind.COMMAND, insert) as call:
        call.connect(sqlite_options)
        call.add_parameter('id', DbType.INTEGER, value=300)
        call.add_parameter('first', DbType.STRING, value='Lex')
        call.add_parameter('last', DbType.STRING, value='De Haan')
        call.add_parameter('dept', DbType.INTEGER, value=90)
        call.add_parameter('salary', DbType.DECIMAL, value=Decimal('17000.00'))
        call.add_parameter('hired', DbType.DATE, value=datetime.date(2001, 1, 13))
        assert call.execute() == []
        assert call.rowcount == 1

    with Call(CallKind.QUERY, 'SELECT * FROM employees WHERE EMPLOYEE_ID = :id') as call:
        call.connect(sqlite_options)
        call.add_parameter('id', DbType.INTEGER, value=300)
        (employee,) = call.execute(Employee)
    assert employee.last_name == 'De Haan'
    assert employee.hire_date == datetime.date(2001, 1, 13)


def test_failed_command_rolls_back(sqlite_options):
    with Call(CallKind.COMMAND, "INSERT INTO employees (EMPLOYEE_ID, LAST_NAME) VALUES (100, 'Duplicate')") as call:
        call.connect(sqlite_options)
        with pytest.raises(sqlite3.IntegrityError):
            call.execute()
        assert call.state is CallState.FAILED


def test_function(sqlite_options, sqlite_minimum):
    with Call(CallKind.FUNCTION, 'minimum') as call:
        call.connect(sqlite_options)
        call.add_return_value(DbType.DECIMAL)
        call.add_parameter('a', DbType.DECIMAL, value=3)
        call.add_parameter('b', DbType.DECIMAL, value=7)
        assert call.execute_function(int) == 3
        assert call.state is CallState.EXECUTED


def test_function_default_text(sqlite_options, sqlite_minimum):
    with Call(CallKind.FUNCTION, 'minimum') as call:
        call.connect(sqlite_options)
        call.add_return_value(DbType.DECIMAL)
        call.add_parameter('a', DbType.DECIMAL, value=Decimal('2.5'))
        call.add_parameter('b', DbType.DECIMAL, value=7)
        assert call.execute_function() == '2.5'


def test_function_type_mismatch(sqlite_options, sqlite_minimum):
    with Call(CallKind.FUNCTION, 'minimum') as call:
        call.connect(sqlite_options)
        call.add_return_value(DbType.DECIMAL)
        call.add_parameter('a', DbType.DECIMAL, value=3)
        call.add_parameter('b', DbType.DECIMAL, value=7)
        with pytest.raises(TypeMismatchError):
            call.execute_function(datetime.date)
        assert call.state is CallState.FAILED


def test_execute_frame(sqlite_options):
    with Call(CallKind.QUERY, BY_DEPARTMENT) as call:
        call.connect(sqlite_options)
        call.add_parameter('dept', DbType.INTEGER, value=50)
        df = call.execute_frame()
    assert list(df.columns) == ['EMPLOYEE_ID', 'FIRST_NAME', 'LAST_NAME',
                                'DEPARTMENT_ID', 'SALARY', 'HIRE_DATE']
    assert df['LAST_NAME'].tolist() == ['Weiss', 'Fripp', 'Kaufling']
    assert 'column_types' in df.attrs
