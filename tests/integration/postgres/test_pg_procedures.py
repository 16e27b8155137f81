import datetime

import pytest
from dbcall import Call, CallKind, CallState, DbType, Direction
from dbcall.exceptions import TypeMismatchError
from tests.fixtures.records import Employee


def emp_rs_call(options, department_id, record_type=None):
    with Call(CallKind.PROCEDURE, 'P_EMP_RS') as call:
        call.connect(options)
        call.add_parameter('P_DEPARTMENT_ID', DbType.DECIMAL, Direction.IN, department_id)
        call.add_parameter('P_RECORDSET', DbType.CURSOR, Direction.OUT)
        return call.execute(record_type)


def test_procedure_cursor_untyped(psql_docker, pg_options):
    assert emp_rs_call(pg_options, 50) == ['Matthew', 'Adam', 'Payam']


def test_procedure_cursor_typed(psql_docker, pg_options):
    employees = emp_rs_call(pg_options, 90, Employee)
    assert [e.last_name for e in employees] == ['King', 'Kochhar']
    assert employees[0] == Employee(first_name='Steven', last_name='King', employee_id=100,
                                    department_id=90, hire_date=datetime.date(2003, 6, 17))


def test_procedure_cursor_no_rows(psql_docker, pg_options):
    assert emp_rs_call(pg_options, 999, Employee) == []


def test_procedure_cursor_frame(psql_docker, pg_options):
    with Call(CallKind.PROCEDURE, 'p_emp_rs') as call:
        call.connect(pg_options)
        call.add_parameter('p_department_id', DbType.DECIMAL, Direction.IN, 50)
        call.add_parameter('p_recordset', DbType.CURSOR, Direction.OUT)
        df = call.execute_frame()
    assert list(df.columns) == ['first_name', 'last_name', 'employee_id', 'department_id', 'hire_date']
    assert df['employee_id'].tolist() == [120, 121, 122]
    assert df.attrs['column_types']['employee_id']['python_type'] == 'int'


def test_procedure_output_value(psql_docker, pg_options):
    with Call(CallKind.PROCEDURE, 'p_emp_count') as call:
        call.connect(pg_options)
        call.add_parameter('P_DEPARTMENT_ID', DbType.DECIMAL, Direction.IN, 50)
        call.add_parameter('P_COUNT', DbType.INTEGER, Direction.OUT, size=4)
        assert call.execute() == []
        assert call.outputs.P_COUNT == 3
        assert call.state is CallState.EXECUTED


def test_query_with_cast(psql_docker, pg_options):
    with Call(CallKind.QUERY, 'SELECT last_name FROM employees WHERE department_id = :dept::integer ORDER BY employee_id') as call:
        call.connect(pg_options)
        call.add_parameter('dept', DbType.INTEGER, value=90)
        assert call.execute() == ['King', 'Kochhar']


def test_query_percent_literal(psql_docker, pg_options):
    with Call(CallKind.QUERY, "SELECT last_name FROM employees WHERE last_name LIKE 'K%' AND department_id = :dept::integer ORDER BY employee_id") as call:
        call.connect(pg_options)
        call.add_parameter('dept', DbType.INTEGER, value=90)
        assert call.execute() == ['King', 'Kochhar']


def test_function(psql_docker, pg_options):
    with Call(CallKind.FUNCTION, 'minimum') as call:
        call.connect(pg_options)
        call.add_return_value(DbType.DECIMAL)
        call.add_parameter('a', DbType.DECIMAL, value=3)
        call.add_parameter('b', DbType.DECIMAL, value=7)
        assert call.execute_function(int) == 3


def test_function_type_mismatch(psql_docker, pg_options):
    with Call(CallKind.FUNCTION, 'minimum') as call:
        call.connect(pg_options)
        call.add_return_value(DbType.DECIMAL)
        call.add_parameter('a', DbType.DECIMAL, value='2.5')
        call.add_parameter('b', DbType.DECIMAL, value=7)
        with pytest.raises(TypeMismatchError):
            call.execute_function(int)
        assert call.state is CallState.FAILED


def test_command_commits(psql_docker, pg_options):
    with Call(CallKind.COMMAND, 'UPDATE employees SET salary = salary * 2 WHERE department_id = :dept::integer') as call:
        call.connect(pg_options)
        call.add_parameter('dept', DbType.INTEGER, value=50)
        call.execute()
        assert call.rowcount == 3

    with Call(CallKind.QUERY, 'SELECT salary FROM employees WHERE employee_id = 120') as call:
        call.connect(pg_options)
        assert call.execute() == ['16000.00']
