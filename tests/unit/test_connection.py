"""
Unit tests for engine handling, connection failures and the retry decorator.
"""
import sqlite3

import pytest
from dbcall.connection import check_connection, get_engine_for_options
from dbcall.connection import open_connection
from dbcall.exceptions import ConnectionFailure, is_retryable_error
from dbcall.options import CallOptions
from sqlalchemy.pool import NullPool


def test_engine_is_cached_per_options(tmp_path):
    options = CallOptions(drivername='sqlite', database=str(tmp_path / 'a.db'))
    other = CallOptions(drivername='sqlite', database=str(tmp_path / 'b.db'))
    engine = get_engine_for_options(options)
    assert get_engine_for_options(options) is engine
    assert get_engine_for_options(other) is not engine
    assert isinstance(engine.pool, NullPool)


def test_open_connection(tmp_path):
    options = CallOptions(drivername='sqlite', database=str(tmp_path / 'a.db'))
    sa_connection, strategy = open_connection(options)
    try:
        assert strategy.dialect_name == 'sqlite'
        assert isinstance(sa_connection.connection.driver_connection, sqlite3.Connection)
    finally:
        sa_connection.close()


def test_open_connection_failure_is_wrapped(tmp_path):
    options = CallOptions(drivername='sqlite', database=str(tmp_path / 'missing' / 'a.db'))
    with pytest.raises(ConnectionFailure) as exc_info:
        open_connection(options)
    assert exc_info.value.__cause__ is not None
    assert 'sqlite' in str(exc_info.value)


@pytest.mark.parametrize(('message', 'retryable'), [
    ('server closed the connection unexpectedly', True),
    ('connection refused', True),
    ('database is locked', True),
    ('SSL SYSCALL error: EOF detected', True),
    ('syntax error at or near "SELEC"', False),
    ('relation "employees" does not exist', False),
])
def test_is_retryable_error(message, retryable):
    assert is_retryable_error(Exception(message)) is retryable


def test_is_retryable_error_checks_cause():
    try:
        try:
            raise OSError('connection timed out')
        except OSError as err:
            raise ConnectionFailure('Cannot open postgresql connection') from err
    except ConnectionFailure as failure:
        assert is_retryable_error(failure)


class TestCheckConnection:

    def test_retries_transient_failures(self, mocker):
        sleep = mocker.Mock()
        func = mocker.Mock(side_effect=[ConnectionFailure('connection reset by peer'), 'ok'])
        wrapped = check_connection(func, max_retries=3, retry_delay=2, sleep_func=sleep)

        assert wrapped() == 'ok'
        assert func.call_count == 2
        sleep.assert_called_once_with(2)

    def test_backoff(self, mocker):
        sleep = mocker.Mock()
        failure = ConnectionFailure('could not connect to server')
        func = mocker.Mock(side_effect=[failure, failure, 'ok'])
        wrapped = check_connection(func, max_retries=3, retry_delay=1, retry_backoff=2,
                                   sleep_func=sleep)

        assert wrapped() == 'ok'
        assert [c.args[0] for c in sleep.call_args_list] == [1, 2]

    def test_gives_up(self, mocker):
        sleep = mocker.Mock()
        func = mocker.Mock(side_effect=ConnectionFailure('timeout expired'))
        wrapped = check_connection(func, max_retries=2, sleep_func=sleep)

        with pytest.raises(ConnectionFailure):
            wrapped()
        assert func.call_count == 2

    def test_permanent_failures_are_not_retried(self, mocker):
        sleep = mocker.Mock()
        func = mocker.Mock(side_effect=ConnectionFailure('password authentication failed'))
        wrapped = check_connection(func, sleep_func=sleep)

        with pytest.raises(ConnectionFailure):
            wrapped()
        assert func.call_count == 1
        sleep.assert_not_called()

    def test_other_errors_propagate(self, mocker):
        func = mocker.Mock(side_effect=KeyError('x'))
        wrapped = check_connection(func, sleep_func=mocker.Mock())
        with pytest.raises(KeyError):
            wrapped()
        assert func.call_count == 1

    def test_decorator_syntax(self, mocker):
        sleep = mocker.Mock()
        calls = []

        @check_connection(max_retries=2, sleep_func=sleep)
        def run():
            calls.append(1)
            if len(calls) == 1:
                raise ConnectionFailure('server closed the connection')
            return len(calls)

        assert run() == 2
        assert run.__name__ == 'run'
