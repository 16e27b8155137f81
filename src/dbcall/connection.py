"""
Connection handling with SQLAlchemy.

This module provides:
1. Option resolution from `CallOptions`, dicts or config modules
2. Engine creation through a thread-safe registry (always `NullPool`, so each
   call owns a real connection of its own)
3. `open_connection()`, which wraps driver failures in `ConnectionFailure`
4. The opt-in `check_connection` retry decorator for callers
"""
import atexit
import logging
import threading
import time
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

import sqlalchemy as sa
from dbcall.exceptions import ConnectionFailure, is_retryable_error
from dbcall.options import CallOptions
from dbcall.strategy import CallStrategy, get_strategy
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from libb import load_options

__all__ = [
    'check_connection',
    'create_url_from_options',
    'dispose_all_engines',
    'get_engine_for_options',
    'open_connection',
    'resolve_options',
]

logger = logging.getLogger(__name__)

T = TypeVar('T')
_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def resolve_options(options: CallOptions | dict[str, Any] | str,
                    config: Any | None = None, **kw: Any) -> CallOptions:
    """Turn connection information into `CallOptions`.

    Args:
        options: Can be:
                - CallOptions object (used as-is)
                - Dictionary of options
                - Name of a settings attribute on `config`
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options
    """
    if isinstance(options, CallOptions):
        return options
    options_func = load_options(cls=CallOptions)(lambda o, c: o)
    return options_func(options, config, **kw)


def create_url_from_options(options: CallOptions) -> sa.URL:
    """Convert CallOptions to a SQLAlchemy URL.
    """
    return get_strategy(options.drivername).build_connection_url(options)


def get_engine_for_options(options: CallOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.
    """
    key = str(options)

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        strategy = get_strategy(options.drivername)
        url = create_url_from_options(options)

        engine_kwargs: dict[str, Any] = {'echo': False, 'poolclass': NullPool}
        engine_kwargs.update(strategy.get_engine_kwargs(options))
        engine_kwargs.update(kwargs)

        engine = engine_factory(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in _engine_registry.values():
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


def open_connection(options: CallOptions) -> tuple[sa.engine.Connection, CallStrategy]:
    """Open a connection and configure it for its dialect.

    Raises
        ConnectionFailure: If the driver cannot open or configure the connection
    """
    strategy = get_strategy(options.drivername)
    try:
        engine = get_engine_for_options(options)
        sa_connection = engine.connect()
    except sa.exc.SQLAlchemyError as err:
        raise ConnectionFailure(
            f'Cannot open {options.drivername} connection: {err}') from err

    try:
        strategy.configure_connection(sa_connection.connection.driver_connection)
    except Exception as err:
        sa_connection.close()
        raise ConnectionFailure(
            f'Cannot configure {options.drivername} connection: {err}') from err

    logger.debug(f'Opened {options.drivername} connection to {options.database}')
    return sa_connection, strategy


def check_connection(func: Callable[..., T] | None = None, *, max_retries: int = 3,
                     retry_delay: float = 1, retry_backoff: float = 1.5,
                     retry_errors: type | tuple[type, ...] = ConnectionFailure,
                     sleep_func: Callable[[float], None] = time.sleep) -> Callable[..., T]:
    """Connection retry decorator with backoff.

    Calls never retry on their own. Callers that want retries wrap the
    function owning the whole call, so a retry starts over with a fresh
    `Call`. Only errors that `is_retryable_error` classifies as transient are
    retried.

    Supports both @check_connection and @check_connection() syntax.
    """
    def decorator(f: Callable[..., T]) -> Callable[..., T]:
        @wraps(f)
        def inner(*args: Any, **kwargs: Any) -> T:
            tries = 0
            delay = retry_delay
            while True:
                try:
                    return f(*args, **kwargs)
                except retry_errors as err:
                    tries += 1
                    if tries >= max_retries or not is_retryable_error(err):
                        logger.error(f'Giving up after {tries} attempt(s): {err}')
                        raise
                    logger.warning(f'Connection error (attempt {tries}/{max_retries}): {err}')
                    sleep_func(delay)
                    delay *= retry_backoff

        return inner

    if func is None:
        return decorator
    return decorator(func)
