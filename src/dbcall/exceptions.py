"""
Call-layer exception classes.
"""
import re

RETRYABLE_PATTERNS = [
    # SSL/TLS errors
    r'ssl',
    r'tls',
    # Connection drops
    r'connection.*(closed|reset|refused|lost|terminated|broken)',
    r'server closed',
    r'eof detected',
    r'broken pipe',
    # Timeouts
    r'timeout',
    r'timed out',
    # Network issues
    r'could not connect',
    r'no route to host',
    r'network.*(unreachable|error)',
    r'host.*(unreachable|down)',
    # Database unavailable
    r'database.*unavailable',
    r'too many connections',
    r'database is locked',
]

_RETRYABLE_REGEX = re.compile('|'.join(RETRYABLE_PATTERNS), re.IGNORECASE)


def is_retryable_error(exc: BaseException) -> bool:
    """Check if an exception represents a transient error worth retrying.

    The message of the exception and of its chained cause are inspected, so a
    `ConnectionFailure` wrapping a driver timeout is classified by the driver
    message.

    :param exc: The exception to check.
    :returns: True if the error is likely transient and worth retrying.
    """
    messages = [str(exc)]
    if exc.__cause__ is not None:
        messages.append(str(exc.__cause__))
    return any(_RETRYABLE_REGEX.search(msg.lower()) for msg in messages)


class CallError(Exception):
    """Base class for all call-layer errors.
    """


class ConfigurationError(CallError):
    """The parameter, return value or binding API was misused.
    """


class ConnectionFailure(CallError):
    """The driver could not open the connection or prepare the command.
    """


class CallKindError(CallError):
    """Execution method does not match the configured call kind.
    """


class NotConnectedError(CallError):
    """Operation attempted outside its legal call state.
    """


class BindingError(CallError):
    """Error mapping result columns onto record fields.
    """


class NoBindingsError(BindingError):
    """Typed execution with auto-binding disabled and no explicit bindings.
    """


class UnknownColumnError(BindingError):
    """A binding references a column absent from the result set.
    """

    def __init__(self, column: str) -> None:
        self.column = column
        super().__init__(f'Cannot bind column name {column} - not in results')


class UnknownFieldError(BindingError):
    """A binding references a field absent from the record type.
    """

    def __init__(self, field: str, record_name: str | None = None) -> None:
        self.field = field
        self.record_name = record_name
        where = f' {record_name}' if record_name else ''
        super().__init__(f'Field {field} does not exist on the record type{where}')


class AmbiguousBindingError(BindingError):
    """Two explicit bindings target the same field or read the same column.
    """


class TypeMismatchError(BindingError):
    """A value cannot be converted to the declared type.

    Carries the source and destination type names and, where available, the
    underlying conversion diagnostic.
    """

    def __init__(self, source_type: str, target_type: str,
                 diagnostic: str | None = None, column: str | None = None,
                 field: str | None = None) -> None:
        self.source_type = source_type
        self.target_type = target_type
        self.diagnostic = diagnostic
        self.column = column
        self.field = field
        message = f'Cannot convert {source_type} to {target_type}'
        if column is not None:
            message = f'Binding on {column} has wrong type: {message}'
            if field is not None:
                message += f' for field {field}'
        if diagnostic:
            message += f' ({diagnostic})'
        super().__init__(message)
