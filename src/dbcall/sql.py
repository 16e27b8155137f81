"""
SQL text handling for call statements.

Free-form statements use named placeholders. Callers may write either the
`:name` style or the pyformat `%(name)s` style; `standardize_placeholders`
rewrites the text to the style of the target dialect:

    sqlite      :name
    postgresql  %(name)s

String literals are never rewritten, and `::type` casts are not mistaken for
placeholders.
"""
import re
from dataclasses import dataclass
from enum import Enum, auto

__all__ = [
    'TokenType',
    'Token',
    'tokenize_sql',
    'standardize_placeholders',
    'placeholder',
    'is_routine_name',
    'quote_identifier',
]


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    NAMED_PH = auto()           # %(name)s
    COLON_PH = auto()           # :name


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str
    name: str | None = None


_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<named>%\((?P<pname>[^)]+)\)s)
    |(?P<cast>::)
    |(?<![\w:])(?P<colon>:(?P<cname>[A-Za-z_][\w$]*))
""", re.VERBOSE)

# Find unescaped percent signs
_UNESCAPED_PERCENT = re.compile(r'(?<!%)%(?!%)')

_ROUTINE_NAME = re.compile(r'^[A-Za-z_][\w$]*(\.[A-Za-z_][\w$]*)?$')


def tokenize_sql(sql: str) -> list[Token]:
    """Parse SQL into tokens in a single pass.

    Parameters
        sql: SQL statement text

    Returns
        List of tokens preserving all SQL text
    """
    tokens = []
    last_end = 0
    pending_text = ''

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()
        pending_text += sql[last_end:start]
        last_end = end

        if match.group('cast'):
            pending_text += match.group(0)
            continue

        if pending_text:
            tokens.append(Token(TokenType.SQL_TEXT, pending_text))
            pending_text = ''

        if match.group('string'):
            tokens.append(Token(TokenType.STRING_LITERAL, match.group(0)))
        elif match.group('named'):
            tokens.append(Token(TokenType.NAMED_PH, match.group(0), match.group('pname')))
        else:
            tokens.append(Token(TokenType.COLON_PH, match.group(0), match.group('cname')))

    pending_text += sql[last_end:]
    if pending_text:
        tokens.append(Token(TokenType.SQL_TEXT, pending_text))

    return tokens


def placeholder(name: str, dialect: str) -> str:
    """Return the named placeholder for a dialect."""
    if dialect == 'sqlite':
        return f':{name}'
    return f'%({name})s'


def standardize_placeholders(sql: str, dialect: str, escape_percent: bool = True) -> str:
    """Rewrite named placeholders to the dialect's style.

    For pyformat dialects, literal percent signs are doubled when
    `escape_percent` is set, as the driver will interpolate the text.

    Parameters
        sql: SQL statement text
        dialect: Database dialect
        escape_percent: Whether the statement will be executed with parameters

    Returns
        SQL with standardized placeholders
    """
    if not sql:
        return sql

    pyformat = dialect != 'sqlite'
    result = []
    for token in tokenize_sql(sql):
        if token.type in {TokenType.NAMED_PH, TokenType.COLON_PH}:
            result.append(placeholder(token.name, dialect))
        elif pyformat and escape_percent:
            result.append(_UNESCAPED_PERCENT.sub('%%', token.text))
        else:
            result.append(token.text)
    return ''.join(result)


def is_routine_name(name: str) -> bool:
    """Check that a procedure/function name is a plain, optionally
    schema-qualified identifier that is safe to splice into call text.
    """
    return bool(name) and bool(_ROUTINE_NAME.match(name))


def quote_identifier(identifier: str) -> str:
    """Safely quote a database identifier."""
    return '"' + identifier.replace('"', '""') + '"'
