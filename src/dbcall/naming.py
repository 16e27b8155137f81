"""Name normalization used to match result columns with record fields."""

__all__ = ['normalize_name', 'SEPARATORS']

SEPARATORS = '_'

_STRIP = str.maketrans('', '', SEPARATORS)


def normalize_name(name: str) -> str:
    """Return the canonical comparison key for a column or field name.

    Lower-cases the name and removes separator characters, so `FIRST_NAME`,
    `first_name` and `FirstName` all become `firstname`.
    """
    return name.lower().translate(_STRIP)
