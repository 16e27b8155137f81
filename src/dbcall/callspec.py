"""Call kinds and the immutable description of a call."""
from dataclasses import dataclass
from enum import Enum

__all__ = ['CallKind', 'CallSpec']


class CallKind(Enum):
    """What a call's statement text is and how it may be executed."""
    QUERY = 'query'            # free-form SQL, returns rows
    COMMAND = 'command'        # free-form SQL, returns no rows
    PROCEDURE = 'procedure'    # named routine, may return rows via a cursor
    FUNCTION = 'function'      # named routine with a scalar return value

    @property
    def is_routine(self) -> bool:
        return self in {CallKind.PROCEDURE, CallKind.FUNCTION}


@dataclass(frozen=True)
class CallSpec:
    """Call kind plus statement text (SQL, or a routine name)."""
    kind: CallKind
    statement: str

    def __post_init__(self):
        if not isinstance(self.kind, CallKind):
            object.__setattr__(self, 'kind', CallKind(self.kind))
