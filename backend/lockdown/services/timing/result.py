"""Explicit operation outcomes.

Every engine operation returns ``Ok(value)`` or ``Err(kind, message)``; an
``Err`` means the team transaction was discarded and nothing changed.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Union


class ErrorCategory(str, Enum):
    INVALID_STATE_TRANSITION = 'InvalidStateTransition'
    SEQUENCE_VIOLATION = 'SequenceViolation'
    SKIP_LIMIT_EXCEEDED = 'SkipLimitExceeded'
    NOT_FOUND = 'NotFound'
    CONFIGURATION_MISSING = 'ConfigurationMissing'
    PERSISTENCE_CONFLICT = 'PersistenceConflict'
    INVALID_REQUEST = 'InvalidRequest'


class ErrorKind(str, Enum):
    ALREADY_COMPLETED = 'AlreadyCompleted'
    ALREADY_IN_PROGRESS = 'AlreadyInProgress'
    ALREADY_ACTIVE = 'AlreadyActive'
    NOT_IN_PROGRESS = 'NotInProgress'
    NOT_SKIPPED = 'NotSkipped'
    CANNOT_SKIP_COMPLETED = 'CannotSkipCompleted'
    SKIP_DISABLED = 'SkipDisabled'
    SESSION_ENDED = 'SessionEnded'
    SKIP_LIMIT_EXCEEDED = 'SkipLimitExceeded'
    HINT_ALREADY_USED = 'HintAlreadyUsed'
    HINT_OUT_OF_ORDER = 'HintOutOfOrder'
    HINT_LIMIT_EXCEEDED = 'HintLimitExceeded'
    NOT_FOUND = 'NotFound'
    CONFIGURATION_MISSING = 'ConfigurationMissing'
    PERSISTENCE_CONFLICT = 'PersistenceConflict'
    INVALID_REQUEST = 'InvalidRequest'

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES.get(self, ErrorCategory.INVALID_STATE_TRANSITION)


_CATEGORIES = {
    ErrorKind.SKIP_LIMIT_EXCEEDED: ErrorCategory.SKIP_LIMIT_EXCEEDED,
    ErrorKind.HINT_ALREADY_USED: ErrorCategory.SEQUENCE_VIOLATION,
    ErrorKind.HINT_OUT_OF_ORDER: ErrorCategory.SEQUENCE_VIOLATION,
    ErrorKind.HINT_LIMIT_EXCEEDED: ErrorCategory.SEQUENCE_VIOLATION,
    ErrorKind.NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.CONFIGURATION_MISSING: ErrorCategory.CONFIGURATION_MISSING,
    ErrorKind.PERSISTENCE_CONFLICT: ErrorCategory.PERSISTENCE_CONFLICT,
    ErrorKind.INVALID_REQUEST: ErrorCategory.INVALID_REQUEST,
}


@dataclass(frozen=True)
class Ok:
    value: Any = None
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    ok: ClassVar[bool] = False

    def to_dict(self):
        return {
            'error_kind': self.kind.value,
            'category': self.kind.category.value,
            'message': self.message,
        }


Result = Union[Ok, Err]
