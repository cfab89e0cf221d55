"""Error and result types for the events data layer."""
import enum
from dataclasses import dataclass
from typing import Optional


class WriteOutcome(str, enum.Enum):
    success = "success"
    not_found = "not_found"
    conflict = "conflict"
    transient_failure = "transient_failure"
    failed = "failed"


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a write. ``bool(result)`` is the plain success flag."""

    outcome: WriteOutcome
    message: str = ""
    event_id: Optional[int] = None

    def __bool__(self) -> bool:
        return self.outcome is WriteOutcome.success

    @property
    def ok(self) -> bool:
        return bool(self)


class DataAccessError(Exception):
    """Base class for events data layer errors."""


class ConnectionAcquisitionError(DataAccessError):
    """The pool could not hand out a connection (exhausted or broken)."""


class BusinessRuleViolation(DataAccessError):
    """A statement ran but did not affect the rows it had to."""

    def __init__(self, message: str, outcome: WriteOutcome = WriteOutcome.not_found):
        super().__init__(message)
        self.outcome = outcome


class RollbackError(DataAccessError):
    """Rolling back a failed transaction failed; connection state is unknown."""


class PaginationError(ValueError):
    """page_size or page_number outside the accepted range."""


class SearchParameterError(ValueError):
    """Proximity search parameters outside the accepted range."""
