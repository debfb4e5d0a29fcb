"""Billing error taxonomy.

Services raise these; callers branch on ``kind`` rather than on exception
type names or message text. The API layer maps each kind to one HTTP status.
"""

import enum
import logging
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    INVALID_ARGUMENT = "InvalidArgument"
    NOT_FOUND = "NotFound"
    INVALID_STATE = "InvalidState"
    CONFLICT = "Conflict"
    UNAUTHORIZED = "Unauthorized"


class BillingError(Exception):
    kind: ErrorKind = ErrorKind.INVALID_ARGUMENT

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.CONFLICT


class InvalidArgumentError(BillingError):
    kind = ErrorKind.INVALID_ARGUMENT


class NotFoundError(BillingError):
    kind = ErrorKind.NOT_FOUND


class InvalidStateError(BillingError):
    kind = ErrorKind.INVALID_STATE


class ConflictError(BillingError):
    kind = ErrorKind.CONFLICT

    def __init__(self, message: str = "Record was modified by another process. Please retry."):
        super().__init__(message)


class UnauthorizedError(BillingError):
    kind = ErrorKind.UNAUTHORIZED


class OperationCancelledError(Exception):
    """Raised when a long-running billing operation is cancelled before its final save."""


def retry_on_conflict(operation: Callable[[], T], attempts: int = 2) -> T:
    """Run ``operation``, re-running it on ConflictError up to ``attempts`` times in total."""
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except ConflictError:
            if attempt == attempts:
                raise
            logger.warning("Concurrency conflict on attempt %s/%s, retrying", attempt, attempts)
    raise AssertionError("unreachable")
