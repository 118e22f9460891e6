"""
Ledger error taxonomy.

Every public ledger operation fails with one of these errors; callers never
see raw database or driver exceptions.
"""

import re
from typing import Optional

from fastapi import status


class LedgerError(Exception):
    """Base class for all ledger errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    retryable: bool = False
    default_message: str = "Ledger operation failed"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)

    @property
    def code(self) -> str:
        """Snake-case error kind, e.g. ``invalid_state_error``."""
        return re.sub(r"(?<!^)(?=[A-Z])", "_", type(self).__name__).lower()

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.code, "field": self.field}


class ValidationError(LedgerError):
    """Malformed or out-of-range input. Fix the input; never retried."""

    status_code = 422
    default_message = "Invalid input"


class AuthorizationError(LedgerError):
    """The acting user may not perform the operation."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not allowed to perform this operation"


class InvalidStateError(LedgerError):
    """The operation is not legal in the entity's current lifecycle state."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Operation not allowed in the current state"


class NotFoundError(LedgerError):
    """A referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(LedgerError):
    """Optimistic-concurrency or uniqueness violation."""

    status_code = status.HTTP_409_CONFLICT
    retryable = True
    default_message = "The record was changed by another request"


class TransientError(LedgerError):
    """Network or timeout failure talking to the store."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True
    default_message = "Service temporarily unavailable, please try again"
