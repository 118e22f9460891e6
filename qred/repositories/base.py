"""
Translation of database failures into ledger errors.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)

from qred.core.exceptions import (
    AuthorizationError,
    ConflictError,
    LedgerError,
    TransientError,
)
from qred.core.logging import get_logger

logger = get_logger(__name__)

# PostgreSQL insufficient_privilege, raised by row-level security and grants
PERMISSION_DENIED_SQLSTATE = "42501"


def _is_permission_denied(error: DBAPIError) -> bool:
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code == PERMISSION_DENIED_SQLSTATE or "permission denied" in str(orig).lower()


@contextmanager
def translate_db_errors(operation: str) -> Iterator[None]:
    """
    Re-raise database failures inside the block as ledger errors.

    Uniqueness and constraint violations become ``ConflictError``, lost
    connections and timeouts ``TransientError``, and permission failures
    ``AuthorizationError``.
    """
    try:
        yield
    except LedgerError:
        raise
    except IntegrityError as e:
        logger.info("db_conflict", operation=operation, error=str(e.orig))
        raise ConflictError(f"Conflicting data while trying to {operation}") from e
    except (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError) as e:
        logger.warning("db_unavailable", operation=operation, error=str(e))
        raise TransientError() from e
    except DBAPIError as e:
        if e.connection_invalidated:
            logger.warning("db_connection_lost", operation=operation)
            raise TransientError() from e
        if _is_permission_denied(e):
            raise AuthorizationError(f"Not allowed to {operation}") from e
        raise
    except (ConnectionError, TimeoutError) as e:
        logger.warning("db_unreachable", operation=operation, error=str(e))
        raise TransientError() from e
