"""
Transaction boundary and database error handling.

Every state-changing service operation runs inside ``transaction()``, which
centralizes the pattern of:
1. Committing the unit of work when the wrapped block completes
2. Rolling the session back on any error
3. Translating store failures into ``StoreUnavailableError`` after logging
   them with full context

Domain errors (``CBTError``) raised inside the block are rolled back and
re-raised unchanged so callers can report them specifically.

Usage:
    from cbt.core.db_error_handling import transaction

    with transaction(db, "activate test code"):
        code.active = True
        code.activated_at = utc_now()
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cbt.core.exceptions import CBTError, StoreUnavailableError


logger = logging.getLogger(__name__)


@contextmanager
def transaction(
    db: Session,
    operation_name: str,
    *,
    log_level: int = logging.ERROR,
) -> Generator[Session, None, None]:
    """Run the wrapped block as one unit of work.

    Args:
        db: The SQLAlchemy session the block operates on.
        operation_name: Human-readable name of the operation, used in logs
            and in the generic failure message (e.g. "generate test codes").
        log_level: Logging level for store failures. Defaults to ERROR.

    Yields:
        The session, for convenience.

    Raises:
        CBTError: Re-raised unchanged after rollback.
        StoreUnavailableError: On any SQLAlchemyError (including the commit
            itself, connection loss and pool/statement timeouts).
    """
    try:
        yield db
        db.commit()
    except CBTError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.log(
            log_level,
            f"Database error during {operation_name}: {e}",
            exc_info=True,
        )
        raise StoreUnavailableError(operation_name, e) from e
    except Exception:
        db.rollback()
        raise
