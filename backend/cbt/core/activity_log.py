"""
Activity log sink for the audit trail.

Audit logging is best-effort: a failure to record an entry is logged and
swallowed, never surfaced to the operation that produced it. The database
sink writes through its own short-lived session so that a failed audit
insert cannot poison (or be rolled back with) the caller's transaction.
"""
import logging
from enum import Enum
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session

from cbt.core.graceful_failure import graceful_failure
from cbt.models.models import ActivityLog

logger = logging.getLogger(__name__)


class ActivityAction(str, Enum):
    """Audit actions recorded by the core."""

    CODES_GENERATED = "Test Codes Generated"
    CODE_ACTIVATED = "Test Code Activated"
    CODE_DEACTIVATED = "Test Code Deactivated"
    CODE_ACTIVATED_BATCH = "Test Code Activated (Batch)"
    CODE_DEACTIVATED_BATCH = "Test Code Deactivated (Batch)"
    CODE_ACCESSED = "Test Code Accessed"
    TEST_COMPLETED = "Test Completed"


class ActivitySink(Protocol):
    """Anything that can durably record an audit entry."""

    def log(
        self,
        user_id: Optional[int],
        action: str,
        details: str = "",
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        ...


class DatabaseActivitySink:
    """Writes entries to ``activity_logs`` using a dedicated session."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def log(
        self,
        user_id: Optional[int],
        action: str,
        details: str = "",
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        db = self._session_factory()
        try:
            db.add(
                ActivityLog(
                    user_id=user_id,
                    action=action,
                    details=details,
                    ip_address=ip_address,
                    user_agent=(user_agent or "")[:255] or None,
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class LoggingActivitySink:
    """Sink that only emits log records. Used where no audit table exists."""

    def log(
        self,
        user_id: Optional[int],
        action: str,
        details: str = "",
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        logger.info(f"Activity [{action}] user={user_id}: {details}")


def record_activity(
    sink: ActivitySink,
    user_id: Optional[int],
    action: ActivityAction,
    details: str = "",
    *,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> None:
    """Record an audit entry without ever raising."""
    with graceful_failure(
        "write activity log",
        logger,
        context={"user_id": user_id, "action": action.value},
    ):
        sink.log(
            user_id,
            action.value,
            details,
            ip_address=ip_address,
            user_agent=user_agent,
        )
