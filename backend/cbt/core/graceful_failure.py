"""
Best-effort side effects.

``graceful_failure`` wraps work whose failure must not change the outcome of
the operation that triggered it, such as writing the activity log after a
test was submitted. Failures are logged with the given context and swallowed.

Compare ``db_error_handling.transaction``, which rolls back and raises.

Usage:
    from cbt.core.graceful_failure import graceful_failure

    with graceful_failure("write activity log", logger, context={"user_id": 3}):
        sink.log(...)
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional


@contextmanager
def graceful_failure(
    operation_name: str,
    logger: logging.Logger,
    *,
    log_level: int = logging.WARNING,
    exc_info: bool = False,
    context: Optional[dict[str, Any]] = None,
) -> Generator[None, None, None]:
    """Log and suppress any exception raised in the block.

    The caller's session is left untouched; nothing is rolled back.

    Args:
        operation_name: Human-readable name of the operation for logging.
        logger: The logger instance to use for logging errors.
        log_level: Logging level for error messages. Defaults to WARNING.
        exc_info: Whether to include exception traceback in log.
        context: Optional dictionary of additional context to include in the
            log message (e.g., {"user_id": 12, "action": "..."}).
    """
    try:
        yield
    except Exception as e:
        if context:
            context_str = ", ".join(f"{k}={v}" for k, v in context.items())
            message = f"Failed to {operation_name} ({context_str}): {e}"
        else:
            message = f"Failed to {operation_name}: {e}"

        logger.log(log_level, message, exc_info=exc_info)
