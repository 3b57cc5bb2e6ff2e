"""
Graceful failure utilities.

Reusable context manager for non-critical operations that must not block the
main flow: attempt the operation, log any exception with context, report it
to error tracking and continue.

This is distinct from `db_error_handling.py`, which handles critical errors
that require rollback and an HTTP error response.

Usage:
    from assessment.core.graceful_failure import graceful_failure

    with graceful_failure("sync section level", logger, context={"test_id": 7}):
        sync_section_level(db, section_row, accepted_level)
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

from assessment.observability import observability


@contextmanager
def graceful_failure(
    operation_name: str,
    logger: logging.Logger,
    *,
    log_level: int = logging.WARNING,
    exc_info: bool = False,
    context: Optional[dict[str, Any]] = None,
) -> Generator[None, None, None]:
    """Context manager for non-critical operations that should not block execution.

    Unlike `handle_db_error`, this does NOT raise HTTPException, roll back the
    database session or stop execution. Callers that run database writes
    inside the block should use a SAVEPOINT (``db.begin_nested()``) so a failed
    secondary write does not poison the outer transaction.

    Args:
        operation_name: Human-readable name of the operation for logging
            (e.g., "sync section level").
        logger: The logger instance to use for logging errors.
        log_level: Logging level for error messages. Defaults to WARNING.
        exc_info: Whether to include exception traceback in log. Defaults to False.
        context: Optional dictionary of additional context to include in the
            log message (e.g., {"test_id": 123, "section": "reading"}).

    Example:
        >>> with graceful_failure("apply parallel seeding", logger):
        ...     apply_parallel_levels(state, base_section)
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

        observability.capture_error(
            e,
            context=context,
            tags={"error_type": "GracefulFailure", "operation": operation_name},
            level="warning",
        )
