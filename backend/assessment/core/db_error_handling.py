"""
Database error handling utilities.

Centralizes the pattern used for primary writes (answer submission,
heartbeat, finalization):
1. Rolling back the database session on error
2. Logging the error with context and reporting it to error tracking
3. Raising an HTTPException so the client never sees an unrecorded answer
   acknowledged

Usage:
    from assessment.core.db_error_handling import handle_db_error

    with handle_db_error(db, "record answer"):
        db.add(response)
        db.commit()
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from assessment.core.error_responses import ErrorMessages
from assessment.observability import observability


logger = logging.getLogger(__name__)


@contextmanager
def handle_db_error(
    db: Session,
    operation_name: str,
    *,
    reraise_http_exceptions: bool = True,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    detail: Optional[str] = None,
    log_level: int = logging.ERROR,
) -> Generator[None, None, None]:
    """Context manager for handling database errors consistently.

    Args:
        db: The SQLAlchemy database session to rollback on error.
        operation_name: Human-readable name of the operation for error messages
            and logging (e.g., "record answer", "finalize test").
        reraise_http_exceptions: If True (default), HTTPExceptions raised within
            the context are re-raised after rolling back, without wrapping.
        status_code: HTTP status code to use in the raised HTTPException.
            Defaults to 500 Internal Server Error.
        detail: Optional user-facing message. Defaults to
            ``ErrorMessages.database_operation_failed(operation_name)``; the
            underlying error is logged, never returned to the client.
        log_level: Logging level for error messages. Defaults to logging.ERROR.

    Raises:
        HTTPException: On any exception, with the session rolled back.

    Example:
        >>> with handle_db_error(db, "record heartbeat"):
        ...     test.elapsed_ms = new_elapsed
        ...     db.commit()
    """
    try:
        yield
    except HTTPException:
        db.rollback()
        if reraise_http_exceptions:
            raise
        logger.log(log_level, f"Request failed during {operation_name}", exc_info=True)
        raise HTTPException(
            status_code=status_code,
            detail=detail or ErrorMessages.database_operation_failed(operation_name),
        )
    except Exception as e:
        db.rollback()

        logger.log(
            log_level,
            f"Database error during {operation_name}: {e}",
            exc_info=True,
        )
        observability.capture_error(
            e,
            context={"operation": operation_name},
            tags={"error_type": "DatabaseError"},
        )

        raise HTTPException(
            status_code=status_code,
            detail=detail or ErrorMessages.database_operation_failed(operation_name),
        )
