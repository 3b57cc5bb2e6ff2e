"""
Tests for the handle_db_error context manager used for primary writes.
"""
import logging
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assessment.core.db_error_handling import handle_db_error
from assessment.core.error_responses import ErrorMessages


def create_mock_db():
    """Create a MagicMock that passes isinstance(mock, Session) check."""
    return MagicMock(spec=Session)


class TestHandleDbError:
    """Tests for the handle_db_error context manager."""

    def test_success_case_no_exception(self):
        db = create_mock_db()
        result = []

        with handle_db_error(db, "record heartbeat"):
            result.append("executed")

        assert result == ["executed"]
        db.rollback.assert_not_called()

    def test_rollback_on_sqlalchemy_error(self):
        db = create_mock_db()

        with pytest.raises(HTTPException) as exc_info:
            with handle_db_error(db, "record answer"):
                raise SQLAlchemyError("connection reset")

        db.rollback.assert_called_once()
        assert exc_info.value.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert exc_info.value.detail == ErrorMessages.database_operation_failed(
            "record answer"
        )

    def test_error_detail_is_never_leaked(self):
        db = create_mock_db()

        with pytest.raises(HTTPException) as exc_info:
            with handle_db_error(db, "finalize test"):
                raise ValueError("password=hunter2")

        assert "hunter2" not in exc_info.value.detail

    def test_custom_detail(self):
        db = create_mock_db()

        with pytest.raises(HTTPException) as exc_info:
            with handle_db_error(
                db, "record answer", detail=ErrorMessages.SUBMISSION_FAILED
            ):
                raise SQLAlchemyError("deadlock detected")

        assert exc_info.value.detail == ErrorMessages.SUBMISSION_FAILED

    def test_custom_status_code(self):
        db = create_mock_db()

        with pytest.raises(HTTPException) as exc_info:
            with handle_db_error(
                db, "start test", status_code=status.HTTP_503_SERVICE_UNAVAILABLE
            ):
                raise SQLAlchemyError("db down")

        assert exc_info.value.status_code == status.HTTP_503_SERVICE_UNAVAILABLE

    def test_http_exception_reraised_unchanged(self):
        db = create_mock_db()
        original = HTTPException(status_code=400, detail="Bad option.")

        with pytest.raises(HTTPException) as exc_info:
            with handle_db_error(db, "record answer"):
                raise original

        assert exc_info.value is original
        db.rollback.assert_called_once()

    def test_http_exception_wrapped_when_disabled(self):
        db = create_mock_db()

        with pytest.raises(HTTPException) as exc_info:
            with handle_db_error(db, "record answer", reraise_http_exceptions=False):
                raise HTTPException(status_code=400, detail="Bad option.")

        assert exc_info.value.status_code == 500

    def test_logging_and_error_tracking(self):
        db = create_mock_db()

        with patch("assessment.core.db_error_handling.logger") as mock_logger, patch(
            "assessment.core.db_error_handling.observability"
        ) as mock_obs:
            with pytest.raises(HTTPException):
                with handle_db_error(db, "finalize test", log_level=logging.CRITICAL):
                    raise SQLAlchemyError("constraint violation")

        level, message = mock_logger.log.call_args[0]
        assert level == logging.CRITICAL
        assert "finalize test" in message
        mock_obs.capture_error.assert_called_once()
        assert mock_obs.capture_error.call_args[1]["context"] == {
            "operation": "finalize test"
        }
