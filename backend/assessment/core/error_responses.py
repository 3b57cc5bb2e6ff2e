"""
Standardized error response messages and builders.

All user-facing error messages live in ErrorMessages so the API speaks with
one voice. Log messages stay separate and may carry technical detail.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Include relevant IDs in parentheses when helpful for debugging: "(ID: 123)"
- Use "Please try again later." for transient server errors

Usage:
    from assessment.core.error_responses import ErrorMessages, raise_not_found

    if not test:
        raise_not_found(ErrorMessages.TEST_NOT_FOUND)
"""

from typing import NoReturn, Optional

from fastapi import HTTPException, status


class ErrorMessages:
    """Centralized error message constants and templates.

    Naming Convention:
    - Constants: SCREAMING_SNAKE_CASE for static messages
    - Methods: snake_case for templates that accept parameters
    """

    # ==========================================================================
    # Authentication Errors (401)
    # ==========================================================================
    INVALID_TOKEN = "Invalid authentication token."
    INVALID_TOKEN_TYPE = "Invalid token type."
    INVALID_TOKEN_PAYLOAD = "Invalid token payload."
    USER_NOT_FOUND_AUTH = "User not found."
    ADMIN_TOKEN_INVALID = "Invalid admin token."

    # ==========================================================================
    # Authorization Errors (403)
    # ==========================================================================
    TEST_ACCESS_DENIED = "Not authorized to access this test."

    # ==========================================================================
    # Not Found Errors (404)
    # ==========================================================================
    TEST_NOT_FOUND = "Test not found."
    STUDENT_NOT_FOUND = "Student not found."
    QUESTION_NOT_FOUND = "Question not found."

    # ==========================================================================
    # Bad Request Errors (400)
    # ==========================================================================
    SECTION_ALREADY_COMPLETED = "This section is already completed."
    QUESTION_NOT_IN_ACTIVE_SECTION = (
        "Question does not belong to the section currently being tested."
    )
    NEGATIVE_ELAPSED_TIME = "Elapsed time must be zero or greater."
    INVALID_OPTION_ORDER = (
        "Option order must be a permutation of the question's option indices."
    )

    # ==========================================================================
    # Unprocessable (422)
    # ==========================================================================
    SECTION_STATE_MISSING = (
        "Test sections are not provisioned. Please contact your administrator."
    )

    # ==========================================================================
    # Server Errors (500)
    # ==========================================================================
    SUBMISSION_FAILED = "Failed to record your answer. Please try again."

    # ==========================================================================
    # Configuration Errors (500)
    # ==========================================================================
    ADMIN_TOKEN_NOT_CONFIGURED = "Admin token not configured on server."

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def test_not_in_status(current: str, required: str) -> str:
        """Message for lifecycle transitions attempted from the wrong status."""
        return f"Test is {current}. This action requires a {required} test."

    @staticmethod
    def selected_index_out_of_range(selected_index: int, option_count: int) -> str:
        """Message when the submitted option index does not exist."""
        return (
            f"Selected option {selected_index} is out of range "
            f"(question has {option_count} options)."
        )

    @staticmethod
    def missing_sections(sections: list) -> str:
        """Message when some sections of a test have no state row."""
        names = ", ".join(sorted(str(s) for s in sections))
        return f"Test sections are not provisioned: {names}."

    @staticmethod
    def invalid_section_weights(detail: str) -> str:
        """Message for rejected section weight updates."""
        return f"Invalid section weights: {detail}"

    @staticmethod
    def database_operation_failed(operation: str) -> str:
        """Generic message for database operation failures."""
        return f"Failed to {operation}. Please try again later."


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_bad_request(detail: str) -> NoReturn:
    """Raise a 400 Bad Request exception.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 400 Bad Request
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_unauthorized(
    detail: str,
    include_www_authenticate: bool = True,
) -> NoReturn:
    """Raise a 401 Unauthorized exception.

    Args:
        detail: User-facing error message
        include_www_authenticate: Whether to include WWW-Authenticate header

    Raises:
        HTTPException: 401 Unauthorized
    """
    headers = {"WWW-Authenticate": "Bearer"} if include_www_authenticate else None
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers=headers,
    )


def raise_forbidden(detail: str) -> NoReturn:
    """Raise a 403 Forbidden exception.

    Raises:
        HTTPException: 403 Forbidden
    """
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=detail,
    )


def raise_not_found(detail: str) -> NoReturn:
    """Raise a 404 Not Found exception.

    Raises:
        HTTPException: 404 Not Found
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )


def raise_conflict(detail: str) -> NoReturn:
    """Raise a 409 Conflict exception.

    Use when the request conflicts with current state (e.g. reviewing an
    unfinished test).

    Raises:
        HTTPException: 409 Conflict
    """
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=detail,
    )


def raise_unprocessable(detail: str) -> NoReturn:
    """Raise a 422 Unprocessable Entity exception.

    Use when the request is well formed but stored state violates a
    provisioning invariant (e.g. a test without section rows).

    Raises:
        HTTPException: 422 Unprocessable Entity
    """
    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=detail,
    )


def raise_server_error(
    detail: str,
    error_id: Optional[str] = None,
) -> NoReturn:
    """Raise a 500 Internal Server Error exception.

    Always use user-friendly messages; log technical details separately.

    Args:
        detail: User-facing error message (should be generic and friendly)
        error_id: Optional error tracking ID to include in response

    Raises:
        HTTPException: 500 Internal Server Error
    """
    if error_id:
        detail = f"{detail} (Error ID: {error_id})"

    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )


def raise_not_configured(detail: str) -> NoReturn:
    """Raise a 500 error for missing server configuration.

    Raises:
        HTTPException: 500 Internal Server Error
    """
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    )
