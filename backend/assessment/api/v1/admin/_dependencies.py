"""
Shared dependencies for admin endpoints.
"""
import logging
import secrets

from fastapi import Header

from assessment.core.config import settings
from assessment.core.error_responses import (
    ErrorMessages,
    raise_not_configured,
    raise_unauthorized,
)

logger = logging.getLogger(__name__)


def verify_admin_token(x_admin_token: str = Header(...)) -> bool:
    """
    Verify the X-Admin-Token header with a constant-time comparison.

    Raises:
        HTTPException: 500 if no admin token is configured, 401 if it does not match
    """
    if not settings.ADMIN_TOKEN:
        raise_not_configured(ErrorMessages.ADMIN_TOKEN_NOT_CONFIGURED)

    if not secrets.compare_digest(x_admin_token, settings.ADMIN_TOKEN):
        raise_unauthorized(ErrorMessages.ADMIN_TOKEN_INVALID, include_www_authenticate=False)

    return True
