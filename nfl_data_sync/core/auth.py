"""
Admin authentication for the sync trigger endpoints.

Callers send ``Authorization: Bearer <ADMIN_TOKEN>``; the token is compared
in constant time with the configured shared secret.
"""
import hmac
from typing import Optional

from fastapi import HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from nfl_data_sync.core.logging import get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def tokens_match(presented: str, expected: str) -> bool:
    """Constant-time comparison of two tokens."""
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def require_admin_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> str:
    """
    Validate the bearer token for administrative operations.

    Args:
        request: The incoming request
        credentials: Parsed ``Authorization: Bearer`` header

    Returns:
        The validated token

    Raises:
        HTTPException: 401 if the header is missing or malformed, 403 if the
            token is wrong or no admin token is configured
    """
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    expected = request.app.state.settings.ADMIN_TOKEN
    if not expected:
        logger.warning("ADMIN_TOKEN not configured - rejecting admin request")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access is not configured")

    if not tokens_match(credentials.credentials, expected):
        logger.warning(f"Invalid admin token from {request.client.host if request.client else 'unknown'}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin token")

    return credentials.credentials
