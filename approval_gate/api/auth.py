"""
Authentication for the administrative API.

Operators exchange the shared admin API key for a short-lived JWT, which
every approval route requires.
"""

import hmac
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from pydantic import BaseModel

from approval_gate.config import get_settings

# Security scheme
security = HTTPBearer()


class TokenData(BaseModel):
    """Data extracted from JWT token."""

    operator: str
    exp: datetime


class AuthenticatedOperator(BaseModel):
    """Operator making an admin request."""

    operator: str


def create_access_token(
    operator: str,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        operator: The operator identifier.
        expires_delta: Optional custom expiration time.

    Returns:
        The encoded JWT token.
    """
    settings = get_settings()

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.api_access_token_expire_minutes)

    now = datetime.now(timezone.utc)

    to_encode = {
        "operator": operator,
        "exp": now + expires_delta,
        "iat": now,
    }

    return jwt.encode(
        to_encode,
        settings.api_secret_key,
        algorithm=settings.api_algorithm,
    )


def decode_token(token: str) -> TokenData:
    """
    Decode and validate a JWT token.

    Args:
        token: The JWT token to decode.

    Returns:
        TokenData extracted from the token.

    Raises:
        HTTPException: If token is invalid or expired.
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.api_secret_key,
            algorithms=[settings.api_algorithm],
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    operator: str | None = payload.get("operator")
    if operator is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing operator",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenData(
        operator=operator,
        exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


async def get_current_operator(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> AuthenticatedOperator:
    """
    FastAPI dependency to get the operator behind a request.

    Raises:
        HTTPException: If authentication fails.
    """
    token_data = decode_token(credentials.credentials)

    return AuthenticatedOperator(operator=token_data.operator)


# Type alias for dependency injection
CurrentOperator = Annotated[AuthenticatedOperator, Depends(get_current_operator)]


def validate_api_key(api_key: str, operator: str) -> bool:
    """
    Validate the admin API key presented by an operator.

    Args:
        api_key: The API key to validate.
        operator: The operator identifier.

    Returns:
        True if the API key matches the configured admin key.
    """
    if not api_key or not operator:
        return False

    expected = get_settings().admin_api_key
    return hmac.compare_digest(api_key.encode("utf-8"), expected.encode("utf-8"))
