"""
Authentication: resolve the caller identity from a JWT bearer token.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from fastapi import Request
from jose import JWTError, jwt

from admin_console.config import settings
from admin_console.errors import UnauthorizedError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


# ============================================================================
# JWT Functions
# ============================================================================

def create_access_token(identity_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token for an identity.

    Args:
        identity_id: Identity placed in the 'sub' claim
        expires_delta: Token expiration time

    Returns:
        Encoded JWT token
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)

    to_encode = {"sub": str(identity_id), "exp": expire}

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )


def extract_token(request: Request) -> str:
    """Return the bearer token of the request."""
    authorization = request.headers.get("Authorization")
    if not authorization:
        raise UnauthorizedError("missing authorization token")
    if not authorization.lower().startswith(BEARER_PREFIX):
        raise UnauthorizedError("authorization header is not a bearer token")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise UnauthorizedError("missing authorization token")
    return token


def identity_from_token(token: str) -> UUID:
    """
    Decode and validate a JWT and return the identity in its 'sub' claim.

    Raises:
        UnauthorizedError: If the token is invalid or the claim is missing or
            not a UUID
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
    except JWTError as e:
        raise UnauthorizedError(f"invalid authorization token: {e}") from e

    subject = payload.get("sub")
    if not subject:
        raise UnauthorizedError("authorization token has no 'sub' claim")

    try:
        return UUID(str(subject))
    except ValueError as e:
        raise UnauthorizedError(f"'sub' claim is not an identity ID: {subject}") from e


# ============================================================================
# Dependencies
# ============================================================================

def locate_identity(request: Request) -> UUID:
    """
    Resolve the identity of the caller.

    Raises:
        UnauthorizedError: If the credential is absent, malformed or lacks a
            valid subject claim
    """
    return identity_from_token(extract_token(request))


def require_identity(request: Request) -> UUID:
    """Dependency for routes that only need an authenticated caller."""
    try:
        return locate_identity(request)
    except UnauthorizedError as e:
        logger.warning(f"Rejected unauthenticated request to {request.url.path}: {e}")
        raise
