"""Access token issue and validation (HS256)."""

from datetime import datetime, timedelta, timezone

import jwt
from fastapi import HTTPException, status

from app.auth.schemas import TokenPayload
from app.config import get_settings


def _secret() -> str:
    settings = get_settings()
    if not settings.jwt_secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="JWT secret not configured",
        )
    return settings.jwt_secret


def create_access_token(user_id: str, email: str | None = None) -> str:
    """
    Issue a signed access token for a user.

    Args:
        user_id: Subject of the token
        email: Optional email claim

    Returns:
        Encoded JWT string
    """
    settings = get_settings()
    expires = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)
    claims: dict = {"sub": user_id, "exp": expires}
    if email:
        claims["email"] = email
    return jwt.encode(claims, _secret(), algorithm=settings.jwt_algorithm)


def validate_access_token(token: str) -> TokenPayload:
    """
    Validate an access token and extract claims.

    Args:
        token: The JWT token string (without "Bearer " prefix)

    Returns:
        TokenPayload with user_id (sub), email, and expiration

    Raises:
        HTTPException 401 on invalid/expired token
    """
    settings = get_settings()
    secret = _secret()

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.exceptions.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenPayload(
        sub=payload["sub"],
        email=payload.get("email"),
        exp=payload["exp"],
    )
