"""FastAPI dependencies for authentication."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.auth.jwt import validate_access_token
from app.auth.schemas import CurrentUser
from app.config import get_settings

# HTTPBearer with auto_error=False so we can handle missing tokens ourselves
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> CurrentUser:
    """
    Get current user from JWT or dev bypass.

    - If DEV_USER_ID is set: return mock user (SQLite dev mode)
    - Otherwise: validate JWT and return user from claims

    Usage:
        @app.get("/analyses")
        def list_analyses(user: CurrentUser = Depends(get_current_user)):
            ...
    """
    settings = get_settings()

    # Dev bypass for local SQLite development
    if settings.dev_user_id:
        return CurrentUser(id=settings.dev_user_id, email="dev@local.test")

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_payload = validate_access_token(credentials.credentials)
    return CurrentUser(id=token_payload.sub, email=token_payload.email)


def get_current_user_optional(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> CurrentUser | None:
    """
    Optional auth - returns None if no token provided.

    Anonymous callers fall back to the client-keyed free tier.
    """
    settings = get_settings()

    if settings.dev_user_id:
        return CurrentUser(id=settings.dev_user_id, email="dev@local.test")

    if not credentials:
        return None

    try:
        token_payload = validate_access_token(credentials.credentials)
        return CurrentUser(id=token_payload.sub, email=token_payload.email)
    except HTTPException:
        return None
