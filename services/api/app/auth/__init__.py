"""Auth module for access tokens, passwords and user dependencies."""

from app.auth.dependencies import get_current_user, get_current_user_optional
from app.auth.jwt import create_access_token, validate_access_token
from app.auth.passwords import hash_password, verify_password
from app.auth.schemas import CurrentUser, TokenPayload

__all__ = [
    "CurrentUser",
    "TokenPayload",
    "create_access_token",
    "validate_access_token",
    "hash_password",
    "verify_password",
    "get_current_user",
    "get_current_user_optional",
]
