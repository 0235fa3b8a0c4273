"""Auth schemas for the caller identity and token data."""

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Authenticated caller, taken from a validated access token."""

    id: str
    email: str | None = None


class TokenPayload(BaseModel):
    """Claims carried by an access token."""

    sub: str  # user_id
    email: str | None = None
    exp: int
