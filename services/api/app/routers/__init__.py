"""API routers."""

from app.routers import analyses, auth, health, usage

__all__ = [
    "analyses",
    "auth",
    "health",
    "usage",
]
