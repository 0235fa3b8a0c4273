from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import URL

from app.config import get_settings


def _sqlite_engine(url: str) -> Engine:
    return create_engine(
        url,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@lru_cache
def get_engine() -> Engine:
    """Create and cache the database engine."""
    settings = get_settings()

    if settings.database_url and settings.database_url.startswith("sqlite"):
        return _sqlite_engine(settings.database_url)

    # PostgreSQL - separate params handle special chars in password
    if settings.db_host:
        url: URL | str = URL.create(
            drivername="postgresql",
            username=settings.db_user,
            password=settings.db_password,
            host=settings.db_host,
            port=settings.db_port,
            database=settings.db_name,
        )
    elif settings.database_url:
        url = settings.database_url
    else:
        # Local development default
        return _sqlite_engine("sqlite:///./local.db")

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        echo=False,
    )
