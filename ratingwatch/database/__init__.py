"""Database module with SQLAlchemy async engine and ORM models."""

from .connection import (
    close_database,
    close_sqlalchemy_engine,
    get_async_database_url,
    get_session,
    init_database,
    init_sqlalchemy_engine,
    ping_database,
)
from .orm import Base, RatingChange


__all__ = [
    "init_sqlalchemy_engine",
    "close_sqlalchemy_engine",
    "get_async_database_url",
    "get_session",
    "init_database",
    "close_database",
    "ping_database",
    "Base",
    "RatingChange",
]
