"""Database package — async SQLAlchemy engine, session factory, Base."""
from portal.db.base import (
    Base,
    async_session_factory,
    engine,
    get_db,
    make_get_db,
    make_session_factory,
)

__all__ = [
    "Base",
    "async_session_factory",
    "engine",
    "get_db",
    "make_get_db",
    "make_session_factory",
]
