"""Database package for the affiliate commission core."""
from db.connection import (
    build_engine,
    build_session_factory,
    dispose_engine,
    get_db,
    get_session_factory,
)

__all__ = [
    "build_engine",
    "build_session_factory",
    "get_session_factory",
    "get_db",
    "dispose_engine",
]
