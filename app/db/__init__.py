"""Core application modules."""

from app.db.database import (
    SessionMaker,
    close_db,
    create_engine,
    create_session_maker,
    init_db,
    json_serializer,
    ping_db,
    transaction,
)

__all__ = [
    "SessionMaker",
    "close_db",
    "create_engine",
    "create_session_maker",
    "init_db",
    "json_serializer",
    "ping_db",
    "transaction",
]
