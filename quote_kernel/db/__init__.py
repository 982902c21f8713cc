"""Database layer - engine, base classes, column types, and immutability."""

from quote_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from quote_kernel.db.engine import (
    create_kernel_engine,
    create_session_factory,
    create_tables,
    drop_tables,
    session_scope,
)

__all__ = [
    "create_kernel_engine",
    "create_session_factory",
    "create_tables",
    "drop_tables",
    "session_scope",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
