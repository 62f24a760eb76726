"""
Database Package

Read-only spatial tables and connection management for the PostGIS backend.
"""
from src.geoenrich.db.base import Base
from src.geoenrich.db.session import (
    create_db_engine,
    create_session_factory,
    session_scope,
    health_check,
    close_connections,
    with_retry,
)
from src.geoenrich.db.models import (
    AdminBoundaryRecord,
    TransitStopRecord,
    TransitLineRecord,
)

__all__ = [
    # Base
    "Base",
    # Session management
    "create_db_engine",
    "create_session_factory",
    "session_scope",
    "health_check",
    "close_connections",
    "with_retry",
    # Models
    "AdminBoundaryRecord",
    "TransitStopRecord",
    "TransitLineRecord",
]
