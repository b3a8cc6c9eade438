"""
Database package initialization.
"""

from app.db.database import (
    Base,
    async_session_maker,
    check_database_health,
    close_db,
    engine,
    init_db,
)
from app.db.models import UserProfileModel

__all__ = [
    # Database
    "Base",
    "engine",
    "async_session_maker",
    "init_db",
    "close_db",
    "check_database_health",
    # Models
    "UserProfileModel",
]
