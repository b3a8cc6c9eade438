"""
Core package initialization.
"""

from app.core.config import Settings, get_settings, settings
from app.core.models import APIResponse, ConnectionStatus, OAuthStartData

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "settings",
    # Models
    "APIResponse",
    "OAuthStartData",
    "ConnectionStatus",
]
