"""
API response models for MP Connect.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    model_config = ConfigDict(from_attributes=True)


class APIResponse(BaseSchema):
    success: bool = True
    message: str | None = None
    data: Any = None
    meta: dict[str, Any] | None = None


class OAuthStartData(BaseSchema):
    auth_url: str
    state: str
    diagnostics: list[str] = []


class ConnectionStatus(BaseSchema):
    connected: bool
    mp_user_id: int | str | None = None
    scope: str | None = None
    expires_in: int | None = None
