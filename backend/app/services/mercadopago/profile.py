"""
User-profile collaborator and the Mercado Pago protected-data fragment.

The callback handler only needs two operations from the profile backend:
read the current user's protected data and write it back. ``SqlProfileStore``
implements them on top of the ``user_profiles`` table; tests substitute an
in-memory store.
"""

from collections.abc import Callable, Mapping
from typing import Any, Protocol

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.auth import User
from app.core.exceptions import ProfilePersistenceFailed
from app.db.models import UserProfileModel
from app.services.mercadopago.token_client import TokenResponse

logger = structlog.get_logger()

# Token response field -> protected data key
PROTECTED_KEYS = {
    "access_token": "mpAccessToken",
    "refresh_token": "mpRefreshToken",
    "public_key": "mpPublicKey",
    "user_id": "mpUserId",
    "scope": "mpScope",
    "expires_in": "mpExpiresIn",
}


class ProfileCollaborator(Protocol):
    async def get_current_user_profile(self) -> dict[str, Any]: ...

    async def update_current_user_profile(self, protected_data: Mapping[str, Any]) -> None: ...


def build_protected_fragment(token: TokenResponse) -> dict[str, Any]:
    return {key: token.payload.get(field) for field, key in PROTECTED_KEYS.items()}


def merge_protected_data(
    existing: Mapping[str, Any] | None,
    fragment: Mapping[str, Any],
) -> dict[str, Any]:
    """Overlay ``fragment`` on ``existing`` without dropping unrelated keys."""
    return {**(existing or {}), **fragment}


def is_connected(protected_data: Mapping[str, Any]) -> bool:
    return bool(protected_data.get(PROTECTED_KEYS["access_token"]))


class SqlProfileStore:
    """Protected profile data of the session's user, stored in SQL.

    The user is resolved lazily through ``resolve_user`` so that requests
    rejected before touching the profile never require a session.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        resolve_user: Callable[[], User],
    ):
        self._session_maker = session_maker
        self._resolve_user = resolve_user
        self._user: User | None = None

    @property
    def current_user(self) -> User:
        if self._user is None:
            self._user = self._resolve_user()
        return self._user

    async def get_current_user_profile(self) -> dict[str, Any]:
        user = self.current_user
        try:
            async with self._session_maker() as session:
                profile = await session.get(UserProfileModel, user.id)
        except SQLAlchemyError as e:
            logger.error("profile_read_failed", user_id=user.id, error=str(e))
            raise ProfilePersistenceFailed("Could not load the user profile.") from e
        if profile is None:
            return {}
        return dict(profile.protected_data or {})

    async def update_current_user_profile(self, protected_data: Mapping[str, Any]) -> None:
        user = self.current_user
        try:
            async with self._session_maker() as session:
                profile = await session.get(UserProfileModel, user.id)
                if profile is None:
                    profile = UserProfileModel(
                        id=user.id,
                        email=user.email or None,
                        display_name=user.name or None,
                        protected_data={},
                    )
                    session.add(profile)
                # Assign a fresh dict so the JSON column is flagged dirty
                profile.protected_data = dict(protected_data)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("profile_write_failed", user_id=user.id, error=str(e))
            raise ProfilePersistenceFailed("Could not update the user profile.") from e
