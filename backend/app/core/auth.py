"""
Session identity for the marketplace user.

The marketplace front end holds a signed session cookie (HS256 JWT, ``sub`` is
the user id). The OAuth callback arrives as a plain browser redirect, so the
cookie is the only credential available there; no Authorization header is
expected.
"""

import time
from dataclasses import dataclass

import jwt
import structlog
from fastapi import Request

from app.core.config import settings
from app.core.exceptions import AuthenticationError, ServiceUnavailable

_auth_logger = structlog.get_logger()

SESSION_ALGORITHM = "HS256"
SESSION_LEEWAY = 30  # seconds of clock skew


@dataclass
class User:
    """Authenticated marketplace user."""

    id: str
    email: str
    name: str


MOCK_USER = User(
    id="mock-user-id",
    email="provider@mp-connect.local",
    name="Mock Provider",
)


def issue_session_token(user: User, ttl_seconds: int = 3600) -> str:
    """Sign a session token for ``user``. Used by tests and local tooling."""
    if not settings.session_secret:
        raise ServiceUnavailable("Session secret is not configured.")
    now = int(time.time())
    claims = {
        "sub": user.id,
        "email": user.email,
        "name": user.name,
        "iat": now,
        "exp": now + ttl_seconds,
    }
    return jwt.encode(claims, settings.session_secret, algorithm=SESSION_ALGORITHM)


def decode_session_token(token: str | None) -> User:
    """Resolve the user behind a session token.

    Without a configured session secret the mock user is returned in
    development; production refuses to serve requests instead.
    """
    if not settings.is_auth_enabled:
        if settings.is_production:
            _auth_logger.critical(
                "SESSION AUTH DISABLED IN PRODUCTION! Set SESSION_SECRET. "
                "Rejecting all requests until auth is configured."
            )
            raise ServiceUnavailable("Authentication is not configured. Service unavailable.")
        return MOCK_USER

    if not token:
        raise AuthenticationError("Missing session")

    try:
        claims = jwt.decode(
            token,
            settings.session_secret,
            algorithms=[SESSION_ALGORITHM],
            leeway=SESSION_LEEWAY,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Session has expired") from None
    except jwt.InvalidTokenError as e:
        _auth_logger.warning("Invalid session token", error=str(e))
        raise AuthenticationError("Invalid session") from e

    return User(
        id=str(claims["sub"]),
        email=claims.get("email", ""),
        name=claims.get("name", ""),
    )


def session_token_from_request(request: Request) -> str | None:
    """Read the session token from the cookie, falling back to a bearer header."""
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    authorization = request.headers.get("authorization", "")
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value
    return None


async def get_current_user(request: Request) -> User:
    """
    Dependency to get the current authenticated user.

    usage:
        @router.get("/protected")
        async def protected(user: User = Depends(get_current_user)):
            return {"user": user.email}
    """
    return decode_session_token(session_token_from_request(request))
