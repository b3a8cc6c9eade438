"""
Pytest configuration and fixtures for MP Connect tests.
"""

import os

# Settings are read at import time; configure the environment first.
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["MP_APP_ID"] = "test-app-id"
os.environ["MP_APP_SECRET"] = "test-app-secret"
os.environ["MARKETPLACE_ROOT_URL"] = "https://marketplace.example.com/"
os.environ.pop("DEV_API_SERVER_PORT", None)
os.environ.pop("DEV_REDIRECT_URI", None)
os.environ.pop("SESSION_SECRET", None)

from collections.abc import AsyncGenerator  # noqa: E402
from typing import Any  # noqa: E402
from urllib.parse import parse_qsl  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.api.main import app  # noqa: E402
from app.api.routes.oauth import get_token_client  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.db.database import Base, engine  # noqa: E402
from app.services.mercadopago.pkce import compute_challenge  # noqa: E402
from app.services.mercadopago.token_client import TokenExchangeClient  # noqa: E402
from app.services.mercadopago.verifier_cache import get_verifier_cache  # noqa: E402

TOKEN_BODY = {
    "access_token": "A",
    "refresh_token": "R",
    "public_key": "P",
    "user_id": 1,
    "expires_in": 3600,
    "scope": "read",
}

TOKEN_URL = "https://api.mercadopago.com/oauth/token"


class StubTokenEndpoint:
    """Stand-in for the Mercado Pago token endpoint.

    Records every form it receives. When ``expected_challenge`` is set it
    verifies PKCE the way the provider does and answers ``invalid_grant`` on
    a mismatch.
    """

    def __init__(self) -> None:
        self.requests: list[dict[str, str]] = []
        self.status_code = 200
        self.body: Any = dict(TOKEN_BODY)
        self.expected_challenge: str | None = None
        self.error: Exception | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        form = dict(parse_qsl(request.content.decode()))
        self.requests.append(form)

        if self.error is not None:
            raise self.error

        if self.expected_challenge is not None:
            verifier = form.get("code_verifier")
            if verifier is None or compute_challenge(verifier) != self.expected_challenge:
                return httpx.Response(400, json={"error": "invalid_grant"})

        if isinstance(self.body, (dict, list)):
            return httpx.Response(self.status_code, json=self.body)
        return httpx.Response(self.status_code, text=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> TokenExchangeClient:
        return TokenExchangeClient(settings, transport=self.transport)


async def _create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _drop_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(autouse=True)
def clear_verifier_cache() -> None:
    get_verifier_cache().clear()


@pytest.fixture
def token_endpoint() -> StubTokenEndpoint:
    return StubTokenEndpoint()


@pytest_asyncio.fixture(scope="function")
async def database() -> AsyncGenerator[None, None]:
    """Fresh tables for one test."""
    await _create_tables()
    yield
    await _drop_tables()


@pytest_asyncio.fixture(scope="function")
async def client(
    database: None,
    token_endpoint: StubTokenEndpoint,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app, token endpoint stubbed."""
    app.dependency_overrides[get_token_client] = token_endpoint.client

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
