"""
Unit tests for the token exchange client.
"""

import httpx
import pytest

from app.core.config import Settings
from app.core.exceptions import Misconfigured, TokenExchangeFailed
from app.services.mercadopago.token_client import TokenExchangeClient, TokenResponse

pytestmark = pytest.mark.asyncio

REDIRECT_URI = "https://shop.example.com/api/mp/oauth/callback"


def make_client(token_endpoint, **overrides) -> TokenExchangeClient:
    values = {"mp_app_id": "app-id", "mp_app_secret": "app-secret"}
    values.update(overrides)
    return TokenExchangeClient(Settings(_env_file=None, **values), transport=token_endpoint.transport)


class TestTokenExchangeClient:
    async def test_posts_form_with_required_fields(self, token_endpoint):
        await make_client(token_endpoint).exchange("the-code", REDIRECT_URI)

        assert token_endpoint.requests == [
            {
                "grant_type": "authorization_code",
                "client_id": "app-id",
                "client_secret": "app-secret",
                "code": "the-code",
                "redirect_uri": REDIRECT_URI,
            }
        ]

    async def test_sends_code_verifier_when_given(self, token_endpoint):
        await make_client(token_endpoint).exchange("the-code", REDIRECT_URI, code_verifier="v" * 43)
        assert token_endpoint.requests[0]["code_verifier"] == "v" * 43

    async def test_request_is_form_encoded(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "A"})

        client = TokenExchangeClient(
            Settings(_env_file=None, mp_app_id="id", mp_app_secret="secret"),
            transport=httpx.MockTransport(handler),
        )
        await client.exchange("code", REDIRECT_URI)

        assert seen[0].method == "POST"
        assert str(seen[0].url) == "https://api.mercadopago.com/oauth/token"
        assert seen[0].headers["content-type"] == "application/x-www-form-urlencoded"

    async def test_returns_body_verbatim(self, token_endpoint):
        token_endpoint.body = {**token_endpoint.body, "live_mode": True}

        token = await make_client(token_endpoint).exchange("code", REDIRECT_URI)

        assert isinstance(token, TokenResponse)
        assert dict(token.payload) == token_endpoint.body
        assert token.access_token == "A"
        assert token.refresh_token == "R"
        assert token.public_key == "P"
        assert token.user_id == 1
        assert token.scope == "read"
        assert token.expires_in == 3600

    async def test_token_response_is_read_only(self, token_endpoint):
        token = await make_client(token_endpoint).exchange("code", REDIRECT_URI)
        with pytest.raises(TypeError):
            token.payload["access_token"] = "changed"

    async def test_any_2xx_is_success(self, token_endpoint):
        token_endpoint.status_code = 201
        token = await make_client(token_endpoint).exchange("code", REDIRECT_URI)
        assert token.access_token == "A"

    async def test_non_2xx_raises_with_payload(self, token_endpoint):
        token_endpoint.status_code = 400
        token_endpoint.body = {"error": "invalid_grant"}

        with pytest.raises(TokenExchangeFailed) as exc_info:
            await make_client(token_endpoint).exchange("code", REDIRECT_URI)

        assert exc_info.value.status == 400
        assert exc_info.value.payload == {"error": "invalid_grant"}

    async def test_non_2xx_with_text_body_keeps_raw_text(self, token_endpoint):
        token_endpoint.status_code = 503
        token_endpoint.body = "upstream unavailable"

        with pytest.raises(TokenExchangeFailed) as exc_info:
            await make_client(token_endpoint).exchange("code", REDIRECT_URI)

        assert exc_info.value.payload == "upstream unavailable"

    async def test_non_json_success_body_raises(self, token_endpoint):
        token_endpoint.body = "<html>oops</html>"

        with pytest.raises(TokenExchangeFailed) as exc_info:
            await make_client(token_endpoint).exchange("code", REDIRECT_URI)

        assert exc_info.value.payload == "<html>oops</html>"

    async def test_json_array_body_raises(self, token_endpoint):
        token_endpoint.body = ["not", "an", "object"]

        with pytest.raises(TokenExchangeFailed):
            await make_client(token_endpoint).exchange("code", REDIRECT_URI)

    async def test_transport_error_raises_and_is_not_retried(self, token_endpoint):
        token_endpoint.error = httpx.ConnectError("connection refused")

        with pytest.raises(TokenExchangeFailed):
            await make_client(token_endpoint).exchange("code", REDIRECT_URI)

        assert len(token_endpoint.requests) == 1

    @pytest.mark.parametrize(
        "overrides",
        [{"mp_app_id": None}, {"mp_app_secret": None}, {"mp_app_id": ""}],
    )
    async def test_missing_credentials_fail_before_request(self, token_endpoint, overrides):
        with pytest.raises(Misconfigured):
            await make_client(token_endpoint, **overrides).exchange("code", REDIRECT_URI)

        assert token_endpoint.requests == []
