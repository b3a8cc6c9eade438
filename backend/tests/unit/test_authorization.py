"""
Unit tests for the authorization request builder.
"""

from urllib.parse import parse_qs, urlsplit

import pytest

from app.core.config import Settings
from app.services.mercadopago.authorization import (
    MISSING_CLIENT_ID,
    STATE_LENGTH,
    AuthorizationRequestBuilder,
)
from app.services.mercadopago.environment import OAuthEnvironment
from app.services.mercadopago.pkce import compute_challenge, is_valid_verifier
from app.services.mercadopago.verifier_cache import VerifierCache

ENVIRONMENT = OAuthEnvironment(
    mode="marketplace",
    redirect_uri="https://shop.example.com/api/mp/oauth/callback",
    opener_origin="https://shop.example.com",
)


def make_builder(cache: VerifierCache, **overrides) -> AuthorizationRequestBuilder:
    values = {"mp_app_id": "app-id", "mp_app_secret": "secret"}
    values.update(overrides)
    return AuthorizationRequestBuilder(Settings(_env_file=None, **values), ENVIRONMENT, cache)


def query_of(url: str) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(urlsplit(url).query).items()}


class TestAuthorizationRequestBuilder:
    @pytest.fixture
    def cache(self):
        return VerifierCache()

    def test_url_targets_provider_authorization_endpoint(self, cache):
        url = make_builder(cache).build_authorization_url()
        parts = urlsplit(url)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == (
            "https://auth.mercadopago.com/authorization"
        )

    def test_query_carries_oauth_and_pkce_parameters(self, cache):
        request = make_builder(cache).build()
        query = query_of(request.url)

        assert query["response_type"] == "code"
        assert query["client_id"] == "app-id"
        assert query["platform_id"] == "mp"
        assert query["redirect_uri"] == ENVIRONMENT.redirect_uri
        assert query["code_challenge_method"] == "S256"
        assert query["code_challenge"] == request.code_challenge
        assert query["state"] == request.state

    def test_state_is_verifier_prefix_and_cache_key(self, cache):
        request = make_builder(cache).build()
        verifier = cache.get(request.state)

        assert verifier is not None
        assert is_valid_verifier(verifier)
        assert len(request.state) == STATE_LENGTH
        assert verifier.startswith(request.state)

    def test_challenge_in_url_matches_cached_verifier(self, cache):
        url = make_builder(cache).build_authorization_url()
        query = query_of(url)
        verifier = cache.get(query["state"])
        assert compute_challenge(verifier) == query["code_challenge"]

    def test_every_attempt_gets_its_own_state(self, cache):
        builder = make_builder(cache)
        states = {builder.build().state for _ in range(20)}
        assert len(states) == 20
        assert len(cache) == 20

    def test_missing_client_id_still_returns_url_with_diagnostic(self, cache):
        request = make_builder(cache, mp_app_id=None).build()

        assert request.diagnostics == (MISSING_CLIENT_ID,)
        assert request.url.startswith("https://auth.mercadopago.com/authorization?")
        assert query_of(request.url).get("client_id") is None
        assert cache.get(request.state) is not None

    def test_configured_client_has_no_diagnostics(self, cache):
        assert make_builder(cache).build().diagnostics == ()
