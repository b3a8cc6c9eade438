"""
Authorization request for the Mercado Pago OAuth flow.

Builds the URL the popup navigates to. The verifier behind the challenge is
stored under the state before the URL is returned, so a callback can always be
correlated with the attempt that produced it.
"""

from dataclasses import dataclass, field
from urllib.parse import urlencode

import structlog

from app.core.config import Settings
from app.core.logging import redact_state
from app.services.mercadopago.environment import OAuthEnvironment
from app.services.mercadopago.pkce import CHALLENGE_METHOD, generate_pkce
from app.services.mercadopago.verifier_cache import VerifierCache

logger = structlog.get_logger()

STATE_LENGTH = 48

MISSING_CLIENT_ID = "Mercado Pago client id (MP_APP_ID) is not configured."


@dataclass(frozen=True)
class AuthorizationRequest:
    authorization_url: str
    client_id: str
    redirect_uri: str
    code_challenge: str
    state: str
    platform_id: str = "mp"
    code_challenge_method: str = CHALLENGE_METHOD
    diagnostics: tuple[str, ...] = field(default=())

    def query_params(self) -> dict[str, str]:
        return {
            "response_type": "code",
            "client_id": self.client_id,
            "platform_id": self.platform_id,
            "redirect_uri": self.redirect_uri,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
            "state": self.state,
        }

    @property
    def url(self) -> str:
        return f"{self.authorization_url}?{urlencode(self.query_params())}"


class AuthorizationRequestBuilder:
    """Assemble authorization requests for one environment.

    The builder never fails on a missing client id: it returns a degraded
    request and reports the problem through ``diagnostics`` and an error log,
    so the caller can surface it before opening the popup.
    """

    def __init__(
        self,
        config: Settings,
        environment: OAuthEnvironment,
        verifier_cache: VerifierCache,
    ):
        self.config = config
        self.environment = environment
        self.verifier_cache = verifier_cache

    def build(self) -> AuthorizationRequest:
        diagnostics: list[str] = []
        client_id = self.config.mp_app_id or ""
        if not client_id:
            logger.error("mp_client_id_missing", msg=MISSING_CLIENT_ID)
            diagnostics.append(MISSING_CLIENT_ID)

        pkce = generate_pkce()
        state = pkce.verifier[:STATE_LENGTH]
        self.verifier_cache.put(state, pkce.verifier)

        request = AuthorizationRequest(
            authorization_url=self.config.mp_authorization_url,
            client_id=client_id,
            redirect_uri=self.environment.redirect_uri,
            code_challenge=pkce.challenge,
            state=state,
            platform_id=self.config.mp_platform_id,
            diagnostics=tuple(diagnostics),
        )

        logger.info(
            "mp_oauth_url_built",
            state=redact_state(state),
            redirect_uri=request.redirect_uri,
            degraded=bool(diagnostics),
        )
        return request

    def build_authorization_url(self) -> str:
        return self.build().url
