"""
Mercado Pago token endpoint client.

Server-to-server exchange of an authorization code for tokens. The client
secret only ever travels on this request. A failed exchange is never retried:
authorization codes are single use and the provider rejects a second attempt.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

import httpx
import structlog

from app.core.config import Settings
from app.core.exceptions import Misconfigured, TokenExchangeFailed

logger = structlog.get_logger()


@dataclass(frozen=True)
class TokenResponse:
    """Token endpoint response, kept verbatim in ``payload``."""

    payload: Mapping[str, Any]

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TokenResponse":
        return cls(payload=MappingProxyType(dict(payload)))

    @property
    def access_token(self) -> str | None:
        return self.payload.get("access_token")

    @property
    def refresh_token(self) -> str | None:
        return self.payload.get("refresh_token")

    @property
    def public_key(self) -> str | None:
        return self.payload.get("public_key")

    @property
    def user_id(self) -> int | str | None:
        return self.payload.get("user_id")

    @property
    def scope(self) -> str | None:
        return self.payload.get("scope")

    @property
    def expires_in(self) -> int | None:
        return self.payload.get("expires_in")


class TokenExchangeClient:
    def __init__(
        self,
        config: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token_url = config.mp_token_url
        self.client_id = config.mp_app_id
        self.client_secret = config.mp_app_secret
        self._transport = transport

    async def exchange(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the provider redirect
            redirect_uri: Exactly the URI sent in the authorization request
            code_verifier: PKCE verifier, when the server holds it

        Raises:
            Misconfigured: client id or secret missing (no request is made)
            TokenExchangeFailed: transport error, non-2xx or non-JSON body
        """
        if not self.client_id or not self.client_secret:
            raise Misconfigured(
                "Mercado Pago client credentials (MP_APP_ID / MP_APP_SECRET) are not configured."
            )

        form = {
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
        }
        if code_verifier:
            form["code_verifier"] = code_verifier

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    self.token_url,
                    data=form,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error("mp_token_exchange_transport_error", error=str(e))
            raise TokenExchangeFailed(f"Mercado Pago token request failed: {e}") from e

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            payload = None

        if not response.is_success:
            raw = payload if payload is not None else response.text
            logger.error(
                "mp_token_exchange_failed",
                status=response.status_code,
                body=raw,
            )
            raise TokenExchangeFailed(
                f"MP token exchange failed with status {response.status_code}",
                payload=raw,
                status=response.status_code,
            )

        if not isinstance(payload, dict):
            logger.error(
                "mp_token_exchange_unparsable",
                status=response.status_code,
                body=response.text[:500],
            )
            raise TokenExchangeFailed(
                "MP token exchange returned a non-JSON body",
                payload=response.text,
                status=response.status_code,
            )

        logger.info(
            "mp_token_exchange_succeeded",
            mp_user_id=payload.get("user_id"),
            has_refresh_token="refresh_token" in payload,
        )
        return TokenResponse.from_payload(payload)
