"""
Redirect URI and post-message origin, resolved once per process.

The redirect URI must be byte-identical in the authorization request and in
the token exchange, and must match the URI registered with Mercado Pago. Both
the request builder and the callback handler read it from the same
``OAuthEnvironment`` so the two can never drift apart.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Literal
from urllib.parse import urlsplit

import structlog

from app.core.config import Settings, settings

logger = structlog.get_logger()

CALLBACK_PATH = "/api/mp/oauth/callback"


@dataclass(frozen=True)
class OAuthEnvironment:
    mode: Literal["development", "marketplace"]
    redirect_uri: str
    opener_origin: str


def _origin(url: str | None) -> str | None:
    if not url:
        return None
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


def resolve_oauth_environment(config: Settings) -> OAuthEnvironment:
    """Pick the redirect URI for this deployment.

    Development with a separate API port uses ``dev_redirect_uri`` when set
    (a tunnel registered with the provider), otherwise the local API server.
    Everything else derives the URI from the marketplace root URL.
    """
    if config.use_dev_api_server:
        redirect_uri = (
            config.dev_redirect_uri
            or f"http://localhost:{config.dev_api_server_port}{CALLBACK_PATH}"
        )
        mode: Literal["development", "marketplace"] = "development"
    else:
        root = (config.marketplace_root_url or "").rstrip("/")
        if not root:
            logger.warning("mp_marketplace_root_url_missing")
        redirect_uri = f"{root}{CALLBACK_PATH}"
        mode = "marketplace"

    opener_origin = _origin(config.marketplace_root_url) or "*"
    return OAuthEnvironment(mode=mode, redirect_uri=redirect_uri, opener_origin=opener_origin)


@lru_cache(maxsize=1)
def get_oauth_environment() -> OAuthEnvironment:
    """The environment of this process, resolved on first use."""
    environment = resolve_oauth_environment(settings)
    logger.info(
        "mp_oauth_environment_resolved",
        mode=environment.mode,
        redirect_uri=environment.redirect_uri,
    )
    return environment
