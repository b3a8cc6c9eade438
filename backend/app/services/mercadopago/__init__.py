"""
Mercado Pago account linking

OAuth 2.0 Authorization Code flow with PKCE:
- authorization request building and verifier storage
- popup lifecycle and completion signaling
- code exchange and protected-profile persistence
"""

from app.services.mercadopago.authorization import AuthorizationRequest, AuthorizationRequestBuilder
from app.services.mercadopago.callback import OAuthCallbackHandler, render_success_page
from app.services.mercadopago.environment import OAuthEnvironment, get_oauth_environment
from app.services.mercadopago.messages import CompletionMessage, MessageChannel
from app.services.mercadopago.pkce import PKCEPair, compute_challenge, generate_pkce, generate_verifier
from app.services.mercadopago.popup import PopupController, WindowGeometry
from app.services.mercadopago.profile import SqlProfileStore
from app.services.mercadopago.token_client import TokenExchangeClient, TokenResponse
from app.services.mercadopago.verifier_cache import VerifierCache, get_verifier_cache

__all__ = [
    "AuthorizationRequest",
    "AuthorizationRequestBuilder",
    "CompletionMessage",
    "MessageChannel",
    "OAuthCallbackHandler",
    "OAuthEnvironment",
    "PKCEPair",
    "PopupController",
    "SqlProfileStore",
    "TokenExchangeClient",
    "TokenResponse",
    "VerifierCache",
    "WindowGeometry",
    "compute_challenge",
    "generate_pkce",
    "generate_verifier",
    "get_oauth_environment",
    "get_verifier_cache",
    "render_success_page",
]
