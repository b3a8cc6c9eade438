"""
OAuth Routes for Mercado Pago account linking

- POST /start     build an authorization URL (server-held verifier)
- GET  /callback  provider redirect target; exchanges the code and closes the popup
- GET  /status    whether the current user has a linked account
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse

from app.api.middleware import add_user_to_wide_event
from app.core.auth import User, decode_session_token, get_current_user, session_token_from_request
from app.core.config import settings
from app.core.logging import enrich_event
from app.core.models import APIResponse, ConnectionStatus, OAuthStartData
from app.db.database import async_session_maker
from app.services.mercadopago.authorization import AuthorizationRequestBuilder
from app.services.mercadopago.callback import OAuthCallbackHandler, render_success_page
from app.services.mercadopago.environment import get_oauth_environment
from app.services.mercadopago.profile import PROTECTED_KEYS, SqlProfileStore, is_connected
from app.services.mercadopago.token_client import TokenExchangeClient
from app.services.mercadopago.verifier_cache import get_verifier_cache

router = APIRouter(prefix="/mp/oauth", tags=["oauth"])


# ==============================================================================
# Dependencies
# ==============================================================================


def get_token_client() -> TokenExchangeClient:
    return TokenExchangeClient(settings)


def get_profile_store(request: Request) -> SqlProfileStore:
    """Profile store bound to the session of this request.

    The session is only decoded when the profile is first touched.
    """
    return SqlProfileStore(
        async_session_maker,
        lambda: decode_session_token(session_token_from_request(request)),
    )


def get_authorization_builder() -> AuthorizationRequestBuilder:
    return AuthorizationRequestBuilder(settings, get_oauth_environment(), get_verifier_cache())


def get_callback_handler(
    token_client: Annotated[TokenExchangeClient, Depends(get_token_client)],
    profiles: Annotated[SqlProfileStore, Depends(get_profile_store)],
) -> OAuthCallbackHandler:
    return OAuthCallbackHandler(
        token_client=token_client,
        profiles=profiles,
        verifier_cache=get_verifier_cache(),
        redirect_uri=get_oauth_environment().redirect_uri,
    )


# ==============================================================================
# Endpoints
# ==============================================================================


@router.post("/start")
async def start_mp_oauth(
    user: Annotated[User, Depends(get_current_user)],
    builder: Annotated[AuthorizationRequestBuilder, Depends(get_authorization_builder)],
) -> APIResponse:
    """Start the Mercado Pago OAuth flow.

    Returns the authorization URL the front end opens in a popup. The PKCE
    verifier stays on the server, keyed by the returned state, and is sent
    with the code exchange when the provider redirects back.
    """
    auth_request = builder.build()
    add_user_to_wide_event(user_id=user.id, email=user.email)
    enrich_event(**{"mp_oauth.degraded": bool(auth_request.diagnostics)})

    return APIResponse(
        success=not auth_request.diagnostics,
        message=auth_request.diagnostics[0] if auth_request.diagnostics else (
            "Open the authorization URL to connect your Mercado Pago account"
        ),
        data=OAuthStartData(
            auth_url=auth_request.url,
            state=auth_request.state,
            diagnostics=list(auth_request.diagnostics),
        ),
    )


@router.get("/callback", response_class=HTMLResponse)
async def mp_oauth_callback(
    handler: Annotated[OAuthCallbackHandler, Depends(get_callback_handler)],
    code: Annotated[str | None, Query(description="Authorization code from Mercado Pago")] = None,
    state: Annotated[str | None, Query(description="State sent with the authorization request")] = None,
) -> HTMLResponse:
    """Handle the Mercado Pago redirect (GET - browser navigation in the popup).

    Errors propagate to the application exception handlers, so the popup stays
    open on the error body and the opener is never notified.
    """
    message = await handler.handle(code, state)
    html = render_success_page(message, target_origin=get_oauth_environment().opener_origin)
    return HTMLResponse(content=html)


@router.get("/status")
async def mp_oauth_status(
    profiles: Annotated[SqlProfileStore, Depends(get_profile_store)],
) -> ConnectionStatus:
    """Connection status of the current user. Tokens are never returned."""
    protected_data = await profiles.get_current_user_profile()
    add_user_to_wide_event(user_id=profiles.current_user.id, email=profiles.current_user.email)
    return ConnectionStatus(
        connected=is_connected(protected_data),
        mp_user_id=protected_data.get(PROTECTED_KEYS["user_id"]),
        scope=protected_data.get(PROTECTED_KEYS["scope"]),
        expires_in=protected_data.get(PROTECTED_KEYS["expires_in"]),
    )
