"""
Mercado Pago OAuth callback.

Flow for one redirect:
1. Reject a redirect without ``code`` before doing anything else
2. Exchange the code at the token endpoint (redirect URI identical to the
   authorization request; ``code_verifier`` when the server holds it)
3. Read the current user's protected data, merge the token fields, write back
4. Render a page that posts the completion message to the opener and closes

Any failure raises; the success page is only rendered after step 3 returned.
The read-merge-write in step 3 is not transactional, last writer wins.
"""

import json

import structlog

from app.core.exceptions import MissingParameter, MPConnectException, ProfilePersistenceFailed
from app.core.logging import enrich_event, redact_state
from app.services.mercadopago.messages import CompletionMessage
from app.services.mercadopago.profile import (
    ProfileCollaborator,
    build_protected_fragment,
    merge_protected_data,
)
from app.services.mercadopago.token_client import TokenExchangeClient
from app.services.mercadopago.verifier_cache import VerifierCache

logger = structlog.get_logger()

MISSING_CODE = 'Missing "code" query parameter.'


class OAuthCallbackHandler:
    def __init__(
        self,
        token_client: TokenExchangeClient,
        profiles: ProfileCollaborator,
        verifier_cache: VerifierCache,
        redirect_uri: str,
    ):
        self.token_client = token_client
        self.profiles = profiles
        self.verifier_cache = verifier_cache
        self.redirect_uri = redirect_uri

    async def handle(self, code: str | None, state: str | None) -> CompletionMessage:
        if not code:
            raise MissingParameter(MISSING_CODE)

        enrich_event(**{"mp_oauth.state": redact_state(state)})

        code_verifier = self.verifier_cache.pop(state) if state else None
        if code_verifier is None:
            logger.warning(
                "mp_oauth_verifier_not_found",
                state=redact_state(state),
                msg="Exchanging without code_verifier",
            )

        token = await self.token_client.exchange(
            code,
            self.redirect_uri,
            code_verifier=code_verifier,
        )
        await self._persist(build_protected_fragment(token))

        enrich_event(
            **{
                "mp_oauth.outcome": "connected",
                "mp_oauth.mp_user_id": token.user_id,
                "mp_oauth.pkce": code_verifier is not None,
            }
        )
        logger.info("mp_oauth_connected", mp_user_id=token.user_id, state=redact_state(state))
        return CompletionMessage(state=state)

    async def _persist(self, fragment: dict) -> None:
        try:
            existing = await self.profiles.get_current_user_profile()
            await self.profiles.update_current_user_profile(
                merge_protected_data(existing, fragment)
            )
        except MPConnectException:
            raise
        except Exception as e:
            logger.error("mp_oauth_persist_failed", error=str(e))
            raise ProfilePersistenceFailed("Could not store the Mercado Pago credentials.") from e


def _script_json(value: object) -> str:
    """JSON that is safe to embed inside a <script> element."""
    return (
        json.dumps(value)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


def render_success_page(message: CompletionMessage, target_origin: str = "*") -> str:
    """Page that notifies the opener window and closes the popup."""
    js_message = _script_json(message.to_dict())
    js_origin = _script_json(target_origin)
    return f"""<!DOCTYPE html>
<html>
<head><title>Mercado Pago Connected</title></head>
<body>
<script>
  const message = {js_message};
  if (window.opener) {{
    window.opener.postMessage(message, {js_origin});
  }}
  window.close();
</script>
<p>Mercado Pago account connected. You can close this window.</p>
</body>
</html>
"""
