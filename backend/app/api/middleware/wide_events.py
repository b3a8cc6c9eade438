"""
Wide Events Middleware for FastAPI.

Implements the canonical log line pattern:
- Initializes a wide event at request start
- Handlers enrich it (``enrich_event``, ``add_user_to_wide_event``)
- Finalizes and emits it once the response is produced

The OAuth callback carries ``code`` and ``state`` in its query string. Only a
redacted form of the query ever reaches the event.
"""

from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import (
    emit_wide_event,
    enrich_event,
    finalize_request_event,
    init_request_event,
    redact_state,
)

# Query parameters that must never be logged in full
SENSITIVE_QUERY_PARAMS = {"code", "state"}


def redact_query_params(params: dict[str, str]) -> dict[str, str | None]:
    return {
        key: redact_state(value) if key in SENSITIVE_QUERY_PARAMS else value
        for key, value in params.items()
    }


class WideEventMiddleware(BaseHTTPMiddleware):
    """One comprehensive log entry per request."""

    # Paths to skip (health checks generate too much noise)
    SKIP_PATHS = {"/api/health", "/api/ready", "/favicon.ico"}

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        init_request_event(
            request_id=request.headers.get("x-request-id"),
            method=request.method,
            path=request.url.path,
            client_ip=self._get_client_ip(request),
            user_agent=request.headers.get("user-agent", ""),
        )

        if request.query_params:
            enrich_event(**{"http.query_params": redact_query_params(dict(request.query_params))})

        error: Exception | None = None
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response

        except Exception as e:
            error = e
            status_code = getattr(e, "status_code", 500)
            raise

        finally:
            event = finalize_request_event(status_code, error)
            emit_wide_event(event)

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP, respecting proxy headers."""
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"


def add_user_to_wide_event(user_id: str | None = None, email: str | None = None) -> None:
    """Add the marketplace user to the wide event."""
    enrich_event(user={"id": user_id, "email": email})
