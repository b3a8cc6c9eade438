"""
Popup lifecycle for the connect flow.

The controller lives as long as the hosting page: ``mount`` registers its
message listener, ``unmount`` removes it. ``connect`` builds the authorization
request (storing the verifier first) and only then opens the popup.

There is no timeout. Closing the popup without finishing the flow leaves the
application untouched; the stale verifier expires in the cache.
"""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from app.core.logging import redact_state
from app.services.mercadopago.authorization import AuthorizationRequest, AuthorizationRequestBuilder
from app.services.mercadopago.messages import CompletionMessage, MessageChannel

logger = structlog.get_logger()

POPUP_NAME = "mpConnect"
POPUP_WIDTH = 600
POPUP_HEIGHT = 720


@dataclass(frozen=True)
class WindowGeometry:
    """Position and outer size of the opener window, in screen pixels."""

    screen_x: float
    screen_y: float
    outer_width: float
    outer_height: float


class OpenerWindow(Protocol):
    geometry: WindowGeometry

    def open(self, url: str, name: str, features: str) -> Any: ...


def popup_features(
    geometry: WindowGeometry,
    width: int = POPUP_WIDTH,
    height: int = POPUP_HEIGHT,
) -> str:
    """``window.open`` feature string for a popup centered on the opener."""
    left = geometry.screen_x + (geometry.outer_width - width) / 2
    top = geometry.screen_y + (geometry.outer_height - height) / 2
    return (
        f"width={width},height={height},left={left:g},top={top:g},"
        "menubar=no,toolbar=no,location=no,status=no"
    )


class PopupController:
    def __init__(
        self,
        builder: AuthorizationRequestBuilder,
        window: OpenerWindow,
        channel: MessageChannel,
        reload: Callable[[], Awaitable[None] | None],
    ):
        self.builder = builder
        self.window = window
        self.channel = channel
        self.reload = reload
        self.last_request: AuthorizationRequest | None = None
        self._mounted = False

    @property
    def mounted(self) -> bool:
        return self._mounted

    def mount(self) -> None:
        if not self._mounted:
            self.channel.add_listener(self._on_message)
            self._mounted = True

    def unmount(self) -> None:
        if self._mounted:
            self.channel.remove_listener(self._on_message)
            self._mounted = False

    def __enter__(self) -> "PopupController":
        self.mount()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unmount()

    def connect(self) -> AuthorizationRequest:
        """Open the authorization popup. Triggered by a user action."""
        request = self.builder.build()
        for diagnostic in request.diagnostics:
            logger.error("mp_connect_degraded", diagnostic=diagnostic)
        self.last_request = request
        self.window.open(request.url, POPUP_NAME, popup_features(self.window.geometry))
        logger.info("mp_connect_popup_opened", state=redact_state(request.state))
        return request

    async def _on_message(self, data: Any) -> None:
        message = CompletionMessage.parse(data)
        if message is None:
            return
        logger.info("mp_connect_completed", state=redact_state(message.state))
        result = self.reload()
        if inspect.isawaitable(result):
            await result
