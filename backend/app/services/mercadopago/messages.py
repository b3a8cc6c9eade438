"""
Cross-window completion signaling.

The opener page and the popup are independent actors. The only thing they
share is a message channel carrying one message shape:

    {"type": "connect-success", "state": <state or null>}

Anything else on the channel is ignored.
"""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

logger = structlog.get_logger()

CONNECT_SUCCESS = "connect-success"

Listener = Callable[[Any], Awaitable[None] | None]


@dataclass(frozen=True)
class CompletionMessage:
    state: str | None
    type: str = CONNECT_SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "state": self.state}

    @classmethod
    def parse(cls, data: Any) -> "CompletionMessage | None":
        """Return a message for the expected shape, None for anything else."""
        if not isinstance(data, dict) or data.get("type") != CONNECT_SUCCESS:
            return None
        state = data.get("state")
        if state is not None and not isinstance(state, str):
            return None
        return cls(state=state)


class MessageChannel:
    """In-process stand-in for ``window.postMessage`` / ``message`` events."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def post(self, data: Any) -> None:
        """Deliver ``data`` to every listener registered at call time."""
        for listener in list(self._listeners):
            result = listener(data)
            if inspect.isawaitable(result):
                await result
