"""
Bounded, time-expiring map of OAuth state -> PKCE verifier.

An entry lives for one authorization attempt. Abandoned attempts (the user
closed the popup) are never cleaned up explicitly; they expire after ``ttl``
seconds or get evicted oldest-first once ``max_entries`` is reached.
"""

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache

import structlog

from app.core.config import settings
from app.core.logging import redact_state

logger = structlog.get_logger()


@dataclass
class PendingVerifier:
    verifier: str
    created_at: float


class VerifierCache:
    def __init__(
        self,
        ttl: float = 600,
        max_entries: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, PendingVerifier] = OrderedDict()

    def __len__(self) -> int:
        self._evict_expired()
        return len(self._entries)

    def __contains__(self, state: str) -> bool:
        return self.get(state) is not None

    def put(self, state: str, verifier: str) -> None:
        """Store the verifier for ``state``.

        A state maps to exactly one verifier; reusing a live state is a bug in
        the caller.
        """
        self._evict_expired()
        existing = self._entries.get(state)
        if existing is not None and existing.verifier != verifier:
            raise ValueError("State is already bound to a different verifier")
        self._entries[state] = PendingVerifier(verifier=verifier, created_at=self._clock())
        self._entries.move_to_end(state)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.info("mp_verifier_evicted", state=redact_state(evicted))

    def get(self, state: str) -> str | None:
        entry = self._entries.get(state)
        if entry is None:
            return None
        if self._is_expired(entry):
            del self._entries[state]
            return None
        return entry.verifier

    def pop(self, state: str) -> str | None:
        """Read and remove; a verifier is used for one exchange only."""
        entry = self._entries.pop(state, None)
        if entry is None or self._is_expired(entry):
            return None
        return entry.verifier

    def clear(self) -> None:
        self._entries.clear()

    def _is_expired(self, entry: PendingVerifier) -> bool:
        return self._clock() - entry.created_at > self.ttl

    def _evict_expired(self) -> None:
        expired = [state for state, entry in self._entries.items() if self._is_expired(entry)]
        for state in expired:
            del self._entries[state]


@lru_cache(maxsize=1)
def get_verifier_cache() -> VerifierCache:
    """Process-wide cache shared by the start and callback endpoints."""
    return VerifierCache(
        ttl=settings.mp_verifier_ttl_seconds,
        max_entries=settings.mp_verifier_max_entries,
    )
