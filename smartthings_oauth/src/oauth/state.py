"""Single-use CSRF state values for in-flight authorization attempts."""

import secrets
import threading
import time
from typing import Callable, Dict, Optional

from smartthings_oauth.src.logger import log
from smartthings_oauth.src.oauth.errors import RandomSourceError

# 32 random bytes, well above the 128 bits needed to make collisions negligible
STATE_NUM_BYTES = 32


class StateRegistry:
    """Issues and validates single-use OAuth ``state`` values.

    Every state is removed on its first validation attempt, whether it
    matched or not, so a leaked or replayed callback URL can never pass twice.

    Thread-safe: issuance and the check-and-delete of validation each run in
    one critical section, so concurrent callbacks racing on the same state
    cannot both succeed.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty registry.

        Args:
            ttl_seconds: Lifetime of a pending state; ``None`` or 0 keeps
                states until they are consumed
            clock: Monotonic time source, replaceable in tests
        """
        self._lock = threading.Lock()
        self._pending: Dict[str, float] = {}
        self._ttl = ttl_seconds or None
        self._clock = clock

    def issue(self) -> str:
        """Generate, record and return a new state value.

        Returns:
            URL-safe random state string

        Raises:
            RandomSourceError: If the system random source fails
        """
        try:
            state = secrets.token_urlsafe(STATE_NUM_BYTES)
        except (OSError, NotImplementedError) as e:
            log.error("Failed to generate OAuth state: %s", e)
            raise RandomSourceError("Failed to generate state") from e

        with self._lock:
            self._purge_expired_unsafe()
            self._pending[state] = self._clock()
        return state

    def validate_and_consume(self, state: Optional[str]) -> bool:
        """Check a state returned by the authorization server and remove it.

        Args:
            state: The ``state`` query parameter of the callback

        Returns:
            True only for a pending, unexpired state seen for the first time
        """
        if not state:
            return False

        with self._lock:
            issued_at = self._pending.pop(state, None)

        if issued_at is None:
            log.warning("Rejected unknown or already used OAuth state")
            return False
        if self._is_expired(issued_at):
            log.warning("Rejected expired OAuth state")
            return False
        return True

    def purge_expired(self) -> int:
        """Remove abandoned states whose lifetime has passed.

        Returns:
            Number of states removed
        """
        with self._lock:
            return self._purge_expired_unsafe()

    def pending_count(self) -> int:
        """Get number of states awaiting a callback."""
        with self._lock:
            return len(self._pending)

    def _is_expired(self, issued_at: float) -> bool:
        return self._ttl is not None and self._clock() - issued_at > self._ttl

    def _purge_expired_unsafe(self) -> int:
        """Remove expired states without acquiring lock (caller must hold self._lock)."""
        if self._ttl is None:
            return 0
        expired = [s for s, issued_at in self._pending.items() if self._is_expired(issued_at)]
        for state in expired:
            del self._pending[state]
        if expired:
            log.info("Cleaned up %d expired OAuth states", len(expired))
        return len(expired)
