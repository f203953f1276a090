"""Per-provider rate-limit and backoff bookkeeping.

One registry instance lives for the process lifetime and is injected into
the embedding service. Nothing here is persisted; a restart resets every
counter.
"""

import threading
import time
from collections.abc import Callable
from enum import Enum

from forum_vectors.embeddings.models import ProviderState, ProviderStatus
from forum_vectors.logging_config import get_logger

logger = get_logger(__name__)


class AttemptOutcome(str, Enum):
    """Outcome of a single provider attempt."""

    SUCCESS = "success"
    FAILURE = "failure"
    RATE_LIMITED = "rate_limited"


class ProviderStateRegistry:
    """Owns the rate-limit window and backoff timer of every provider.

    All reads and writes of provider state go through the registry lock. The
    critical sections never await, so the registry is safe to share between
    coroutines and threads alike.
    """

    def __init__(
        self,
        requests_per_window: int = 60,
        window_seconds: float = 60.0,
        backoff_base_seconds: float = 1.0,
        backoff_max_seconds: float = 300.0,
        failure_threshold: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the registry.

        Args:
            requests_per_window: Requests allowed per provider per window.
            window_seconds: Length of the fixed rate-limit window.
            backoff_base_seconds: First backoff delay.
            backoff_max_seconds: Backoff delay cap.
            failure_threshold: Consecutive failures that open a backoff.
            clock: Monotonic time source (injectable for tests).
        """
        self._requests_per_window = requests_per_window
        self._window_seconds = window_seconds
        self._backoff_base = backoff_base_seconds
        self._backoff_max = backoff_max_seconds
        self._failure_threshold = max(1, failure_threshold)
        self._clock = clock
        self._states: dict[str, ProviderState] = {}
        self._lock = threading.Lock()

    def _state(self, name: str, now: float) -> ProviderState:
        state = self._states.get(name)
        if state is None:
            state = ProviderState(window_start=now)
            self._states[name] = state
        elif now - state.window_start >= self._window_seconds:
            state.window_start = now
            state.requests_in_window = 0
        return state

    def _backoff_delay(self, exponent: int) -> float:
        return min(self._backoff_base * (2 ** max(0, exponent)), self._backoff_max)

    def try_acquire(self, name: str) -> bool:
        """Reserve one request slot for a provider.

        Returns:
            False when the provider is backed off or its window is full.
        """
        with self._lock:
            now = self._clock()
            state = self._state(name, now)
            if now < state.backoff_until:
                return False
            if state.requests_in_window >= self._requests_per_window:
                return False
            state.requests_in_window += 1
            return True

    def record(
        self,
        name: str,
        outcome: AttemptOutcome,
        retry_after: float | None = None,
    ) -> None:
        """Apply the outcome of an attempt to the provider state.

        Args:
            name: Provider name.
            outcome: What happened.
            retry_after: Server-provided delay for rate-limit responses.
        """
        with self._lock:
            now = self._clock()
            state = self._state(name, now)

            if outcome is AttemptOutcome.SUCCESS:
                state.consecutive_failures = 0
                state.backoff_until = 0.0
                return

            state.consecutive_failures += 1

            if outcome is AttemptOutcome.RATE_LIMITED:
                delay = retry_after or self._backoff_delay(state.consecutive_failures - 1)
                state.backoff_until = now + min(delay, self._backoff_max)
            elif state.consecutive_failures >= self._failure_threshold:
                delay = self._backoff_delay(
                    state.consecutive_failures - self._failure_threshold
                )
                state.backoff_until = now + delay
            else:
                return

            failures = state.consecutive_failures
            backoff = state.backoff_until - now

        logger.warning(
            f"Embedding provider {name} backed off for {backoff:.1f}s",
            extra={
                "provider": name,
                "outcome": outcome.value,
                "consecutive_failures": failures,
            },
        )

    def status(self, name: str) -> ProviderStatus:
        """Current status of one provider."""
        with self._lock:
            now = self._clock()
            state = self._state(name, now)
            backoff_in = max(0.0, state.backoff_until - now)
            reset_in = max(0.0, state.window_start + self._window_seconds - now)
            return ProviderStatus(
                name=name,
                available=(
                    backoff_in == 0.0
                    and state.requests_in_window < self._requests_per_window
                ),
                requests_in_window=state.requests_in_window,
                request_limit=self._requests_per_window,
                reset_in=reset_in,
                backoff_in=backoff_in,
                consecutive_failures=state.consecutive_failures,
            )

    def reset(self, name: str | None = None) -> None:
        """Forget the state of one provider, or of all of them."""
        with self._lock:
            if name is None:
                self._states.clear()
            else:
                self._states.pop(name, None)
