from __future__ import annotations

from .constants import BACKOFF_FLOOR_MS, BACKOFF_MULTIPLIER, INITIAL_POLL_DELAY_MS, MAX_POLL_DELAY_MS


def exponential_backoff(current_delay_ms: float, max_delay_ms: float = MAX_POLL_DELAY_MS) -> float:
    """Return the delay to use after ``current_delay_ms``.

    Never shrinks and never exceeds ``max_delay_ms``.
    """
    return min(max_delay_ms, max(current_delay_ms, BACKOFF_FLOOR_MS) * BACKOFF_MULTIPLIER)


class Backoff:
    """Per-step polling delay."""

    def __init__(self, initial_delay_ms: float = INITIAL_POLL_DELAY_MS, max_delay_ms: float = MAX_POLL_DELAY_MS):
        self.initial_delay_ms = initial_delay_ms
        self.max_delay_ms = max_delay_ms
        self.delay_ms = initial_delay_ms

    def advance(self) -> float:
        """Return the current delay and move on to the next one."""
        current = self.delay_ms
        self.delay_ms = exponential_backoff(current, self.max_delay_ms)
        return current

    def reset(self) -> None:
        self.delay_ms = self.initial_delay_ms
