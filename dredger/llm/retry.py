"""Retry policy and per-chunk retry state machine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from ..errors import ConfigError, InferenceError


class RetryState(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    RETRY_SCHEDULED = "retry_scheduled"
    PERMANENTLY_FAILED = "permanently_failed"
    CANCELLED = "cancelled"


_TRANSITIONS: Dict[RetryState, FrozenSet[RetryState]] = {
    RetryState.PENDING: frozenset({RetryState.IN_FLIGHT, RetryState.CANCELLED}),
    RetryState.IN_FLIGHT: frozenset(
        {RetryState.SUCCEEDED, RetryState.RETRY_SCHEDULED, RetryState.PERMANENTLY_FAILED}
    ),
    RetryState.RETRY_SCHEDULED: frozenset({RetryState.IN_FLIGHT, RetryState.CANCELLED}),
    RetryState.SUCCEEDED: frozenset(),
    RetryState.PERMANENTLY_FAILED: frozenset(),
    RetryState.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for transient inference errors."""

    max_retries: int = 3
    base_delay: float = 0.5
    factor: float = 2.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise ConfigError(f"max_retries must be a non-negative integer, got {self.max_retries!r}")
        if self.base_delay < 0 or self.max_delay < 0 or self.factor < 1:
            raise ConfigError("Backoff delays must be non-negative and the factor at least 1")

    def delay_for(self, retry_number: int) -> float:
        """Delay before the given retry (0-based)."""
        return min(self.base_delay * (self.factor**retry_number), self.max_delay)

    def should_retry(self, error: InferenceError, retries_so_far: int) -> bool:
        return error.transient and retries_so_far < self.max_retries


class RetryTracker:
    """Explicit state for one chunk's attempts."""

    def __init__(self, policy: RetryPolicy) -> None:
        self.policy = policy
        self.state = RetryState.PENDING
        self.retries = 0
        self.last_error: Optional[InferenceError] = None

    @property
    def done(self) -> bool:
        return not _TRANSITIONS[self.state]

    def start_attempt(self) -> None:
        if self.state is RetryState.RETRY_SCHEDULED:
            self.retries += 1
        self._move(RetryState.IN_FLIGHT)

    def succeed(self) -> None:
        self._move(RetryState.SUCCEEDED)

    def fail(self, error: InferenceError) -> Optional[float]:
        """Record a failed attempt; return the backoff delay when a retry is scheduled."""
        self.last_error = error
        if self.policy.should_retry(error, self.retries):
            self._move(RetryState.RETRY_SCHEDULED)
            return self.policy.delay_for(self.retries)
        self._move(RetryState.PERMANENTLY_FAILED)
        return None

    def cancel(self) -> None:
        self._move(RetryState.CANCELLED)

    def _move(self, target: RetryState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal retry transition {self.state.value} -> {target.value}")
        self.state = target


__all__ = ["RetryPolicy", "RetryState", "RetryTracker"]
