"""Tests for the retry policy and state machine."""

from __future__ import annotations

import pytest

from dredger.errors import ConfigError, EndpointRejected, MalformedResponse, Timeout
from dredger.llm.retry import RetryPolicy, RetryState, RetryTracker


def test_delays_grow_exponentially_up_to_the_cap() -> None:
    policy = RetryPolicy(max_retries=5, base_delay=1.0, factor=2.0, max_delay=5.0)

    assert [policy.delay_for(n) for n in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_transient_errors_retry_until_the_limit() -> None:
    tracker = RetryTracker(RetryPolicy(max_retries=2, base_delay=0.0))

    tracker.start_attempt()
    assert tracker.fail(Timeout("slow")) == 0.0
    assert tracker.state is RetryState.RETRY_SCHEDULED
    tracker.start_attempt()
    assert tracker.fail(Timeout("slow")) is not None
    tracker.start_attempt()
    assert tracker.fail(Timeout("slow")) is None

    assert tracker.state is RetryState.PERMANENTLY_FAILED
    assert tracker.retries == 2
    assert tracker.done


@pytest.mark.parametrize("error", [MalformedResponse("bad"), EndpointRejected("400")])
def test_permanent_errors_are_not_retried(error) -> None:  # type: ignore[no-untyped-def]
    tracker = RetryTracker(RetryPolicy())

    tracker.start_attempt()

    assert tracker.fail(error) is None
    assert tracker.retries == 0
    assert tracker.last_error is error


def test_success_is_terminal() -> None:
    tracker = RetryTracker(RetryPolicy())
    tracker.start_attempt()
    tracker.succeed()

    assert tracker.state is RetryState.SUCCEEDED
    with pytest.raises(RuntimeError):
        tracker.start_attempt()


def test_cancel_from_pending_and_scheduled() -> None:
    pending = RetryTracker(RetryPolicy())
    pending.cancel()
    assert pending.state is RetryState.CANCELLED

    scheduled = RetryTracker(RetryPolicy())
    scheduled.start_attempt()
    scheduled.fail(Timeout("slow"))
    scheduled.cancel()
    assert scheduled.state is RetryState.CANCELLED


def test_cannot_cancel_in_flight_attempt() -> None:
    tracker = RetryTracker(RetryPolicy())
    tracker.start_attempt()

    with pytest.raises(RuntimeError):
        tracker.cancel()


def test_invalid_policy_is_a_config_error() -> None:
    with pytest.raises(ConfigError):
        RetryPolicy(max_retries=-1)
    with pytest.raises(ConfigError):
        RetryPolicy(factor=0.5)
