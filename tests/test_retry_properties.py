"""Property-based tests for retry logic with exponential backoff."""

from unittest.mock import patch

import pytest
import structlog
from hypothesis import given, settings, strategies as st

from mtp_catalog.errors import InvalidArgument, StoreTransactionFailed
from mtp_catalog.models.config import SyncConfig
from mtp_catalog.utils.retry import backoff_delay, exponential_backoff_retry, retry_with_policy

log = structlog.stdlib.get_logger()


@given(
    st.integers(min_value=1, max_value=5),
    st.floats(min_value=0.01, max_value=1.0),
    st.floats(min_value=1.0, max_value=30.0),
)
@settings(max_examples=50, deadline=None)
def test_exponential_backoff_behavior(num_failures: int, base_delay: float, max_delay: float):
    """Each delay doubles the previous one until capped by max_delay."""
    log.info(
        "test_exponential_backoff_behavior",
        num_failures=num_failures,
        base_delay=base_delay,
    )
    call_count = 0

    @exponential_backoff_retry(
        max_retries=num_failures,
        base_delay=base_delay,
        max_delay=max_delay,
    )
    def failing_function():
        nonlocal call_count
        call_count += 1
        if call_count <= num_failures:
            raise StoreTransactionFailed(f"Simulated failure {call_count}")
        return "success"

    with patch("mtp_catalog.utils.retry.time.sleep") as sleep:
        assert failing_function() == "success"

    delays = [call.args[0] for call in sleep.call_args_list]
    assert call_count == num_failures + 1
    assert delays == [min(base_delay * 2**i, max_delay) for i in range(num_failures)]
    for previous, current in zip(delays, delays[1:]):
        assert current == max_delay or current == pytest.approx(previous * 2)


@given(st.integers(min_value=0, max_value=4))
@settings(max_examples=20, deadline=None)
def test_gives_up_after_max_retries(max_retries: int):
    calls = []

    @exponential_backoff_retry(max_retries=max_retries, base_delay=0.01)
    def always_failing():
        calls.append(1)
        raise StoreTransactionFailed("database is locked")

    with patch("mtp_catalog.utils.retry.time.sleep"):
        with pytest.raises(StoreTransactionFailed):
            always_failing()

    assert len(calls) == max_retries + 1


def test_other_errors_are_not_retried():
    calls = []

    @exponential_backoff_retry(max_retries=3, base_delay=0.01)
    def rejected():
        calls.append(1)
        raise InvalidArgument("wrong device")

    with patch("mtp_catalog.utils.retry.time.sleep") as sleep:
        with pytest.raises(InvalidArgument):
            rejected()

    assert len(calls) == 1
    sleep.assert_not_called()


@given(st.integers(min_value=0, max_value=10))
def test_backoff_delay_is_capped(attempt: int):
    assert backoff_delay(attempt, 0.5, 4.0) <= 4.0


def test_retry_with_policy_passes_arguments():
    attempts = []

    def reconcile(parent_id, entries, dry_run=False):
        attempts.append((parent_id, entries, dry_run))
        if len(attempts) == 1:
            raise StoreTransactionFailed("disk I/O error")
        return True

    policy = SyncConfig(max_retries=2, base_delay=0.0, max_delay=0.0)

    with patch("mtp_catalog.utils.retry.time.sleep"):
        assert retry_with_policy(policy, reconcile, 5, ["a"], dry_run=True) is True

    assert attempts == [(5, ["a"], True), (5, ["a"], True)]
