"""Tests for the shared backoff helper."""

from unittest.mock import Mock

import pytest

from listbridge.clients.retry import RetryableError, backoff_delay, with_backoff


def test_backoff_delay_grows_and_caps():
    assert 1.5 <= backoff_delay(1) <= 1.8
    assert 3.0 <= backoff_delay(2) <= 3.3
    assert 60.0 <= backoff_delay(10) <= 60.3


def test_returns_first_success():
    sleep = Mock()
    assert with_backoff(lambda: 42, "op", sleep=sleep) == 42
    sleep.assert_not_called()


def test_retries_transient_errors():
    operation = Mock(side_effect=[RetryableError("503"), ConnectionError("reset"), "ok"])
    sleep = Mock()

    assert with_backoff(operation, "op", sleep=sleep) == "ok"
    assert operation.call_count == 3
    assert sleep.call_count == 2


def test_honours_retry_after():
    operation = Mock(side_effect=[RetryableError("429", retry_after=7), "ok"])
    sleep = Mock()

    with_backoff(operation, "op", sleep=sleep)
    sleep.assert_called_once_with(7)


def test_gives_up_after_max_attempts():
    operation = Mock(side_effect=RetryableError("503"))
    sleep = Mock()

    with pytest.raises(RetryableError):
        with_backoff(operation, "op", max_attempts=3, sleep=sleep)
    assert operation.call_count == 3
    assert sleep.call_count == 2


def test_other_errors_are_not_retried():
    operation = Mock(side_effect=ValueError("bad"))
    with pytest.raises(ValueError):
        with_backoff(operation, "op", sleep=Mock())
    assert operation.call_count == 1
