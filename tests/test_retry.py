"""
Tests for retry logic and HTTP status classification.
"""

import pytest
import requests

from jobindex.index.client import TRANSPORT_ERRORS
from jobindex.retry import (
    exponential_backoff,
    should_retry_http_status,
    RetryError,
)


class FlakyTransport:
    """Raises the queued errors in order, then answers with a status code."""

    def __init__(self, *errors, status=200):
        self.errors = list(errors)
        self.status = status
        self.calls = 0

    def send(self, method, path):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.status


def with_backoff(transport, **kwargs):
    delays = []
    kwargs.setdefault("base_delay", 0.01)
    send = exponential_backoff(
        exceptions=TRANSPORT_ERRORS,
        on_retry=lambda attempt, exc, delay: delays.append((attempt, type(exc), delay)),
        **kwargs
    )(transport.send)
    return send, delays


class TestTransportBackoff:
    """Test the decorator with the errors the index client retries."""

    def test_timeouts_then_success(self):
        transport = FlakyTransport(
            requests.exceptions.Timeout("read timed out"),
            requests.exceptions.ConnectionError("connection reset"),
        )
        send, delays = with_backoff(transport, max_retries=3)

        assert send("POST", "/_bulk") == 200
        assert transport.calls == 3
        assert delays == [
            (1, requests.exceptions.Timeout, 0.01),
            (2, requests.exceptions.ConnectionError, 0.02),
        ]

    def test_exhaustion_keeps_the_last_network_error(self):
        transport = FlakyTransport(*[requests.exceptions.ConnectTimeout("no route")] * 3)
        send, delays = with_backoff(transport, max_retries=2)

        with pytest.raises(RetryError, match="Failed after 3 attempts") as exc_info:
            send("HEAD", "/jobs")

        assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectTimeout)
        assert len(delays) == 2

    def test_request_errors_outside_the_tuple_are_not_retried(self):
        transport = FlakyTransport(requests.exceptions.InvalidURL("http://"))
        send, delays = with_backoff(transport, max_retries=3)

        with pytest.raises(requests.exceptions.InvalidURL):
            send("GET", "/")

        assert transport.calls == 1
        assert delays == []

    def test_zero_retries_means_one_attempt(self):
        transport = FlakyTransport(requests.exceptions.ConnectionError("refused"))
        send, _ = with_backoff(transport, max_retries=0)

        with pytest.raises(RetryError):
            send("GET", "/")

        assert transport.calls == 1

    def test_delay_is_capped(self):
        transport = FlakyTransport(*[requests.exceptions.Timeout("slow")] * 4, status=503)
        send, delays = with_backoff(transport, max_retries=4, base_delay=0.01, max_delay=0.02, exponential_base=3.0)

        assert send("POST", "/jobs/_search") == 503
        assert [delay for _, _, delay in delays] == [0.01, 0.02, 0.02, 0.02]


class TestHttpStatusClassification:
    """Test retryable status detection for index responses."""

    @pytest.mark.parametrize("status", [408, 429, 500, 502, 503, 504])
    def test_retryable(self, status):
        assert should_retry_http_status(status)

    @pytest.mark.parametrize("status", [200, 201, 400, 401, 403, 404, 409])
    def test_not_retryable(self, status):
        # 400 covers mapping rejections, 409 version conflicts.
        assert not should_retry_http_status(status)
