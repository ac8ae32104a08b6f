"""Tests for retryable error classification and retry logic."""

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from podhub.core.logging_schema import ErrorClass
from podhub.core.retryable import (
    classify_error,
    is_httpx_retryable,
    is_retryable,
    with_retry,
)


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://rest.runpod.io/v1/pods")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"status {status}", request=request, response=response)


class TestHttpxRetryable:
    """Tests for httpx error classification."""

    def test_connect_error_is_retryable(self) -> None:
        """ConnectError should be retryable."""
        exc = httpx.ConnectError("connection failed")
        assert is_httpx_retryable(exc) is True
        assert is_retryable(exc) is True

    def test_read_timeout_is_retryable(self) -> None:
        exc = httpx.ReadTimeout("read timeout")
        assert is_httpx_retryable(exc) is True

    def test_remote_protocol_error_is_retryable(self) -> None:
        """Dropped connection mid-response should be retryable."""
        exc = httpx.RemoteProtocolError("peer closed connection")
        assert is_httpx_retryable(exc) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 409])
    def test_4xx_not_retryable(self, status: int) -> None:
        """4xx client errors should not be retryable."""
        assert is_httpx_retryable(_status_error(status)) is False

    def test_429_is_retryable(self) -> None:
        """429 rate limit should be retryable."""
        assert is_httpx_retryable(_status_error(429)) is True

    @pytest.mark.parametrize("status", [500, 502, 503])
    def test_5xx_is_retryable(self, status: int) -> None:
        """5xx server errors should be retryable."""
        assert is_httpx_retryable(_status_error(status)) is True

    def test_invalid_url_not_retryable(self) -> None:
        exc = httpx.InvalidURL("bad url")
        assert is_httpx_retryable(exc) is False


class TestClassifyError:
    """Tests for classify_error function."""

    def test_asyncio_timeout_is_transient(self) -> None:
        assert classify_error(asyncio.TimeoutError()) == ErrorClass.TRANSIENT

    def test_connect_error_is_transient(self) -> None:
        assert classify_error(httpx.ConnectError("x")) == ErrorClass.TRANSIENT

    def test_4xx_is_permanent(self) -> None:
        assert classify_error(_status_error(404)) == ErrorClass.PERMANENT

    def test_unsupported_protocol_is_permanent(self) -> None:
        assert classify_error(httpx.UnsupportedProtocol("ftp")) == ErrorClass.PERMANENT

    def test_unknown_error_is_unknown(self) -> None:
        """Unrecognized errors are UNKNOWN and not retried."""
        exc = ValueError("something odd")
        assert classify_error(exc) == ErrorClass.UNKNOWN
        assert is_retryable(exc) is False


class TestWithRetry:
    """Tests for with_retry function."""

    async def test_success_on_first_attempt(self) -> None:
        """Should return result on first successful attempt."""
        call_count = 0

        async def success_func() -> str:
            nonlocal call_count
            call_count += 1
            return "success"

        result = await with_retry(success_func, max_retries=3)
        assert result == "success"
        assert call_count == 1

    async def test_retry_on_retryable_error(self) -> None:
        """Should retry on retryable errors."""
        call_count = 0

        async def failing_then_success() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise httpx.ConnectError("connection failed")
            return "success"

        result = await with_retry(
            failing_then_success,
            max_retries=3,
            base_delay=0.01,  # Fast for testing
        )
        assert result == "success"
        assert call_count == 3

    async def test_no_retry_on_permanent_error(self) -> None:
        """Should not retry on permanent errors."""
        call_count = 0

        async def permanent_error() -> str:
            nonlocal call_count
            call_count += 1
            raise _status_error(404)

        with pytest.raises(httpx.HTTPStatusError):
            await with_retry(permanent_error, max_retries=3)

        assert call_count == 1  # No retry

    async def test_max_retries_exceeded(self) -> None:
        """Should raise after max retries exceeded."""
        call_count = 0

        async def always_fail() -> str:
            nonlocal call_count
            call_count += 1
            raise httpx.ConnectError("connection failed")

        with pytest.raises(httpx.ConnectError):
            await with_retry(always_fail, max_retries=2, base_delay=0.01)

        assert call_count == 3  # Initial + 2 retries

    async def test_zero_retries_is_single_attempt(self) -> None:
        """max_retries=0 keeps single-shot behavior for transient errors."""
        call_count = 0

        async def always_fail() -> str:
            nonlocal call_count
            call_count += 1
            raise _status_error(503)

        with pytest.raises(httpx.HTTPStatusError):
            await with_retry(always_fail, max_retries=0)

        assert call_count == 1

    async def test_exponential_backoff_with_cap(self) -> None:
        """Delay doubles per attempt, capped at max_delay, jittered 50%~150%."""

        async def always_fail() -> str:
            raise httpx.ConnectError("connection failed")

        sleep = AsyncMock()
        with (
            patch("podhub.core.retryable.asyncio.sleep", sleep),
            patch("podhub.core.retryable.random.random", return_value=0.5),
        ):
            with pytest.raises(httpx.ConnectError):
                await with_retry(always_fail, max_retries=4, base_delay=1.0, max_delay=5.0)

        delays = [call.args[0] for call in sleep.await_args_list]
        assert delays == [1.0, 2.0, 4.0, 5.0]
