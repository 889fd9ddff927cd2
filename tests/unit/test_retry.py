"""Tests for bounded retry with backoff."""

from unittest.mock import AsyncMock

import pytest

from orderflow.core.exceptions import InvalidArgumentError, UnavailableError
from orderflow.core.retry import MAX_BACKOFF_SECONDS, get_retry_delay, with_retries


class TestGetRetryDelay:
    """Tests for delay strategies."""

    def test_exponential(self):
        assert [get_retry_delay("exponential", a) for a in range(4)] == [1, 2, 4, 8]

    def test_exponential_is_capped(self):
        assert get_retry_delay("exponential", 20) == MAX_BACKOFF_SECONDS

    def test_fixed(self):
        assert get_retry_delay(5, 0) == 5
        assert get_retry_delay(0.5, 3) == 0.5

    def test_list_repeats_last_value(self):
        delays = [1, 5, 30]
        assert [get_retry_delay(delays, a) for a in range(5)] == [1, 5, 30, 30, 30]

    def test_empty_list_defaults_to_one(self):
        assert get_retry_delay([], 0) == 1


class TestWithRetries:
    """Tests for with_retries."""

    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        sleep = AsyncMock()
        operation = AsyncMock(return_value="ok")

        assert await with_retries(operation, "op", sleep=sleep) == "ok"
        operation.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_unavailable_then_succeeds(self):
        """Test transient failures are retried with backoff."""
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=[UnavailableError("down"), UnavailableError("down"), 42])

        result = await with_retries(operation, "op", max_retries=3, sleep=sleep)

        assert result == 42
        assert operation.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_exhaustion_reraises_unavailable(self):
        """Test the last UnavailableError surfaces after max_retries."""
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=UnavailableError("still down"))

        with pytest.raises(UnavailableError, match="still down"):
            await with_retries(operation, "op", max_retries=2, retry_delay=0, sleep=sleep)

        assert operation.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_non_transient_errors_not_retried(self):
        """Test classified non-transient errors propagate immediately."""
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=InvalidArgumentError("bad"))

        with pytest.raises(InvalidArgumentError):
            await with_retries(operation, "op", max_retries=5, sleep=sleep)

        operation.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retry_after_hint_overrides_strategy(self):
        """Test a backend's retry_after hint is used as the delay."""
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=[UnavailableError("busy", retry_after=0.25), "ok"])

        await with_retries(operation, "op", retry_delay="exponential", sleep=sleep)

        sleep.assert_awaited_once_with(0.25)
