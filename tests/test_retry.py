"""
Tests for exponential backoff retry.
"""

import pytest

from questsheet.core.retry import backoff_delays, retry_async
from questsheet.core.store import TransientStoreError


def _failing(times: int, result="ok"):
    calls = {"n": 0}

    async def op():
        calls["n"] += 1
        if calls["n"] <= times:
            raise TransientStoreError("append_rows", "Log!A:E", "HTTP 429")
        return result

    return op, calls


class TestBackoff:
    def test_delays_double(self):
        assert backoff_delays(5, 0.12) == pytest.approx([0.12, 0.24, 0.48, 0.96])

    def test_single_attempt_has_no_delay(self):
        assert backoff_delays(1, 0.12) == []


@pytest.mark.asyncio
async def test_succeeds_on_fifth_attempt(sleeper):
    """Four failures then success: backoff totals base * (1+2+4+8)."""
    op, calls = _failing(4)

    result = await retry_async(op, attempts=5, base_delay=0.12, sleep=sleeper)

    assert result == "ok"
    assert calls["n"] == 5
    assert sleeper.delays == pytest.approx([0.12, 0.24, 0.48, 0.96])
    assert sum(sleeper.delays) == pytest.approx(0.12 * 15)


@pytest.mark.asyncio
async def test_exhausted_retries_reraise_without_trailing_sleep(sleeper):
    op, calls = _failing(10)

    with pytest.raises(TransientStoreError):
        await retry_async(op, attempts=5, base_delay=0.1, sleep=sleeper)

    assert calls["n"] == 5
    assert len(sleeper.delays) == 4


@pytest.mark.asyncio
async def test_non_retryable_error_propagates_immediately(sleeper):
    calls = {"n": 0}

    async def op():
        calls["n"] += 1
        raise KeyError("bug")

    with pytest.raises(KeyError):
        await retry_async(op, attempts=5, base_delay=0.1, sleep=sleeper)

    assert calls["n"] == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_attempts_must_be_positive(sleeper):
    op, _ = _failing(0)
    with pytest.raises(ValueError):
        await retry_async(op, attempts=0, sleep=sleeper)
