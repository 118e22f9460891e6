"""
Tests for the bounded retry helper.
"""

import pytest

from qred.core.exceptions import ConflictError, TransientError, ValidationError
from qred.core.retry import retry_async


class Flaky:
    """Fails with ``error`` for the first ``failures`` calls."""

    def __init__(self, failures: int, error: Exception):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self, value, suffix=""):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return f"{value}{suffix}"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_succeeds_after_retryable_failures():
    operation = Flaky(2, ConflictError())

    result = await retry_async(
        operation, "ok", suffix="!", retry_on=(ConflictError,), attempts=3
    )

    assert result == "ok!"
    assert operation.calls == 3


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reraises_when_attempts_exhausted():
    operation = Flaky(5, TransientError())

    with pytest.raises(TransientError):
        await retry_async(operation, "x", retry_on=(TransientError,), attempts=3)

    assert operation.calls == 3


@pytest.mark.unit
@pytest.mark.asyncio
async def test_other_errors_are_not_retried():
    operation = Flaky(1, ValidationError("bad", field="amount"))

    with pytest.raises(ValidationError):
        await retry_async(operation, "x", retry_on=(ConflictError,), attempts=3)

    assert operation.calls == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_backoff_doubles(monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr("qred.core.retry.asyncio.sleep", fake_sleep)
    operation = Flaky(3, TransientError())

    await retry_async(
        operation, "x", retry_on=(TransientError,), attempts=4, base_delay=0.5
    )

    assert delays == [0.5, 1.0, 2.0]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_attempts_must_be_positive():
    with pytest.raises(ValueError):
        await retry_async(Flaky(0, ConflictError()), "x", retry_on=(ConflictError,), attempts=0)
