"""Tests for RetryingInvoker: backoff, retry-after and exhaustion."""

import asyncio
import random
from datetime import datetime, timezone

import pytest

from api_client import HttpResponse
from api_retry import RetryingInvoker, TransportError, parse_retry_after
from errors import NetworkError


class ScriptedTransport:
    """Returns (or raises) the scripted outcomes in order, repeating the last."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self, request):
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def _invoker(transport, sleep, **kwargs):
    kwargs.setdefault("max_retries", 3)
    kwargs.setdefault("base_delay", 1.0)
    kwargs.setdefault("max_delay", 10.0)
    kwargs.setdefault("max_jitter", 0.0)
    return RetryingInvoker(transport, sleep=sleep, **kwargs)


def test_success_first_try():
    transport = ScriptedTransport([HttpResponse(200, body=b"{}")])
    sleep = SleepRecorder()
    response = asyncio.run(_invoker(transport, sleep).call({}))
    assert response.status_code == 200
    assert transport.calls == 1
    assert sleep.delays == []


def test_non_retryable_status_returned_immediately():
    transport = ScriptedTransport([HttpResponse(400, body=b"bad")])
    sleep = SleepRecorder()
    response = asyncio.run(_invoker(transport, sleep).call({}))
    assert response.status_code == 400
    assert transport.calls == 1


def test_rate_limit_then_success_uses_backoff():
    transport = ScriptedTransport([HttpResponse(429), HttpResponse(529), HttpResponse(200)])
    sleep = SleepRecorder()
    response = asyncio.run(_invoker(transport, sleep).call({}))
    assert response.ok
    assert sleep.delays == [1.0, 2.0]


def test_backoff_is_capped():
    invoker = _invoker(ScriptedTransport([HttpResponse(200)]), SleepRecorder(), max_delay=5.0)
    assert [invoker.backoff_delay(a) for a in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_retry_after_seconds_replaces_backoff():
    transport = ScriptedTransport([HttpResponse(429, headers={"Retry-After": "7"}), HttpResponse(200)])
    sleep = SleepRecorder()
    asyncio.run(_invoker(transport, sleep).call({}))
    assert sleep.delays == [7.0]


def test_exhausted_status_is_returned():
    transport = ScriptedTransport([HttpResponse(429)])
    sleep = SleepRecorder()
    response = asyncio.run(_invoker(transport, sleep).call({}))
    assert response.status_code == 429
    assert transport.calls == 4
    assert len(sleep.delays) == 3


def test_transport_errors_become_network_error():
    transport = ScriptedTransport([TransportError("connection reset")])
    sleep = SleepRecorder()
    with pytest.raises(NetworkError) as exc:
        asyncio.run(_invoker(transport, sleep, max_retries=2).call({}))
    assert exc.value.attempts == 3
    assert "connection reset" in str(exc.value)
    assert sleep.delays == [1.0, 2.0]


def test_transport_error_then_success():
    transport = ScriptedTransport([TransportError("timeout"), HttpResponse(200)])
    response = asyncio.run(_invoker(transport, SleepRecorder()).call({}))
    assert response.ok


def test_jitter_is_bounded():
    transport = ScriptedTransport([HttpResponse(429), HttpResponse(200)])
    sleep = SleepRecorder()
    invoker = _invoker(transport, sleep, max_jitter=0.5, rng=random.Random(7))
    asyncio.run(invoker.call({}))
    assert 1.0 <= sleep.delays[0] < 1.5


def test_parse_retry_after_forms():
    now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    assert parse_retry_after("3") == 3.0
    assert parse_retry_after("Mon, 01 Jan 2024 12:00:05 GMT", now=now) == 5.0
    assert parse_retry_after("Mon, 01 Jan 2024 11:00:00 GMT", now=now) == 0.0
    assert parse_retry_after("soon") is None
    assert parse_retry_after(None) is None
