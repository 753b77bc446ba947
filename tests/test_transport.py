"""
Tests for the HTTP transport and the retry policy.

Uses respx to mock httpx; the retry sleeper only records delays.
"""

from __future__ import annotations

import random

import httpx
import pytest
import respx

from layer_airdrop.client import platform_headers
from layer_airdrop.context import RunContext
from layer_airdrop.errors import (
    MalformedResponseError,
    PermanentRequestError,
    TransientNetworkError,
)
from layer_airdrop.transport import RetryPolicy, Transport

from conftest import PLATFORM_URL, SleepRecorder


def _policy(sleeper: SleepRecorder, max_retries: int = 3, base: float = 5.0, cap: float = 60.0) -> RetryPolicy:
    return RetryPolicy(max_retries=max_retries, base_delay=base, max_delay=cap, rng=random.Random(7), sleep=sleeper)


# ============================================================
#  RetryPolicy
# ============================================================


def test_delay_is_bounded_by_jitter_and_cap() -> None:
    policy = RetryPolicy(max_retries=10, base_delay=5.0, max_delay=60.0, rng=random.Random(3))
    for attempt in range(10):
        delay = policy.delay_for(attempt)
        expected = 5.0 * 2 ** attempt
        assert delay <= 60.0
        assert min(60.0, expected * 0.8) <= delay <= min(60.0, expected * 1.2)


@pytest.mark.asyncio
async def test_transient_failures_below_cap_eventually_succeed() -> None:
    sleeper = SleepRecorder()
    with respx.mock:
        route = respx.get(f"{PLATFORM_URL}/v1/credit").mock(
            side_effect=[
                httpx.Response(429),
                httpx.Response(503),
                httpx.Response(429),
                httpx.Response(200, json={"credits": "1"}),
            ]
        )
        async with Transport(PLATFORM_URL) as http:
            data = await http.request("GET", "/v1/credit", retry=_policy(sleeper, max_retries=5, cap=12.0))

    assert data == {"credits": "1"}
    assert route.call_count == 4
    assert len(sleeper.calls) == 3
    assert all(d <= 12.0 for d in sleeper.calls)
    # Jitter windows (4-6, 8-12, capped 12) do not overlap, so delays never shrink.
    assert sleeper.calls == sorted(sleeper.calls)


@pytest.mark.asyncio
async def test_non_retryable_status_propagates_without_sleep() -> None:
    sleeper = SleepRecorder()
    with respx.mock:
        route = respx.post(f"{PLATFORM_URL}/v1/chat").mock(
            return_value=httpx.Response(400, json={"error": "bad agent id"})
        )
        async with Transport(PLATFORM_URL) as http:
            with pytest.raises(PermanentRequestError) as info:
                await http.request("POST", "/v1/chat", {"message": "hi"}, retry=_policy(sleeper))

    assert route.call_count == 1
    assert sleeper.calls == []
    assert info.value.status_code == 400
    assert "bad agent id" in info.value.message


@pytest.mark.asyncio
async def test_exhausted_retries_surface_last_error() -> None:
    sleeper = SleepRecorder()
    with respx.mock:
        route = respx.get(f"{PLATFORM_URL}/v1/credit").mock(return_value=httpx.Response(503))
        async with Transport(PLATFORM_URL) as http:
            with pytest.raises(TransientNetworkError) as info:
                await http.request("GET", "/v1/credit", retry=_policy(sleeper, max_retries=2))

    assert route.call_count == 3
    assert len(sleeper.calls) == 2
    assert info.value.status_code == 503


@pytest.mark.asyncio
async def test_custom_predicate_controls_retries() -> None:
    sleeper = SleepRecorder()
    calls = 0

    async def flaky() -> str:
        nonlocal calls
        calls += 1
        if calls < 3:
            raise ValueError("try again")
        return "done"

    policy = RetryPolicy(
        max_retries=3,
        base_delay=1.0,
        max_delay=2.0,
        is_retryable=lambda exc: isinstance(exc, ValueError),
        sleep=sleeper,
    )
    assert await policy.run(flaky) == "done"
    assert calls == 3
    assert len(sleeper.calls) == 2


@pytest.mark.asyncio
async def test_connection_reset_is_transient() -> None:
    sleeper = SleepRecorder()
    with respx.mock:
        route = respx.get(f"{PLATFORM_URL}/v1/credit").mock(
            side_effect=[httpx.ReadError("connection reset by peer"), httpx.Response(200, json={})]
        )
        async with Transport(PLATFORM_URL) as http:
            await http.request("GET", "/v1/credit", retry=_policy(sleeper))

    assert route.call_count == 2
    assert len(sleeper.calls) == 1


@pytest.mark.asyncio
async def test_connect_error_is_not_retried() -> None:
    sleeper = SleepRecorder()
    with respx.mock:
        route = respx.get(f"{PLATFORM_URL}/v1/credit").mock(side_effect=httpx.ConnectError("refused"))
        async with Transport(PLATFORM_URL) as http:
            with pytest.raises(PermanentRequestError):
                await http.request("GET", "/v1/credit", retry=_policy(sleeper))

    assert route.call_count == 1
    assert sleeper.calls == []


# ============================================================
#  Transport
# ============================================================


@pytest.mark.asyncio
async def test_non_json_body_is_malformed() -> None:
    with respx.mock:
        respx.get(f"{PLATFORM_URL}/v1/credit").mock(return_value=httpx.Response(200, text="<html>oops</html>"))
        async with Transport(PLATFORM_URL) as http:
            with pytest.raises(MalformedResponseError):
                await http.request("GET", "/v1/credit")


@pytest.mark.asyncio
async def test_error_message_does_not_leak_body() -> None:
    with respx.mock:
        respx.get(f"{PLATFORM_URL}/v1/users/0xabc").mock(
            return_value=httpx.Response(500, json={"message": "boom", "token": "secret-token"})
        )
        async with Transport(PLATFORM_URL) as http:
            with pytest.raises(PermanentRequestError) as info:
                await http.request("GET", "/v1/users/0xabc")

    assert "boom" in str(info.value)
    assert "secret-token" not in str(info.value)


@pytest.mark.asyncio
async def test_session_headers_are_sent_on_every_request(ctx: RunContext) -> None:
    ua = ctx.config.user_agents[0]
    with respx.mock:
        route = respx.get(f"{PLATFORM_URL}/v1/credit").mock(return_value=httpx.Response(200, json={}))
        async with Transport(PLATFORM_URL, headers=platform_headers(ctx, ua, "tok-1")) as http:
            await http.request("GET", "/v1/credit")
            await http.request("GET", "/v1/credit")

    assert route.call_count == 2
    for call in route.calls:
        request = call.request
        assert request.headers["User-Agent"] == ua
        assert request.headers["Authorization"] == "Bearer tok-1"
        assert request.headers["chain-id"] == "8453"
        assert request.headers["Origin"] == "https://nation.fun"


def test_platform_headers_without_token(ctx: RunContext) -> None:
    headers = platform_headers(ctx, "ua")
    assert "Authorization" not in headers
    assert headers["User-Agent"] == "ua"
