"""
Tests for the sign-in state machine.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest
import respx

from layer_airdrop.auth import AuthFlow, build_siwe_message
from layer_airdrop.context import RunContext
from layer_airdrop.signer import derive_identity, recover_address
from layer_airdrop.types import AuthFailure, AuthState

from conftest import TEST_ADDRESS, TEST_KEY, SleepRecorder


def test_siwe_message_layout(ctx: RunContext) -> None:
    issued = datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
    message = build_siwe_message(ctx, TEST_ADDRESS, "abc", issued_at=issued)
    lines = message.split("\n")

    assert lines[0] == "nation.fun wants you to sign in with your Ethereum account:"
    assert lines[1] == TEST_ADDRESS
    assert "URI: https://nation.fun" in lines
    assert "Version: 1" in lines
    assert "Chain ID: 8453" in lines
    assert "Nonce: abc" in lines
    assert "Issued At: 2025-01-02T03:04:05.678Z" in lines
    assert lines[-2:] == ["Resources:", "- https://privy.io"]


@pytest.mark.asyncio
async def test_successful_sign_in(ctx: RunContext, happy_routes: dict[str, respx.Route]) -> None:
    result = await AuthFlow(ctx).authenticate(derive_identity(TEST_KEY))

    assert result.ok
    assert result.attempts == 1
    assert result.states == [
        AuthState.START,
        AuthState.NONCE_REQUESTED,
        AuthState.MESSAGE_SIGNED,
        AuthState.CHALLENGE_VERIFIED,
        AuthState.LOGGED_IN,
    ]
    credential = result.credential
    assert credential.access_token == "access-1"
    assert credential.refresh_token == "refresh-1"
    assert credential.wallet_address == TEST_ADDRESS
    assert credential.user_agent in ctx.config.user_agents

    verify_body = json.loads(happy_routes["verify"].calls.last.request.content)
    assert verify_body["chainId"] == "eip155:8453"
    assert "Nonce: nonce-123" in verify_body["message"]
    assert recover_address(verify_body["message"], verify_body["signature"]) == TEST_ADDRESS

    login_request = happy_routes["login"].calls.last.request
    assert login_request.url.params["is_privy"] == "true"
    assert json.loads(login_request.content) == {"privy_token": "privy-token", "user_address": TEST_ADDRESS}

    # The same fingerprint is used for every step of the attempt.
    agents = {happy_routes[name].calls.last.request.headers["User-Agent"] for name in ("nonce", "verify", "login")}
    assert agents == {credential.user_agent}
    assert happy_routes["nonce"].calls.last.request.headers["privy-app-id"] == ctx.config.endpoints.app_id


@pytest.mark.asyncio
async def test_unregistered_wallet_stops_after_one_attempt(
    ctx: RunContext, sleeper: SleepRecorder, happy_routes: dict[str, respx.Route]
) -> None:
    assert ctx.config.auth_attempts >= 2
    happy_routes["login"].mock(return_value=httpx.Response(404, json={"message": "user not found"}))

    result = await AuthFlow(ctx).authenticate(derive_identity(TEST_KEY))

    assert not result.ok
    assert result.failure is AuthFailure.UNREGISTERED
    assert result.attempts == 1
    assert happy_routes["nonce"].call_count == 1
    assert happy_routes["login"].call_count == 1
    assert result.states[-1] is AuthState.FAILED
    assert sleeper.calls == []


@pytest.mark.asyncio
async def test_missing_nonce_retries_with_new_attempt(
    ctx: RunContext, sleeper: SleepRecorder, happy_routes: dict[str, respx.Route]
) -> None:
    happy_routes["nonce"].mock(return_value=httpx.Response(200, json={}))

    result = await AuthFlow(ctx).authenticate(derive_identity(TEST_KEY))

    assert result.failure is AuthFailure.NONCE
    assert result.attempts == 2
    assert happy_routes["nonce"].call_count == 2
    assert happy_routes["verify"].call_count == 0
    assert len(sleeper.calls) == 1
    assert 5 <= sleeper.calls[0] <= 10


@pytest.mark.asyncio
async def test_second_attempt_can_succeed(ctx: RunContext, happy_routes: dict[str, respx.Route]) -> None:
    happy_routes["verify"].mock(
        side_effect=[
            httpx.Response(200, json={"user": {}}),
            httpx.Response(200, json={"token": "privy-token"}),
        ]
    )

    result = await AuthFlow(ctx).authenticate(derive_identity(TEST_KEY))

    assert result.ok
    assert result.attempts == 2
    assert result.failure is None


@pytest.mark.asyncio
async def test_verify_error_is_typed(ctx: RunContext, happy_routes: dict[str, respx.Route]) -> None:
    happy_routes["verify"].mock(return_value=httpx.Response(401, json={"error": "Invalid signature"}))

    result = await AuthFlow(ctx).authenticate(derive_identity(TEST_KEY))

    assert result.failure is AuthFailure.VERIFY
    assert happy_routes["verify"].call_count == 2
    assert happy_routes["login"].call_count == 0


@pytest.mark.asyncio
async def test_login_without_access_token(ctx: RunContext, happy_routes: dict[str, respx.Route]) -> None:
    happy_routes["login"].mock(return_value=httpx.Response(200, json={"refresh_token": "r"}))

    result = await AuthFlow(ctx).authenticate(derive_identity(TEST_KEY))

    assert result.failure is AuthFailure.LOGIN
    assert happy_routes["login"].call_count == 2


@pytest.mark.asyncio
async def test_rate_limited_nonce_is_retried_within_attempt(
    ctx: RunContext, sleeper: SleepRecorder, happy_routes: dict[str, respx.Route]
) -> None:
    happy_routes["nonce"].mock(
        side_effect=[httpx.Response(429), httpx.Response(200, json={"nonce": "n2"})]
    )

    result = await AuthFlow(ctx).authenticate(derive_identity(TEST_KEY))

    assert result.ok
    assert result.attempts == 1
    assert len(sleeper.calls) == 1
    assert sleeper.calls[0] <= ctx.config.identity_retry.max_delay
