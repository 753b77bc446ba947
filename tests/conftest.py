"""
Shared fixtures.

Every component receives a :class:`RunContext` whose sleeper only records the
requested delays, so retry and pacing logic runs instantly.
"""

from __future__ import annotations

import random
from typing import Any

import httpx
import pytest
import respx

from layer_airdrop.context import RunContext
from layer_airdrop.types import (
    BotConfig,
    ChatSessionSettings,
    CountRange,
    DelayRange,
    EndpointSettings,
)

PLATFORM_URL = "https://platform.test"
IDENTITY_URL = "https://identity.test"

# Well-known development key (Hardhat account #0).
TEST_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

FIXED_NOW = 1_700_000_000.0


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records instead of waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_config(**overrides: Any) -> BotConfig:
    zero = DelayRange(min=0, max=0)
    values: dict[str, Any] = {
        "endpoints": EndpointSettings(platform_url=PLATFORM_URL, identity_url=IDENTITY_URL),
        "request_delay": zero,
        "auth_retry_delay": DelayRange(min=5, max=10),
        "chat_session": ChatSessionSettings(
            message_count=CountRange(min=2, max=2),
            typing_delay=DelayRange(min=3, max=8),
            reading_delay=DelayRange(min=2, max=8),
            session_delay=zero,
        ),
        "min_credit_balance": 0,
    }
    values.update(overrides)
    return BotConfig(**values)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def config() -> BotConfig:
    return make_config()


@pytest.fixture
def ctx(config: BotConfig, sleeper: SleepRecorder) -> RunContext:
    return RunContext(config, rng=random.Random(1234), sleep=sleeper, clock=lambda: FIXED_NOW)


@pytest.fixture
def mock_api():
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def happy_routes(mock_api: respx.MockRouter) -> dict[str, respx.Route]:
    """Identity provider and platform answering every step successfully."""
    return {
        "nonce": mock_api.post(f"{IDENTITY_URL}/api/v1/siwe/init").mock(
            return_value=httpx.Response(200, json={"nonce": "nonce-123", "expires_at": "2030-01-01T00:00:00Z"})
        ),
        "verify": mock_api.post(f"{IDENTITY_URL}/api/v1/siwe/authenticate").mock(
            return_value=httpx.Response(200, json={"token": "privy-token", "user": {"id": "did:privy:1"}})
        ),
        "login": mock_api.post(url__startswith=f"{PLATFORM_URL}/v1/login").mock(
            return_value=httpx.Response(200, json={"access_token": "access-1", "refresh_token": "refresh-1"})
        ),
        "credit": mock_api.get(f"{PLATFORM_URL}/v1/credit").mock(
            return_value=httpx.Response(200, json={"credits": "1.5000", "free_credits": "480.0000"})
        ),
        "agents": mock_api.get(url__startswith=f"{PLATFORM_URL}/v1/agents").mock(
            return_value=httpx.Response(
                200,
                json=[{
                    "id": 99,
                    "agent_id": "agent-99",
                    "status": "live",
                    "intent_kit_agent_info": {"name": "Layer Airdrop"},
                }],
            )
        ),
        "history": mock_api.get(url__startswith=f"{PLATFORM_URL}/v1/chat").mock(
            return_value=httpx.Response(200, json=[])
        ),
        "send": mock_api.post(f"{PLATFORM_URL}/v1/chat").mock(
            return_value=httpx.Response(200, json=[{"message": "Happy to help!", "author_type": "agent"}])
        ),
    }
