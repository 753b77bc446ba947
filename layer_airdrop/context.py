"""
Run context shared by every component.

Created once at process start and passed into each constructor, so tests can
swap the clock, the sleeper and the random source without patching modules.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Awaitable, Callable

from layer_airdrop.transport import RetryPolicy
from layer_airdrop.types import BotConfig, DelayRange, RetrySettings

Sleeper = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


class RunContext:
    """Configuration plus the sources of time and randomness."""

    def __init__(
        self,
        config: BotConfig | None = None,
        *,
        rng: random.Random | None = None,
        sleep: Sleeper | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config or BotConfig()
        self.rng = rng or random.Random()
        self.sleep: Sleeper = sleep or asyncio.sleep
        self.clock: Clock = clock or time.time

    def retry_policy(self, settings: RetrySettings) -> RetryPolicy:
        return RetryPolicy(
            max_retries=settings.max_retries,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
            rng=self.rng,
            sleep=self.sleep,
        )

    def random_user_agent(self) -> str:
        return self.rng.choice(self.config.user_agents)

    async def pause(self, delay: DelayRange) -> float:
        """Sleep for a duration drawn from ``delay``; returns the duration."""
        seconds = delay.pick(self.rng)
        if seconds > 0:
            await self.sleep(seconds)
        return seconds
