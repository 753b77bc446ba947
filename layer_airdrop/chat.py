"""
Chat session driver.

Sends an opener plus ``N - 1`` follow-up prompts to the airdrop agent, with
typing and reading pauses between them. The session stops early when the
platform replies "Insufficient balance."; a single failed send is logged and
skipped.
"""

from __future__ import annotations

import logging
import random
import re
from typing import Sequence

import httpx

from layer_airdrop.client import PlatformClient, is_insufficient_balance
from layer_airdrop.context import RunContext
from layer_airdrop.errors import AirdropError
from layer_airdrop.log import WalletLogger
from layer_airdrop.types import (
    AgentInfo,
    ChatMessage,
    ChatOutcome,
    ChatSession,
    ChatStatus,
    CountRange,
    ParseStatus,
    SessionCredential,
)

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"https?://\S+", re.I)
_ETH_ADDR_RE = re.compile(r"0x[a-fA-F0-9]{40,}")
_HTML_TAG_RE = re.compile(r"<[^>]{1,200}>")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def reply_preview(reply: list[ChatMessage], max_length: int = 120) -> str:
    """Agent reply reduced to display-safe text."""
    text = " ".join(m.message for m in reply if m.message)
    cleaned = text[: max_length * 2]
    cleaned = _URL_RE.sub("[url]", cleaned)
    cleaned = _ETH_ADDR_RE.sub("[address]", cleaned)
    cleaned = _HTML_TAG_RE.sub("", cleaned)
    cleaned = _CONTROL_CHARS_RE.sub("", cleaned)
    cleaned = " ".join(cleaned.split())
    if len(cleaned) > max_length:
        cleaned = cleaned[: max_length - 3] + "..."
    return cleaned


def generate_chat_id(address: str, timestamp: float) -> str:
    return f"{address}-{int(timestamp)}"


class PromptSelector:
    """Random prompt order that avoids repeats until every prompt is used.

    When every index has been used the used set is reset to hold only the
    opener, so the opener is never repeated unless it is the only prompt.
    """

    def __init__(self, count: int, rng: random.Random, used: set[int] | None = None) -> None:
        if count < 1:
            raise ValueError("at least one prompt is required")
        self.count = count
        self.used: set[int] = used if used is not None else set()
        self.opener: int | None = None
        self.resets = 0
        self._rng = rng

    def first(self) -> int:
        index = self._rng.randrange(self.count)
        self.opener = index
        self.used.add(index)
        return index

    def next(self) -> int:
        available = [i for i in range(self.count) if i not in self.used]
        if not available:
            self.used.clear()
            if self.opener is not None:
                self.used.add(self.opener)
            self.resets += 1
            available = [i for i in range(self.count) if i not in self.used] or list(range(self.count))
        index = self._rng.choice(available)
        self.used.add(index)
        return index


class ChatDriver:
    def __init__(self, ctx: RunContext, platform: PlatformClient) -> None:
        self._ctx = ctx
        self._platform = platform

    async def resolve_agent(self, log: logging.LoggerAdapter) -> AgentInfo | None:
        """Airdrop agent for the configured owner, or the configured fallback."""
        config = self._ctx.config
        try:
            parsed = await self._platform.get_agents(config.airdrop_agent_creator)
        except (AirdropError, httpx.HTTPError) as e:
            log.warning("Failed to get agent info (%s); using fallback agent %d", e, config.fallback_agent.id)
            agent = config.fallback_agent
        else:
            if parsed.status is ParseStatus.OK and parsed.value is not None:
                agent = parsed.value
            else:
                log.warning(
                    "No agents found for creator address %s; using fallback agent %d",
                    config.airdrop_agent_creator, config.fallback_agent.id,
                )
                agent = config.fallback_agent
        return agent if agent.usable else None

    async def run(
        self,
        session: SessionCredential,
        prompts: Sequence[str],
        message_count: CountRange | None = None,
    ) -> ChatOutcome:
        if not prompts:
            raise ValueError("prompts must not be empty")

        config = self._ctx.config
        address = session.wallet_address
        log = WalletLogger(logger, address, self._platform.proxy)

        log.info("Getting agent info")
        agent = await self.resolve_agent(log)
        if agent is None:
            log.error("No usable agent to chat with")
            return ChatOutcome(status=ChatStatus.ABORTED, reason="agent_unavailable")
        log.success("Found %s agent with ID: %d", agent.name, agent.id)

        chat = ChatSession(chat_id=generate_chat_id(address, self._ctx.clock()), agent_id=agent.id)
        planned = (message_count or config.chat_session.message_count).pick(self._ctx.rng)
        selector = PromptSelector(len(prompts), self._ctx.rng, used=chat.used_prompt_indices)
        log.info("Starting new chat session with ID: %s (%d messages planned)", chat.chat_id, planned)

        def outcome(status: ChatStatus, reason: str | None = None) -> ChatOutcome:
            return ChatOutcome(
                status=status,
                reason=reason,
                planned=planned,
                messages_sent=len(chat.messages_sent),
                chat_id=chat.chat_id,
            )

        for turn in range(planned):
            if turn == 0:
                index = selector.first()
            else:
                index = selector.next()
                await self._ctx.pause(config.chat_session.typing_delay)
            prompt = prompts[index]

            log.info('Sending message %d/%d: "%s"', turn + 1, planned, prompt)
            try:
                reply = await self._platform.send_chat_message(prompt, agent.id, address, chat.chat_id)
            except (AirdropError, httpx.HTTPError) as e:
                log.error("Failed to send message %d: %s", turn + 1, e)
                continue

            if is_insufficient_balance(reply):
                log.warning("Insufficient balance detected. Stopping chat session.")
                return outcome(ChatStatus.ABORTED, "insufficient_balance")

            chat.messages_sent.append(prompt)
            await self._ctx.pause(config.request_delay)

            if not reply:
                log.warning("No response received for message %d", turn + 1)
                continue
            log.success("Received response for message %d: %s", turn + 1, reply_preview(reply))

            if turn == 0:
                await self._check_history(chat, log)
            else:
                await self._ctx.pause(config.chat_session.reading_delay)

        log.success("Chat session completed with %d/%d messages sent", len(chat.messages_sent), planned)
        return outcome(ChatStatus.COMPLETED)

    async def _check_history(self, chat: ChatSession, log: logging.LoggerAdapter) -> None:
        try:
            history = await self._platform.get_chat_history(chat.agent_id, chat.chat_id)
        except (AirdropError, httpx.HTTPError) as e:
            log.warning("Failed to get chat history: %s", e)
            return
        log.debug("Chat %s has %d messages", chat.chat_id, len(history))
