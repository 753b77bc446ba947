"""
Batch runner: one wallet at a time, paced, with proxy rotation.

Wallets are processed strictly sequentially. Each wallet's identity, session
credential and HTTP clients live only inside :meth:`process_wallet`, so
stopping between wallets never leaves shared state half-updated.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

import httpx

from layer_airdrop.auth import AuthFlow
from layer_airdrop.chat import ChatDriver
from layer_airdrop.client import PlatformClient
from layer_airdrop.context import RunContext
from layer_airdrop.credit import CreditGate
from layer_airdrop.errors import AirdropError, InvalidKeyError
from layer_airdrop.log import SUCCESS, WalletLogger
from layer_airdrop.proxy import ProxyPool
from layer_airdrop.signer import WalletIdentity, derive_identity
from layer_airdrop.types import (
    BatchSummary,
    ChatStatus,
    GateDecision,
    ProxyDescriptor,
    WalletOutcome,
)

logger = logging.getLogger(__name__)


class SessionOrchestrator:
    """Runs sign-in, credit gate and chat for each wallet in turn."""

    def __init__(
        self,
        ctx: RunContext,
        prompts: Sequence[str],
        *,
        proxy_pool: ProxyPool | None = None,
        auth_flow: AuthFlow | None = None,
        credit_gate: CreditGate | None = None,
    ) -> None:
        if not prompts:
            raise ValueError("prompts must not be empty")
        self._ctx = ctx
        self._prompts = list(prompts)
        self._proxy_pool = proxy_pool
        self._auth = auth_flow or AuthFlow(ctx)
        self._credit = credit_gate or CreditGate(ctx)
        self._stop_event = asyncio.Event()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Finish the current wallet, then stop."""
        if not self._stop_event.is_set():
            logger.warning("Stop requested; finishing the current wallet")
        self._stop_event.set()

    async def lease_proxy(self) -> ProxyDescriptor | None:
        if self._proxy_pool is None or not len(self._proxy_pool):
            return None
        proxy = await self._proxy_pool.lease()
        if proxy is None:
            logger.warning("No working proxy found. Using direct connection.")
        return proxy

    async def process_wallet(self, secret: str, proxy: ProxyDescriptor | None = None) -> WalletOutcome:
        """Sign in, gate and chat for one wallet. Never raises."""
        try:
            identity = derive_identity(secret)
        except InvalidKeyError:
            logger.error("Invalid private key")
            return WalletOutcome(reason="invalid_key", proxy=proxy.display if proxy else None)

        address = identity.address
        proxy_name = proxy.display if proxy else None
        log = WalletLogger(logger, address, proxy)
        try:
            return await self._process_identity(identity, proxy, log)
        except (AirdropError, httpx.HTTPError) as e:
            log.error("Error processing wallet: %s", e)
            return WalletOutcome(address=address, reason=type(e).__name__, proxy=proxy_name)
        except Exception:
            log.exception("Unexpected error processing wallet")
            return WalletOutcome(address=address, reason="unexpected_error", proxy=proxy_name)

    async def _process_identity(
        self,
        identity: WalletIdentity,
        proxy: ProxyDescriptor | None,
        log: WalletLogger,
    ) -> WalletOutcome:
        address = identity.address
        proxy_name = proxy.display if proxy else None
        with identity:
            log.info("Processing wallet")
            auth = await self._auth.authenticate(identity, proxy)
        if auth.credential is None:
            failure = auth.failure.value if auth.failure else "unknown"
            return WalletOutcome(address=address, reason=f"auth_{failure}", proxy=proxy_name)
        session = auth.credential

        async with PlatformClient(
            self._ctx,
            user_agent=session.user_agent,
            access_token=session.access_token,
            proxy=proxy,
        ) as platform:
            snapshot = await self._credit.fetch_credit(platform, address)
            minimum = self._ctx.config.min_credit_balance
            if self._credit.decide(snapshot, minimum) is GateDecision.SKIP:
                log.warning(
                    "Insufficient credits. Total available: %.4f (Balance: %.4f, Free: %.4f). Skipping.",
                    snapshot.total_available, snapshot.paid_balance, snapshot.free_balance,
                )
                return WalletOutcome(
                    address=address, reason="insufficient_credit", proxy=proxy_name, credit=snapshot
                )
            log.info("Sufficient credits (%.4f available). Starting chat session", snapshot.total_available)

            chat = await ChatDriver(self._ctx, platform).run(session, self._prompts)

        success = chat.status is ChatStatus.COMPLETED and chat.messages_sent > 0
        if success:
            log.success("Successfully completed chat session")
        else:
            log.error("Failed to complete chat session (%s)", chat.reason or "no messages sent")
        return WalletOutcome(
            address=address,
            success=success,
            reason=None if success else (chat.reason or "no_messages_sent"),
            proxy=proxy_name,
            credit=snapshot,
            chat=chat,
        )

    async def run(self, secrets: Sequence[str]) -> BatchSummary:
        summary = BatchSummary()
        count = len(secrets)
        for i, secret in enumerate(secrets):
            if self.stopping:
                summary.stopped = True
                break
            logger.info("Processing wallet %d/%d", i + 1, count)

            proxy = await self.lease_proxy()
            if proxy is not None:
                logger.info("Using proxy: %s", proxy.display)
            outcome = await self.process_wallet(secret, proxy)

            summary.outcomes.append(outcome)
            summary.total += 1
            if outcome.success:
                summary.success_count += 1
            else:
                summary.fail_count += 1

            if i < count - 1 and not self.stopping:
                await self._pause_between_wallets()

        if self.stopping and summary.total < count:
            summary.stopped = True
        logger.info("Completed processing %d wallets.", summary.total)
        logger.log(SUCCESS, "Success: %d wallets", summary.success_count)
        if summary.fail_count:
            logger.warning("Failed: %d wallets", summary.fail_count)
        return summary

    async def _pause_between_wallets(self) -> None:
        delay = self._ctx.config.chat_session.session_delay.pick(self._ctx.rng)
        if delay <= 0:
            return
        logger.info("Waiting %d seconds before next wallet...", round(delay))
        sleeper = asyncio.ensure_future(self._ctx.sleep(delay))
        stopper = asyncio.ensure_future(self._stop_event.wait())
        _, pending = await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
