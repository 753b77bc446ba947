"""
Credit gate: reads a wallet's usage balance and decides whether it may chat.

:meth:`CreditGate.fetch_credit` never fails. When the balance cannot be read
it returns a synthetic snapshot with zero paid credits and
``config.default_free_credits`` free credits, so the wallet still gets a
chance to chat. This favours availability over strictness: a wallet whose
real balance is empty will be let through and stopped later by the
platform's "Insufficient balance." reply. Every time the fallback is used it
is logged at WARNING.
"""

from __future__ import annotations

import logging
from decimal import Decimal

import httpx

from layer_airdrop.client import PlatformClient
from layer_airdrop.context import RunContext
from layer_airdrop.errors import AirdropError
from layer_airdrop.log import WalletLogger
from layer_airdrop.types import CreditSnapshot, GateDecision, ParseStatus

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class CreditGate:
    def __init__(self, ctx: RunContext) -> None:
        self._ctx = ctx

    def default_snapshot(self, reason: str) -> CreditSnapshot:
        return CreditSnapshot(
            paid_balance=ZERO,
            free_balance=self._ctx.config.default_free_credits,
            raw_payload={"fallback_reason": reason},
            synthetic=True,
        )

    async def fetch_credit(self, platform: PlatformClient, wallet: str | None = None) -> CreditSnapshot:
        log = WalletLogger(logger, wallet, platform.proxy)
        try:
            parsed = await platform.get_credit()
        except (AirdropError, httpx.HTTPError) as e:
            log.warning(
                "Failed to check credit (%s); assuming default free credits %s",
                e, self._ctx.config.default_free_credits,
            )
            return self.default_snapshot(str(e))

        if parsed.status is ParseStatus.MALFORMED or parsed.value is None:
            log.warning("Received unexpected credit data format; assuming default free credits")
            return self.default_snapshot("malformed payload")

        payload = parsed.value
        if parsed.status is ParseStatus.MISSING_FIELD:
            if len(parsed.missing) == 2:
                log.warning("Credit payload has no balance fields; assuming default free credits")
                return self.default_snapshot("no balance fields")
            log.warning("Credit payload missing %s; treating it as zero", ", ".join(parsed.missing))

        snapshot = CreditSnapshot(
            paid_balance=payload.credits if payload.credits is not None else ZERO,
            free_balance=payload.free_credits if payload.free_credits is not None else ZERO,
            raw_payload=parsed.raw,
        )
        log.info(
            "Credit balance: %.4f (Free: %.4f, Total Available: %.4f)",
            snapshot.paid_balance, snapshot.free_balance, snapshot.total_available,
        )
        return snapshot

    @staticmethod
    def decide(snapshot: CreditSnapshot, minimum: Decimal) -> GateDecision:
        if snapshot.total_available >= minimum:
            return GateDecision.PROCEED
        return GateDecision.SKIP
