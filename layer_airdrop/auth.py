"""
Sign-in state machine.

One attempt walks ``START -> NONCE_REQUESTED -> MESSAGE_SIGNED ->
CHALLENGE_VERIFIED -> LOGGED_IN``; any step may fall to ``FAILED``. The outer
loop retries the whole attempt with a fresh user agent, except when the
platform reports the wallet as unregistered.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx

from layer_airdrop.client import IdentityProviderClient, PlatformClient
from layer_airdrop.context import RunContext
from layer_airdrop.errors import AirdropError, SigningError, UnregisteredWalletError
from layer_airdrop.log import WalletLogger
from layer_airdrop.signer import WalletIdentity, sign_message
from layer_airdrop.types import (
    AuthFailure,
    AuthResult,
    AuthState,
    ProxyDescriptor,
    SessionCredential,
)

logger = logging.getLogger(__name__)


def build_siwe_message(
    ctx: RunContext,
    address: str,
    nonce: str,
    issued_at: datetime | None = None,
) -> str:
    """Canonical EIP-4361 message for the platform's sign-in."""
    endpoints = ctx.config.endpoints
    issued_at = issued_at or datetime.fromtimestamp(ctx.clock(), tz=timezone.utc)
    stamp = issued_at.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    resources = "\n".join(f"- {r}" for r in endpoints.siwe_resources)
    lines = [
        f"{endpoints.siwe_domain} wants you to sign in with your Ethereum account:",
        address,
        "",
        endpoints.siwe_statement,
        "",
        f"URI: {endpoints.origin}",
        "Version: 1",
        f"Chain ID: {endpoints.chain_id}",
        f"Nonce: {nonce}",
        f"Issued At: {stamp}",
    ]
    if resources:
        lines += ["Resources:", resources]
    return "\n".join(lines)


class _AttemptFailed(Exception):
    def __init__(self, failure: AuthFailure, detail: str) -> None:
        super().__init__(detail)
        self.failure = failure


class AuthFlow:
    """Produces a :class:`SessionCredential` for a wallet."""

    def __init__(self, ctx: RunContext) -> None:
        self._ctx = ctx

    async def authenticate(
        self,
        identity: WalletIdentity,
        proxy: ProxyDescriptor | None = None,
    ) -> AuthResult:
        config = self._ctx.config
        log = WalletLogger(logger, identity.address, proxy)
        log.info("Starting authentication")

        result = AuthResult()
        max_attempts = max(1, config.auth_attempts)

        while result.attempts < max_attempts:
            result.attempts += 1
            user_agent = self._ctx.random_user_agent()
            if result.attempts > 1:
                log.info("Retrying authentication with a new User-Agent")
            log.debug("Using User-Agent %s...", user_agent[:50])

            states: list[AuthState] = [AuthState.START]
            try:
                credential = await self._attempt(identity, user_agent, proxy, states)
            except _AttemptFailed as e:
                states.append(AuthState.FAILED)
                result.states = states
                result.failure = e.failure
                log.error("Authentication attempt %d failed at %s step: %s", result.attempts, e.failure.value, e)
                if e.failure is AuthFailure.UNREGISTERED:
                    break
            else:
                states.append(AuthState.LOGGED_IN)
                result.states = states
                result.credential = credential
                result.failure = None
                log.success("Authentication successful")
                return result

            if result.attempts < max_attempts:
                delay = config.auth_retry_delay.pick(self._ctx.rng)
                log.info("Waiting %.0fs before next authentication attempt...", delay)
                await self._ctx.sleep(delay)

        log.error("All authentication attempts failed (%s)", result.failure.value if result.failure else "unknown")
        return result

    async def _attempt(
        self,
        identity: WalletIdentity,
        user_agent: str,
        proxy: ProxyDescriptor | None,
        states: list[AuthState],
    ) -> SessionCredential:
        address = identity.address
        chain = f"eip155:{self._ctx.config.endpoints.chain_id}"

        async with IdentityProviderClient(self._ctx, user_agent=user_agent, proxy=proxy) as idp:
            try:
                nonce = await idp.init_siwe(address)
            except (AirdropError, httpx.HTTPError) as e:
                raise _AttemptFailed(AuthFailure.NONCE, str(e)) from e
            if not nonce:
                raise _AttemptFailed(AuthFailure.NONCE, "no nonce returned")
            states.append(AuthState.NONCE_REQUESTED)

            message = build_siwe_message(self._ctx, address, nonce)
            try:
                signature = sign_message(identity, message)
            except SigningError as e:
                raise _AttemptFailed(AuthFailure.SIGN, str(e)) from e
            states.append(AuthState.MESSAGE_SIGNED)

            try:
                provider_token = await idp.authenticate_siwe(message, signature, chain)
            except (AirdropError, httpx.HTTPError) as e:
                raise _AttemptFailed(AuthFailure.VERIFY, str(e)) from e
            if not provider_token:
                raise _AttemptFailed(AuthFailure.VERIFY, "no provider token returned")
            states.append(AuthState.CHALLENGE_VERIFIED)

        async with PlatformClient(self._ctx, user_agent=user_agent, proxy=proxy) as platform:
            try:
                login = await platform.login(provider_token, address)
            except UnregisteredWalletError as e:
                raise _AttemptFailed(AuthFailure.UNREGISTERED, str(e)) from e
            except (AirdropError, httpx.HTTPError) as e:
                raise _AttemptFailed(AuthFailure.LOGIN, str(e)) from e
        if not login.access_token:
            raise _AttemptFailed(AuthFailure.LOGIN, "no access token returned")

        return SessionCredential(
            access_token=login.access_token,
            refresh_token=login.refresh_token,
            wallet_address=address,
            provider_token=provider_token,
            user_agent=user_agent,
        )
