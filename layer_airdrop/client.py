"""
Endpoint clients for the identity provider and the airdrop platform.

One method per remote endpoint. Each method applies the retry policy
configured for its call site and returns a parsed model, or a
:class:`~layer_airdrop.types.Parsed` result where the payload shape is not
guaranteed by the platform.

Usage::

    ctx = RunContext()
    async with PlatformClient(ctx, user_agent=ua, access_token=token) as api:
        credit = await api.get_credit()
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from layer_airdrop.context import RunContext
from layer_airdrop.errors import (
    MalformedResponseError,
    PermanentRequestError,
    UnregisteredWalletError,
)
from layer_airdrop.transport import Transport
from layer_airdrop.types import (
    AgentInfo,
    ChatMessage,
    CreditPayload,
    LoginResult,
    ParseStatus,
    Parsed,
    ProxyDescriptor,
)

logger = logging.getLogger(__name__)

INSUFFICIENT_BALANCE_MESSAGE = "Insufficient balance."


def identity_headers(ctx: RunContext, user_agent: str) -> dict[str, str]:
    endpoints = ctx.config.endpoints
    return {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "Origin": endpoints.origin,
        "Referer": f"{endpoints.origin}/",
        "User-Agent": user_agent,
        "privy-app-id": endpoints.app_id,
    }


def platform_headers(ctx: RunContext, user_agent: str, access_token: str | None = None) -> dict[str, str]:
    endpoints = ctx.config.endpoints
    headers = {
        "Accept": "application/json, text/plain, */*",
        "Content-Type": "application/json",
        "Origin": endpoints.origin,
        "Referer": f"{endpoints.origin}/",
        "User-Agent": user_agent,
        "chain-id": str(endpoints.chain_id),
    }
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    return headers


class _BaseClient:
    def __init__(self, ctx: RunContext, transport: Transport) -> None:
        self._ctx = ctx
        self._http = transport

    @property
    def user_agent(self) -> str:
        return self._http.headers.get("User-Agent", "")

    @property
    def proxy(self) -> ProxyDescriptor | None:
        return self._http.proxy

    async def close(self) -> None:
        await self._http.close()

    async def __aenter__(self) -> Any:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


# ============================================================
#  Identity provider
# ============================================================


class IdentityProviderClient(_BaseClient):
    """SIWE nonce and challenge endpoints."""

    def __init__(self, ctx: RunContext, *, user_agent: str, proxy: ProxyDescriptor | None = None) -> None:
        transport = Transport(
            ctx.config.endpoints.identity_url,
            headers=identity_headers(ctx, user_agent),
            proxy=proxy,
            timeout=ctx.config.http_timeout,
        )
        super().__init__(ctx, transport)
        self._retry = ctx.retry_policy(ctx.config.identity_retry)

    async def init_siwe(self, address: str) -> str | None:
        """Request a sign-in nonce. Returns ``None`` when none was issued."""
        data = await self._http.request(
            "POST", "/api/v1/siwe/init", {"address": address}, retry=self._retry
        )
        if not isinstance(data, dict):
            return None
        nonce = data.get("nonce")
        return str(nonce) if nonce else None

    async def authenticate_siwe(self, message: str, signature: str, chain_id: str) -> str | None:
        """Submit the signed challenge. Returns the provider token, if any."""
        payload = {
            "message": message,
            "signature": signature,
            "chainId": chain_id,
            "walletClientType": "metamask",
            "connectorType": "injected",
            "mode": "login-or-sign-up",
        }
        data = await self._http.request(
            "POST", "/api/v1/siwe/authenticate", payload, retry=self._retry
        )
        if not isinstance(data, dict):
            return None
        token = data.get("token")
        return str(token) if token else None


# ============================================================
#  Platform
# ============================================================


class PlatformClient(_BaseClient):
    """Login, credit, agent and chat endpoints of the airdrop platform."""

    def __init__(
        self,
        ctx: RunContext,
        *,
        user_agent: str,
        access_token: str | None = None,
        proxy: ProxyDescriptor | None = None,
    ) -> None:
        transport = Transport(
            ctx.config.endpoints.platform_url,
            headers=platform_headers(ctx, user_agent, access_token),
            proxy=proxy,
            timeout=ctx.config.http_timeout,
        )
        super().__init__(ctx, transport)

    # -- Auth ---------------------------------------------------------------

    async def login(self, provider_token: str, address: str) -> LoginResult:
        """Exchange a provider token for platform tokens.

        Raises:
            UnregisteredWalletError: The platform answered 404.
        """
        payload = {"privy_token": provider_token, "user_address": address}
        try:
            data = await self._http.request(
                "POST",
                "/v1/login",
                payload,
                params={"is_privy": "true"},
                retry=self._ctx.retry_policy(self._ctx.config.login_retry),
            )
        except PermanentRequestError as e:
            if e.status_code == 404:
                raise UnregisteredWalletError(address) from e
            raise
        if not isinstance(data, dict):
            raise MalformedResponseError("Login response is not an object")
        try:
            return LoginResult(**data)
        except ValidationError as e:
            raise MalformedResponseError("Login response has unexpected field types") from e

    async def link_accounts(
        self, address: str, accounts: list[dict[str, Any]], provider_token: str
    ) -> list[dict[str, Any]]:
        payload = {
            "user_address": address,
            "accounts": accounts,
            "privy_token": provider_token,
        }
        data = await self._http.request("POST", "/v1/users/accounts/link", payload)
        return data if isinstance(data, list) else []

    # -- Credit -------------------------------------------------------------

    async def get_credit(self) -> Parsed[CreditPayload]:
        """Read the credit balance.

        Request failures propagate once the credit retry policy is
        exhausted; the payload itself is never rejected, only tagged.
        """
        data = await self._http.request(
            "GET", "/v1/credit", retry=self._ctx.retry_policy(self._ctx.config.credit_retry)
        )
        if not isinstance(data, dict):
            return Parsed(status=ParseStatus.MALFORMED, raw=data)
        try:
            payload = CreditPayload(**data)
        except ValidationError:
            return Parsed(status=ParseStatus.MALFORMED, raw=data)

        missing = [f for f in ("credits", "free_credits") if getattr(payload, f) is None]
        status = ParseStatus.MISSING_FIELD if missing else ParseStatus.OK
        return Parsed(status=status, value=payload, missing=missing, raw=data)

    # -- Users and agents ---------------------------------------------------

    async def get_user_info(self, address: str) -> dict[str, Any]:
        return await self._http.request("GET", f"/v1/users/{address}")

    async def get_agents(self, creator_address: str) -> Parsed[AgentInfo]:
        """First agent created by ``creator_address``.

        ``MISSING_FIELD`` means the platform returned an empty list.
        """
        data = await self._http.request(
            "GET",
            "/v1/agents",
            params={"creator_address": creator_address},
            retry=self._ctx.retry_policy(self._ctx.config.agent_retry),
        )
        if not isinstance(data, list):
            return Parsed(status=ParseStatus.MALFORMED, raw=data)
        if not data:
            return Parsed(status=ParseStatus.MISSING_FIELD, missing=["agents"], raw=data)
        try:
            return Parsed(status=ParseStatus.OK, value=AgentInfo(**data[0]), raw=data)
        except (TypeError, ValidationError):
            return Parsed(status=ParseStatus.MALFORMED, raw=data)

    async def get_chat_id_list(self, agent_id: int) -> list[Any]:
        data = await self._http.request("GET", f"/v1/agents/{agent_id}/chat_id_list")
        return data if isinstance(data, list) else []

    async def get_agent_statistics(self, agent_id: int) -> dict[str, Any]:
        return await self._http.request("GET", f"/v1/agents/{agent_id}/statistics")

    # -- Chat ---------------------------------------------------------------

    async def get_chat_history(self, agent_id: int, chat_id: str) -> list[ChatMessage]:
        data = await self._http.request(
            "GET", "/v1/chat", params={"agent_id": agent_id, "chat_id": chat_id}
        )
        if not isinstance(data, list):
            return []
        return _parse_messages(data, "Chat history")

    async def send_chat_message(
        self, message: str, agent_id: int, user_address: str, chat_id: str
    ) -> list[ChatMessage]:
        """Post one user message; returns the agent's reply messages."""
        payload = {
            "message": message,
            "agent_id": agent_id,
            "user_address": user_address,
            "chat_id": chat_id,
        }
        data = await self._http.request(
            "POST", "/v1/chat", payload, retry=self._ctx.retry_policy(self._ctx.config.chat_retry)
        )
        if not isinstance(data, list):
            raise MalformedResponseError("Chat response is not a list")
        return _parse_messages(data, "Chat response")


def _parse_messages(data: list[Any], what: str) -> list[ChatMessage]:
    # Positions are kept: a non-object entry becomes an empty message.
    try:
        return [ChatMessage(**m) if isinstance(m, dict) else ChatMessage() for m in data]
    except ValidationError as e:
        raise MalformedResponseError(f"{what} has unexpected message fields") from e


def is_insufficient_balance(reply: list[ChatMessage]) -> bool:
    return bool(reply) and reply[0].message == INSUFFICIENT_BALANCE_MESSAGE
