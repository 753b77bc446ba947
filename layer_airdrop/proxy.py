"""
Proxy parsing, loading and leasing.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Sequence
from urllib.parse import unquote, urlsplit

import httpx

from layer_airdrop.context import RunContext
from layer_airdrop.errors import AirdropError
from layer_airdrop.sources import read_lines
from layer_airdrop.transport import Transport
from layer_airdrop.types import ProxyDescriptor

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = frozenset({"http", "https", "socks5", "socks5h"})

_CHECK_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

ProxyChecker = Callable[[ProxyDescriptor], Awaitable[bool]]


def parse_proxy(entry: str) -> ProxyDescriptor:
    """Parse ``[scheme://][user:pass@]host:port``; the scheme defaults to http.

    Raises:
        ValueError: On a missing host/port or an unsupported scheme.
    """
    entry = entry.strip()
    if "://" not in entry:
        entry = f"http://{entry}"
    parts = urlsplit(entry)
    scheme = parts.scheme.lower()
    if scheme not in SUPPORTED_SCHEMES:
        raise ValueError(f"unsupported proxy scheme {scheme!r}")
    try:
        port = parts.port
    except ValueError as exc:
        raise ValueError(f"invalid proxy port in {parts.netloc!r}") from exc
    if not parts.hostname or port is None:
        raise ValueError("proxy must have a host and a port")
    return ProxyDescriptor(
        scheme=scheme,
        host=parts.hostname,
        port=port,
        username=unquote(parts.username) if parts.username else None,
        password=unquote(parts.password) if parts.password else None,
    )


def parse_proxies(lines: Iterable[str]) -> list[ProxyDescriptor]:
    proxies: list[ProxyDescriptor] = []
    for line in lines:
        try:
            proxies.append(parse_proxy(line))
        except ValueError as e:
            logger.debug("Skipping proxy %r: %s", line, e)
    return proxies


def load_proxies_from_file(path: str | Path) -> list[ProxyDescriptor]:
    lines = read_lines(path)
    if lines is None:
        logger.warning("Proxy file not found: %s", path)
        return []
    return parse_proxies(lines)


async def fetch_public_proxies(ctx: RunContext) -> list[ProxyDescriptor]:
    """Download and parse the public proxy list; empty on failure."""
    async with Transport(timeout=ctx.config.http_timeout) as http:
        try:
            text = await http.get_text(ctx.config.public_proxy_url)
        except (AirdropError, httpx.HTTPError) as e:
            logger.error("Error fetching public proxies: %s", e)
            return []
    lines = [line.strip() for line in text.splitlines()]
    return parse_proxies(line for line in lines if line and not line.startswith("#"))


async def is_proxy_working(ctx: RunContext, proxy: ProxyDescriptor) -> bool:
    """Fetch our public IP through ``proxy`` from one of the IP-check services."""
    service = ctx.rng.choice(ctx.config.ip_check_services)
    async with Transport(
        headers={"User-Agent": _CHECK_USER_AGENT},
        proxy=proxy,
        timeout=ctx.config.proxy_check_timeout,
    ) as http:
        try:
            text = await http.get_text(service)
        except (AirdropError, httpx.HTTPError) as e:
            logger.debug("Proxy %s is not working: %s", proxy.display, e)
            return False

    ip = text.strip()
    if ip.startswith("{"):
        try:
            data = json.loads(ip)
        except ValueError:
            data = {}
        ip = str(data.get("ip") or "") if isinstance(data, dict) else ""
    if ip:
        logger.debug("Proxy %s is working. IP: %s", proxy.display, ip)
        return True
    return False


class ProxyPool:
    """Read-only set of proxies; each wallet leases one."""

    def __init__(
        self,
        ctx: RunContext,
        proxies: Sequence[ProxyDescriptor],
        checker: ProxyChecker | None = None,
    ) -> None:
        self._ctx = ctx
        self._proxies = tuple(proxies)
        self._checker = checker

    def __len__(self) -> int:
        return len(self._proxies)

    @property
    def proxies(self) -> tuple[ProxyDescriptor, ...]:
        return self._proxies

    async def _check(self, proxy: ProxyDescriptor) -> bool:
        if self._checker is not None:
            return await self._checker(proxy)
        return await is_proxy_working(self._ctx, proxy)

    async def lease(self) -> ProxyDescriptor | None:
        """A verified proxy if one of the first candidates works.

        Otherwise the first shuffled candidate is returned unverified.
        """
        if not self._proxies:
            return None
        candidates = list(self._proxies)
        self._ctx.rng.shuffle(candidates)
        for proxy in candidates[: self._ctx.config.proxy_check_limit]:
            if await self._check(proxy):
                return proxy
        logger.warning("Could not verify any proxy; using %s unverified", candidates[0].display)
        return candidates[0]
