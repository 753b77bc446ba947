"""
HTTP transport with retry/backoff.

:class:`Transport` is a thin wrapper around ``httpx.AsyncClient`` that maps
failures onto the package error taxonomy, and :class:`RetryPolicy` is the
reusable backoff wrapper applied at every network call site.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, TypeVar

import httpx

from layer_airdrop.errors import (
    MalformedResponseError,
    PermanentRequestError,
    TransientNetworkError,
)
from layer_airdrop.types import ProxyDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 503})


def is_transient(exc: BaseException) -> bool:
    """Default retry predicate: only rate limiting, unavailability and resets."""
    return isinstance(exc, TransientNetworkError)


class RetryPolicy:
    """Exponential backoff with jitter around an async operation.

    ``delay = min(max_delay, base_delay * 2**attempt * uniform(0.8, 1.2))``.
    At most ``max_retries`` retries are made; the last error is re-raised
    once they are exhausted. Errors rejected by ``is_retryable`` propagate on
    the first attempt without sleeping.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 2.0,
        max_delay: float = 30.0,
        is_retryable: Callable[[BaseException], bool] = is_transient,
        *,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.is_retryable = is_retryable
        self._rng = rng or random.Random()
        self._sleep = sleep or asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        jitter = self._rng.uniform(0.8, 1.2)
        return min(self.max_delay, self.base_delay * (2 ** attempt) * jitter)

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "request") -> T:
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as exc:
                if attempt >= self.max_retries or not self.is_retryable(exc):
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s failed with %s. Retrying in %.1fs (%d/%d)",
                    description, exc, delay, attempt + 1, self.max_retries,
                )
                await self._sleep(delay)
                attempt += 1


def _safe_error_message(response: httpx.Response) -> str:
    # Never embed the whole body; it may echo tokens back.
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or "Request failed"
    if isinstance(data, dict):
        for key in ("error", "message", "detail", "msg"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return response.reason_phrase or "Request failed"


class Transport:
    """One HTTP session: shared headers, optional proxy, fixed timeout."""

    def __init__(
        self,
        base_url: str = "",
        *,
        headers: dict[str, str] | None = None,
        proxy: ProxyDescriptor | None = None,
        timeout: float = 30.0,
        retry: RetryPolicy | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.proxy = proxy
        self._retry = retry
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers or {},
            timeout=timeout,
            proxy=proxy.url if proxy else None,
        )

    @property
    def headers(self) -> httpx.Headers:
        return self._client.headers

    async def request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        retry: RetryPolicy | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            TransientNetworkError: 429/503 or a connection reset, after the
                retry policy gave up.
            PermanentRequestError: any other failure status, connect error
                or timeout.
            MalformedResponseError: a success response whose body is not JSON.
        """
        policy = retry or self._retry

        async def once() -> Any:
            response = await self._send(method, path, body, params, headers)
            if response.status_code == 204 or not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                raise MalformedResponseError(f"{method} {path} returned a non-JSON body") from exc

        if policy is None:
            return await once()
        return await policy.run(once, description=f"{method} {path}")

    async def get_text(self, url: str, *, retry: RetryPolicy | None = None) -> str:
        policy = retry or self._retry

        async def once() -> str:
            response = await self._send("GET", url, None, None, None)
            return response.text

        if policy is None:
            return await once()
        return await policy.run(once, description=f"GET {url}")

    async def _send(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method=method,
                url=path,
                json=body,
                params=params,
                headers=headers,
            )
        except (httpx.ReadError, httpx.RemoteProtocolError) as exc:
            raise TransientNetworkError(f"Connection reset: {exc}", url=path) from exc
        except httpx.HTTPError as exc:
            raise PermanentRequestError(f"{type(exc).__name__}: {exc}", url=path) from exc

        if response.status_code >= 400:
            status = response.status_code
            error_cls = TransientNetworkError if status in TRANSIENT_STATUS_CODES else PermanentRequestError
            raise error_cls(
                f"Request failed ({status}): {_safe_error_message(response)}",
                status_code=status,
                url=str(response.request.url),
            )
        return response

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
