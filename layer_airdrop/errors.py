"""
Exception hierarchy for the Layer Airdrop runner.

Every error raised by the package derives from :class:`AirdropError` so the
orchestrator can catch one type at the wallet boundary.
"""

from __future__ import annotations


class AirdropError(Exception):
    """Base class for all package errors."""


class RequestError(AirdropError):
    """An HTTP request failed.

    ``message`` is the safe, extracted error text; the full response body is
    never embedded in the exception.
    """

    def __init__(self, message: str, status_code: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.url = url


class TransientNetworkError(RequestError):
    """Rate limited (429), unavailable (503) or connection reset. Retryable."""


class PermanentRequestError(RequestError):
    """Any other failed request. Not retried."""


class MalformedResponseError(AirdropError):
    """The response body was not the shape the call site expects."""


class UnregisteredWalletError(AirdropError):
    """The platform login returned 404 for this wallet."""

    def __init__(self, address: str) -> None:
        super().__init__(f"Wallet {address} is not registered with the platform")
        self.address = address


class SigningError(AirdropError):
    """A message could not be signed."""


class InvalidKeyError(SigningError):
    """The secret key material is not a valid private key."""


class KeySourceError(AirdropError):
    """The mandatory key file is missing or unreadable."""
