"""
Wallet identity and message signing (EIP-191 personal sign).
"""

from __future__ import annotations

import logging
from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct

from layer_airdrop.errors import InvalidKeyError, SigningError

logger = logging.getLogger(__name__)


class WalletIdentity:
    """An address plus the key that controls it.

    Owned by a single wallet iteration. Use it as a context manager (or call
    :meth:`discard`) so the key is dropped when the iteration ends.
    """

    __slots__ = ("_address", "_account")

    def __init__(self, account: Any) -> None:
        self._account = account
        self._address: str = account.address

    @property
    def address(self) -> str:
        return self._address

    @property
    def discarded(self) -> bool:
        return self._account is None

    def discard(self) -> None:
        self._account = None

    def __enter__(self) -> "WalletIdentity":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.discard()

    def __repr__(self) -> str:
        return f"WalletIdentity(address={self._address!r})"


def normalize_key(secret: str) -> str:
    secret = secret.strip()
    if not secret.startswith(("0x", "0X")):
        secret = f"0x{secret}"
    return secret


def derive_identity(secret: str) -> WalletIdentity:
    """Build a :class:`WalletIdentity` from a hex private key.

    Raises:
        InvalidKeyError: If ``secret`` is not a 32-byte hex key.
    """
    try:
        account = Account.from_key(normalize_key(secret))
    except Exception as exc:
        # The key itself must not end up in the message.
        raise InvalidKeyError("Invalid private key") from exc
    return WalletIdentity(account)


def sign_message(identity: WalletIdentity, message: str) -> str:
    """Sign ``message`` and return the 0x-prefixed hex signature."""
    if identity.discarded:
        raise SigningError(f"Identity {identity.address} has been discarded")
    try:
        signed = identity._account.sign_message(encode_defunct(text=message))
    except (ValueError, TypeError) as exc:
        raise SigningError(f"Failed to sign message for {identity.address}: {exc}") from exc

    sig_hex = signed.signature.hex()
    if not sig_hex.startswith("0x"):
        sig_hex = "0x" + sig_hex
    return sig_hex


def recover_address(message: str, signature: str) -> str:
    """Checksum address that produced ``signature`` over ``message``."""
    return Account.recover_message(encode_defunct(text=message), signature=signature)
