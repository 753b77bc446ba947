from __future__ import annotations

import pytest

from layer_airdrop.errors import InvalidKeyError, SigningError
from layer_airdrop.signer import derive_identity, recover_address, sign_message

from conftest import TEST_ADDRESS, TEST_KEY


def test_derive_identity_address() -> None:
    identity = derive_identity(TEST_KEY)
    assert identity.address == TEST_ADDRESS


def test_key_without_prefix_is_accepted() -> None:
    identity = derive_identity(TEST_KEY[2:])
    assert identity.address == TEST_ADDRESS


@pytest.mark.parametrize("secret", ["", "0x1234", "not-a-key", "0x" + "zz" * 32])
def test_invalid_key(secret: str) -> None:
    with pytest.raises(InvalidKeyError) as info:
        derive_identity(secret)
    assert str(info.value) == "Invalid private key"


def test_signature_recovers_to_identity() -> None:
    identity = derive_identity(TEST_KEY)
    message = "nation.fun wants you to sign in with your Ethereum account:\n" + identity.address

    first = sign_message(identity, message)
    second = sign_message(identity, message)

    assert first.startswith("0x")
    assert first == second
    assert recover_address(message, first) == identity.address


def test_discarded_identity_cannot_sign() -> None:
    with derive_identity(TEST_KEY) as identity:
        pass
    assert identity.discarded
    assert "ac0974" not in repr(identity)
    with pytest.raises(SigningError):
        sign_message(identity, "hello")
