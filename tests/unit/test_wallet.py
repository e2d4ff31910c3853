"""
Unit tests for privacy_cash.core.wallet.
"""

import pytest

from privacy_cash.core.address import base58_encode
from privacy_cash.core.constants import SIGN_MESSAGE
from privacy_cash.core.wallet import Wallet, WalletError

# RFC 8032, section 7.1, test 1
RFC_SEED = bytes.fromhex("9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60")
RFC_PUBLIC = bytes.fromhex("d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a")
RFC_SIGNATURE = bytes.fromhex(
    "e5564300c360ac729086e2cc806e828a84877f1eb8e5d974d873e065224901555"
    "fb8821590a33bacc61e39701cf9b46bd25bf5f0595bbe24655141438e7a100b"
)


# ==============================================================================
# Construction
# ==============================================================================


class TestWalletConstruction:

    def test_rfc8032_public_key(self):
        wallet = Wallet.from_seed(RFC_SEED)
        assert wallet.public_key == RFC_PUBLIC
        assert wallet.address == base58_encode(RFC_PUBLIC)

    def test_seed_length_checked(self):
        with pytest.raises(WalletError, match="32 bytes"):
            Wallet.from_seed(b"\x01" * 31)

    def test_from_keypair_bytes(self):
        wallet = Wallet.from_seed(RFC_SEED)
        restored = Wallet.from_secret_key(wallet.secret_key_bytes())
        assert restored.address == wallet.address

    def test_from_base58_string(self):
        wallet = Wallet.from_seed(RFC_SEED)
        restored = Wallet.from_secret_key(base58_encode(wallet.secret_key_bytes()))
        assert restored.address == wallet.address

    def test_from_keygen_json_list(self):
        wallet = Wallet.from_seed(RFC_SEED)
        restored = Wallet.from_secret_key(list(wallet.secret_key_bytes()))
        assert restored.address == wallet.address

    def test_bare_seed_accepted(self):
        assert Wallet.from_secret_key(RFC_SEED).public_key == RFC_PUBLIC

    def test_mismatched_public_half(self):
        with pytest.raises(WalletError, match="does not match"):
            Wallet.from_secret_key(RFC_SEED + b"\x00" * 32)

    def test_wrong_length(self):
        with pytest.raises(WalletError, match="64 bytes"):
            Wallet.from_secret_key(b"\x01" * 40)

    def test_invalid_base58(self):
        with pytest.raises(WalletError, match="Base58"):
            Wallet.from_secret_key("0OIl")

    def test_generate(self):
        assert Wallet.generate().address != Wallet.generate().address


# ==============================================================================
# Signing
# ==============================================================================


class TestWalletSigning:

    def test_rfc8032_signature(self):
        assert Wallet.from_seed(RFC_SEED).sign_message(b"") == RFC_SIGNATURE

    def test_sign_in_message_is_deterministic(self, wallet):
        signature = wallet.sign_message()
        assert len(signature) == 64
        assert signature == wallet.sign_message(SIGN_MESSAGE)
        assert signature == wallet.sign_message(SIGN_MESSAGE.encode())

    def test_verify(self, wallet):
        signature = wallet.sign_message(b"payload")
        assert Wallet.verify(wallet.address, b"payload", signature)
        assert not Wallet.verify(wallet.address, b"other", signature)
        assert not Wallet.verify("not-an-address", b"payload", signature)

    def test_repr_shows_only_address(self, wallet):
        assert repr(wallet) == f"Wallet(address={wallet.address!r})"
