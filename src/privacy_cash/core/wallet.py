"""
Wallet: Ed25519 key management and message signing for Solana accounts.

The secret key never leaves this module. The rest of the client only sees the
public address and the signature over the fixed sign-in message, from which
the encryption keys for private outputs are derived.
"""

from __future__ import annotations

import secrets

from ecdsa import BadSignatureError, Ed25519, SigningKey, VerifyingKey

from privacy_cash.core.address import AddressError, base58_decode, base58_encode, decode_address
from privacy_cash.core.constants import SIGN_MESSAGE


class WalletError(Exception):
    pass


class Wallet:
    """
    Solana wallet holding an Ed25519 signing key.

    Usage:
        wallet = Wallet.from_secret_key("4Z7cXSy...")  # base58, 64-byte Solana keypair
        wallet = Wallet.from_seed(bytes(32))
        wallet = Wallet.generate()
    """

    def __init__(self, signing_key: SigningKey) -> None:
        self._signing_key = signing_key
        self._public_key = signing_key.get_verifying_key().to_string()
        self.address = base58_encode(self._public_key)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_seed(cls, seed: bytes) -> Wallet:
        """Create a wallet from a 32-byte Ed25519 seed."""
        if len(seed) != 32:
            raise WalletError(f"Ed25519 seed must be 32 bytes, got {len(seed)}")
        return cls(SigningKey.from_string(seed, curve=Ed25519))

    @classmethod
    def from_secret_key(cls, secret_key: str | bytes | list[int]) -> Wallet:
        """
        Create a wallet from a Solana secret key.

        Accepts the 64-byte keypair (seed followed by public key) as raw bytes,
        a JSON-style list of ints (the `solana-keygen` file format) or a Base58
        string. A bare 32-byte seed is also accepted.
        """
        if isinstance(secret_key, str):
            try:
                raw = base58_decode(secret_key.strip())
            except (KeyError, UnicodeEncodeError) as err:
                raise WalletError("Secret key is not valid Base58") from err
        else:
            raw = bytes(secret_key)

        if len(raw) == 32:
            return cls.from_seed(raw)
        if len(raw) != 64:
            raise WalletError(f"Secret key must be 64 bytes, got {len(raw)}")

        wallet = cls.from_seed(raw[:32])
        if wallet.public_key != raw[32:]:
            raise WalletError("Secret key public half does not match its seed")
        return wallet

    @classmethod
    def generate(cls) -> Wallet:
        return cls.from_seed(secrets.token_bytes(32))

    # ------------------------------------------------------------------
    # Keys & signing
    # ------------------------------------------------------------------

    @property
    def public_key(self) -> bytes:
        """Raw 32-byte Ed25519 public key."""
        return self._public_key

    def secret_key_bytes(self) -> bytes:
        """64-byte Solana keypair encoding (seed || public key)."""
        return self._signing_key.to_string() + self._public_key

    def sign_message(self, message: bytes | str = SIGN_MESSAGE) -> bytes:
        """
        Sign `message` and return the 64-byte Ed25519 signature.

        Ed25519 is deterministic, so signing the sign-in message always yields
        the same signature and therefore the same derived encryption keys.
        """
        if isinstance(message, str):
            message = message.encode("utf-8")
        return self._signing_key.sign(message)

    @staticmethod
    def verify(address: str, message: bytes, signature: bytes) -> bool:
        """Check an Ed25519 signature against a Base58 address."""
        try:
            vk = VerifyingKey.from_string(decode_address(address), curve=Ed25519)
            return vk.verify(signature, message)
        except (AddressError, BadSignatureError, ValueError):
            return False

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return f"Wallet(address={self.address!r})"
