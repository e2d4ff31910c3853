"""
Field keypair: the spend authority of a UTXO.

private is a field element derived from a secret seed, public = Hash([private]).
The keypair is immutable and never written to the ledger; only commitments
(which include the public key) and nullifiers (which need the private key)
leave the client.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field

from privacy_cash.core.constants import FIELD_SIZE
from privacy_cash.core.errors import InvalidKeypair
from privacy_cash.crypto.hasher import FieldHasher, FieldInput, field_hash, to_field_int


@dataclass(frozen=True)
class Keypair:
    private: int = field(repr=False)
    public: int
    hasher: FieldHasher | None = field(default=None, repr=False, compare=False)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def derive(cls, seed: bytes, hasher: FieldHasher | None = None) -> Keypair:
        """Reduce `seed` (big-endian) into the field and hash it to the public key."""
        if not seed:
            raise InvalidKeypair("Seed must not be empty")
        return cls.from_private(int.from_bytes(seed, "big"), hasher=hasher)

    @classmethod
    def from_private(cls, private: int, hasher: FieldHasher | None = None) -> Keypair:
        private %= FIELD_SIZE
        return cls(private=private, public=field_hash([private], hasher), hasher=hasher)

    @classmethod
    def from_hex(cls, private_key_hex: str, hasher: FieldHasher | None = None) -> Keypair:
        """
        Build a keypair from a hex private key (optionally `0x`-prefixed).

        Raises:
            InvalidKeypair: if the string is empty or not hexadecimal
        """
        raw = private_key_hex.strip()
        if raw.startswith(("0x", "0X")):
            raw = raw[2:]
        if not raw:
            raise InvalidKeypair("Empty private key")
        try:
            value = int(raw, 16)
        except ValueError as e:
            raise InvalidKeypair(f"Private key is not hex: {private_key_hex!r}") from e
        return cls.from_private(value, hasher=hasher)

    @classmethod
    def generate(cls, hasher: FieldHasher | None = None) -> Keypair:
        return cls.derive(secrets.token_bytes(32), hasher=hasher)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def hash(self, inputs: list[FieldInput]) -> int:
        """Hash with this keypair's hasher so derived values stay consistent."""
        return field_hash(inputs, self.hasher)

    def sign(self, commitment: FieldInput, index: FieldInput) -> int:
        """
        Hash([private, commitment, index]).

        Not an externally verifiable signature: it only mixes the private key
        into the nullifier so nobody else can compute it.
        """
        return self.hash([self.private, to_field_int(commitment), to_field_int(index)])

    def pubkey_string(self) -> str:
        return str(self.public)
