"""
UTXO entity and balance aggregation.

A UTXO is one private balance fragment: `amount` of `asset_id`, hidden behind
`commitment = Hash([amount, pubkey, blinding, asset_field])` and spent by
publishing `nullifier = Hash([commitment, index, sign(commitment, index)])`.
A zero-amount UTXO is a dummy: it pads circuit inputs/outputs and is never
inserted into the tree nor nullified on-chain.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from privacy_cash.core.address import AddressError, decode_address
from privacy_cash.core.constants import BLINDING_UPPER_BOUND, SOL_MINT
from privacy_cash.core.errors import DecryptionError, InvalidKeypair
from privacy_cash.core.models import Balance, SplBalance
from privacy_cash.crypto.keypair import Keypair

_FIELD_SEPARATOR = "|"


class UtxoVersion(str, Enum):
    """Encryption/serialization format the UTXO was produced under."""
    V1 = "v1"
    V2 = "v2"


def random_blinding() -> int:
    return secrets.randbelow(BLINDING_UPPER_BOUND)


def asset_field(asset_id: str) -> int:
    """
    Field encoding of an asset for the commitment.

    The native sentinel is read as a decimal number; an SPL mint contributes
    the first 31 bytes of its public key, which always fits in the field.
    """
    if asset_id == SOL_MINT:
        return int(SOL_MINT)
    try:
        raw = decode_address(asset_id)
    except AddressError as e:
        raise InvalidKeypair(f"Invalid mint: {asset_id}") from e
    return int.from_bytes(raw[:31], "big")


@dataclass
class Utxo:
    amount: int
    blinding: int
    keypair: Keypair
    index: int = 0
    asset_id: str = SOL_MINT
    version: UtxoVersion = UtxoVersion.V2

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"UTXO amount must not be negative: {self.amount}")
        if self.index < 0:
            raise ValueError(f"UTXO index must not be negative: {self.index}")

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def new(
        cls,
        amount: int,
        keypair: Keypair,
        index: int = 0,
        asset_id: str = SOL_MINT,
        version: UtxoVersion = UtxoVersion.V2,
    ) -> Utxo:
        """New UTXO with a fresh random blinding."""
        return cls(
            amount=amount,
            blinding=random_blinding(),
            keypair=keypair,
            index=index,
            asset_id=asset_id,
            version=version,
        )

    @classmethod
    def dummy(cls, keypair: Keypair, asset_id: str = SOL_MINT) -> Utxo:
        return cls.new(0, keypair, asset_id=asset_id)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_dummy(self) -> bool:
        return self.amount == 0

    def asset_field(self) -> int:
        return asset_field(self.asset_id)

    def commitment(self) -> int:
        return self.keypair.hash([self.amount, self.keypair.public, self.blinding, self.asset_field()])

    def nullifier(self) -> int:
        commitment = self.commitment()
        signature = self.keypair.sign(commitment, self.index)
        return self.keypair.hash([commitment, self.index, signature])

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize_for_encryption(self) -> str:
        """`amount|blinding|index|asset_id` with decimal numbers."""
        return _FIELD_SEPARATOR.join(
            [str(self.amount), str(self.blinding), str(self.index), self.asset_id]
        )

    @classmethod
    def deserialize_from_encryption(cls, data: str, keypair: Keypair, version: UtxoVersion) -> Utxo:
        """
        Parse a decrypted payload back into a UTXO owned by `keypair`.

        Raises:
            DecryptionError: wrong field count or malformed numbers
        """
        parts = data.split(_FIELD_SEPARATOR)
        if len(parts) != 4:
            raise DecryptionError(f"Invalid UTXO format: expected 4 fields, got {len(parts)}")
        amount_s, blinding_s, index_s, asset_id = parts
        try:
            amount = int(amount_s, 10)
            blinding = int(blinding_s, 10)
            index = int(index_s, 10)
        except ValueError as e:
            raise DecryptionError("Invalid UTXO number field") from e
        if amount < 0 or blinding < 0 or index < 0 or index >= 1 << 64:
            raise DecryptionError("UTXO field out of range")
        return cls(
            amount=amount,
            blinding=blinding,
            keypair=keypair,
            index=index,
            asset_id=asset_id,
            version=version,
        )

    def __repr__(self) -> str:
        return (
            f"Utxo(amount={self.amount}, index={self.index}, "
            f"asset_id={self.asset_id!r}, version={self.version.value!r})"
        )


# ------------------------------------------------------------------
# Balance aggregation
# ------------------------------------------------------------------


def get_balance_from_utxos(utxos: Iterable[Utxo]) -> Balance:
    """Sum of amounts; dummies contribute nothing."""
    return Balance(lamports=sum(u.amount for u in utxos))


def get_balance_from_utxos_spl(utxos: Iterable[Utxo], units_per_token: int) -> SplBalance:
    return SplBalance.from_base_units(sum(u.amount for u in utxos), units_per_token)
