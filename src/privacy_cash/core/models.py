"""
Core data models for the Privacy Cash client.
All amounts are in base units internally (lamports for SOL, 1 SOL = 1,000,000,000 lamports).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

LAMPORTS_PER_SOL = 1_000_000_000


class TokenInfo(BaseModel):
    """A token supported by the shielded pool."""
    model_config = ConfigDict(frozen=True)

    name: str
    mint: str
    units_per_token: int
    decimals: int = 0


class Balance(BaseModel):
    """Private SOL balance reconstructed from unspent UTXOs."""
    lamports: int = 0

    @property
    def sol(self) -> float:
        """SOL value (human-readable)."""
        return self.lamports / LAMPORTS_PER_SOL


class SplBalance(BaseModel):
    """Private SPL token balance reconstructed from unspent UTXOs."""
    base_units: int = 0
    amount: float = 0.0

    @classmethod
    def from_base_units(cls, base_units: int, units_per_token: int) -> SplBalance:
        return cls(base_units=base_units, amount=base_units / units_per_token)


class TreeState(BaseModel):
    """Current Merkle accumulator state as served by the indexer."""
    model_config = ConfigDict(populate_by_name=True)

    root: int
    next_index: int = Field(alias="nextIndex")


class FeeConfig(BaseModel):
    """Fee rates served by the relayer `/config` endpoint."""
    withdraw_fee_rate: float = 0.0
    withdraw_rent_fee: float = 0.0
    deposit_fee_rate: float = 0.0
    usdc_withdraw_rent_fee: float = 0.0
    rent_fees: dict[str, float] = Field(default_factory=dict)


class DepositResult(BaseModel):
    """Outcome of a relayed deposit."""
    signature: str
    amount: int
    fee: int = 0
    mint: str | None = None


class WithdrawResult(BaseModel):
    """Outcome of a relayed withdrawal."""
    signature: str
    recipient: str
    amount: int
    """Base units received by the recipient (after fees)."""
    fee: int
    mint: str | None = None
