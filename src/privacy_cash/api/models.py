from pydantic import BaseModel, Field


class BalanceResponse(BaseModel):
    """Private balance of the configured wallet."""

    mint: str | None = Field(None, description="Token mint, or null for SOL")
    base_units: int = Field(..., description="Balance in base units (lamports for SOL)")
    amount: float = Field(..., description="Human-readable balance")


class DepositRequest(BaseModel):
    """Request model for a shielded deposit."""

    amount: int = Field(..., gt=0, description="Amount to deposit, in base units")
    mint: str | None = Field(None, description="SPL token mint. SOL is deposited if omitted.")
    referrer: str | None = Field(None, description="Optional referrer address forwarded to the relayer")


class DepositResponse(BaseModel):
    """Response model for a confirmed deposit."""

    signature: str = Field(..., description="Signature of the relayed deposit transaction")
    amount: int = Field(..., description="Amount deposited, in base units")
    fee: int = Field(0, description="Deposit fee, in base units")
    mint: str | None = None


class WithdrawRequest(BaseModel):
    """Request model for a withdrawal out of the pool."""

    amount: int = Field(..., gt=0, description="Amount to withdraw (before fees), in base units")
    recipient: str | None = Field(
        None, description="Public address that receives the funds. Defaults to the wallet address."
    )
    mint: str | None = Field(None, description="SPL token mint. SOL is withdrawn if omitted.")


class WithdrawAllRequest(BaseModel):
    """Request model for withdrawing the whole private balance."""

    recipient: str | None = Field(
        None, description="Public address that receives the funds. Defaults to the wallet address."
    )
    mint: str | None = Field(None, description="SPL token mint. SOL is withdrawn if omitted.")


class WithdrawResponse(BaseModel):
    """Response model for a confirmed withdrawal."""

    signature: str = Field(..., description="Signature of the relayed withdrawal transaction")
    recipient: str = Field(..., description="Address that received the funds")
    amount: int = Field(..., description="Base units received by the recipient")
    fee: int = Field(..., description="Withdrawal fee, in base units")
    mint: str | None = None
