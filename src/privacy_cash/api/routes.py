from fastapi import APIRouter, HTTPException, Request

from privacy_cash.api.models import (
    BalanceResponse,
    DepositRequest,
    DepositResponse,
    WithdrawAllRequest,
    WithdrawRequest,
    WithdrawResponse,
)

router = APIRouter(tags=["Privacy Cash"])


def get_client(request: Request):
    """Dependency to retrieve the initialized PrivacyCashClient from app state."""
    client = getattr(request.app.state, "privacy_client", None)
    if not client:
        raise HTTPException(status_code=500, detail="privacy cash client not initialized")
    return client


@router.get("/balance", response_model=BalanceResponse)
async def sol_balance(request: Request):
    """Private SOL balance of the configured wallet."""
    client = get_client(request)
    balance = await client.get_private_balance()
    return BalanceResponse(mint=None, base_units=balance.lamports, amount=balance.sol)


@router.get("/balance/{mint}", response_model=BalanceResponse)
async def token_balance(request: Request, mint: str):
    """Private balance of a supported SPL token."""
    client = get_client(request)
    balance = await client.get_private_balance_spl(mint)
    return BalanceResponse(mint=mint, base_units=balance.base_units, amount=balance.amount)


@router.post("/deposit", response_model=DepositResponse)
async def deposit(request: Request, req: DepositRequest):
    """
    Shield funds from the wallet into the pool.

    Blocks until the indexer reports the new outputs.
    """
    client = get_client(request)
    if req.mint:
        result = await client.deposit_spl(req.amount, req.mint, referrer=req.referrer)
    else:
        result = await client.deposit(req.amount, referrer=req.referrer)
    return DepositResponse(**result.model_dump())


@router.post("/withdraw", response_model=WithdrawResponse)
async def withdraw(request: Request, req: WithdrawRequest):
    """Withdraw `amount` base units to `recipient` through the relayer."""
    client = get_client(request)
    if req.mint:
        result = await client.withdraw_spl(req.amount, req.mint, recipient=req.recipient)
    else:
        result = await client.withdraw(req.amount, recipient=req.recipient)
    return WithdrawResponse(**result.model_dump())


@router.post("/withdraw/all", response_model=WithdrawResponse)
async def withdraw_all(request: Request, req: WithdrawAllRequest):
    """Withdraw the entire private balance of SOL or of one token."""
    client = get_client(request)
    if req.mint:
        result = await client.withdraw_all_spl(req.mint, recipient=req.recipient)
    else:
        result = await client.withdraw_all(recipient=req.recipient)
    return WithdrawResponse(**result.model_dump())
