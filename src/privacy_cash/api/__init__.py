"""
API module for the Privacy Cash client.

Provides FastAPI routes and models for exposing the client as a REST API.
"""

from privacy_cash.api.models import (
    BalanceResponse,
    DepositRequest,
    DepositResponse,
    WithdrawAllRequest,
    WithdrawRequest,
    WithdrawResponse,
)

__all__ = [
    "BalanceResponse",
    "DepositRequest",
    "DepositResponse",
    "WithdrawAllRequest",
    "WithdrawRequest",
    "WithdrawResponse",
]
