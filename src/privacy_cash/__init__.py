"""
privacy-cash: Python client SDK for the Privacy Cash shielded pool on Solana.

Usage:
    from privacy_cash import PrivacyCashClient, Wallet
    from privacy_cash.core import ClientConfig, FileStorage
"""

from privacy_cash.core.config import ClientConfig
from privacy_cash.core.models import Balance, DepositResult, SplBalance, WithdrawResult
from privacy_cash.core.wallet import Wallet
from privacy_cash.crypto.utxo import Utxo
from privacy_cash.pool.client import PrivacyCashClient

__version__ = "0.1.0"
__all__ = [
    "PrivacyCashClient",
    "ClientConfig",
    "Wallet",
    "Utxo",
    "Balance",
    "SplBalance",
    "DepositResult",
    "WithdrawResult",
]
