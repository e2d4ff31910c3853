"""
Pool operations: UTXO scanning, proving, transaction assembly and the client facade.
"""

from privacy_cash.pool.client import PrivacyCashClient
from privacy_cash.pool.prover import ProofResult, Prover, SnarkjsProver
from privacy_cash.pool.scanner import UtxoScanner
from privacy_cash.pool.transaction import ExtData, TransactionBuilder, calculate_public_amount

__all__ = [
    "ExtData",
    "PrivacyCashClient",
    "ProofResult",
    "Prover",
    "SnarkjsProver",
    "TransactionBuilder",
    "UtxoScanner",
    "calculate_public_amount",
]
