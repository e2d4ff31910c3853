"""
Exception hierarchy for the Privacy Cash client.

Every failure surfaces as a `PrivacyCashError` subclass. `DecryptionError`
deliberately covers both "wrong key" and "corrupted data": the scanner relies
on it to decide that an output belongs to someone else.
"""

from __future__ import annotations


class PrivacyCashError(Exception):
    """Base class for all client errors."""
    pass


class InsufficientBalance(PrivacyCashError):
    """Raised when a SOL balance (public or private) cannot cover an operation."""

    def __init__(self, need: int, have: int) -> None:
        self.need = need
        self.have = have
        super().__init__(f"Insufficient balance: need {need}, have {have}")


class InsufficientTokenBalance(PrivacyCashError):
    """Raised when an SPL token balance cannot cover an operation."""

    def __init__(self, token: str, need: int, have: int) -> None:
        self.token = token
        self.need = need
        self.have = have
        super().__init__(f"Insufficient {token} balance: need {need}, have {have}")


class SpendLimitExceeded(PrivacyCashError):
    """
    Raised when the private balance covers an amount but the two UTXOs a
    single transaction can spend do not.
    """

    def __init__(self, need: int, spendable: int, balance: int) -> None:
        self.need = need
        self.spendable = spendable
        self.balance = balance
        super().__init__(
            f"Amount {need} needs more than two UTXOs: at most {spendable} of {balance} "
            f"can be spent in one transaction"
        )


class TokenNotSupported(PrivacyCashError):
    def __init__(self, mint: str) -> None:
        self.mint = mint
        super().__init__(f"Token not supported: {mint}")


class InvalidKeypair(PrivacyCashError):
    pass


class EncryptionError(PrivacyCashError):
    pass


class DecryptionError(PrivacyCashError):
    pass


class MerkleProofError(PrivacyCashError):
    """Raised for out-of-range indices, full trees and path verification failures."""
    pass


class TreeFullError(MerkleProofError):
    pass


class SerializationError(PrivacyCashError):
    pass


class ApiError(PrivacyCashError):
    """Raised when the relayer/indexer API fails or returns an unexpected payload."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class LedgerRpcError(PrivacyCashError):
    """Raised when the ledger JSON-RPC node returns an error."""
    pass


class ConfigError(PrivacyCashError):
    pass


class StorageError(PrivacyCashError):
    pass


class ProofGenerationError(PrivacyCashError):
    """Raised when the external prover fails. Proving is deterministic, so it is never retried."""
    pass


class ConfirmationTimeout(PrivacyCashError):
    """
    Raised when the indexer never reports the new outputs.

    The transaction may still have landed; only the client's wait gave up.
    """

    def __init__(self, retries: int) -> None:
        self.retries = retries
        super().__init__(f"Transaction confirmation timed out after {retries} retries")


class Aborted(PrivacyCashError):
    def __init__(self) -> None:
        super().__init__("Operation aborted")
