"""core module init"""
from privacy_cash.core.address import (
    AddressError,
    find_program_address,
    get_associated_token_address,
    is_valid_address,
)
from privacy_cash.core.config import ClientConfig
from privacy_cash.core.errors import (
    Aborted,
    ApiError,
    ConfigError,
    ConfirmationTimeout,
    DecryptionError,
    EncryptionError,
    InsufficientBalance,
    InsufficientTokenBalance,
    InvalidKeypair,
    LedgerRpcError,
    MerkleProofError,
    PrivacyCashError,
    ProofGenerationError,
    SerializationError,
    SpendLimitExceeded,
    StorageError,
    TokenNotSupported,
    TreeFullError,
)
from privacy_cash.core.ledger import LedgerRpc
from privacy_cash.core.models import Balance, FeeConfig, SplBalance, TokenInfo, TreeState
from privacy_cash.core.storage import FileStorage, MemoryStorage, Storage
from privacy_cash.core.wallet import Wallet, WalletError

__all__ = [
    "Aborted",
    "AddressError",
    "ApiError",
    "Balance",
    "ClientConfig",
    "ConfigError",
    "ConfirmationTimeout",
    "DecryptionError",
    "EncryptionError",
    "FeeConfig",
    "FileStorage",
    "InsufficientBalance",
    "InsufficientTokenBalance",
    "InvalidKeypair",
    "LedgerRpc",
    "LedgerRpcError",
    "MemoryStorage",
    "MerkleProofError",
    "PrivacyCashError",
    "ProofGenerationError",
    "SerializationError",
    "SpendLimitExceeded",
    "SplBalance",
    "Storage",
    "StorageError",
    "TokenInfo",
    "TokenNotSupported",
    "TreeFullError",
    "TreeState",
    "Wallet",
    "WalletError",
    "find_program_address",
    "get_associated_token_address",
    "is_valid_address",
]
