"""
Protocol constants -- MUST match the on-chain program and the proving circuit.
"""

from __future__ import annotations

from privacy_cash.core.models import TokenInfo

# BN254 scalar field; every commitment, nullifier and root lives in it
FIELD_SIZE = 21888242871839275222246405745257275088548364400416034343698204186575808495617

MERKLE_TREE_DEPTH = 26

PROGRAM_ID = "9fhQBbumKEFuXtMBDw8AaQyAjCorLGJQiS3skWZdQyQD"
FEE_RECIPIENT = "AWexibGxNFKTa1b5R5MN4PJr9HWnWRwf8EW9g8cLx3dM"

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"

# Native asset sentinel used in place of a mint for SOL UTXOs
SOL_MINT = "11111111111111111111111111111112"

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"

RELAYER_API_URL = "https://api3.privacycash.org"
DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"

# Constant message signed by the wallet to derive the encryption keys
SIGN_MESSAGE = "Privacy Money account sign in"

# Anchor instruction discriminators for `transact` / `transact_spl`
TRANSACT_IX_DISCRIMINATOR = bytes([217, 149, 130, 143, 221, 52, 252, 119])
TRANSACT_SPL_IX_DISCRIMINATOR = bytes([154, 66, 244, 204, 78, 225, 163, 151])

# Scanner paging and cache keys
FETCH_UTXOS_GROUP_SIZE = 20_000
LSK_FETCH_OFFSET = "fetch_offset"
LSK_ENCRYPTED_OUTPUTS = "encrypted_outputs"

# Lamports kept back for transaction costs on deposits (0.002 SOL)
MIN_SOL_FOR_FEES = 2_000_000

# Confirmation polling against the indexer
CONFIRMATION_MAX_RETRIES = 10
CONFIRMATION_INTERVAL_SECONDS = 2.0

# Blinding factors are drawn from [0, BLINDING_UPPER_BOUND) for compatibility
# with outputs produced by the reference clients.
BLINDING_UPPER_BOUND = 1_000_000_000

SUPPORTED_TOKENS: tuple[TokenInfo, ...] = (
    TokenInfo(name="usdc", mint=USDC_MINT, units_per_token=1_000_000, decimals=6),
    TokenInfo(name="usdt", mint=USDT_MINT, units_per_token=1_000_000, decimals=6),
)


def find_token_by_mint(mint: str) -> TokenInfo | None:
    """Return the supported token registered under `mint`, if any."""
    for token in SUPPORTED_TOKENS:
        if token.mint == mint:
            return token
    return None


def find_token_by_name(name: str) -> TokenInfo | None:
    for token in SUPPORTED_TOKENS:
        if token.name == name.lower():
            return token
    return None
