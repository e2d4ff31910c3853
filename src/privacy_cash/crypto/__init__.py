"""
Field hashing, keypairs, UTXOs, Merkle trees and output encryption.
"""

from privacy_cash.crypto.encryption import EncryptionKey, EncryptionService
from privacy_cash.crypto.hasher import FieldHasher, KeccakFieldHasher, field_hash
from privacy_cash.crypto.keypair import Keypair
from privacy_cash.crypto.merkle import MerklePath, MerkleTree
from privacy_cash.crypto.utxo import Utxo, UtxoVersion

__all__ = [
    "EncryptionKey",
    "EncryptionService",
    "FieldHasher",
    "KeccakFieldHasher",
    "Keypair",
    "MerklePath",
    "MerkleTree",
    "Utxo",
    "UtxoVersion",
    "field_hash",
]
