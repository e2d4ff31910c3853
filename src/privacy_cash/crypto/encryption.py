"""
Versioned encryption of UTXO payloads.

Both keys come from a single wallet signature over a constant message, so
the same wallet always recovers the same keys:

  V1 (legacy, decrypt only):  key = signature[:31]
      iv(16) || hmac_sha256(key[16:31], iv || ct)[:16] || aes128_ctr(key[:16], iv)
  V2 (current):               key = keccak256(signature)
      00 00 00 00 00 00 00 02 || nonce(12) || aes256_gcm(ct || tag(16))

A ciphertext that does not start with the V2 tag is treated as V1. Every
decryption failure raises the same `DecryptionError`, whether the key is
wrong or the data is corrupt; the scanner treats it as "not my output".
"""

from __future__ import annotations

import hashlib
import hmac
import os
from dataclasses import dataclass, field

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from privacy_cash.core.constants import SIGN_MESSAGE
from privacy_cash.core.errors import DecryptionError, EncryptionError
from privacy_cash.core.wallet import Wallet
from privacy_cash.crypto.hasher import FieldHasher, keccak256
from privacy_cash.crypto.keypair import Keypair
from privacy_cash.crypto.utxo import Utxo, UtxoVersion

ENCRYPTION_VERSION_V2 = bytes([0, 0, 0, 0, 0, 0, 0, 2])

_V1_IV_LEN = 16
_V1_TAG_LEN = 16
_V2_NONCE_LEN = 12
_GCM_TAG_LEN = 16


@dataclass(frozen=True)
class EncryptionKey:
    v1: bytes = field(repr=False)
    v2: bytes = field(repr=False)


class EncryptionService:
    """
    Holds the derived keys for one wallet and encrypts/decrypts UTXOs.

    Usage:
        service = EncryptionService()
        service.derive_encryption_key_from_wallet(wallet)
        blob = service.encrypt_utxo(utxo)
        same = service.decrypt_utxo(blob)
    """

    def __init__(self, hasher: FieldHasher | None = None) -> None:
        self.hasher = hasher
        self._key: EncryptionKey | None = None
        self._utxo_private_keys: dict[UtxoVersion, str] = {}

    # ------------------------------------------------------------------
    # Key derivation
    # ------------------------------------------------------------------

    def derive_encryption_key_from_wallet(self, wallet: Wallet) -> EncryptionKey:
        return self.derive_encryption_key_from_signature(wallet.sign_message(SIGN_MESSAGE))

    def derive_encryption_key_from_signature(self, signature: bytes) -> EncryptionKey:
        """Derive both keys and the per-version UTXO private keys from `signature`."""
        if len(signature) < 31:
            raise EncryptionError(f"Signature too short for key derivation: {len(signature)} bytes")
        key = EncryptionKey(v1=bytes(signature[:31]), v2=keccak256(bytes(signature)))
        self._key = key
        self._utxo_private_keys = {
            UtxoVersion.V1: "0x" + hashlib.sha256(key.v1).hexdigest(),
            UtxoVersion.V2: "0x" + keccak256(key.v2).hex(),
        }
        return key

    @property
    def has_keys(self) -> bool:
        return self._key is not None

    def reset(self) -> None:
        self._key = None
        self._utxo_private_keys = {}

    def get_utxo_private_key(self, version: UtxoVersion = UtxoVersion.V2) -> str:
        try:
            return self._utxo_private_keys[version]
        except KeyError:
            raise EncryptionError(f"{version.name} UTXO private key not set") from None

    def utxo_keypair(self, version: UtxoVersion = UtxoVersion.V2) -> Keypair:
        """Keypair that owns UTXOs produced under `version`."""
        return Keypair.from_hex(self.get_utxo_private_key(version), hasher=self.hasher)

    @staticmethod
    def get_encryption_version(data: bytes) -> UtxoVersion:
        if data[:8] == ENCRYPTION_VERSION_V2:
            return UtxoVersion.V2
        return UtxoVersion.V1

    # ------------------------------------------------------------------
    # Raw encryption
    # ------------------------------------------------------------------

    def encrypt(self, data: bytes) -> bytes:
        """Encrypt with the V2 format (fresh random nonce each call)."""
        if self._key is None:
            raise EncryptionError("Encryption key not set")
        nonce = os.urandom(_V2_NONCE_LEN)
        ciphertext = AESGCM(self._key.v2).encrypt(nonce, data, None)
        return ENCRYPTION_VERSION_V2 + nonce + ciphertext

    def decrypt(self, data: bytes) -> bytes:
        if len(data) < 8:
            raise DecryptionError("Data too short")
        if self.get_encryption_version(data) is UtxoVersion.V2:
            return self._decrypt_v2(data)
        return self._decrypt_v1(data)

    def _decrypt_v2(self, data: bytes) -> bytes:
        if self._key is None:
            raise DecryptionError("V2 encryption key not set")
        if len(data) < 8 + _V2_NONCE_LEN + _GCM_TAG_LEN:
            raise DecryptionError("Data too short for V2")
        nonce = data[8:8 + _V2_NONCE_LEN]
        try:
            return AESGCM(self._key.v2).decrypt(nonce, data[8 + _V2_NONCE_LEN:], None)
        except InvalidTag:
            raise DecryptionError("Invalid key or corrupted data") from None

    def _decrypt_v1(self, data: bytes) -> bytes:
        if self._key is None:
            raise DecryptionError("V1 encryption key not set")
        if len(data) < _V1_IV_LEN + _V1_TAG_LEN:
            raise DecryptionError("Data too short for V1")
        key = self._key.v1
        iv = data[:_V1_IV_LEN]
        tag = data[_V1_IV_LEN:_V1_IV_LEN + _V1_TAG_LEN]
        ciphertext = data[_V1_IV_LEN + _V1_TAG_LEN:]

        expected = hmac.new(key[16:31], iv + ciphertext, hashlib.sha256).digest()[:_V1_TAG_LEN]
        if not hmac.compare_digest(tag, expected):
            raise DecryptionError("Invalid key or corrupted data")

        decryptor = Cipher(algorithms.AES(key[:16]), modes.CTR(iv)).decryptor()
        return decryptor.update(ciphertext) + decryptor.finalize()

    # ------------------------------------------------------------------
    # UTXOs
    # ------------------------------------------------------------------

    def encrypt_utxo(self, utxo: Utxo) -> bytes:
        return self.encrypt(utxo.serialize_for_encryption().encode("utf-8"))

    def decrypt_utxo(self, data: bytes) -> Utxo:
        """
        Decrypt an output and rebuild the UTXO, owned by this wallet's keypair
        for the ciphertext's version.

        Raises:
            DecryptionError: the output is not ours or is malformed
        """
        version = self.get_encryption_version(data)
        plaintext = self.decrypt(data)
        try:
            text = plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise DecryptionError("Invalid UTF-8") from None
        try:
            keypair = self.utxo_keypair(version)
        except EncryptionError as e:
            raise DecryptionError(str(e)) from e
        return Utxo.deserialize_from_encryption(text, keypair, version)

    def decrypt_utxo_hex(self, hex_data: str) -> Utxo:
        try:
            data = bytes.fromhex(hex_data)
        except ValueError:
            raise DecryptionError("Invalid hex") from None
        return self.decrypt_utxo(data)

    def __repr__(self) -> str:
        return f"EncryptionService(has_keys={self.has_keys})"
