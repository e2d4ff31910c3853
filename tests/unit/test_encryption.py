"""
Unit tests for privacy_cash.crypto.encryption.
"""

import hashlib
import hmac

import pytest
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from privacy_cash.core.constants import USDC_MINT
from privacy_cash.core.errors import DecryptionError, EncryptionError
from privacy_cash.core.wallet import Wallet
from privacy_cash.crypto.encryption import ENCRYPTION_VERSION_V2, EncryptionService
from privacy_cash.crypto.hasher import keccak256
from privacy_cash.crypto.keypair import Keypair
from privacy_cash.crypto.utxo import Utxo, UtxoVersion


@pytest.fixture
def service(wallet):
    svc = EncryptionService()
    svc.derive_encryption_key_from_wallet(wallet)
    return svc


def _v1_blob(signature, plaintext, iv=b"\x01" * 16):
    """Legacy format: iv || hmac[:16] || aes-128-ctr ciphertext."""
    key = signature[:31]
    encryptor = Cipher(algorithms.AES(key[:16]), modes.CTR(iv)).encryptor()
    ciphertext = encryptor.update(plaintext) + encryptor.finalize()
    tag = hmac.new(key[16:31], iv + ciphertext, hashlib.sha256).digest()[:16]
    return iv + tag + ciphertext


# ==============================================================================
# Key derivation
# ==============================================================================


class TestKeyDerivation:

    def test_same_wallet_same_keys(self, wallet):
        a = EncryptionService()
        b = EncryptionService()
        assert a.derive_encryption_key_from_wallet(wallet) == b.derive_encryption_key_from_wallet(wallet)
        assert a.get_utxo_private_key(UtxoVersion.V2) == b.get_utxo_private_key(UtxoVersion.V2)

    def test_key_formulas(self, wallet):
        signature = wallet.sign_message()
        svc = EncryptionService()
        key = svc.derive_encryption_key_from_signature(signature)
        assert key.v1 == signature[:31]
        assert key.v2 == keccak256(signature)
        assert svc.get_utxo_private_key(UtxoVersion.V1) == "0x" + hashlib.sha256(key.v1).hexdigest()
        assert svc.get_utxo_private_key(UtxoVersion.V2) == "0x" + keccak256(key.v2).hex()

    def test_utxo_keypair_matches_private_key(self, service):
        expected = Keypair.from_hex(service.get_utxo_private_key(UtxoVersion.V2))
        assert service.utxo_keypair() == expected
        assert service.utxo_keypair(UtxoVersion.V1) != expected

    def test_short_signature_rejected(self):
        with pytest.raises(EncryptionError, match="too short"):
            EncryptionService().derive_encryption_key_from_signature(b"\x00" * 30)

    def test_keys_missing(self):
        svc = EncryptionService()
        assert not svc.has_keys
        with pytest.raises(EncryptionError):
            svc.get_utxo_private_key()
        with pytest.raises(EncryptionError):
            svc.encrypt(b"data")

    def test_reset(self, service):
        assert service.has_keys
        service.reset()
        assert not service.has_keys
        with pytest.raises(EncryptionError):
            service.utxo_keypair()

    def test_repr_hides_keys(self, service):
        assert repr(service) == "EncryptionService(has_keys=True)"


# ==============================================================================
# V2 (AES-256-GCM)
# ==============================================================================


class TestV2:

    def test_round_trip(self, service):
        blob = service.encrypt(b"hello")
        assert blob[:8] == ENCRYPTION_VERSION_V2
        assert len(blob) == 8 + 12 + len(b"hello") + 16
        assert service.decrypt(blob) == b"hello"

    def test_fresh_nonce_each_time(self, service):
        assert service.encrypt(b"same") != service.encrypt(b"same")

    def test_version_detection(self, service):
        assert EncryptionService.get_encryption_version(service.encrypt(b"x")) is UtxoVersion.V2
        assert EncryptionService.get_encryption_version(b"\x01" * 40) is UtxoVersion.V1

    def test_wrong_wallet_cannot_decrypt(self, service):
        other = EncryptionService()
        other.derive_encryption_key_from_wallet(Wallet.from_seed(b"\x07" * 32))
        with pytest.raises(DecryptionError):
            other.decrypt(service.encrypt(b"secret"))

    def test_tampered_ciphertext(self, service):
        blob = bytearray(service.encrypt(b"secret"))
        blob[-1] ^= 0x01
        with pytest.raises(DecryptionError):
            service.decrypt(bytes(blob))

    @pytest.mark.parametrize("blob", [b"", b"\x00" * 7, ENCRYPTION_VERSION_V2 + b"\x00" * 10])
    def test_too_short(self, service, blob):
        with pytest.raises(DecryptionError):
            service.decrypt(blob)


# ==============================================================================
# V1 (legacy, decrypt only)
# ==============================================================================


class TestV1Fixture:
    """
    Fixed V1 blob: AES-128-CTR key, counter block, ciphertext and plaintext
    are the NIST SP 800-38A F.5.1 vectors; the HMAC key is the remaining 15
    bytes of the 31-byte V1 key.
    """

    AES_KEY = bytes.fromhex("2b7e151628aed2a6abf7158809cf4f3c")
    HMAC_KEY = bytes.fromhex("a0a1a2a3a4a5a6a7a8a9aaabacadae")
    IV = bytes.fromhex("f0f1f2f3f4f5f6f7f8f9fafbfcfdfeff")
    CIPHERTEXT = bytes.fromhex(
        "874d6191b620e3261bef6864990db6ce"
        "9806f66b7970fdff8617187bb9fffdff"
    )
    PLAINTEXT = bytes.fromhex(
        "6bc1bee22e409f96e93d7e117393172a"
        "ae2d8a571e03ac9c9eb76fac45af8e51"
    )

    @pytest.fixture
    def fixed_service(self):
        svc = EncryptionService()
        svc.derive_encryption_key_from_signature(self.AES_KEY + self.HMAC_KEY + b"\x00" * 33)
        return svc

    def _tag(self, message):
        return hmac.new(self.HMAC_KEY, message, hashlib.sha256).digest()[:16]

    def test_key_split(self, fixed_service):
        assert fixed_service._key.v1 == self.AES_KEY + self.HMAC_KEY

    def test_decrypts_fixed_blob(self, fixed_service):
        blob = self.IV + self._tag(self.IV + self.CIPHERTEXT) + self.CIPHERTEXT
        assert EncryptionService.get_encryption_version(blob) is UtxoVersion.V1
        assert fixed_service.decrypt(blob) == self.PLAINTEXT

    def test_tag_must_cover_iv(self, fixed_service):
        blob = self.IV + self._tag(self.CIPHERTEXT) + self.CIPHERTEXT
        with pytest.raises(DecryptionError):
            fixed_service.decrypt(blob)

    def test_tag_before_ciphertext(self, fixed_service):
        blob = self.IV + self.CIPHERTEXT + self._tag(self.IV + self.CIPHERTEXT)
        with pytest.raises(DecryptionError):
            fixed_service.decrypt(blob)


class TestV1:

    def test_decrypts_legacy_blob(self, service, wallet):
        blob = _v1_blob(wallet.sign_message(), b"legacy payload")
        assert service.decrypt(blob) == b"legacy payload"

    def test_bad_tag(self, service, wallet):
        blob = bytearray(_v1_blob(wallet.sign_message(), b"legacy payload"))
        blob[20] ^= 0xFF
        with pytest.raises(DecryptionError):
            service.decrypt(bytes(blob))

    def test_other_wallet_rejected(self, service):
        blob = _v1_blob(Wallet.from_seed(b"\x09" * 32).sign_message(), b"not yours")
        with pytest.raises(DecryptionError):
            service.decrypt(blob)

    def test_legacy_utxo_uses_v1_keypair(self, service, wallet):
        payload = f"500|42|7|{USDC_MINT}".encode()
        utxo = service.decrypt_utxo(_v1_blob(wallet.sign_message(), payload))
        assert utxo.version is UtxoVersion.V1
        assert utxo.keypair == service.utxo_keypair(UtxoVersion.V1)
        assert (utxo.amount, utxo.blinding, utxo.index, utxo.asset_id) == (500, 42, 7, USDC_MINT)


# ==============================================================================
# UTXO helpers
# ==============================================================================


class TestUtxoEncryption:

    def test_utxo_round_trip(self, service):
        utxo = Utxo.new(1_000, service.utxo_keypair(), index=5)
        restored = service.decrypt_utxo(service.encrypt_utxo(utxo))
        assert restored.amount == 1_000
        assert restored.blinding == utxo.blinding
        assert restored.index == 5
        assert restored.commitment() == utxo.commitment()
        assert restored.nullifier() == utxo.nullifier()

    def test_hex_round_trip(self, service):
        utxo = Utxo.new(7, service.utxo_keypair())
        assert service.decrypt_utxo_hex(service.encrypt_utxo(utxo).hex()).amount == 7

    def test_invalid_hex(self, service):
        with pytest.raises(DecryptionError, match="hex"):
            service.decrypt_utxo_hex("zz")

    def test_non_utxo_plaintext(self, service):
        with pytest.raises(DecryptionError):
            service.decrypt_utxo(service.encrypt(b"just some text"))

    def test_invalid_utf8(self, service):
        with pytest.raises(DecryptionError, match="UTF-8"):
            service.decrypt_utxo(service.encrypt(b"\xff\xfe\xfd"))
