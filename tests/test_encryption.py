"""Tests for the vault encryption layer.

Covers: EncryptionService round trip, wrong-key and tamper rejection,
fresh salt/nonce per encryption, EncryptedBlob records and fingerprints.
"""

import dataclasses

import pytest

from sentinel_desk.exceptions import DecryptionError, ValidationError
from sentinel_desk.vault.encryption import (
    EncryptedBlob,
    EncryptionService,
    validate_passphrase,
)

PASSPHRASE = "correct horse battery"


class TestEncryptionService:
    """AES-256-GCM under a PBKDF2-derived key."""

    def test_encrypt_decrypt_roundtrip(self):
        data = b'[{"site": "example.com"}]'
        blob = EncryptionService.encrypt(data, PASSPHRASE)
        assert EncryptionService.decrypt(blob, PASSPHRASE) == data

    def test_empty_plaintext(self):
        blob = EncryptionService.encrypt(b"", PASSPHRASE)
        assert EncryptionService.decrypt(blob, PASSPHRASE) == b""

    def test_wrong_passphrase_raises(self):
        blob = EncryptionService.encrypt(b"secret data", PASSPHRASE)
        with pytest.raises(DecryptionError) as exc_info:
            EncryptionService.decrypt(blob, "wrong passphrase")
        assert exc_info.value.user_message == "Invalid master password or corrupted vault"

    def test_tampered_ciphertext_raises_same_error(self):
        blob = EncryptionService.encrypt(b"secret data", PASSPHRASE)
        flipped = bytes([blob.ciphertext[0] ^ 0x01]) + blob.ciphertext[1:]
        with pytest.raises(DecryptionError) as exc_info:
            EncryptionService.decrypt(dataclasses.replace(blob, ciphertext=flipped), PASSPHRASE)
        # Corruption is indistinguishable from a wrong password
        assert exc_info.value.user_message == "Invalid master password or corrupted vault"

    def test_tampered_tag_raises(self):
        blob = EncryptionService.encrypt(b"secret data", PASSPHRASE)
        bad_tag = bytes(len(blob.auth_tag))
        with pytest.raises(DecryptionError):
            EncryptionService.decrypt(dataclasses.replace(blob, auth_tag=bad_tag), PASSPHRASE)

    def test_wrong_length_nonce_raises(self):
        blob = EncryptionService.encrypt(b"secret data", PASSPHRASE)
        for nonce in (bytes(4), bytes(12)):
            with pytest.raises(DecryptionError) as exc_info:
                EncryptionService.decrypt(dataclasses.replace(blob, nonce=nonce), PASSPHRASE)
            assert exc_info.value.user_message == "Invalid master password or corrupted vault"

    def test_unsupported_version_raises(self):
        blob = EncryptionService.encrypt(b"secret data", PASSPHRASE)
        with pytest.raises(DecryptionError):
            EncryptionService.decrypt(dataclasses.replace(blob, version=99), PASSPHRASE)

    def test_salt_and_nonce_are_fresh(self):
        data = b"same data"
        first = EncryptionService.encrypt(data, PASSPHRASE)
        second = EncryptionService.encrypt(data, PASSPHRASE)
        assert first.salt != second.salt
        assert first.nonce != second.nonce
        assert first.ciphertext != second.ciphertext
        assert first.fingerprint() != second.fingerprint()

    def test_envelope_sizes(self):
        blob = EncryptionService.encrypt(b"format check", PASSPHRASE)
        assert len(blob.salt) == EncryptionService.SALT_LENGTH == 64
        assert len(blob.nonce) == EncryptionService.NONCE_LENGTH == 16
        assert len(blob.auth_tag) == EncryptionService.TAG_LENGTH == 16
        assert len(blob.ciphertext) == len(b"format check")
        assert blob.version == EncryptionService.FORMAT_VERSION

    def test_derive_key_is_deterministic(self):
        salt = EncryptionService.generate_salt()
        key = EncryptionService.derive_key(PASSPHRASE, salt)
        assert len(key) == 32
        assert key == EncryptionService.derive_key(PASSPHRASE, salt)
        assert key != EncryptionService.derive_key(PASSPHRASE + "!", salt)


class TestEncryptedBlob:
    """Stored record form and fingerprints."""

    def test_record_is_hex(self):
        blob = EncryptionService.encrypt(b"data", PASSPHRASE)
        record = blob.to_record()
        assert set(record) == {"encrypted_data", "iv", "salt", "auth_tag", "version"}
        assert bytes.fromhex(record["salt"]) == blob.salt

    def test_from_record_restores_blob(self):
        blob = EncryptionService.encrypt(b"data", PASSPHRASE)
        restored = EncryptedBlob.from_record(blob.to_record())
        assert restored == blob
        assert restored.fingerprint() == blob.fingerprint()

    def test_from_record_missing_field(self):
        record = EncryptionService.encrypt(b"data", PASSPHRASE).to_record()
        del record["iv"]
        with pytest.raises(DecryptionError):
            EncryptedBlob.from_record(record)

    def test_from_record_bad_hex(self):
        record = EncryptionService.encrypt(b"data", PASSPHRASE).to_record()
        record["salt"] = "not-hex"
        with pytest.raises(DecryptionError):
            EncryptedBlob.from_record(record)

    def test_fingerprint_is_sha256_hex(self):
        blob = EncryptionService.encrypt(b"data", PASSPHRASE)
        fp = blob.fingerprint()
        assert len(fp) == 64
        int(fp, 16)

    def test_fingerprint_ignores_key_order(self):
        blob = EncryptionService.encrypt(b"data", PASSPHRASE)
        reordered = dict(reversed(list(blob.to_record().items())))
        assert EncryptedBlob.from_record(reordered).fingerprint() == blob.fingerprint()


class TestValidatePassphrase:

    def test_short_passphrase_rejected(self):
        with pytest.raises(ValidationError, match="at least 8 characters"):
            validate_passphrase("short")

    def test_empty_passphrase_rejected(self):
        with pytest.raises(ValidationError):
            validate_passphrase("")

    def test_minimum_length_accepted(self):
        validate_passphrase("12345678")
