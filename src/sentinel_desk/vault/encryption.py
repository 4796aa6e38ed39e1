# Vault - Encryption Service
#
# Master password + salt → encryption key (PBKDF2-SHA256)
# Credential list bytes → EncryptedBlob (AES-256-GCM)
# Fresh salt and nonce on every encryption

import hashlib
import json
import os
from dataclasses import dataclass
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..exceptions import DecryptionError, ValidationError


def fingerprint(data: bytes) -> str:
    """SHA-256 hex digest of arbitrary bytes."""
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class EncryptedBlob:
    """
    Self-describing ciphertext envelope.

    ``ciphertext`` excludes the GCM tag, which is kept in ``auth_tag`` so
    the stored record mirrors the vault_data columns.
    """
    ciphertext: bytes
    nonce: bytes
    salt: bytes
    auth_tag: bytes
    version: int = 1

    def to_record(self) -> Dict[str, Any]:
        """Hex-encoded record for the persistence layer."""
        return {
            "encrypted_data": self.ciphertext.hex(),
            "iv": self.nonce.hex(),
            "salt": self.salt.hex(),
            "auth_tag": self.auth_tag.hex(),
            "version": self.version,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "EncryptedBlob":
        """
        Rebuild a blob from a stored record.

        Raises:
            DecryptionError: If the record is incomplete or not valid hex
        """
        try:
            return cls(
                ciphertext=bytes.fromhex(record["encrypted_data"]),
                nonce=bytes.fromhex(record["iv"]),
                salt=bytes.fromhex(record["salt"]),
                auth_tag=bytes.fromhex(record["auth_tag"]),
                version=int(record.get("version", 1)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DecryptionError(f"Malformed vault record: {e}") from e

    def canonical_bytes(self) -> bytes:
        """Stable serialization used for ledger fingerprints."""
        return json.dumps(
            self.to_record(), sort_keys=True, separators=(",", ":")
        ).encode("utf-8")

    def fingerprint(self) -> str:
        return fingerprint(self.canonical_bytes())


class EncryptionService:
    """
    Handles encryption/decryption of the serialized credential list.

    Flow:
    1. User enters master password
    2. PBKDF2 derives 256-bit key from password + fresh random salt
    3. AES-256-GCM encrypts the whole credential list
    4. Salt, nonce and tag travel with the ciphertext in the blob

    Decryption failures never say whether the password or the data was
    wrong; both surface as DecryptionError.
    """

    FORMAT_VERSION = 1

    # Per-version KDF iterations. Older versions stay decryptable after a bump.
    PBKDF2_ITERATIONS = {
        1: 100_000,
    }
    KEY_LENGTH = 32  # 256 bits for AES-256
    SALT_LENGTH = 64
    NONCE_LENGTH = 16  # 128-bit IV
    TAG_LENGTH = 16  # 128-bit GCM tag

    @staticmethod
    def derive_key(passphrase: str, salt: bytes, version: int = FORMAT_VERSION) -> bytes:
        """
        Derive encryption key from master password using PBKDF2.

        Args:
            passphrase: User's master password
            salt: Random salt (stored with the blob)
            version: Blob format version, selects the iteration count

        Returns:
            256-bit encryption key
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=EncryptionService.KEY_LENGTH,
            salt=salt,
            iterations=EncryptionService.PBKDF2_ITERATIONS[version],
            backend=default_backend()
        )

        return kdf.derive(passphrase.encode('utf-8'))

    @staticmethod
    def generate_salt() -> bytes:
        """Generate cryptographically random salt."""
        return os.urandom(EncryptionService.SALT_LENGTH)

    @staticmethod
    def encrypt(plaintext: bytes, passphrase: str) -> EncryptedBlob:
        """
        Encrypt plaintext using AES-256-GCM under a freshly derived key.

        Args:
            plaintext: Serialized credential list
            passphrase: Master password

        Returns:
            EncryptedBlob with new salt, nonce and tag
        """
        salt = EncryptionService.generate_salt()
        nonce = os.urandom(EncryptionService.NONCE_LENGTH)
        key = EncryptionService.derive_key(passphrase, salt)

        sealed = AESGCM(key).encrypt(nonce, plaintext, None)

        return EncryptedBlob(
            ciphertext=sealed[:-EncryptionService.TAG_LENGTH],
            nonce=nonce,
            salt=salt,
            auth_tag=sealed[-EncryptionService.TAG_LENGTH:],
            version=EncryptionService.FORMAT_VERSION,
        )

    @staticmethod
    def decrypt(blob: EncryptedBlob, passphrase: str) -> bytes:
        """
        Decrypt an EncryptedBlob.

        Raises:
            DecryptionError: Tag check failed (wrong password or corrupt
                data) or the blob version is not supported
        """
        if blob.version not in EncryptionService.PBKDF2_ITERATIONS:
            raise DecryptionError(f"Unsupported vault format version {blob.version}")
        if (len(blob.auth_tag) != EncryptionService.TAG_LENGTH
                or len(blob.nonce) != EncryptionService.NONCE_LENGTH):
            raise DecryptionError("Malformed vault envelope")

        key = EncryptionService.derive_key(passphrase, blob.salt, blob.version)
        try:
            return AESGCM(key).decrypt(blob.nonce, blob.ciphertext + blob.auth_tag, None)
        except InvalidTag:
            raise DecryptionError("Authentication tag mismatch") from None
        except ValueError as e:
            raise DecryptionError(f"Malformed vault envelope: {e}") from None


def validate_passphrase(passphrase: str, min_length: int = 8) -> None:
    """
    Reject master passwords that are too short.

    Raises:
        ValidationError: With a message suitable for display
    """
    if not passphrase or len(passphrase) < min_length:
        raise ValidationError(f"Master password must be at least {min_length} characters")
