# Vault Module - Encrypted credential storage
#
# AES-256-GCM over the whole credential list, PBKDF2 key derivation,
# every stored ciphertext attested on the owner's integrity ledger.

from .auth import AuthResult, MasterPasswordAuth
from .encryption import EncryptedBlob, EncryptionService
from .models import (
    CredentialEntry,
    EntryResult,
    ExportResult,
    ImportResult,
    LoadResult,
    OperationResult,
    SaveResult,
)
from .vault_manager import VaultManager

__all__ = [
    "VaultManager",
    "MasterPasswordAuth",
    "EncryptionService",
    "EncryptedBlob",
    "CredentialEntry",
    "OperationResult",
    "SaveResult",
    "LoadResult",
    "EntryResult",
    "ExportResult",
    "ImportResult",
    "AuthResult",
]
