# API - Shared services
#
# One store, one ledger and one lock registry back every router, so vault
# saves and auth attestations for an owner serialize on the same lock.

from typing import Optional

from fastapi import HTTPException, status

from ..core import OwnerLocks
from ..exceptions import (
    DecryptionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    VaultError,
)
from ..ledger import IntegrityLedger
from ..store import VaultStore
from ..vault import MasterPasswordAuth, OperationResult, VaultManager

_store: Optional[VaultStore] = None
_ledger: Optional[IntegrityLedger] = None
_locks: Optional[OwnerLocks] = None
_vault_manager: Optional[VaultManager] = None
_auth: Optional[MasterPasswordAuth] = None

# Checked in order; subclasses map with their parent
_ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (DecryptionError, status.HTTP_401_UNAUTHORIZED),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def _ensure():
    global _store, _ledger, _locks, _vault_manager, _auth
    if _store is None:
        from ..store import SQLiteVaultStore
        _store = SQLiteVaultStore()
    if _ledger is None:
        _ledger = IntegrityLedger(_store)
    if _locks is None:
        _locks = OwnerLocks()
    if _vault_manager is None:
        _vault_manager = VaultManager(_store, _ledger, _locks)
    if _auth is None:
        _auth = MasterPasswordAuth(_store, _ledger, _locks)


def get_vault_manager() -> VaultManager:
    """Lazy singleton, created on first use."""
    _ensure()
    return _vault_manager


def get_auth() -> MasterPasswordAuth:
    _ensure()
    return _auth


def get_ledger() -> IntegrityLedger:
    _ensure()
    return _ledger


def get_locks() -> OwnerLocks:
    _ensure()
    return _locks


def set_store(store: Optional[VaultStore]) -> None:
    """Swap the backing store and rebuild the services on it (for testing)."""
    global _store, _ledger, _locks, _vault_manager, _auth
    _store = store
    _ledger = _locks = _vault_manager = _auth = None


def http_error(error: VaultError) -> HTTPException:
    for cls, status_code in _ERROR_STATUS:
        if isinstance(error, cls):
            return HTTPException(status_code=status_code, detail=error.user_message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error.user_message)


def result_or_raise(result: OperationResult) -> dict:
    """Response body for a successful result; mapped HTTPException otherwise."""
    if not result.success:
        raise http_error(result.error)
    return result.to_dict()
