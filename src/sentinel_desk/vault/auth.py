# Vault - Master Password Gate
#
# Stores a PBKDF2-HMAC-SHA512 hash of the master password per owner and
# attests it on the owner's integrity ledger. The password itself is never
# stored. Ledger verification on login is informational only.

import asyncio
import hmac
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..config import MIN_PASSPHRASE_LENGTH
from ..core import EventSeverity, EventType, OwnerLocks, get_audit_logger
from ..exceptions import (
    AuthenticationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    VaultError,
)
from ..ledger import IntegrityLedger, calculate_hash
from ..store import VaultStore
from .encryption import validate_passphrase
from .models import OperationResult, utc_now

HASH_ALGORITHM = "pbkdf2-sha512"
HASH_LENGTH = 64
SALT_LENGTH = 32
ITERATIONS = 100_000


def hash_password(password: str, salt: bytes, iterations: int = ITERATIONS) -> bytes:
    """PBKDF2-HMAC-SHA512 of the password, 64 bytes."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=HASH_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


@dataclass
class AuthResult(OperationResult):
    ledger_verified: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["ledger_verified"] = self.ledger_verified
        return data


class MasterPasswordAuth:
    """
    Master password registration and login for one store.

    Shares the owner lock registry with VaultManager so auth attestations
    and vault saves never race on the same ledger.
    """

    def __init__(
        self,
        store: Optional[VaultStore] = None,
        ledger: Optional[IntegrityLedger] = None,
        locks: Optional[OwnerLocks] = None,
    ):
        if store is None:
            from ..store import SQLiteVaultStore
            store = SQLiteVaultStore()
        self.store = store
        self.ledger = ledger or IntegrityLedger(store)
        self.locks = locks or OwnerLocks()
        self.logger = get_audit_logger()

    async def _new_record(self, owner_id: str, password: str) -> Dict[str, Any]:
        salt = os.urandom(SALT_LENGTH)
        password_hash = hash_password(password, salt).hex()
        ledger_data = f"{password_hash}-{int(time.time() * 1000)}"

        try:
            await self.ledger.append(owner_id, calculate_hash(ledger_data))
        except PersistenceError as e:
            raise PersistenceError(
                f"Ledger attestation failed: {e}",
                user_message="Failed to create ledger proof",
            ) from e

        now = utc_now()
        return {
            "password_hash": password_hash,
            "salt": salt.hex(),
            "iterations": ITERATIONS,
            "algorithm": HASH_ALGORITHM,
            "ledger_data": ledger_data,
            "created_at": now,
            "last_login": now,
        }

    async def _get_record(self, owner_id: str) -> Dict[str, Any]:
        record = await asyncio.to_thread(self.store.get_auth, owner_id)
        if record is None:
            raise NotFoundError(
                f"No auth record for {owner_id}",
                user_message="No master password found. Please register first.",
            )
        return record

    async def _check(self, owner_id: str, password: str) -> Dict[str, Any]:
        record = await self._get_record(owner_id)
        try:
            salt = bytes.fromhex(record["salt"])
            stored = bytes.fromhex(record["password_hash"])
            candidate = hash_password(password, salt, int(record["iterations"]))
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(
                f"Auth record for {owner_id} is unreadable: {e}",
                user_message="Stored master password record is corrupted. Reset it to recover.",
            ) from e
        if not hmac.compare_digest(candidate, stored):
            raise AuthenticationError(f"Password mismatch for {owner_id}")
        return record

    async def _ledger_protected(self, owner_id: str, record: Dict[str, Any]) -> bool:
        verification = await self.ledger.verify(owner_id, calculate_hash(record["ledger_data"]))
        return verification.ok

    def _failed(self, owner_id: str, action: str, error: VaultError) -> AuthResult:
        self.logger.log_event(
            event_type=EventType.AUTH_FAILED,
            severity=EventSeverity.INVESTIGATE,
            message=f"Master password {action} failed: {error.user_message}",
            owner_id=owner_id,
            details={"error": type(error).__name__},
        )
        return AuthResult.failed(error)

    async def register(self, owner_id: str, password: str) -> AuthResult:
        """First-time setup. Refuses if the owner already has a master password."""
        async with self.locks(owner_id):
            try:
                validate_passphrase(password, MIN_PASSPHRASE_LENGTH)
                if await asyncio.to_thread(self.store.get_auth, owner_id) is not None:
                    raise ValidationError("Master password already registered. Use login instead.")
                record = await self._new_record(owner_id, password)
                await asyncio.to_thread(self.store.put_auth, owner_id, record)
            except VaultError as e:
                return self._failed(owner_id, "registration", e)

        self.logger.log_event(
            event_type=EventType.AUTH_REGISTERED,
            severity=EventSeverity.INFO,
            message="Master password registered",
            owner_id=owner_id,
        )
        return AuthResult(success=True, message="Master password registered successfully")

    async def verify(self, owner_id: str, password: str) -> AuthResult:
        """
        Check a master password in constant time and record the login.

        ``ledger_verified`` reports whether the stored hash is attested
        on a valid chain; it does not affect ``success``.
        """
        async with self.locks(owner_id):
            try:
                record = await self._check(owner_id, password)
                ledger_verified = await self._ledger_protected(owner_id, record)
                record["last_login"] = utc_now()
                await asyncio.to_thread(self.store.put_auth, owner_id, record)
            except VaultError as e:
                return self._failed(owner_id, "verification", e)

        self.logger.log_event(
            event_type=EventType.AUTH_VERIFIED,
            severity=EventSeverity.INFO if ledger_verified else EventSeverity.ALERT,
            message=f"Master password verified (ledger: {'valid' if ledger_verified else 'WARNING'})",
            owner_id=owner_id,
        )
        return AuthResult(
            success=True,
            message="Master password verified",
            ledger_verified=ledger_verified,
        )

    async def has_master_password(self, owner_id: str) -> bool:
        return await asyncio.to_thread(self.store.get_auth, owner_id) is not None

    async def change(self, owner_id: str, old_password: str, new_password: str) -> AuthResult:
        """Replace the master password hash with a fresh salt and ledger proof."""
        async with self.locks(owner_id):
            try:
                validate_passphrase(new_password, MIN_PASSPHRASE_LENGTH)
                old = await self._check(owner_id, old_password)
                record = await self._new_record(owner_id, new_password)
                record["created_at"] = old["created_at"]
                await asyncio.to_thread(self.store.put_auth, owner_id, record)
            except VaultError as e:
                return self._failed(owner_id, "change", e)

        self.logger.log_event(
            event_type=EventType.AUTH_CHANGED,
            severity=EventSeverity.INVESTIGATE,
            message="Master password changed",
            owner_id=owner_id,
        )
        return AuthResult(success=True, message="Master password changed successfully")

    async def info(self, owner_id: str) -> Dict[str, Any]:
        """Auth status without secret material."""
        async with self.locks(owner_id):
            record = await asyncio.to_thread(self.store.get_auth, owner_id)
            if record is None:
                return {"exists": False, "ledger_protected": False}
            ledger_protected = await self._ledger_protected(owner_id, record)

        return {
            "exists": True,
            "created_at": record["created_at"],
            "last_login": record["last_login"],
            "algorithm": record["algorithm"],
            "ledger_protected": ledger_protected,
        }

    async def reset(self, owner_id: str) -> AuthResult:
        """Delete the owner's master password record. The vault blob is untouched."""
        async with self.locks(owner_id):
            try:
                deleted = await asyncio.to_thread(self.store.delete_auth, owner_id)
            except VaultError as e:
                return self._failed(owner_id, "reset", e)

        if not deleted:
            return AuthResult.failed(NotFoundError(
                f"No auth record for {owner_id}",
                user_message="No master password found. Please register first.",
            ))

        self.logger.log_event(
            event_type=EventType.AUTH_RESET,
            severity=EventSeverity.ALERT,
            message="Master password reset, auth data deleted",
            owner_id=owner_id,
        )
        return AuthResult(
            success=True,
            message="Master password reset successfully. You can now register a new password.",
        )
