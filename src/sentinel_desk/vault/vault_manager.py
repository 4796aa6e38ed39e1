# Vault - Vault Manager
#
# The only component that combines encryption and ledger operations.
# Credentials reach storage only as one EncryptedBlob per owner, and every
# stored blob is fingerprinted onto the owner's integrity ledger.
#
# Single-entry edits are load-mutate-save over the whole list. All
# operations for one owner are serialized by that owner's lock.

import asyncio
import dataclasses
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..config import MIN_PASSPHRASE_LENGTH
from ..core import (
    EventSeverity,
    EventType,
    OwnerLocks,
    get_audit_logger,
    log_security_event,
)
from ..exceptions import (
    DecryptionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    VaultError,
)
from ..ledger import IntegrityLedger, LedgerBlock, LedgerVerification
from ..store import VaultStore
from .encryption import EncryptedBlob, EncryptionService, validate_passphrase
from .models import (
    CredentialEntry,
    EntryResult,
    ExportResult,
    ImportResult,
    LoadResult,
    OperationResult,
    SaveResult,
    deserialize_entries,
    serialize_entries,
    utc_now,
)

logger = logging.getLogger(__name__)

EntryLike = Union[CredentialEntry, Dict[str, Any]]

# Fields a caller may change through update_entry
UPDATABLE_FIELDS = ("site", "username", "secret", "notes")


class VaultManager:
    """
    Manages per-owner encrypted credential vaults.

    Security:
    - The whole credential list is encrypted with AES-256-GCM under a key
      derived from the master password (fresh salt and nonce per save)
    - Master password never stored
    - Every stored ciphertext is attested on the owner's integrity ledger
    - Ledger problems on load are warnings, never a reason to refuse data
    - Audit logging for all vault access

    Args:
        store: Persistence backend (default: SQLite vault.db)
        ledger: Integrity ledger over the same store
        locks: Per-owner lock registry, shared with MasterPasswordAuth
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

    # ── internals (caller holds the owner lock) ─────────────────────

    @staticmethod
    def _coerce_entries(entries: Iterable[EntryLike]) -> List[CredentialEntry]:
        result = []
        for item in entries:
            if isinstance(item, CredentialEntry):
                result.append(item)
            elif isinstance(item, dict):
                result.append(CredentialEntry.from_dict(item))
            else:
                raise ValidationError("Each entry must have site, username, and password")
        return result

    @staticmethod
    def _validate_entries(entries: List[CredentialEntry]) -> None:
        seen = set()
        for entry in entries:
            entry.validate()
            if entry.id in seen:
                raise ValidationError(f"Duplicate entry id {entry.id}")
            seen.add(entry.id)

    async def _save(self, owner_id: str, passphrase: str, entries: List[CredentialEntry]) -> LedgerBlock:
        validate_passphrase(passphrase, MIN_PASSPHRASE_LENGTH)
        self._validate_entries(entries)

        blob = EncryptionService.encrypt(serialize_entries(entries), passphrase)

        await asyncio.to_thread(self.store.put_blob, owner_id, blob.to_record())

        try:
            block = await self.ledger.append(owner_id, blob.fingerprint())
        except PersistenceError as e:
            logger.error("Vault for %s stored but ledger append failed: %s", owner_id, e)
            raise PersistenceError(
                f"Ledger attestation failed: {e}",
                user_message="Vault stored but its ledger proof could not be recorded. Please save again.",
            ) from e

        self.logger.log_vault_event(
            EventType.VAULT_SAVED,
            owner_id,
            f"Vault saved ({len(entries)} entries)",
            details={"entries": len(entries), "block_index": block.index},
        )
        return block

    async def _load(
        self, owner_id: str, passphrase: str
    ) -> Tuple[List[CredentialEntry], Optional[LedgerVerification]]:
        record = await asyncio.to_thread(self.store.get_blob, owner_id)
        if record is None:
            return [], None

        blob = EncryptedBlob.from_record(record)

        # Verification problems are reported, not enforced: refusing access
        # to decryptable data over a ledger issue would lose the data.
        verification = await self.ledger.verify(owner_id, blob.fingerprint())
        if not verification.ok:
            logger.warning("Vault integrity warning for %s: %s", owner_id, verification.message)
            log_security_event(
                EventType.LEDGER_INTEGRITY_WARNING,
                EventSeverity.ALERT,
                verification.message,
                owner_id=owner_id,
                details=verification.to_dict(),
            )

        plaintext = EncryptionService.decrypt(blob, passphrase)
        try:
            entries = deserialize_entries(plaintext)
        except (ValueError, TypeError, ValidationError) as e:
            raise DecryptionError(f"Vault contents could not be parsed: {e}") from e
        return entries, verification

    def _fail(self, event_type: EventType, owner_id: str, error: VaultError) -> None:
        severity = (
            EventSeverity.CRITICAL if isinstance(error, PersistenceError)
            else EventSeverity.ALERT if isinstance(error, DecryptionError)
            else EventSeverity.INFO
        )
        self.logger.log_event(
            event_type=event_type,
            severity=severity,
            message=f"Vault operation failed: {error.user_message}",
            owner_id=owner_id,
            details={"error": type(error).__name__},
        )

    @staticmethod
    def _find(entries: List[CredentialEntry], entry_id: str) -> int:
        for i, entry in enumerate(entries):
            if entry.id == entry_id:
                return i
        raise NotFoundError(f"Entry {entry_id} not found", user_message="Entry not found")

    # ── public API ──────────────────────────────────────────────────

    async def save(self, owner_id: str, passphrase: str, entries: Iterable[EntryLike]) -> SaveResult:
        """
        Encrypt and store the owner's full credential list, then record
        its fingerprint on the ledger.

        Returns:
            SaveResult with the attesting block on success. A ledger
            failure after the blob was stored is still a failed save.
        """
        async with self.locks(owner_id):
            try:
                block = await self._save(owner_id, passphrase, self._coerce_entries(entries))
            except VaultError as e:
                self._fail(EventType.VAULT_SAVE_FAILED, owner_id, e)
                return SaveResult.failed(e)

        return SaveResult(
            success=True,
            message="Vault saved successfully",
            block_index=block.index,
            block_hash=block.hash,
        )

    async def load(self, owner_id: str, passphrase: str) -> LoadResult:
        """
        Verify and decrypt the owner's vault.

        A missing vault is not an error: the result is an empty list.
        Ledger problems are returned in ``verification`` and never block
        the load. Verification only reads the ledger: loading never creates
        or changes a chain.
        """
        async with self.locks(owner_id):
            try:
                entries, verification = await self._load(owner_id, passphrase)
            except VaultError as e:
                self._fail(EventType.VAULT_LOAD_FAILED, owner_id, e)
                return LoadResult.failed(e)

        if verification is None:
            return LoadResult(success=True, message="No vault found, starting with empty vault")

        self.logger.log_vault_event(
            EventType.VAULT_LOADED,
            owner_id,
            f"Vault loaded ({len(entries)} entries)",
            details={"found": verification.found, "chain_valid": verification.chain_valid},
        )
        return LoadResult(
            success=True,
            message=f"Vault loaded successfully ({len(entries)} entries)",
            entries=entries,
            verification=verification,
        )

    async def add_entry(
        self,
        owner_id: str,
        passphrase: str,
        site: str,
        username: str,
        secret: str,
        notes: Optional[str] = None,
    ) -> EntryResult:
        """Add one credential with a fresh id and timestamps."""
        async with self.locks(owner_id):
            try:
                validate_passphrase(passphrase, MIN_PASSPHRASE_LENGTH)
                entry = CredentialEntry(site=site, username=username, secret=secret, notes=notes)
                entry.validate()

                entries, _ = await self._load(owner_id, passphrase)
                entries.append(entry)
                await self._save(owner_id, passphrase, entries)
            except VaultError as e:
                self._fail(EventType.VAULT_SAVE_FAILED, owner_id, e)
                return EntryResult.failed(e)

        self.logger.log_vault_event(
            EventType.VAULT_ENTRY_ADDED, owner_id, f"Entry added: {entry.site}",
            details={"entry_id": entry.id},
        )
        return EntryResult(success=True, message="Entry added successfully", entry=entry)

    async def update_entry(self, owner_id: str, passphrase: str, entry_id: str, **changes) -> EntryResult:
        """
        Update fields of one credential and refresh its ``updated_at``.

        Only site, username, secret and notes can change; ``id`` and
        ``created_at`` are immutable.
        """
        async with self.locks(owner_id):
            try:
                unknown = set(changes) - set(UPDATABLE_FIELDS)
                if unknown:
                    raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

                entries, _ = await self._load(owner_id, passphrase)
                index = self._find(entries, entry_id)
                updated = dataclasses.replace(entries[index], **changes, updated_at=utc_now())
                updated.validate()
                entries[index] = updated
                await self._save(owner_id, passphrase, entries)
            except VaultError as e:
                self._fail(EventType.VAULT_SAVE_FAILED, owner_id, e)
                return EntryResult.failed(e)

        self.logger.log_vault_event(
            EventType.VAULT_ENTRY_UPDATED, owner_id, f"Entry updated: {updated.site}",
            details={"entry_id": entry_id, "fields": sorted(changes)},
        )
        return EntryResult(success=True, message="Entry updated successfully", entry=updated)

    async def delete_entry(self, owner_id: str, passphrase: str, entry_id: str) -> OperationResult:
        """Remove one credential."""
        async with self.locks(owner_id):
            try:
                entries, _ = await self._load(owner_id, passphrase)
                del entries[self._find(entries, entry_id)]
                await self._save(owner_id, passphrase, entries)
            except VaultError as e:
                self._fail(EventType.VAULT_SAVE_FAILED, owner_id, e)
                return OperationResult.failed(e)

        self.logger.log_vault_event(
            EventType.VAULT_ENTRY_DELETED, owner_id, "Entry deleted",
            details={"entry_id": entry_id},
        )
        return OperationResult(success=True, message="Entry deleted successfully")

    async def search(self, owner_id: str, passphrase: str, query: str) -> LoadResult:
        """Case-insensitive match on site, username and notes."""
        result = await self.load(owner_id, passphrase)
        if not result.success:
            return result

        matched = [e for e in result.entries if e.matches(query)]
        return LoadResult(
            success=True,
            message=f"Found {len(matched)} matching entries",
            entries=matched,
            verification=result.verification,
        )

    async def change_passphrase(self, owner_id: str, old_passphrase: str, new_passphrase: str) -> SaveResult:
        """Re-encrypt the vault under a new master password."""
        async with self.locks(owner_id):
            try:
                validate_passphrase(new_passphrase, MIN_PASSPHRASE_LENGTH)
                entries, _ = await self._load(owner_id, old_passphrase)
                block = await self._save(owner_id, new_passphrase, entries)
            except VaultError as e:
                self._fail(EventType.VAULT_SAVE_FAILED, owner_id, e)
                return SaveResult.failed(e)

        self.logger.log_event(
            event_type=EventType.VAULT_PASSPHRASE_CHANGED,
            severity=EventSeverity.INVESTIGATE,
            message="Vault master password changed",
            owner_id=owner_id,
        )
        return SaveResult(
            success=True,
            message="Master password changed successfully",
            block_index=block.index,
            block_hash=block.hash,
        )

    async def export_vault(self, owner_id: str, passphrase: str) -> ExportResult:
        """Return the decrypted credential list as indented JSON."""
        result = await self.load(owner_id, passphrase)
        if not result.success:
            return ExportResult.failed(result.error)

        self.logger.log_event(
            event_type=EventType.VAULT_EXPORTED,
            severity=EventSeverity.INVESTIGATE,
            message=f"Vault exported ({len(result.entries)} entries)",
            owner_id=owner_id,
        )
        return ExportResult(
            success=True,
            message="Vault exported successfully",
            data=json.dumps([e.to_dict() for e in result.entries], indent=2),
        )

    async def import_vault(self, owner_id: str, passphrase: str, import_data: str) -> ImportResult:
        """
        Merge exported entries into the vault.

        Entries whose (site, username) pair already exists are skipped.
        Imported entries get fresh ids; ``created_at`` is kept when present.
        """
        async with self.locks(owner_id):
            try:
                try:
                    items = json.loads(import_data)
                except (TypeError, ValueError) as e:
                    raise ValidationError(f"Invalid import data: {e}",
                                          user_message="Invalid import data format") from e
                if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
                    raise ValidationError("Invalid import data format")

                entries, _ = await self._load(owner_id, passphrase)
                existing = {(e.site, e.username) for e in entries}
                now = utc_now()
                imported = 0
                for item in items:
                    incoming = CredentialEntry.from_dict(item)
                    key = (incoming.site, incoming.username)
                    if key in existing:
                        continue
                    entry = CredentialEntry(
                        site=incoming.site,
                        username=incoming.username,
                        secret=incoming.secret,
                        notes=incoming.notes,
                        created_at=item.get("created_at") or now,
                        updated_at=now,
                    )
                    entry.validate()
                    entries.append(entry)
                    existing.add(key)
                    imported += 1

                await self._save(owner_id, passphrase, entries)
            except VaultError as e:
                self._fail(EventType.VAULT_SAVE_FAILED, owner_id, e)
                return ImportResult.failed(e)

        self.logger.log_vault_event(
            EventType.VAULT_IMPORTED, owner_id, f"Imported {imported} entries",
            details={"imported": imported},
        )
        return ImportResult(success=True, message=f"Imported {imported} new entries", imported=imported)
