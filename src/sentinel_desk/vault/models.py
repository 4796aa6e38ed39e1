"""
Vault Data Models
"""

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..exceptions import ValidationError, VaultError
from ..ledger import LedgerVerification


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CredentialEntry:
    """One stored secret"""
    site: str
    username: str
    secret: str
    notes: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: str = field(default_factory=utc_now)
    updated_at: str = ""

    def __post_init__(self):
        if not self.updated_at:
            self.updated_at = self.created_at

    def validate(self) -> None:
        """Raise ValidationError unless site, username and secret are set."""
        for name in ("site", "username", "secret"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValidationError(
                    "Each entry must have site, username, and password"
                )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CredentialEntry":
        known = {k: data[k] for k in (
            "site", "username", "secret", "notes", "id", "created_at", "updated_at",
        ) if k in data}
        # Older exports used "password" for the secret
        if "secret" not in known and "password" in data:
            known["secret"] = data["password"]
        try:
            return cls(**known)
        except TypeError as e:
            raise ValidationError(f"Invalid entry: {e}") from e

    def matches(self, query: str) -> bool:
        q = query.lower()
        return (
            q in self.site.lower()
            or q in self.username.lower()
            or bool(self.notes and q in self.notes.lower())
        )


def serialize_entries(entries: List[CredentialEntry]) -> bytes:
    return json.dumps([e.to_dict() for e in entries]).encode("utf-8")


def deserialize_entries(data: bytes) -> List[CredentialEntry]:
    return [CredentialEntry.from_dict(item) for item in json.loads(data.decode("utf-8"))]


# ── Results ─────────────────────────────────────────────────────────

@dataclass
class OperationResult:
    """Base result; failures carry the VaultError that caused them."""
    success: bool
    message: str = ""
    error: Optional[VaultError] = None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    @property
    def error_kind(self) -> Optional[str]:
        return type(self.error).__name__ if self.error else None

    @classmethod
    def failed(cls, error: VaultError, **kwargs) -> "OperationResult":
        return cls(success=False, message=error.user_message, error=error, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        data = {"success": self.success, "message": self.message}
        if self.error is not None:
            data["error"] = self.error_kind
        return data


@dataclass
class SaveResult(OperationResult):
    block_index: Optional[int] = None
    block_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["block_index"] = self.block_index
        data["block_hash"] = self.block_hash
        return data


@dataclass
class LoadResult(OperationResult):
    entries: List[CredentialEntry] = field(default_factory=list)
    verification: Optional[LedgerVerification] = None

    @property
    def has_integrity_warning(self) -> bool:
        return self.verification is not None and not self.verification.ok

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["entries"] = [e.to_dict() for e in self.entries]
        data["verification"] = self.verification.to_dict() if self.verification else None
        data["integrity_warning"] = self.has_integrity_warning
        return data


@dataclass
class EntryResult(OperationResult):
    entry: Optional[CredentialEntry] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["entry"] = self.entry.to_dict() if self.entry else None
        return data


@dataclass
class ExportResult(OperationResult):
    data: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["data"] = self.data
        return result


@dataclass
class ImportResult(OperationResult):
    imported: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["imported"] = self.imported
        return data
