# SentinelDesk - Vault Core
#
# Encrypted credential vault with a tamper-evident integrity ledger.
# Local-first: one SQLite file, one FastAPI backend on localhost.

__version__ = "0.3.0"
__author__ = "SentinelDesk Team"
__description__ = "Encrypted credential vault with an integrity ledger"

from .core import EventType, EventSeverity, get_audit_logger
from .exceptions import (
    DecryptionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    VaultError,
)

__all__ = [
    "__version__",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "VaultError",
    "ValidationError",
    "DecryptionError",
    "NotFoundError",
    "PersistenceError",
]
