# Core Module - Shared Utilities
#
# Core module provides shared functionality across SentinelDesk modules:
# - Audit logging
# - SQLite connection helper
# - Per-owner operation locks

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    log_security_event,
)
from .locks import OwnerLocks

__all__ = [
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "log_security_event",
    # Concurrency
    "OwnerLocks",
]
