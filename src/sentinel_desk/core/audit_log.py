# Core - Audit Logging
#
# Append-only structured audit log for vault, ledger and auth events.
# Every save, load, integrity warning and login attempt is recorded with a
# timestamp and owner context. Secrets and passphrases are never logged.

import logging
import os
import socket
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog


class EventType(str, Enum):
    """Types of security events that can be logged."""
    # Vault Events
    VAULT_SAVED = "vault.saved"
    VAULT_SAVE_FAILED = "vault.save.failed"
    VAULT_LOADED = "vault.loaded"
    VAULT_LOAD_FAILED = "vault.load.failed"
    VAULT_ENTRY_ADDED = "vault.entry.added"
    VAULT_ENTRY_UPDATED = "vault.entry.updated"
    VAULT_ENTRY_DELETED = "vault.entry.deleted"
    VAULT_PASSPHRASE_CHANGED = "vault.passphrase.changed"
    VAULT_EXPORTED = "vault.exported"
    VAULT_IMPORTED = "vault.imported"

    # Ledger Events
    LEDGER_CREATED = "ledger.created"
    LEDGER_BLOCK_APPENDED = "ledger.block.appended"
    LEDGER_INTEGRITY_WARNING = "ledger.integrity.warning"
    LEDGER_CONFLICT = "ledger.conflict"
    LEDGER_RESET = "ledger.reset"

    # Auth Events
    AUTH_REGISTERED = "auth.registered"
    AUTH_VERIFIED = "auth.verified"
    AUTH_FAILED = "auth.failed"
    AUTH_CHANGED = "auth.changed"
    AUTH_RESET = "auth.reset"

    # System Events
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"


class EventSeverity(str, Enum):
    """
    Severity levels for security events.

    - INFO: Normal activity (logged only)
    - INVESTIGATE: Something unusual, worth a look
    - ALERT: Integrity problem surfaced to the user
    - CRITICAL: Operation failed in a way the user must act on
    """
    INFO = "info"
    INVESTIGATE = "investigate"
    ALERT = "alert"
    CRITICAL = "critical"


class AuditLogger:
    """
    Append-only audit logger for security events.

    Features:
    - Structured JSON logging via structlog
    - Automatic timestamp and event ID
    - Owner and host context capture
    - One log file per day
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: from settings)
        """
        if log_dir is None:
            from ..config import get_settings
            log_dir = get_settings().audit_log_dir
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._setup_file_handler()

        self.logger = structlog.get_logger("sentinel_desk.audit")

    def _setup_file_handler(self):
        """Attach a daily file handler to the audit logger."""
        today = datetime.now().strftime("%Y-%m-%d")
        self.log_file = self.log_dir / f"audit_{today}.log"

        self._file_handler = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
        self._file_handler.setLevel(logging.INFO)
        self._file_handler.setFormatter(logging.Formatter('%(message)s'))

        audit_logger = logging.getLogger("sentinel_desk.audit")
        audit_logger.addHandler(self._file_handler)
        audit_logger.setLevel(logging.INFO)

    def close(self):
        """Detach and close the file handler."""
        logging.getLogger("sentinel_desk.audit").removeHandler(self._file_handler)
        self._file_handler.close()

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        owner_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Log a security event (append-only).

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            owner_id: Vault owner the event concerns
            details: Additional event details (never passwords!)

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())

        self.logger.info(
            "security_event",
            event_id=event_id,
            event_type=event_type.value,
            severity=severity.value,
            message=message,
            owner_id=owner_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
            details=details or {},
            host_context=self._get_host_context(),
        )

        return event_id

    def log_vault_event(
        self,
        event_type: EventType,
        owner_id: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ) -> str:
        """Log a routine vault event at INFO severity."""
        return self.log_event(
            event_type=event_type,
            severity=EventSeverity.INFO,
            message=f"Vault: {message}",
            owner_id=owner_id,
            details=details
        )

    @staticmethod
    def _get_host_context() -> Dict[str, Any]:
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def log_security_event(
    event_type: EventType,
    severity: EventSeverity,
    message: str,
    **kwargs
) -> str:
    """
    Convenience function for logging security events.

    Usage:
        log_security_event(
            EventType.LEDGER_INTEGRITY_WARNING,
            EventSeverity.ALERT,
            "Ledger chain failed validation",
            owner_id="local",
        )
    """
    return get_audit_logger().log_event(event_type, severity, message, **kwargs)
