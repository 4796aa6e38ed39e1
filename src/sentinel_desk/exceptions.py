"""
SentinelDesk Exception Classes

Every failure a caller must be able to tell apart gets its own class.
``user_message`` is what the UI shows; ``str(exc)`` may carry more detail
for the logs.
"""


class VaultError(Exception):
    """Base exception for vault, ledger and auth operations"""

    default_message = "Vault operation failed"

    def __init__(self, message: str = "", user_message: str = ""):
        super().__init__(message or self.default_message)
        self.user_message = user_message or message or self.default_message


class ValidationError(VaultError):
    """Raised when input is rejected before any crypto or storage work"""

    default_message = "Invalid input"


class DecryptionError(VaultError):
    """Raised when the authentication tag does not verify.

    Wrong passphrase and corrupted ciphertext are deliberately reported
    the same way.
    """

    default_message = "Invalid master password or corrupted vault"

    def __init__(self, message: str = ""):
        super().__init__(message, user_message=self.default_message)


class NotFoundError(VaultError):
    """Raised when a referenced entry or owner record does not exist"""

    default_message = "Not found"


class PersistenceError(VaultError):
    """Raised when the storage backend fails"""

    default_message = "Storage unavailable, please retry"


class LedgerConflictError(PersistenceError):
    """Raised when the ledger tip moved between reload and write"""

    default_message = "Ledger was modified concurrently"


class LedgerCorruptError(PersistenceError):
    """Raised when a stored ledger cannot be parsed at all"""

    default_message = "Ledger data is unreadable; reset the ledger to recover"


class AuthenticationError(DecryptionError):
    """Raised when a master password does not match the stored hash"""

    default_message = "Invalid master password"
