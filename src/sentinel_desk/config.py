# Configuration
#
# Settings come from environment variables (optionally a .env file in the
# working directory). Defaults suit the single-user desktop install.

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

MIN_PASSPHRASE_LENGTH = 8
MAX_LEDGER_DIFFICULTY = 6


@dataclass
class Settings:
    """Runtime settings.

    Args:
        data_dir: Directory holding vault.db
        audit_log_dir: Directory for daily audit log files
        ledger_difficulty: Leading hex zeros required of every block hash
        api_host / api_port: Where the backend API listens
    """
    data_dir: Path = field(default_factory=lambda: Path("data"))
    audit_log_dir: Path = field(default_factory=lambda: Path("audit_logs"))
    ledger_difficulty: int = 2
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.audit_log_dir = Path(self.audit_log_dir)
        if not 1 <= self.ledger_difficulty <= MAX_LEDGER_DIFFICULTY:
            raise ValueError(
                f"ledger_difficulty must be between 1 and {MAX_LEDGER_DIFFICULTY}"
            )

    @property
    def vault_db_path(self) -> Path:
        return self.data_dir / "vault.db"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """Build settings from SENTINEL_* environment variables."""
        if dotenv:
            load_dotenv()
        return cls(
            data_dir=Path(os.environ.get("SENTINEL_DATA_DIR", "data")),
            audit_log_dir=Path(os.environ.get("SENTINEL_AUDIT_LOG_DIR", "audit_logs")),
            ledger_difficulty=int(os.environ.get("SENTINEL_LEDGER_DIFFICULTY", "2")),
            api_host=os.environ.get("SENTINEL_API_HOST", "127.0.0.1"),
            api_port=int(os.environ.get("SENTINEL_API_PORT", "8000")),
        )


# ── Singleton ────────────────────────────────────────────────────────

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the process-wide settings."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Replace the singleton (for testing)."""
    global _settings
    _settings = settings
