"""
Shared pytest fixtures for the SentinelDesk test suite.

Autouse fixtures below isolate tests from the live application data:
  - Settings      -> temp data and audit directories
  - Audit logger  -> temp directory  (prevents fake events in audit_logs/)
"""

import pytest


@pytest.fixture(autouse=True)
def _isolate_settings(tmp_path):
    """Point the settings singleton at a temp directory for every test."""
    from sentinel_desk import config

    old_settings = config._settings
    config.set_settings(config.Settings(
        data_dir=tmp_path / "data",
        audit_log_dir=tmp_path / "audit_logs",
    ))

    yield

    config.set_settings(old_settings)


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path, monkeypatch):
    """Redirect the global AuditLogger to a temp directory for every test.

    Without this, anything that calls ``get_audit_logger().log_event(...)``
    writes into the real ``./audit_logs/`` directory.
    """
    import sentinel_desk.core.audit_log as audit_mod

    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = None

    orig_init = audit_mod.AuditLogger.__init__

    def patched_init(self, log_dir=None):
        orig_init(self, log_dir=log_dir or tmp_path / "audit_logs")

    monkeypatch.setattr(audit_mod.AuditLogger, "__init__", patched_init)

    yield

    if audit_mod._audit_logger is not None:
        audit_mod._audit_logger.close()
    audit_mod._audit_logger = old_logger


@pytest.fixture
def store():
    from sentinel_desk.store import MemoryVaultStore
    return MemoryVaultStore()


@pytest.fixture
def manager(store):
    from sentinel_desk.vault import VaultManager
    return VaultManager(store)
