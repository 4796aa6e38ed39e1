"""Tests for the master password gate."""

import pytest

from sentinel_desk.core import OwnerLocks
from sentinel_desk.exceptions import (
    AuthenticationError,
    DecryptionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from sentinel_desk.ledger import IntegrityLedger, calculate_hash
from sentinel_desk.vault import MasterPasswordAuth, VaultManager
from sentinel_desk.vault.auth import hash_password

PASSWORD = "master-password-1"


@pytest.fixture
def auth(store):
    return MasterPasswordAuth(store)


class TestHashPassword:

    def test_length_and_determinism(self):
        salt = b"\x01" * 32
        digest = hash_password(PASSWORD, salt)
        assert len(digest) == 64
        assert digest == hash_password(PASSWORD, salt)
        assert digest != hash_password(PASSWORD, b"\x02" * 32)


class TestMasterPasswordAuth:

    @pytest.mark.asyncio
    async def test_register_stores_hash_only(self, auth, store):
        result = await auth.register("alice", PASSWORD)
        assert result.success

        record = store.get_auth("alice")
        assert record["algorithm"] == "pbkdf2-sha512"
        assert record["iterations"] == 100_000
        assert len(bytes.fromhex(record["salt"])) == 32
        assert len(bytes.fromhex(record["password_hash"])) == 64
        assert PASSWORD not in str(record)
        assert record["ledger_data"].startswith(record["password_hash"] + "-")

    @pytest.mark.asyncio
    async def test_register_attests_on_ledger(self, auth, store):
        await auth.register("alice", PASSWORD)
        record = store.get_auth("alice")
        verification = await auth.ledger.verify("alice", calculate_hash(record["ledger_data"]))
        assert verification.ok

    @pytest.mark.asyncio
    async def test_register_twice_refused(self, auth):
        await auth.register("alice", PASSWORD)
        result = await auth.register("alice", "another-password")
        assert isinstance(result.error, ValidationError)
        assert "already registered" in result.message

    @pytest.mark.asyncio
    async def test_register_short_password(self, auth, store):
        result = await auth.register("alice", "short")
        assert isinstance(result.error, ValidationError)
        assert store.get_auth("alice") is None

    @pytest.mark.asyncio
    async def test_verify(self, auth, store):
        await auth.register("alice", PASSWORD)
        before = store.get_auth("alice")["last_login"]

        result = await auth.verify("alice", PASSWORD)
        assert result.success
        assert result.ledger_verified is True
        assert store.get_auth("alice")["last_login"] >= before

    @pytest.mark.asyncio
    async def test_verify_wrong_password(self, auth):
        await auth.register("alice", PASSWORD)
        result = await auth.verify("alice", "not-the-password")
        assert not result.success
        assert isinstance(result.error, AuthenticationError)
        assert isinstance(result.error, DecryptionError)
        assert result.message == "Invalid master password"

    @pytest.mark.asyncio
    async def test_verify_unregistered(self, auth):
        result = await auth.verify("nobody", PASSWORD)
        assert isinstance(result.error, NotFoundError)

    @pytest.mark.asyncio
    async def test_verify_with_reset_ledger_still_succeeds(self, auth):
        await auth.register("alice", PASSWORD)
        await auth.ledger.reset("alice")
        result = await auth.verify("alice", PASSWORD)
        assert result.success
        assert result.ledger_verified is False

    @pytest.mark.asyncio
    async def test_corrupt_record_is_persistence_error(self, auth, store):
        await auth.register("alice", PASSWORD)
        record = store.get_auth("alice")
        record["salt"] = "not-hex"
        store.put_auth("alice", record)

        result = await auth.verify("alice", PASSWORD)
        assert not result.success
        assert isinstance(result.error, PersistenceError)
        changed = await auth.change("alice", PASSWORD, "new-master-password")
        assert isinstance(changed.error, PersistenceError)

    @pytest.mark.asyncio
    async def test_has_master_password(self, auth):
        assert await auth.has_master_password("alice") is False
        await auth.register("alice", PASSWORD)
        assert await auth.has_master_password("alice") is True

    @pytest.mark.asyncio
    async def test_change(self, auth, store):
        await auth.register("alice", PASSWORD)
        created_at = store.get_auth("alice")["created_at"]

        result = await auth.change("alice", PASSWORD, "new-master-password")
        assert result.success
        assert store.get_auth("alice")["created_at"] == created_at
        assert not (await auth.verify("alice", PASSWORD)).success
        assert (await auth.verify("alice", "new-master-password")).ledger_verified

    @pytest.mark.asyncio
    async def test_change_wrong_old_password(self, auth):
        await auth.register("alice", PASSWORD)
        result = await auth.change("alice", "wrong-password", "new-master-password")
        assert isinstance(result.error, AuthenticationError)
        assert (await auth.verify("alice", PASSWORD)).success

    @pytest.mark.asyncio
    async def test_info_has_no_secrets(self, auth):
        assert await auth.info("alice") == {"exists": False, "ledger_protected": False}

        await auth.register("alice", PASSWORD)
        info = await auth.info("alice")
        assert info["exists"] is True
        assert info["algorithm"] == "pbkdf2-sha512"
        assert info["ledger_protected"] is True
        assert "password_hash" not in info
        assert "salt" not in info

    @pytest.mark.asyncio
    async def test_reset(self, auth):
        await auth.register("alice", PASSWORD)
        assert (await auth.reset("alice")).success
        assert await auth.has_master_password("alice") is False
        assert (await auth.register("alice", "brand-new-password")).success

        missing = await auth.reset("nobody")
        assert isinstance(missing.error, NotFoundError)

    @pytest.mark.asyncio
    async def test_shares_ledger_with_vault(self, store):
        ledger = IntegrityLedger(store, difficulty=1)
        locks = OwnerLocks()
        auth = MasterPasswordAuth(store, ledger, locks)
        manager = VaultManager(store, ledger, locks)

        await auth.register("alice", PASSWORD)
        saved = await manager.save("alice", PASSWORD, [])
        assert saved.block_index == 2
        assert (await auth.verify("alice", PASSWORD)).ledger_verified
        assert (await manager.load("alice", PASSWORD)).verification.ok
