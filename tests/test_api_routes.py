"""Tests for the vault, auth and ledger API routes.

Covers: session token enforcement, owner header, status code mapping of
vault errors and integrity warnings in 200 bodies.
"""

import pytest

PASS = "longenough1"
AUTH = {"X-Session-Token": "test-session-token"}
ENTRY = {"site": "example.com", "username": "alice", "secret": "p@ss"}


@pytest.fixture
def client():
    """FastAPI TestClient backed by an in-memory store."""
    from fastapi.testclient import TestClient
    from sentinel_desk.api import security, services
    from sentinel_desk.api.main import app
    from sentinel_desk.store import MemoryVaultStore

    services.set_store(MemoryVaultStore())

    old_token = security._SESSION_TOKEN
    security._SESSION_TOKEN = "test-session-token"

    yield TestClient(app)

    services.set_store(None)
    security._SESSION_TOKEN = old_token


def _save(client, owner=None, entries=None):
    headers = dict(AUTH, **({"X-Owner-Id": owner} if owner else {}))
    return client.post(
        "/api/vault/save",
        json={"passphrase": PASS, "entries": entries if entries is not None else [ENTRY]},
        headers=headers,
    )


class TestSessionToken:

    def test_missing_token(self, client):
        resp = client.post("/api/vault/load", json={"passphrase": PASS})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Missing X-Session-Token header"

    def test_invalid_token(self, client):
        resp = client.get("/api/ledger/info", headers={"X-Session-Token": "nope"})
        assert resp.status_code == 401

    def test_uninitialized_token(self, client):
        from sentinel_desk.api import security
        security._SESSION_TOKEN = None
        resp = client.get("/api/auth/status", headers=AUTH)
        assert resp.status_code == 503

    def test_health_is_public(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_session_endpoint(self, client):
        resp = client.get("/api/session")
        assert resp.json() == {"session_token": "test-session-token"}


class TestVaultRoutes:

    def test_save_and_load(self, client):
        resp = _save(client)
        assert resp.status_code == 200
        assert resp.json()["block_index"] == 1

        resp = client.post("/api/vault/load", json={"passphrase": PASS}, headers=AUTH)
        assert resp.status_code == 200
        body = resp.json()
        assert body["entries"][0]["site"] == "example.com"
        assert body["verification"]["found"] is True
        assert body["integrity_warning"] is False

    def test_short_passphrase_is_400(self, client):
        resp = client.post(
            "/api/vault/save", json={"passphrase": "short", "entries": [ENTRY]}, headers=AUTH
        )
        assert resp.status_code == 400
        assert "at least 8 characters" in resp.json()["detail"]

    def test_wrong_passphrase_is_401(self, client):
        _save(client)
        resp = client.post("/api/vault/load", json={"passphrase": "wrongpass"}, headers=AUTH)
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid master password or corrupted vault"

    def test_owner_header_selects_vault(self, client):
        _save(client, owner="bob")
        resp = client.post("/api/vault/load", json={"passphrase": PASS}, headers=AUTH)
        assert resp.json()["entries"] == []

        resp = client.post(
            "/api/vault/load", json={"passphrase": PASS}, headers=dict(AUTH, **{"X-Owner-Id": "bob"})
        )
        assert len(resp.json()["entries"]) == 1

    def test_invalid_owner_header(self, client):
        resp = client.post(
            "/api/vault/load", json={"passphrase": PASS},
            headers=dict(AUTH, **{"X-Owner-Id": "../etc"}),
        )
        assert resp.status_code == 400

    def test_entry_crud(self, client):
        _save(client, entries=[])
        resp = client.post(
            "/api/vault/entries", json={"passphrase": PASS, **ENTRY}, headers=AUTH
        )
        assert resp.status_code == 200
        entry_id = resp.json()["entry"]["id"]

        resp = client.patch(
            f"/api/vault/entries/{entry_id}",
            json={"passphrase": PASS, "notes": "personal"},
            headers=AUTH,
        )
        assert resp.status_code == 200
        assert resp.json()["entry"]["notes"] == "personal"
        assert resp.json()["entry"]["secret"] == "p@ss"

        resp = client.request(
            "DELETE", f"/api/vault/entries/{entry_id}", json={"passphrase": PASS}, headers=AUTH
        )
        assert resp.status_code == 200

        resp = client.request(
            "DELETE", f"/api/vault/entries/{entry_id}", json={"passphrase": PASS}, headers=AUTH
        )
        assert resp.status_code == 404

    def test_search(self, client):
        _save(client)
        resp = client.post(
            "/api/vault/search", json={"passphrase": PASS, "query": "EXAMPLE"}, headers=AUTH
        )
        assert len(resp.json()["entries"]) == 1

    def test_change_passphrase(self, client):
        _save(client)
        resp = client.post(
            "/api/vault/change-passphrase",
            json={"old_passphrase": PASS, "new_passphrase": "evenlonger22"},
            headers=AUTH,
        )
        assert resp.status_code == 200
        resp = client.post("/api/vault/load", json={"passphrase": "evenlonger22"}, headers=AUTH)
        assert resp.status_code == 200

    def test_export_then_import(self, client):
        _save(client)
        exported = client.post("/api/vault/export", json={"passphrase": PASS}, headers=AUTH)
        assert exported.status_code == 200

        resp = client.post(
            "/api/vault/import",
            json={"passphrase": PASS, "data": exported.json()["data"]},
            headers=dict(AUTH, **{"X-Owner-Id": "bob"}),
        )
        assert resp.status_code == 200
        assert resp.json()["imported"] == 1

    def test_import_garbage_is_400(self, client):
        resp = client.post(
            "/api/vault/import", json={"passphrase": PASS, "data": "nope"}, headers=AUTH
        )
        assert resp.status_code == 400

    def test_integrity_warning_in_body(self, client):
        _save(client)
        client.post("/api/ledger/reset", headers=AUTH)
        resp = client.post("/api/vault/load", json={"passphrase": PASS}, headers=AUTH)
        assert resp.status_code == 200
        assert resp.json()["integrity_warning"] is True
        assert resp.json()["verification"]["message"] == "No proof found in ledger"

    def test_storage_failure_is_503(self, client):
        from sentinel_desk.api import services
        from sentinel_desk.exceptions import PersistenceError
        from sentinel_desk.store import MemoryVaultStore

        class BrokenStore(MemoryVaultStore):
            def put_blob(self, owner_id, record):
                raise PersistenceError("disk full")

        services.set_store(BrokenStore())
        resp = _save(client)
        assert resp.status_code == 503


class TestAuthRoutes:

    def test_register_verify_flow(self, client):
        resp = client.get("/api/auth/status", headers=AUTH)
        assert resp.json() == {"registered": False}

        resp = client.post("/api/auth/register", json={"password": PASS}, headers=AUTH)
        assert resp.status_code == 200

        resp = client.post("/api/auth/verify", json={"password": PASS}, headers=AUTH)
        assert resp.status_code == 200
        assert resp.json()["ledger_verified"] is True

        resp = client.post("/api/auth/verify", json={"password": "wrongpass"}, headers=AUTH)
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid master password"

    def test_verify_unregistered_is_404(self, client):
        resp = client.post("/api/auth/verify", json={"password": PASS}, headers=AUTH)
        assert resp.status_code == 404

    def test_change_info_reset(self, client):
        client.post("/api/auth/register", json={"password": PASS}, headers=AUTH)
        resp = client.post(
            "/api/auth/change",
            json={"old_password": PASS, "new_password": "evenlonger22"},
            headers=AUTH,
        )
        assert resp.status_code == 200

        info = client.get("/api/auth/info", headers=AUTH).json()
        assert info["exists"] is True
        assert "password_hash" not in info

        assert client.post("/api/auth/reset", headers=AUTH).status_code == 200
        assert client.get("/api/auth/status", headers=AUTH).json() == {"registered": False}
        assert client.post("/api/auth/reset", headers=AUTH).status_code == 404


class TestLedgerRoutes:

    def test_info_and_chain(self, client):
        _save(client)
        info = client.get("/api/ledger/info", headers=AUTH).json()
        assert info["total_blocks"] == 2
        assert info["chain_valid"] is True

        chain = client.get("/api/ledger/chain", headers=AUTH).json()
        assert chain["total_blocks"] == 2
        assert chain["blocks"][0]["data_hash"] == "Genesis Block"

    def test_verify(self, client):
        _save(client)
        chain = client.get("/api/ledger/chain", headers=AUTH).json()
        data_hash = chain["blocks"][1]["data_hash"]

        resp = client.post("/api/ledger/verify", json={"data_hash": data_hash}, headers=AUTH)
        assert resp.json()["found"] is True
        assert resp.json()["block_index"] == 1

        resp = client.post("/api/ledger/verify", json={"data_hash": "unknown"}, headers=AUTH)
        assert resp.json()["found"] is False

    def test_reset(self, client):
        _save(client)
        resp = client.post("/api/ledger/reset", headers=AUTH)
        assert resp.status_code == 200
        assert resp.json()["genesis"]["index"] == 0
        assert client.get("/api/ledger/info", headers=AUTH).json()["total_blocks"] == 1

    def test_unreadable_ledger_is_503(self, client):
        from sentinel_desk.api import services
        services.get_ledger().store.put_chain("local", {"difficulty": 2, "blocks": []})
        resp = client.get("/api/ledger/info", headers=AUTH)
        assert resp.status_code == 503
