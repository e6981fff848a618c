"""
Tests for AuthSession expiry rules and TokenStore persistence.
"""
import pytest

from pomofy.constants import (KEY_ACCESS_TOKEN, KEY_REFRESH_TOKEN,
                              KEY_TOKEN_EXPIRY)
from pomofy.utils.kv_store import MemoryStore
from pomofy.utils.token_store import AuthSession, TokenStore


class _FailingStore(MemoryStore):
    """MemoryStore whose writes fail once ``broken`` is set."""

    broken = False

    def update(self, values):
        if self.broken:
            raise OSError("disk full")
        super().update(values)


class TestAuthSession:
    def test_empty_session_is_invalid(self):
        assert AuthSession().is_valid(0) is False

    @pytest.mark.parametrize("now, valid", [(999.0, True), (1000.0, False), (1001.0, False)])
    def test_validity_boundary(self, now, valid):
        session = AuthSession(access_token="t", expires_at=1000.0)
        assert session.is_valid(now) is valid

    @pytest.mark.parametrize("now, needed", [(939.0, False), (940.0, True), (2000.0, True)])
    def test_refresh_margin(self, now, needed):
        session = AuthSession(access_token="t", expires_at=1000.0)
        assert session.needs_refresh(now) is needed

    def test_time_until_expiry_never_negative(self):
        session = AuthSession(access_token="t", expires_at=1000.0)
        assert session.time_until_expiry(400.0) == 600
        assert session.time_until_expiry(5000.0) == 0


class TestTokenStore:
    def test_save_and_reload(self, clock):
        storage = MemoryStore()
        TokenStore(storage, clock).save_tokens("access", 3600, "refresh")

        session = TokenStore(storage, clock).session

        assert session.access_token == "access"
        assert session.refresh_token == "refresh"
        assert session.expires_at == clock() + 3600

    def test_save_keeps_existing_refresh_token(self, clock):
        store = TokenStore(MemoryStore(), clock)
        store.save_tokens("a1", 3600, "r1")
        store.save_tokens("a2", 3600)
        assert store.session.refresh_token == "r1"

    def test_failed_write_leaves_session_untouched(self, clock):
        storage = _FailingStore()
        store = TokenStore(storage, clock)
        store.save_tokens("a1", 3600, "r1")
        storage.broken = True

        with pytest.raises(OSError):
            store.save_tokens("a2", 7200, "r2")
        with pytest.raises(OSError):
            store.begin_pkce("verifier", "state")

        assert store.session.access_token == "a1"
        assert store.session.refresh_token == "r1"
        assert store.session.expires_at == clock() + 3600
        assert store.session.state is None
        assert storage.get(KEY_ACCESS_TOKEN) == "a1"

    def test_unreadable_expiry_counts_as_expired(self, clock):
        storage = MemoryStore({KEY_ACCESS_TOKEN: "access", KEY_TOKEN_EXPIRY: "soon"})
        session = TokenStore(storage, clock).session
        assert session.expires_at == 0.0
        assert session.is_valid(clock()) is False

    def test_pkce_values_round_trip(self, clock):
        storage = MemoryStore()
        store = TokenStore(storage, clock)
        store.begin_pkce("verifier", "state")

        assert TokenStore(storage, clock).session.state == "state"

        store.clear_pkce()
        assert TokenStore(storage, clock).session.code_verifier is None

    def test_clear_removes_everything(self, clock):
        storage = MemoryStore()
        store = TokenStore(storage, clock)
        store.save_tokens("access", 3600, "refresh")
        store.begin_pkce("verifier", "state")

        store.clear()

        assert storage.items() == []
        assert store.session == AuthSession()

    def test_snapshot_has_no_secrets(self, clock):
        storage = MemoryStore()
        store = TokenStore(storage, clock)
        store.save_tokens("access-secret", 3600, "refresh-secret")

        snapshot = store.snapshot()

        assert snapshot["has_access_token"] is True
        assert snapshot["has_refresh_token"] is True
        assert snapshot["expires_in"] == 3600
        assert snapshot["is_valid"] is True
        assert "access-secret" not in str(snapshot)
        assert "refresh-secret" not in str(snapshot)
        assert storage.get(KEY_REFRESH_TOKEN) == "refresh-secret"
