"""Tests for token_store.py — credential persistence, validity, expiry."""
from datetime import datetime, timedelta, timezone

import pytest

from media_vault.exceptions import TokenStorageError
from media_vault.models.auth import Credentials
from media_vault.storage import JsonFileStore, MemoryStore
from media_vault.token_store import TokenStore


class _FailingStore(MemoryStore):
    """Store whose medium rejects every write (e.g. quota exceeded)."""

    def update(self, values):
        raise TokenStorageError("quota exceeded")

    def delete(self, *keys):
        raise TokenStorageError("read-only medium")


def _creds(clock, seconds=3600, access="acc", refresh="ref") -> Credentials:
    return Credentials(
        access_token=access,
        refresh_token=refresh,
        expires_at=clock() + timedelta(seconds=seconds),
    )


# ── get / set ────────────────────────────────────────────────────────

def test_empty_store_has_no_credentials(token_store):
    assert token_store.get() is None
    assert token_store.get_access_token() is None
    assert token_store.get_refresh_token() is None


def test_set_then_get(token_store, clock):
    creds = _creds(clock)
    assert token_store.set(creds) is True
    assert token_store.get() == creds


def test_expiry_stored_as_epoch_millis(token_store, memory_store, clock):
    token_store.set_tokens("acc", "ref", 60)
    expected = int((clock() + timedelta(seconds=60)).timestamp() * 1000)
    assert memory_store.get("media_vault_token_expiry") == str(expected)


def test_set_replaces_previous_pair(token_store, clock):
    token_store.set(_creds(clock, access="a1", refresh="r1"))
    token_store.set(_creds(clock, access="a2", refresh="r2"))
    creds = token_store.get()
    assert (creds.access_token, creds.refresh_token) == ("a2", "r2")


@pytest.mark.parametrize("missing", [
    "media_vault_token", "media_vault_refresh_token", "media_vault_token_expiry",
])
def test_partial_credentials_read_as_absent(token_store, memory_store, missing):
    token_store.set_tokens("acc", "ref", 3600)
    memory_store.delete(missing)
    assert token_store.get() is None
    assert token_store.is_valid() is False


def test_unparseable_expiry_reads_as_absent(token_store, memory_store):
    token_store.set_tokens("acc", "ref", 3600)
    memory_store.set("media_vault_token_expiry", "soon")
    assert token_store.get() is None


def test_set_tokens_rejects_empty_token(token_store):
    assert token_store.set_tokens("", "ref", 3600) is False
    assert token_store.set_tokens("acc", "", 3600) is False
    assert token_store.get() is None


def test_set_reports_write_failure(clock):
    tokens = TokenStore(_FailingStore(), clock=clock)
    assert tokens.set(_creds(clock)) is False
    assert tokens.get() is None


def test_clear(token_store):
    token_store.set_tokens("acc", "ref", 3600)
    assert token_store.clear() is True
    assert token_store.get() is None


def test_clear_reports_failure(clock):
    assert TokenStore(_FailingStore(), clock=clock).clear() is False


def test_durable_across_instances(tmp_path, clock):
    path = tmp_path / "session.json"
    TokenStore(JsonFileStore(path), clock=clock).set_tokens("acc", "ref", 3600)

    reloaded = TokenStore(JsonFileStore(path), clock=clock)
    assert reloaded.get_access_token() == "acc"
    assert reloaded.is_valid() is True


def test_from_settings_uses_configured_keys(fake_settings, clock):
    fake_settings.token_key = "tk"
    fake_settings.refresh_token_key = "rk"
    fake_settings.token_expiry_key = "ek"
    store = MemoryStore()
    TokenStore.from_settings(store, fake_settings, clock=clock).set_tokens("acc", "ref", 10)
    assert set(store.snapshot()) == {"tk", "rk", "ek"}


# ── is_valid ─────────────────────────────────────────────────────────

def test_valid_right_after_set(token_store):
    token_store.set_tokens("a", "r", 3600)
    assert token_store.is_valid() is True


def test_invalid_after_clock_passes_expiry(token_store, clock):
    token_store.set_tokens("a", "r", 3600)
    clock.advance(3601)
    assert token_store.is_valid() is False


def test_invalid_exactly_at_expiry(token_store, clock):
    token_store.set_tokens("a", "r", 3600)
    clock.advance(3600)
    assert token_store.is_valid() is False


def test_valid_just_before_expiry(token_store, clock):
    token_store.set_tokens("a", "r", 3600)
    clock.advance(3599)
    assert token_store.is_valid() is True


# ── should_refresh ───────────────────────────────────────────────────

def test_should_refresh_false_without_session(token_store):
    assert token_store.should_refresh() is False


def test_should_refresh_outside_window(token_store):
    token_store.set_tokens("a", "r", 3600)
    assert token_store.should_refresh() is False


def test_should_refresh_inside_window(token_store, clock):
    token_store.set_tokens("a", "r", 3600)
    clock.advance(3600 - 120)
    assert token_store.should_refresh() is True


# ── get_status ───────────────────────────────────────────────────────

def test_status_no_session(token_store):
    status = token_store.get_status()
    assert status.has_token is False
    assert status.is_expired is True
    assert status.seconds_remaining is None


def test_status_valid_session(token_store, clock):
    token_store.set_tokens("a", "r", 3600)
    clock.advance(600)
    status = token_store.get_status()
    assert status.has_token is True
    assert status.is_expired is False
    assert status.seconds_remaining == 3000
    assert status.should_refresh is False


def test_status_expired_session(token_store, clock):
    token_store.set_tokens("a", "r", 60)
    clock.advance(120)
    status = token_store.get_status()
    assert status.is_expired is True
    assert status.seconds_remaining is None
    assert status.expires_at == datetime(2026, 1, 1, 12, 1, tzinfo=timezone.utc)
