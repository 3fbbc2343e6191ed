"""Tests for the keyring-backed token store."""
import pytest

from tests.conftest import KEYRING_SERVICE, InMemoryKeyring
from wouldyou_session.services.exceptions import StorageUnavailableError, StorageWriteFailedError
from wouldyou_session.services.token_store import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    SecureTokenStore,
)


class TestGet:
    """Reads distinguish a miss from an unavailable keyring."""

    async def test__get__miss_returns_none(self, token_store: SecureTokenStore) -> None:
        assert await token_store.get(ACCESS_TOKEN_KEY) is None
        assert await token_store.get_refresh_token() is None

    async def test__get__keyring_error_raises_unavailable(
        self, token_store: SecureTokenStore, keyring_backend: InMemoryKeyring,
    ) -> None:
        keyring_backend.fail_reads = True

        with pytest.raises(StorageUnavailableError):
            await token_store.get_access_token()


class TestSetPair:
    """Both tokens are written, access token first."""

    async def test__set_pair__stores_both_tokens(
        self, token_store: SecureTokenStore, keyring_backend: InMemoryKeyring,
    ) -> None:
        await token_store.set_pair("access-1", "refresh-1")

        assert await token_store.get_access_token() == "access-1"
        assert await token_store.get_refresh_token() == "refresh-1"
        assert keyring_backend.passwords[(KEYRING_SERVICE, ACCESS_TOKEN_KEY)] == "access-1"

    async def test__set_pair__refresh_write_failure_leaves_no_stale_pair(
        self, token_store: SecureTokenStore, keyring_backend: InMemoryKeyring,
    ) -> None:
        """A new access token is never left next to a previous session's refresh token."""
        await token_store.set_pair("old-access", "old-refresh")
        keyring_backend.fail_writes_for = {REFRESH_TOKEN_KEY}

        with pytest.raises(StorageWriteFailedError):
            await token_store.set_pair("new-access", "new-refresh")

        assert await token_store.get_access_token() is None
        assert await token_store.get_refresh_token() is None

    async def test__set_pair__access_write_failure_raises(
        self, token_store: SecureTokenStore, keyring_backend: InMemoryKeyring,
    ) -> None:
        keyring_backend.fail_writes_for = {ACCESS_TOKEN_KEY}

        with pytest.raises(StorageWriteFailedError):
            await token_store.set_pair("new-access", "new-refresh")

        assert await token_store.get_refresh_token() is None


class TestClear:
    """Clearing is idempotent."""

    async def test__clear__twice_never_errors(self, token_store: SecureTokenStore) -> None:
        await token_store.set_pair("access-1", "refresh-1")

        await token_store.clear()
        assert await token_store.get_access_token() is None
        assert await token_store.get_refresh_token() is None

        await token_store.clear()
        assert await token_store.get_access_token() is None
        assert await token_store.get_refresh_token() is None

    async def test__clear__empty_store(self, token_store: SecureTokenStore) -> None:
        await token_store.clear()
        assert await token_store.get_access_token() is None


def test__backend__defaults_to_platform_keyring(monkeypatch: pytest.MonkeyPatch) -> None:
    backend = InMemoryKeyring()
    monkeypatch.setattr("keyring.get_keyring", lambda: backend)

    store = SecureTokenStore(KEYRING_SERVICE)

    assert store.backend is backend
