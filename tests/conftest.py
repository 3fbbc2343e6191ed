"""Pytest fixtures for testing."""
from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from typing import Any

import httpx
import pytest
import respx
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError, PasswordDeleteError

from wouldyou_session.core.config import Settings
from wouldyou_session.services.auth_client import AuthClient
from wouldyou_session.services.guest_ledger import GuestUsageLedger
from wouldyou_session.services.local_store import LocalStore
from wouldyou_session.services.session_manager import SessionManager
from wouldyou_session.services.token_store import SecureTokenStore

API_URL = "http://testserver/api"
KEYRING_SERVICE = "wouldyou-test"


class InMemoryKeyring(KeyringBackend):
    """Keyring backend holding secrets in a dict, with switchable failures."""

    priority = 1

    def __init__(self) -> None:
        super().__init__()
        self.passwords: dict[tuple[str, str], str] = {}
        self.fail_reads = False
        self.fail_writes_for: set[str] = set()

    def get_password(self, service: str, username: str) -> str | None:
        if self.fail_reads:
            raise KeyringError("keyring locked")
        return self.passwords.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        if username in self.fail_writes_for:
            raise KeyringError(f"cannot write {username}")
        self.passwords[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        if (service, username) not in self.passwords:
            raise PasswordDeleteError("not found")
        del self.passwords[(service, username)]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the developer's environment."""
    return Settings(
        _env_file=None,
        api_url=API_URL,
        keyring_service=KEYRING_SERVICE,
        state_dir=tmp_path / "state",
    )


@pytest.fixture
def keyring_backend() -> InMemoryKeyring:
    return InMemoryKeyring()


@pytest.fixture
def token_store(keyring_backend: InMemoryKeyring) -> SecureTokenStore:
    return SecureTokenStore(KEYRING_SERVICE, backend=keyring_backend)


@pytest.fixture
def local_store(settings: Settings) -> LocalStore:
    return LocalStore(settings.local_state_path)


@pytest.fixture
def ledger(local_store: LocalStore) -> GuestUsageLedger:
    return GuestUsageLedger(local_store)


@pytest.fixture
def mock_api() -> Generator[respx.MockRouter]:
    """Context manager for mocking backend responses."""
    with respx.mock(assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
async def auth_client(settings: Settings) -> AsyncGenerator[AuthClient]:
    client = AuthClient(settings)
    yield client
    await client.aclose()


@pytest.fixture
def manager(
    token_store: SecureTokenStore,
    ledger: GuestUsageLedger,
    auth_client: AuthClient,
    local_store: LocalStore,
) -> SessionManager:
    return SessionManager(
        token_store=token_store,
        ledger=ledger,
        auth_client=auth_client,
        local_store=local_store,
    )


@pytest.fixture
def sample_user() -> dict[str, Any]:
    """Sample user record as returned by the backend."""
    return {"id": "3f1b9a52-6a7e-4c1d-9d0e-2b8f4c6a1e77", "email": "a@b.com"}


@pytest.fixture
def auth_payload(sample_user: dict[str, Any]) -> dict[str, Any]:
    """Sample successful sign-in response."""
    return {
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "user": sample_user,
    }


def api(path: str) -> str:
    """Absolute backend URL for a route path."""
    return f"{API_URL}{path}"


def health_ok() -> httpx.Response:
    return httpx.Response(200, json={"status": "ok", "timestamp": "2026-01-01T00:00:00Z", "db": "ok"})
