"""Secure storage for the access and refresh tokens."""
import asyncio
import logging

import keyring
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError, PasswordDeleteError

from .exceptions import StorageUnavailableError, StorageWriteFailedError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"


class SecureTokenStore:
    """
    OS keyring-backed storage for exactly two secrets.

    Keyring calls block, so each one runs in a worker thread. The backend is
    injectable; by default the platform keyring is used.
    """

    def __init__(self, service: str, backend: KeyringBackend | None = None) -> None:
        self._service = service
        self._backend = backend

    @property
    def backend(self) -> KeyringBackend:
        if self._backend is None:
            self._backend = keyring.get_keyring()
        return self._backend

    async def get(self, key: str) -> str | None:
        """
        Get a stored secret.

        Returns:
            The secret, or None on a simple miss.

        Raises:
            StorageUnavailableError: If the keyring cannot be accessed.
        """
        try:
            return await asyncio.to_thread(self.backend.get_password, self._service, key)
        except KeyringError as e:
            raise StorageUnavailableError(f"Secure storage unavailable: {e}") from e

    async def get_access_token(self) -> str | None:
        return await self.get(ACCESS_TOKEN_KEY)

    async def get_refresh_token(self) -> str | None:
        return await self.get(REFRESH_TOKEN_KEY)

    async def set_pair(self, access_token: str, refresh_token: str) -> None:
        """
        Store both tokens, access token first.

        A failed write clears both keys so a new access token is never paired
        with a refresh token left over from a previous session.

        Raises:
            StorageWriteFailedError: If either write fails.
        """
        try:
            await asyncio.to_thread(
                self.backend.set_password, self._service, ACCESS_TOKEN_KEY, access_token,
            )
            await asyncio.to_thread(
                self.backend.set_password, self._service, REFRESH_TOKEN_KEY, refresh_token,
            )
        except KeyringError as e:
            logger.warning("token_store_write_failed service=%s: %s", self._service, e)
            await self._rollback()
            raise StorageWriteFailedError(f"Failed to store tokens: {e}") from e

    async def clear(self) -> None:
        """
        Delete both tokens. Clearing an empty store is not an error.

        Raises:
            StorageWriteFailedError: If the keyring refuses the deletion.
        """
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY):
            try:
                await asyncio.to_thread(self.backend.delete_password, self._service, key)
            except PasswordDeleteError:
                # Already absent
                continue
            except KeyringError as e:
                raise StorageWriteFailedError(f"Failed to clear tokens: {e}") from e

    async def _rollback(self) -> None:
        try:
            await self.clear()
        except StorageWriteFailedError as e:
            logger.warning("token_store_rollback_failed service=%s: %s", self._service, e)
