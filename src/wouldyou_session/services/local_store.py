"""Plain persisted key-value storage for non-sensitive client state."""
import asyncio
import json
import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from .exceptions import StorageError, StorageUnavailableError, StorageWriteFailedError

logger = logging.getLogger(__name__)


class LocalStore:
    """
    String key-value store kept in a single JSON object file.

    Holds guest flags, counters and preferences. Secrets never go here; they
    belong in SecureTokenStore.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def get(self, key: str) -> str | None:
        """
        Get a stored value.

        Returns:
            The value, or None when the key is absent.

        Raises:
            StorageUnavailableError: If the file exists but cannot be read.
        """
        data = await self._read()
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        async with self._lock:
            data = await self._read(StorageWriteFailedError)
            data[key] = value
            await self._write(data)

    async def set_many(self, values: dict[str, str]) -> None:
        """Store several values in a single write."""
        async with self._lock:
            data = await self._read(StorageWriteFailedError)
            data.update(values)
            await self._write(data)

    async def remove(self, *keys: str) -> None:
        """Remove keys. Missing keys are ignored."""
        async with self._lock:
            data = await self._read(StorageWriteFailedError)
            if not any(key in data for key in keys):
                return
            for key in keys:
                data.pop(key, None)
            await self._write(data)

    async def clear(self) -> None:
        """Remove every key."""
        async with self._lock:
            await self._write({})

    async def _read(
        self, error_cls: type[StorageError] = StorageUnavailableError,
    ) -> dict[str, str]:
        """
        Load the whole file.

        A missing, undecodable or non-object file reads as empty. Any other
        OSError raises error_cls, so write paths surface StorageWriteFailedError.
        """
        try:
            async with aiofiles.open(self._path, "rb") as f:
                raw = await f.read()
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise error_cls(f"Cannot read local state: {e}") from e

        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError:
            # Covers UnicodeDecodeError as well as malformed JSON
            logger.warning("local_store_corrupt path=%s, treating as empty", self._path)
            return {}
        if not isinstance(data, dict):
            logger.warning("local_store_corrupt path=%s, treating as empty", self._path)
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    async def _write(self, data: dict[str, str]) -> None:
        # Write to a sibling then rename so a crash never leaves a half-written file
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            await aiofiles.os.makedirs(self._path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(data, indent=2, sort_keys=True))
            await aiofiles.os.replace(tmp_path, self._path)
        except OSError as e:
            await self._discard_tmp(tmp_path)
            raise StorageWriteFailedError(f"Cannot write local state: {e}") from e

    async def _discard_tmp(self, tmp_path: Path) -> None:
        try:
            await aiofiles.os.remove(tmp_path)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning("local_store_tmp_not_removed path=%s: %s", tmp_path, e)
