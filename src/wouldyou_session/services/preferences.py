"""Device-local user preferences."""
from .local_store import LocalStore

ONBOARDING_COMPLETE_KEY = "onboarding_complete"
BIOMETRIC_ENABLED_KEY = "biometric_enabled"


class Preferences:
    """Non-sensitive flags set by onboarding and settings screens."""

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    async def is_onboarding_complete(self) -> bool:
        return await self._store.get(ONBOARDING_COMPLETE_KEY) == "true"

    async def mark_onboarding_complete(self) -> None:
        await self._store.set(ONBOARDING_COMPLETE_KEY, "true")

    async def is_biometric_enabled(self) -> bool:
        return await self._store.get(BIOMETRIC_ENABLED_KEY) == "true"

    async def set_biometric_enabled(self, enabled: bool) -> None:
        """Persist the biometric unlock toggle. Disabling removes the flag."""
        if enabled:
            await self._store.set(BIOMETRIC_ENABLED_KEY, "true")
        else:
            await self._store.remove(BIOMETRIC_ENABLED_KEY)
