"""
Guest usage ledger for unauthenticated play.

Tracks device-locally how many free plays a guest has consumed, under a stable
pseudo-random device id that survives app restarts.
"""
import logging
import uuid

from ..schemas.session import GuestState
from .local_store import LocalStore

logger = logging.getLogger(__name__)

GUEST_MODE_KEY = "wouldyou_guest_mode"
GUEST_USAGE_KEY = "wouldyou_guest_usage"
GUEST_DEVICE_KEY = "wouldyou_guest_device_id"


def generate_device_id() -> str:
    """Generate a new device id: 32 hex characters in 8-4-4-4-12 groups."""
    return str(uuid.uuid4())


class GuestUsageLedger:
    """
    Persisted guest flag, usage counter and device id.

    The ledger does not know about authentication; SessionManager only calls
    it while the session is in guest mode.
    """

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    async def load(self) -> GuestState:
        """
        Read the persisted guest state.

        Never fabricates a device id; that happens in begin_guest_session().
        """
        device_id = await self._store.get(GUEST_DEVICE_KEY)
        guest_mode = await self._store.get(GUEST_MODE_KEY)
        usage = await self._store.get(GUEST_USAGE_KEY)
        return GuestState(
            device_id=device_id or None,
            usage_count=_parse_count(usage),
            guest_mode_active=guest_mode == "true",
        )

    async def begin_guest_session(self) -> str:
        """
        Start a fresh guest session.

        Ensures a device id exists, sets the guest flag and resets the usage
        counter to 0.

        Returns:
            The (possibly newly generated) device id.
        """
        device_id = await self._store.get(GUEST_DEVICE_KEY)
        if not device_id:
            device_id = generate_device_id()
            logger.info("guest_device_id_created")
        await self._store.set_many({
            GUEST_DEVICE_KEY: device_id,
            GUEST_MODE_KEY: "true",
            GUEST_USAGE_KEY: "0",
        })
        return device_id

    async def ensure_device_id(self) -> str:
        """Return the persisted device id, generating and storing one if absent."""
        device_id = await self._store.get(GUEST_DEVICE_KEY)
        if not device_id:
            device_id = generate_device_id()
            await self._store.set(GUEST_DEVICE_KEY, device_id)
            logger.info("guest_device_id_created")
        return device_id

    async def record_usage(self, current_count: int, authenticated: bool = False) -> int:
        """
        Record one consumed free play.

        Args:
            current_count: The caller's current usage count.
            authenticated: Caller context; authenticated users are never counted.

        Returns:
            The new count, or current_count unchanged when authenticated.
        """
        if authenticated:
            return current_count
        new_count = current_count + 1
        await self._store.set(GUEST_USAGE_KEY, str(new_count))
        return new_count

    async def clear_guest_mode(self) -> None:
        """Unset the guest flag and drop the counter. The device id is kept."""
        await self._store.remove(GUEST_MODE_KEY, GUEST_USAGE_KEY)


def _parse_count(value: str | None) -> int:
    if not value:
        return 0
    try:
        count = int(value)
    except ValueError:
        logger.warning("guest_usage_unparseable value=%r, treating as 0", value)
        return 0
    return max(count, 0)
