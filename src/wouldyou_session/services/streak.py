"""Daily play streak tracking."""
import logging
from datetime import date, datetime, timedelta

from .local_store import LocalStore

logger = logging.getLogger(__name__)

STREAK_KEY = "wouldyou_streak"
LAST_PLAY_KEY = "wouldyou_last_play"


class StreakTracker:
    """
    Consecutive-day play streak, stored device-locally.

    A streak survives as long as the last play was today or yesterday. It
    increments at most once per calendar day.
    """

    def __init__(self, store: LocalStore) -> None:
        self._store = store
        self._streak = 0
        self._last_play: date | None = None

    @property
    def streak(self) -> int:
        return self._streak

    @property
    def last_play(self) -> date | None:
        return self._last_play

    async def load(self, today: date | None = None) -> int:
        """
        Load the persisted streak, resetting it if a day was missed.

        Args:
            today: Current local date; defaults to date.today().

        Returns:
            The current streak.
        """
        today = today or date.today()
        stored_streak = _parse_int(await self._store.get(STREAK_KEY))
        self._last_play = _parse_date(await self._store.get(LAST_PLAY_KEY))

        if self._last_play is not None and self._last_play < today - timedelta(days=1):
            logger.info("streak_reset previous=%s last_play=%s", stored_streak, self._last_play)
            self._streak = 0
            await self._store.set(STREAK_KEY, "0")
        else:
            self._streak = stored_streak
        return self._streak

    async def record_play(self, now: datetime | None = None) -> int:
        """
        Count today's play toward the streak.

        Args:
            now: Current local time; defaults to datetime.now().

        Returns:
            The streak after recording.
        """
        now = now or datetime.now()
        today = now.date()
        if self._last_play == today:
            return self._streak
        if self._last_play is not None and self._last_play < today - timedelta(days=1):
            self._streak = 0

        new_streak = self._streak + 1
        await self._store.set_many({
            STREAK_KEY: str(new_streak),
            LAST_PLAY_KEY: now.isoformat(),
        })
        self._streak = new_streak
        self._last_play = today
        return new_streak


def _parse_int(value: str | None) -> int:
    if not value:
        return 0
    try:
        return max(int(value), 0)
    except ValueError:
        return 0


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        logger.warning("streak_last_play_unparseable value=%r", value)
        return None
