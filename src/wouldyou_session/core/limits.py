"""Free-tier usage limits for guest play."""
import logging

logger = logging.getLogger(__name__)

# Free plays allowed before a guest must register
MAX_FREE_USES = 3


def has_quota_remaining(usage_count: int, max_free_uses: int = MAX_FREE_USES) -> bool:
    """
    Check whether a guest may play again.

    Args:
        usage_count: Free plays already consumed.
        max_free_uses: Quota for the free tier.

    Returns:
        True while usage_count is below the quota.
    """
    return usage_count < max_free_uses


def remaining_free_uses(usage_count: int, max_free_uses: int = MAX_FREE_USES) -> int:
    """Number of free plays left, never negative."""
    if usage_count > max_free_uses:
        logger.debug(
            "guest_usage_over_quota usage_count=%s max_free_uses=%s",
            usage_count,
            max_free_uses,
        )
    return max(max_free_uses - usage_count, 0)
