"""In-memory session state types."""
from dataclasses import dataclass
from enum import StrEnum

from .auth import User


class SessionState(StrEnum):
    """Lifecycle state of the running app's session."""

    INITIALIZING = "initializing"
    ANONYMOUS = "anonymous"
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


class SessionEvent(StrEnum):
    """Events emitted by the session manager to external subscribers."""

    RESTORED = "restored"
    SIGNED_IN = "signed_in"
    GUEST_STARTED = "guest_started"
    GUEST_USAGE_RECORDED = "guest_usage_recorded"
    SIGNED_OUT = "signed_out"
    ACCOUNT_DELETED = "account_deleted"
    PERSISTENCE_FAILED = "persistence_failed"


@dataclass(frozen=True)
class GuestState:
    """Persisted guest ledger entry as read by GuestUsageLedger.load()."""

    device_id: str | None
    usage_count: int
    guest_mode_active: bool


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the session exposed to the UI layer."""

    state: SessionState
    user: User | None
    guest_usage_count: int
    guest_device_id: str
    remaining_free_uses: int

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED

    @property
    def is_guest(self) -> bool:
        return self.state == SessionState.GUEST

    @property
    def is_loading(self) -> bool:
        return self.state == SessionState.INITIALIZING

    def to_dict(self) -> dict[str, object]:
        """Convert to a JSON-serializable dict."""
        return {
            "state": self.state.value,
            "is_authenticated": self.is_authenticated,
            "is_guest": self.is_guest,
            "user": self.user.model_dump() if self.user else None,
            "guest_usage_count": self.guest_usage_count,
            "guest_device_id": self.guest_device_id,
            "remaining_free_uses": self.remaining_free_uses,
        }


@dataclass(frozen=True)
class SessionChange:
    """Notification delivered to session subscribers."""

    event: SessionEvent
    snapshot: SessionSnapshot
