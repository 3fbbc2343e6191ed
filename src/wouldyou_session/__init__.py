"""Session and guest entitlement manager for the Would You Rather client."""

from .services.session_manager import SessionManager, SessionState

__all__ = ["SessionManager", "SessionState"]
