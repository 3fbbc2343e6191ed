"""
Session and entitlement manager.

Orchestrates the secure token store, the guest usage ledger and the remote auth
client into one session lifecycle:

    INITIALIZING -> ANONYMOUS | GUEST | AUTHENTICATED

Token presence is authoritative: whenever a valid token exists the session is
authenticated, even if guest markers were left behind locally.
"""
import asyncio
import json
import logging
from collections.abc import Callable

import httpx
from keyring.backend import KeyringBackend

from ..core.config import Settings, get_settings
from ..core.limits import MAX_FREE_USES, has_quota_remaining, remaining_free_uses
from ..schemas.auth import AuthResponse, User
from ..schemas.session import (
    GuestState,
    SessionChange,
    SessionEvent,
    SessionSnapshot,
    SessionState,
)
from .auth_client import AuthClient
from .exceptions import (
    AuthError,
    GuestQuotaExceededError,
    InvalidCredentialsError,
    ReauthenticationRequiredError,
    SessionError,
    StorageError,
)
from .guest_ledger import GuestUsageLedger
from .local_store import LocalStore
from .token_store import SecureTokenStore

logger = logging.getLogger(__name__)

USER_PROFILE_KEY = "wouldyou_user_profile"

SessionListener = Callable[[SessionChange], None]


class SessionManager:
    """
    Holds the in-memory session and performs every state transition.

    All collaborators are injected. Mutating operations are serialized with an
    internal lock, so overlapping calls (e.g. login racing logout) are applied
    one after the other. Read `is_loading` until restore() has completed.
    """

    def __init__(
        self,
        token_store: SecureTokenStore,
        ledger: GuestUsageLedger,
        auth_client: AuthClient,
        local_store: LocalStore,
        max_free_uses: int = MAX_FREE_USES,
    ) -> None:
        self._token_store = token_store
        self._ledger = ledger
        self._auth_client = auth_client
        self._local_store = local_store
        self._max_free_uses = max_free_uses

        self._state = SessionState.INITIALIZING
        self._user: User | None = None
        self._guest_usage_count = 0
        self._guest_device_id = ""
        self._listeners: list[SessionListener] = []
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        keyring_backend: KeyringBackend | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> "SessionManager":
        """Build a manager wired to the platform keyring and the local state file."""
        settings = settings or get_settings()
        local_store = LocalStore(settings.local_state_path)
        return cls(
            token_store=SecureTokenStore(settings.keyring_service, backend=keyring_backend),
            ledger=GuestUsageLedger(local_store),
            auth_client=AuthClient(settings, http_client=http_client),
            local_store=local_store,
        )

    async def __aenter__(self) -> "SessionManager":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._auth_client.aclose()

    # ------------------------------------------------------------------
    # Exposed state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state == SessionState.INITIALIZING

    @property
    def is_authenticated(self) -> bool:
        return self._state == SessionState.AUTHENTICATED

    @property
    def is_guest(self) -> bool:
        return self._state == SessionState.GUEST

    @property
    def user(self) -> User | None:
        return self._user

    @property
    def guest_usage_count(self) -> int:
        return self._guest_usage_count

    @property
    def guest_device_id(self) -> str:
        return self._guest_device_id

    def snapshot(self) -> SessionSnapshot:
        """Get a read-only view of the current session."""
        return SessionSnapshot(
            state=self._state,
            user=self._user,
            guest_usage_count=self._guest_usage_count,
            guest_device_id=self._guest_device_id,
            remaining_free_uses=(
                self._max_free_uses
                if self.is_authenticated
                else remaining_free_uses(self._guest_usage_count, self._max_free_uses)
            ),
        )

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a listener for session changes.

        Side effects such as haptics or analytics subscribe here instead of
        being interleaved with transitions.

        Returns:
            A callable that unregisters the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Entitlement
    # ------------------------------------------------------------------

    def can_use_feature(self) -> bool:
        """Authenticated users always may play; everyone else within the free quota."""
        if self.is_authenticated:
            return True
        return has_quota_remaining(self._guest_usage_count, self._max_free_uses)

    def require_feature(self) -> None:
        """
        Raises:
            GuestQuotaExceededError: If can_use_feature() is False.
        """
        if not self.can_use_feature():
            raise GuestQuotaExceededError()

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    async def restore(self) -> SessionSnapshot:
        """
        Reconstruct the session from persisted tokens and guest state.

        Never raises: storage and network failures degrade to guest or
        anonymous, and unusable tokens are cleared.
        """
        async with self._lock:
            guest = await self._load_guest_state()
            if guest.device_id:
                self._guest_device_id = guest.device_id

            user = await self._restore_authenticated_user()
            if user is not None:
                self._set_authenticated(user)
                if guest.guest_mode_active:
                    await self._clear_guest_mode()
            elif guest.guest_mode_active:
                self._user = None
                self._state = SessionState.GUEST
                self._guest_usage_count = guest.usage_count
                if not self._guest_device_id:
                    self._guest_device_id = await self._ensure_device_id()
            else:
                self._user = None
                self._state = SessionState.ANONYMOUS
                self._guest_usage_count = 0

            logger.info("session_restored state=%s", self._state)
            self._emit(SessionEvent.RESTORED)
            return self.snapshot()

    async def _load_guest_state(self) -> GuestState:
        try:
            return await self._ledger.load()
        except StorageError as e:
            logger.warning("restore_guest_state_unavailable: %s", e.message)
            return GuestState(device_id=None, usage_count=0, guest_mode_active=False)

    async def _ensure_device_id(self) -> str:
        try:
            return await self._ledger.ensure_device_id()
        except StorageError as e:
            logger.warning("restore_device_id_unavailable: %s", e.message)
            return ""

    async def _restore_authenticated_user(self) -> User | None:
        try:
            access_token = await self._token_store.get_access_token()
            if not access_token:
                return None
            if await self._auth_client.validate_session(access_token):
                user = await self._resolve_identity(access_token)
                if user is not None:
                    return user
                logger.warning("restore_identity_unavailable, discarding tokens")
            else:
                logger.info("restore_session_invalid, discarding tokens")
        except SessionError as e:
            logger.warning("restore_failed code=%s: %s", e.code, e.message)

        await self._discard_tokens()
        return None

    async def _resolve_identity(self, access_token: str) -> User | None:
        """Ask the backend who the token belongs to, refreshing an expired token once."""
        try:
            user = await self._auth_client.get_current_user(access_token)
        except InvalidCredentialsError:
            return await self._refresh_tokens()
        except AuthError as e:
            logger.info("current_user_unavailable code=%s, using cached profile", e.code)
            return await self._load_cached_profile()
        await self._cache_profile(user)
        return user

    async def _refresh_tokens(self) -> User | None:
        refresh_token = await self._token_store.get_refresh_token()
        if not refresh_token:
            return None
        try:
            auth = await self._auth_client.refresh(refresh_token)
        except AuthError as e:
            logger.info("token_refresh_failed code=%s", e.code)
            return None
        await self._token_store.set_pair(auth.access_token, auth.refresh_token)
        await self._cache_profile(auth.user)
        logger.info("token_refreshed user_id=%s", auth.user.id)
        return auth.user

    async def _load_cached_profile(self) -> User | None:
        raw = await self._local_store.get(USER_PROFILE_KEY)
        if not raw:
            return None
        try:
            return User.model_validate(json.loads(raw))
        except ValueError:
            logger.warning("cached_profile_corrupt, ignoring")
            return None

    async def _save_profile(self, user: User) -> None:
        await self._local_store.set(USER_PROFILE_KEY, user.model_dump_json())

    async def _cache_profile(self, user: User) -> None:
        try:
            await self._save_profile(user)
        except StorageError as e:
            logger.warning("profile_cache_failed: %s", e.message)

    async def _clear_guest_mode(self) -> None:
        try:
            await self._ledger.clear_guest_mode()
        except StorageError as e:
            logger.warning("guest_mode_not_cleared: %s", e.message)

    async def _discard_tokens(self) -> None:
        try:
            await self._token_store.clear()
        except StorageError as e:
            logger.warning("token_clear_failed: %s", e.message)

    # ------------------------------------------------------------------
    # Sign-in
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> User:
        """
        Sign in with email and password.

        Failures propagate unchanged and leave the session untouched.
        """
        async with self._lock:
            auth = await self._auth_client.login(email, password)
            return await self._complete_sign_in(auth, "password")

    async def register(self, email: str, password: str) -> User:
        """Create an account and sign in. Failures leave the session untouched."""
        async with self._lock:
            auth = await self._auth_client.register(email, password)
            return await self._complete_sign_in(auth, "register")

    async def login_with_apple(
        self,
        identity_token: str,
        authorization_code: str,
        full_name: str | None = None,
        email: str | None = None,
    ) -> User:
        """Sign in with a native Apple credential. Failures leave the session untouched."""
        async with self._lock:
            auth = await self._auth_client.login_with_apple(
                identity_token, authorization_code, full_name=full_name, email=email,
            )
            return await self._complete_sign_in(auth, "apple")

    async def _complete_sign_in(self, auth: AuthResponse, method: str) -> User:
        # Tokens first: a crash before the guest markers are cleared still
        # restores as authenticated.
        persisted = True
        try:
            await self._token_store.set_pair(auth.access_token, auth.refresh_token)
        except StorageError as e:
            persisted = False
            logger.warning("sign_in_tokens_not_persisted code=%s: %s", e.code, e.message)
        try:
            await self._ledger.clear_guest_mode()
            await self._save_profile(auth.user)
        except StorageError as e:
            persisted = False
            logger.warning("sign_in_local_state_not_persisted code=%s: %s", e.code, e.message)

        self._set_authenticated(auth.user)
        logger.info("signed_in user_id=%s method=%s", auth.user.id, method)
        self._emit(SessionEvent.SIGNED_IN)
        if not persisted:
            # Session holds for this process; the user may need to sign in again after restart
            self._emit(SessionEvent.PERSISTENCE_FAILED)
        return auth.user

    def _set_authenticated(self, user: User) -> None:
        self._user = user
        self._state = SessionState.AUTHENTICATED
        self._guest_usage_count = 0

    # ------------------------------------------------------------------
    # Guest mode
    # ------------------------------------------------------------------

    async def continue_as_guest(self) -> str:
        """
        Start a fresh guest session with zero usage.

        Only starts a new session from ANONYMOUS. In GUEST it keeps the running
        session (and its count); when authenticated it does nothing.

        Returns:
            The guest device id.
        """
        async with self._lock:
            if self._state == SessionState.AUTHENTICATED:
                logger.info("continue_as_guest_ignored state=%s", self._state)
                return self._guest_device_id
            if self._state == SessionState.GUEST:
                return self._guest_device_id

            self._guest_device_id = await self._ledger.begin_guest_session()
            self._guest_usage_count = 0
            self._state = SessionState.GUEST
            logger.info("guest_session_started")
            self._emit(SessionEvent.GUEST_STARTED)
            return self._guest_device_id

    async def increment_guest_usage(self) -> int:
        """
        Record one consumed free play.

        A no-op unless the session is in guest mode. A failed write still
        counts the play in memory for this process.

        Returns:
            The current usage count.
        """
        async with self._lock:
            if self._state != SessionState.GUEST:
                return self._guest_usage_count

            current = self._guest_usage_count
            try:
                self._guest_usage_count = await self._ledger.record_usage(current)
            except StorageError as e:
                self._guest_usage_count = current + 1
                logger.warning("guest_usage_not_persisted count=%s: %s", current + 1, e.message)
                self._emit(SessionEvent.PERSISTENCE_FAILED)

            logger.debug("guest_usage_recorded count=%s", self._guest_usage_count)
            self._emit(SessionEvent.GUEST_USAGE_RECORDED)
            return self._guest_usage_count

    # ------------------------------------------------------------------
    # Sign-out
    # ------------------------------------------------------------------

    async def logout(self) -> None:
        """
        Sign out (or leave guest mode).

        The server is notified best-effort; local cleanup always happens.
        """
        async with self._lock:
            try:
                await self._notify_logout()
            finally:
                await self._reset_local_state()
                logger.info("signed_out")
                self._emit(SessionEvent.SIGNED_OUT)

    async def _notify_logout(self) -> None:
        try:
            refresh_token = await self._token_store.get_refresh_token()
            access_token = await self._token_store.get_access_token()
        except StorageError as e:
            logger.warning("logout_tokens_unreadable: %s", e.message)
            return
        if refresh_token:
            await self._auth_client.logout(refresh_token, access_token)

    async def delete_account(self, password: str | None = None) -> None:
        """
        Permanently delete the signed-in account, then clean up like logout.

        Raises:
            ReauthenticationRequiredError: Not signed in, or the password was
                missing or incorrect.
            NetworkError: No connectivity or timeout; nothing is cleaned up.
        """
        async with self._lock:
            if self._state != SessionState.AUTHENTICATED:
                raise ReauthenticationRequiredError("Sign in to delete your account.")
            access_token = await self._token_store.get_access_token()
            if not access_token:
                raise ReauthenticationRequiredError("Your session has expired. Please sign in again.")

            await self._auth_client.delete_account(access_token, password)
            await self._reset_local_state()
            logger.info("account_deleted")
            self._emit(SessionEvent.ACCOUNT_DELETED)

    async def _reset_local_state(self) -> None:
        await self._discard_tokens()
        await self._clear_guest_mode()
        try:
            await self._local_store.remove(USER_PROFILE_KEY)
        except StorageError as e:
            logger.warning("profile_clear_failed: %s", e.message)
        self._user = None
        self._guest_usage_count = 0
        self._state = SessionState.ANONYMOUS

    # ------------------------------------------------------------------

    def _emit(self, event: SessionEvent) -> None:
        change = SessionChange(event=event, snapshot=self.snapshot())
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("session_listener_failed event=%s", event)
