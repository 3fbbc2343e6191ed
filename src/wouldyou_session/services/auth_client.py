"""HTTP client for the backend auth endpoints."""
import logging
from typing import Any, NoReturn

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..core.config import Settings, get_settings
from ..schemas.auth import (
    AppleSignInRequest,
    AuthResponse,
    DeleteAccountRequest,
    HealthResponse,
    LoginRequest,
    RefreshRequest,
    User,
)
from ..shared.api_errors import ErrorCategory, parse_http_error
from .exceptions import (
    AuthError,
    EmailTakenError,
    InvalidAppleCredentialError,
    InvalidCredentialsError,
    NetworkError,
    ReauthenticationRequiredError,
    ServiceError,
    ValidationError,
    WeakPasswordError,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

ErrorMapping = dict[ErrorCategory, type[AuthError]]

_LOGIN_ERRORS: ErrorMapping = {
    "auth": InvalidCredentialsError,
    "validation": ValidationError,
}
_REGISTER_ERRORS: ErrorMapping = {
    "conflict": EmailTakenError,
    "validation": ValidationError,
}
_APPLE_ERRORS: ErrorMapping = {
    "auth": InvalidAppleCredentialError,
    "validation": InvalidAppleCredentialError,
}
_DELETE_ERRORS: ErrorMapping = {
    "auth": ReauthenticationRequiredError,
    "forbidden": ReauthenticationRequiredError,
}
_TOKEN_ERRORS: ErrorMapping = {
    "auth": InvalidCredentialsError,
}


def validate_credentials(email: str, password: str, registering: bool = False) -> None:
    """
    Client-side pre-checks run before any network I/O.

    Raises:
        ValidationError: If the email is empty or malformed, the password is
            empty, or a registration password is too short.
    """
    if not email or not email.strip():
        raise ValidationError("Email is required.")
    if "@" not in email:
        raise ValidationError("Please enter a valid email address.")
    if not password:
        raise ValidationError("Password is required.")
    if registering and len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
        )


def _raise_api_error(e: httpx.HTTPStatusError, mapping: ErrorMapping) -> NoReturn:
    """Translate an HTTP error into the typed error for the operation. Always raises."""
    parsed = parse_http_error(e)
    error_cls = mapping.get(parsed.category, ServiceError)
    logger.debug(
        "auth_api_error status=%s category=%s error=%s",
        parsed.status_code,
        parsed.category,
        error_cls.__name__,
    )
    raise error_cls(parsed.message) from e


class AuthClient:
    """
    Stateless request/response operations against the backend.

    No local state and no retries beyond what the transport provides. One
    httpx.AsyncClient is reused for every call; pass your own to share a
    connection pool (it is then left open by aclose()).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            base_url=self._settings.api_url,
            timeout=self._settings.request_timeout,
        )

    async def __aenter__(self) -> "AuthClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    def _get_headers(self, token: str | None = None) -> dict[str, str]:
        headers = {"X-Request-Source": self._settings.request_source}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        mapping: ErrorMapping,
        json: dict[str, Any] | None = None,
        token: str | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        kwargs: dict[str, Any] = {"json": json, "headers": self._get_headers(token)}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await self._http_client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            _raise_api_error(e, mapping)
        except httpx.RequestError as e:
            logger.warning("auth_api_unavailable method=%s path=%s: %s", method, path, e)
            raise NetworkError() from e
        return response

    async def _authenticate(
        self, path: str, payload: dict[str, Any], mapping: ErrorMapping,
    ) -> AuthResponse:
        response = await self._request("POST", path, mapping, json=payload)
        return _parse_auth_response(response)

    async def login(self, email: str, password: str) -> AuthResponse:
        """
        Sign in with email and password.

        Raises:
            ValidationError: Malformed email or empty password.
            InvalidCredentialsError: Rejected by the server.
            NetworkError: No connectivity or timeout.
        """
        validate_credentials(email, password)
        body = LoginRequest(email=email.strip(), password=password)
        return await self._authenticate("/auth/login", body.model_dump(), _LOGIN_ERRORS)

    async def register(self, email: str, password: str) -> AuthResponse:
        """
        Create an account.

        Raises:
            ValidationError: Client-side pre-check failed.
            EmailTakenError: An account with this email exists.
            WeakPasswordError: The server rejected the password.
            NetworkError: No connectivity or timeout.
        """
        validate_credentials(email, password, registering=True)
        body = LoginRequest(email=email.strip(), password=password)
        try:
            return await self._authenticate("/auth/register", body.model_dump(), _REGISTER_ERRORS)
        except ValidationError as e:
            # The backend reports email and password problems with the same status
            if "password" in e.message.lower():
                raise WeakPasswordError(e.message) from e
            raise

    async def login_with_apple(
        self,
        identity_token: str,
        authorization_code: str,
        full_name: str | None = None,
        email: str | None = None,
    ) -> AuthResponse:
        """
        Exchange a native Sign in with Apple credential for session tokens.

        Cancelling the native sheet never reaches this method; callers treat
        it as a silent no-op.

        Raises:
            InvalidAppleCredentialError: Token or code rejected.
            NetworkError: No connectivity or timeout.
        """
        if not identity_token or not authorization_code:
            raise InvalidAppleCredentialError("Missing Apple identity token or authorization code.")
        body = AppleSignInRequest(
            identity_token=identity_token,
            authorization_code=authorization_code,
            full_name=full_name,
            email=email,
        )
        return await self._authenticate("/auth/apple", body.model_dump(), _APPLE_ERRORS)

    async def refresh(self, refresh_token: str) -> AuthResponse:
        """
        Exchange a refresh token for a new token pair.

        Raises:
            InvalidCredentialsError: The refresh token is invalid or expired.
            NetworkError: No connectivity or timeout.
        """
        body = RefreshRequest(refresh_token=refresh_token)
        return await self._authenticate("/auth/refresh", body.model_dump(), _TOKEN_ERRORS)

    async def logout(self, refresh_token: str, access_token: str | None = None) -> bool:
        """
        Revoke the refresh token server-side. Best effort.

        Failures are logged and never raised; local cleanup must proceed.

        Returns:
            True if the server acknowledged the logout.
        """
        body = RefreshRequest(refresh_token=refresh_token)
        try:
            await self._request(
                "POST", "/auth/logout", _TOKEN_ERRORS, json=body.model_dump(), token=access_token,
            )
        except AuthError as e:
            logger.warning("logout_notify_failed code=%s: %s", e.code, e.message)
            return False
        return True

    async def delete_account(self, access_token: str, password: str | None = None) -> None:
        """
        Permanently delete the signed-in account.

        Raises:
            ReauthenticationRequiredError: Password missing or incorrect.
            NetworkError: No connectivity or timeout.
        """
        body = DeleteAccountRequest(password=password or "")
        await self._request(
            "DELETE", "/auth/account", _DELETE_ERRORS, json=body.model_dump(), token=access_token,
        )

    async def validate_session(self, access_token: str) -> bool:
        """
        Lightweight session health check used at restore time.

        Uses the short validate timeout. Any non-success outcome (error status,
        network failure, timeout, unexpected body) counts as invalid.
        """
        try:
            response = await self._request(
                "GET",
                "/health",
                _TOKEN_ERRORS,
                token=access_token,
                timeout=self._settings.validate_timeout,
            )
            health = HealthResponse.model_validate(response.json())
        except (AuthError, ValueError) as e:
            logger.info("session_validation_failed: %s", e)
            return False
        return health.status == "ok"

    async def get_current_user(self, access_token: str) -> User:
        """
        Fetch the identity behind an access token.

        Raises:
            InvalidCredentialsError: The access token is no longer accepted.
            NetworkError: No connectivity or timeout.
            ServiceError: Any other failure.
        """
        response = await self._request(
            "GET",
            "/auth/me",
            _TOKEN_ERRORS,
            token=access_token,
            timeout=self._settings.validate_timeout,
        )
        try:
            return User.model_validate(response.json())
        except (PydanticValidationError, ValueError) as e:
            raise ServiceError("Unexpected response from server.") from e


def _parse_auth_response(response: httpx.Response) -> AuthResponse:
    try:
        return AuthResponse.model_validate(response.json())
    except (PydanticValidationError, ValueError) as e:
        raise ServiceError("Unexpected response from server.") from e
