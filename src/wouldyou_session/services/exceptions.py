"""Typed errors raised by the session layer."""
from enum import StrEnum


class ErrorCode(StrEnum):
    """Structured error codes the UI layer switches on."""

    NETWORK = "network"
    INVALID_CREDENTIALS = "invalid_credentials"
    VALIDATION = "validation"
    EMAIL_TAKEN = "email_taken"
    WEAK_PASSWORD = "weak_password"
    INVALID_APPLE_CREDENTIAL = "invalid_apple_credential"
    REAUTHENTICATION_REQUIRED = "reauthentication_required"
    SERVICE = "service"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    STORAGE_WRITE_FAILED = "storage_write_failed"
    QUOTA_EXCEEDED = "quota_exceeded"


class SessionError(Exception):
    """
    Base class for every error raised by the session layer.

    Carries a structured `code` and a human-readable `message` that can be
    shown to the user verbatim.
    """

    code: ErrorCode = ErrorCode.SERVICE
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthError(SessionError):
    """Raised by remote auth operations."""


class NetworkError(AuthError):
    """No connectivity or the request timed out. Retryable by user action."""

    code = ErrorCode.NETWORK
    default_message = "Unable to reach the server. Check your connection and try again."


class InvalidCredentialsError(AuthError):
    """Email/password rejected, or the session token is no longer accepted."""

    code = ErrorCode.INVALID_CREDENTIALS
    default_message = "Invalid email or password."


class ValidationError(AuthError):
    """Input rejected by client-side pre-checks or by the server."""

    code = ErrorCode.VALIDATION
    default_message = "Please check the details you entered."


class EmailTakenError(AuthError):
    """Registration with an email that already has an account."""

    code = ErrorCode.EMAIL_TAKEN
    default_message = "An account with this email already exists."


class WeakPasswordError(AuthError):
    """Registration password rejected by the server."""

    code = ErrorCode.WEAK_PASSWORD
    default_message = "Password must be at least 8 characters."


class InvalidAppleCredentialError(AuthError):
    """Apple identity token or authorization code rejected."""

    code = ErrorCode.INVALID_APPLE_CREDENTIAL
    default_message = "Sign in with Apple failed. Please try again."


class ReauthenticationRequiredError(AuthError):
    """Account deletion without a valid password."""

    code = ErrorCode.REAUTHENTICATION_REQUIRED
    default_message = "Incorrect password."


class ServiceError(AuthError):
    """Unexpected status or malformed response from the backend."""

    code = ErrorCode.SERVICE


class StorageError(SessionError):
    """Base class for local persistence failures."""


class StorageUnavailableError(StorageError):
    """The underlying store cannot be accessed."""

    code = ErrorCode.STORAGE_UNAVAILABLE
    default_message = "Secure storage is unavailable on this device."


class StorageWriteFailedError(StorageError):
    """A write did not complete."""

    code = ErrorCode.STORAGE_WRITE_FAILED
    default_message = "Failed to save data on this device."


class GuestQuotaExceededError(SessionError):
    """Guest used every free play; the UI offers registration."""

    code = ErrorCode.QUOTA_EXCEEDED
    default_message = "You've used all your free plays. Create an account to keep playing."
