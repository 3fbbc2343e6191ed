"""Pydantic schemas for the backend auth endpoints."""
from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """Identity record of a signed-in user."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str


class LoginRequest(BaseModel):
    """Body for POST /auth/login and POST /auth/register."""

    email: str
    password: str


class AppleSignInRequest(BaseModel):
    """Body for POST /auth/apple."""

    identity_token: str
    authorization_code: str
    full_name: str | None = None
    email: str | None = None


class RefreshRequest(BaseModel):
    """Body for POST /auth/refresh and POST /auth/logout."""

    refresh_token: str


class DeleteAccountRequest(BaseModel):
    """Body for DELETE /auth/account. Apple-only accounts send an empty password."""

    password: str = ""


class AuthResponse(BaseModel):
    """
    Successful response of every sign-in endpoint.

    Tokens are opaque to the client; identity comes from the `user` record,
    never from decoding the access token.
    """

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    user: User


class HealthResponse(BaseModel):
    """Response of GET /health."""

    status: str
    timestamp: str | None = None
    db: str | None = None


class ErrorResponse(BaseModel):
    """Error payload returned by the backend on non-success responses."""

    error: bool = True
    message: str
