"""Authentication schemas."""

from typing import Any

from pydantic import BaseModel, Field

from elderwatch.schemas.users import Role, UserResponse


class Token(BaseModel):
    """JWT token response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(BaseModel):
    """Token refresh request schema."""

    refresh_token: str


class SignOutRequest(BaseModel):
    """Sign-out request; the refresh token is revoked when given."""

    refresh_token: str | None = None


class SignUpRequest(BaseModel):
    """Caregiver self-registration request."""

    email: str = Field(..., max_length=255)
    password: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class SignInRequest(BaseModel):
    """Email and password sign-in request."""

    email: str = Field(..., max_length=255)
    password: str


class SessionResponse(Token):
    """Tokens plus the signed-in user and role."""

    user: UserResponse
    role: Role | None = None


class CurrentSessionResponse(BaseModel):
    """Session restore result for an access token."""

    user: UserResponse
    role: Role | None = None
