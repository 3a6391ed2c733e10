"""Authentication endpoints."""

from fastapi import APIRouter, status

from elderwatch.dependencies import AuthServiceDep, BearerToken, DatabaseSession
from elderwatch.schemas.auth import (
    CurrentSessionResponse,
    SessionResponse,
    SignInRequest,
    SignOutRequest,
    SignUpRequest,
    Token,
    TokenRefresh,
)
from elderwatch.schemas.users import UserResponse

router = APIRouter()


def _session_response(user: dict, role: str | None, tokens: Token) -> SessionResponse:
    return SessionResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        user=UserResponse.model_validate(user),
        role=role,
    )


@router.post(
    "/signup",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a caregiver account",
)
async def sign_up(
    request: SignUpRequest,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> SessionResponse:
    """
    Register a caregiver and return a session.

    Self-registered accounts always receive the caregiver role; patients are
    only created through provisioning.
    """
    user, role, tokens = await auth_service.sign_up(
        db, request.email, request.password, request.metadata
    )
    return _session_response(user, role, tokens)


@router.post(
    "/signin",
    response_model=SessionResponse,
    status_code=status.HTTP_200_OK,
    summary="Sign in with email and password",
)
async def sign_in(
    request: SignInRequest,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> SessionResponse:
    """Verify credentials and return a session."""
    user, role, tokens = await auth_service.sign_in(db, request.email, request.password)
    return _session_response(user, role, tokens)


@router.get(
    "/session",
    response_model=CurrentSessionResponse,
    status_code=status.HTTP_200_OK,
    summary="Restore the current session",
)
async def get_current_session(
    token: BearerToken,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> CurrentSessionResponse:
    """Return the user and role behind the bearer token."""
    user, role = await auth_service.get_current_session(db, token)
    return CurrentSessionResponse(user=UserResponse.model_validate(user), role=role)


@router.post(
    "/refresh",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    summary="Refresh access token",
)
async def refresh_token(
    request: TokenRefresh,
    auth_service: AuthServiceDep,
) -> Token:
    """Exchange a refresh token for a new token pair."""
    return auth_service.refresh_access_token(request.refresh_token)


@router.post(
    "/signout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Sign out and revoke tokens",
)
async def sign_out(
    token: BearerToken,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    request: SignOutRequest | None = None,
) -> None:
    """Revoke the bearer token and, when given, the refresh token."""
    await auth_service.authenticate(db, token)
    refresh = request.refresh_token if request else None
    auth_service.sign_out(token, refresh)  # type: ignore[arg-type]
