"""Authentication service for sign-up, sign-in and JWT sessions."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from elderwatch.config import settings
from elderwatch.core.exceptions import DuplicateEmail, Unauthenticated, ValidationError
from elderwatch.core.redis_client import CacheManager
from elderwatch.core.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    seconds_until_expiry,
    verify_password,
)
from elderwatch.core.validators import normalize_email, parse_metadata
from elderwatch.schemas.auth import Token
from elderwatch.schemas.users import CaregiverMetadata
from elderwatch.services.identity_service import IdentityService
from elderwatch.services.role_service import RoleService

logger = structlog.get_logger(__name__)


class AuthService:
    """Authentication service for handling credentials and JWT sessions."""

    def __init__(self, cache_manager: CacheManager):
        """Initialize auth service with cache manager."""
        self.cache = cache_manager

    async def sign_up(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> tuple[dict, str | None, Token]:
        """
        Register a caregiver and open a session.

        Args:
            db: Database session
            email: Email address
            password: Plain-text password
            metadata: Caregiver profile fields

        Returns:
            Tuple of (user dict, role, token pair)

        Raises:
            ValidationError: If email, password or metadata are invalid
            DuplicateEmail: If the email is already registered
        """
        email = normalize_email(email)
        if len(password) < settings.signup_password_min_length:
            raise ValidationError(
                f"Password must be at least {settings.signup_password_min_length} characters",
                field="password",
            )
        profile = parse_metadata(CaregiverMetadata, metadata)

        if await IdentityService.get_identity_by_email(db, email):
            raise DuplicateEmail()

        user = await IdentityService.create_identity(
            db,
            email=email,
            password=password,
            metadata=profile,
            user_type="caregiver",
        )

        # A missing role is repaired by the session path, so sign-up still succeeds
        role: str | None = "caregiver"
        try:
            await RoleService.assign_role(db, user["id"], "caregiver")
        except SQLAlchemyError as e:
            await db.rollback()
            role = None
            logger.error("signup_role_assignment_failed", user_id=str(user["id"]), error=str(e))

        logger.info("caregiver_signed_up", user_id=str(user["id"]))
        return user, role, self.create_tokens(str(user["id"]))

    async def sign_in(
        self, db: AsyncSession, email: str, password: str
    ) -> tuple[dict, str | None, Token]:
        """
        Verify credentials and open a session.

        Returns:
            Tuple of (user dict, role, token pair)

        Raises:
            Unauthenticated: If the credentials do not match an active identity
        """
        email = normalize_email(email)
        user = await IdentityService.get_identity_by_email(db, email)

        if not user or not verify_password(password, user["password_hash"]):
            logger.info("sign_in_rejected", email=email)
            raise Unauthenticated("Invalid login credentials")

        if not user["is_active"]:
            raise Unauthenticated("User account is deactivated")

        await IdentityService.update_last_login(db, user["id"])
        role = await RoleService.resolve_role(db, user["id"])

        logger.info("user_signed_in", user_id=str(user["id"]))
        return user, role, self.create_tokens(str(user["id"]))

    async def authenticate(self, db: AsyncSession, access_token: str | None) -> dict:
        """
        Resolve an access token to an active identity.

        Args:
            db: Database session
            access_token: Bearer token, or None when no header was sent

        Returns:
            User dict

        Raises:
            Unauthenticated: If the token is missing, invalid, revoked or orphaned
        """
        if not access_token:
            raise Unauthenticated("No authorization header")

        payload = decode_access_token(access_token)
        if payload is None:
            raise Unauthenticated()

        if self.is_revoked(payload):
            raise Unauthenticated("Token has been revoked")

        try:
            user_id = UUID(str(payload.get("sub")))
        except ValueError:
            raise Unauthenticated("Invalid user ID format")

        user = await IdentityService.get_identity_by_id(db, user_id)
        if not user or not user["is_active"]:
            raise Unauthenticated()

        return user

    async def get_current_session(
        self, db: AsyncSession, access_token: str | None
    ) -> tuple[dict, str | None]:
        """Return the user and read-only role behind an access token."""
        user = await self.authenticate(db, access_token)
        role = await RoleService.resolve_role(db, user["id"])
        return user, role

    def sign_out(self, access_token: str, refresh_token: str | None = None) -> None:
        """
        Revoke the tokens of a session.

        Args:
            access_token: Access token of the session
            refresh_token: Optional refresh token of the session
        """
        payload = decode_access_token(access_token)
        if payload is not None:
            self.revoke(payload)

        if refresh_token:
            refresh_payload = decode_refresh_token(refresh_token)
            if refresh_payload is not None:
                self.revoke(refresh_payload)

        logger.info("user_signed_out", user_id=payload.get("sub") if payload else None)

    def create_tokens(self, user_id: str) -> Token:
        """
        Create access and refresh tokens for a user.

        Args:
            user_id: User identifier (internal UUID)

        Returns:
            Token pair (access and refresh)
        """
        return Token(
            access_token=create_access_token(data={"sub": user_id}),
            refresh_token=create_refresh_token(data={"sub": user_id}),
            token_type="bearer",
        )

    def refresh_access_token(self, refresh_token: str) -> Token:
        """
        Exchange a refresh token for a new token pair.

        The presented refresh token is revoked.

        Raises:
            Unauthenticated: If refresh token is invalid or revoked
        """
        payload = decode_refresh_token(refresh_token)

        if payload is None or payload.get("sub") is None:
            raise Unauthenticated("Invalid refresh token")

        if self.is_revoked(payload):
            raise Unauthenticated("Token has been revoked")

        self.revoke(payload)
        return self.create_tokens(str(payload["sub"]))

    def revoke(self, payload: dict) -> None:
        """Blacklist a decoded token until it would have expired."""
        self.cache.set(f"blacklist:{payload.get('jti')}", "1", ttl=seconds_until_expiry(payload))

    def is_revoked(self, payload: dict) -> bool:
        """Check whether a decoded token has been blacklisted."""
        return self.cache.exists(f"blacklist:{payload.get('jti')}")
