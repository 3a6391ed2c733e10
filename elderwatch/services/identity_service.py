"""Identity store operations."""

from datetime import UTC, datetime
from uuid import UUID, uuid4

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from elderwatch.core.exceptions import DuplicateEmail
from elderwatch.core.security import get_password_hash
from elderwatch.models.user_roles import user_roles
from elderwatch.models.users import users
from elderwatch.schemas.users import ProfileMetadata

logger = structlog.get_logger(__name__)


class IdentityService:
    """Service for identity records (credentials and profile metadata)."""

    @staticmethod
    async def create_identity(
        db: AsyncSession,
        email: str,
        password: str,
        metadata: ProfileMetadata,
        user_type: str,
        email_verified: bool = False,
        user_id: UUID | None = None,
    ) -> dict:
        """
        Create a new identity.

        Args:
            db: Database session
            email: Normalized email address
            password: Plain-text password, stored as a bcrypt hash
            metadata: Profile fields
            user_type: Stored with the metadata for downstream consumers
            email_verified: Whether the address is already confirmed
            user_id: Identity ID to use instead of a generated one

        Returns:
            The created identity

        Raises:
            DuplicateEmail: If the email violates the uniqueness constraint
        """
        profile = metadata.model_dump(exclude={"user_type"}, exclude_none=True)
        query = (
            users.insert()
            .values(
                id=user_id or uuid4(),
                email=email,
                password_hash=get_password_hash(password),
                email_verified=email_verified,
                user_type=user_type,
                **profile,
            )
            .returning(users)
        )

        try:
            result = await db.execute(query)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.info("identity_email_conflict", email=email)
            raise DuplicateEmail() from e

        user = result.mappings().first()
        if not user:
            raise ValueError("Failed to create identity")

        return dict(user)

    @staticmethod
    async def get_identity_by_id(db: AsyncSession, user_id: UUID) -> dict | None:
        """Get identity by ID."""
        query = select(users).where(users.c.id == user_id)
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    @staticmethod
    async def get_identity_by_email(db: AsyncSession, email: str) -> dict | None:
        """Get identity by normalized email."""
        query = select(users).where(users.c.email == email)
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    @staticmethod
    async def update_last_login(db: AsyncSession, user_id: UUID) -> None:
        """Update identity's last login timestamp."""
        query = update(users).where(users.c.id == user_id).values(last_login_at=datetime.now(UTC))
        await db.execute(query)
        await db.commit()

    @staticmethod
    async def delete_identity(db: AsyncSession, user_id: UUID) -> bool:
        """Delete an identity together with its role assignment."""
        await db.execute(delete(user_roles).where(user_roles.c.user_id == user_id))
        result = await db.execute(delete(users).where(users.c.id == user_id))
        await db.commit()
        return result.rowcount > 0  # type: ignore[attr-defined]

    @staticmethod
    async def list_identities_without_role(db: AsyncSession) -> list[dict]:
        """Identities that have no role assignment, oldest first."""
        query = (
            select(users)
            .outerjoin(user_roles, user_roles.c.user_id == users.c.id)
            .where(user_roles.c.id.is_(None))
            .order_by(users.c.created_at)
        )
        result = await db.execute(query)
        return [dict(row) for row in result.mappings().all()]
