"""Role store operations."""

from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from elderwatch.config import settings
from elderwatch.models.user_roles import ROLES, user_roles

logger = structlog.get_logger(__name__)


class RoleService:
    """
    Service for role assignments.

    ``resolve_role`` is a pure read and is the only lookup authorization
    decisions may use. ``ensure_role`` writes a default role when none exists;
    it belongs to the session path and must never back a permission check.
    """

    @staticmethod
    async def resolve_role(db: AsyncSession, user_id: UUID) -> str | None:
        """
        Look up the role assigned to an identity.

        Args:
            db: Database session
            user_id: Identity ID

        Returns:
            The role, or None when unassigned
        """
        query = select(user_roles.c.role).where(user_roles.c.user_id == user_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def assign_role(db: AsyncSession, user_id: UUID, role: str) -> dict:
        """
        Insert the role assignment for an identity.

        Raises:
            ValueError: If the role is unknown
            IntegrityError: If the identity already has a role
        """
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")

        query = user_roles.insert().values(user_id=user_id, role=role).returning(user_roles)
        result = await db.execute(query)
        await db.commit()
        row = result.mappings().first()

        if not row:
            raise ValueError("Failed to assign role")

        return dict(row)

    @staticmethod
    async def ensure_role(db: AsyncSession, user_id: UUID) -> str | None:
        """
        Return the identity's role, assigning the default role if it has none.

        Args:
            db: Database session
            user_id: Identity ID

        Returns:
            The existing or newly assigned role
        """
        role = await RoleService.resolve_role(db, user_id)
        if role:
            return role

        try:
            await RoleService.assign_role(db, user_id, settings.default_role)
        except IntegrityError:
            # Another request assigned a role first
            await db.rollback()
            return await RoleService.resolve_role(db, user_id)

        logger.info("default_role_assigned", user_id=str(user_id), role=settings.default_role)
        return settings.default_role

