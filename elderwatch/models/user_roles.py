"""Role assignment model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Table,
    Uuid,
    func,
)

from elderwatch.models.users import metadata

ROLES = ("caregiver", "patient")

user_roles = Table(
    "user_roles",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # One role per identity
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    ),
    Column("role", String(20), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("role IN ('caregiver', 'patient')", name="ck_user_roles_role"),
)
