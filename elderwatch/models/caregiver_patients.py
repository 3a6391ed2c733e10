"""Caregiver-patient relationship model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Table,
    UniqueConstraint,
    Uuid,
    func,
)

from elderwatch.models.users import metadata

caregiver_patients = Table(
    "caregiver_patients",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "caregiver_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    # Not unique: a patient normally has one caregiver but the schema allows more
    Column(
        "patient_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    UniqueConstraint("caregiver_id", "patient_id", name="uq_caregiver_patients_pair"),
)
