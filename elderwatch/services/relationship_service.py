"""Caregiver-patient relationship store operations."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from elderwatch.models.caregiver_patients import caregiver_patients
from elderwatch.models.users import users


class RelationshipService:
    """Service for caregiver-patient links."""

    @staticmethod
    async def link(db: AsyncSession, caregiver_id: UUID, patient_id: UUID) -> dict:
        """Record that a caregiver is responsible for a patient."""
        query = (
            caregiver_patients.insert()
            .values(caregiver_id=caregiver_id, patient_id=patient_id)
            .returning(caregiver_patients)
        )
        result = await db.execute(query)
        await db.commit()
        row = result.mappings().first()

        if not row:
            raise ValueError("Failed to create relationship")

        return dict(row)

    @staticmethod
    async def list_patients(db: AsyncSession, caregiver_id: UUID) -> list[dict]:
        """
        List the patients linked to a caregiver.

        Args:
            db: Database session
            caregiver_id: Caregiver identity ID

        Returns:
            Patient profiles with the time they were linked, oldest link first
        """
        query = (
            select(
                users.c.id,
                users.c.email,
                users.c.first_name,
                users.c.last_name,
                users.c.phone,
                users.c.emergency_contact,
                caregiver_patients.c.created_at.label("linked_at"),
            )
            .select_from(
                caregiver_patients.join(users, users.c.id == caregiver_patients.c.patient_id)
            )
            .where(caregiver_patients.c.caregiver_id == caregiver_id)
            .order_by(caregiver_patients.c.created_at, users.c.email)
        )
        result = await db.execute(query)
        return [dict(row) for row in result.mappings().all()]

    @staticmethod
    async def list_caregivers(db: AsyncSession, patient_id: UUID) -> list[dict]:
        """List the caregivers linked to a patient."""
        query = (
            select(
                users.c.id,
                users.c.email,
                users.c.first_name,
                users.c.last_name,
                users.c.phone,
                caregiver_patients.c.created_at.label("linked_at"),
            )
            .select_from(
                caregiver_patients.join(users, users.c.id == caregiver_patients.c.caregiver_id)
            )
            .where(caregiver_patients.c.patient_id == patient_id)
            .order_by(caregiver_patients.c.created_at, users.c.email)
        )
        result = await db.execute(query)
        return [dict(row) for row in result.mappings().all()]
