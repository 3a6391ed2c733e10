"""Patient provisioning and relationship schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class CreatePatientRequest(BaseModel):
    """
    Patient provisioning request.

    Fields are checked by the provisioning service, after the caller has been
    authenticated and authorized, so that authorization failures are reported
    before input problems.
    """

    email: str | None = None
    password: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class CreatedUser(BaseModel):
    """Identity created by provisioning."""

    id: UUID
    email: str


class CreatePatientResponse(BaseModel):
    """Successful provisioning response."""

    success: bool = True
    user: CreatedUser


class PatientSummary(BaseModel):
    """Patient linked to the calling caregiver."""

    id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    emergency_contact: str | None = None
    linked_at: datetime


class PatientListResponse(BaseModel):
    """Patients of a caregiver."""

    items: list[PatientSummary]
    total: int


class CaregiverSummary(BaseModel):
    """Caregiver responsible for the calling patient."""

    id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    linked_at: datetime


class CaregiverListResponse(BaseModel):
    """Caregivers of a patient."""

    items: list[CaregiverSummary]
    total: int
