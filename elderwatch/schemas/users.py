"""User schemas for request/response validation."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["caregiver", "patient"]


class ProfileMetadata(BaseModel):
    """Profile fields stored alongside an identity."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=20)


class CaregiverMetadata(ProfileMetadata):
    """Metadata accepted when a caregiver registers."""

    user_type: Literal["caregiver"] | None = None


class PatientMetadata(ProfileMetadata):
    """Metadata accepted when a caregiver provisions a patient."""

    emergency_contact: str | None = Field(None, max_length=20)
    user_type: Literal["patient"] | None = None


class UserResponse(BaseModel):
    """Identity as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    email_verified: bool
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    emergency_contact: str | None = None
    user_type: str | None = None
    is_active: bool
    created_at: datetime
    last_login_at: datetime | None = None


class UserWithRoleResponse(UserResponse):
    """Identity together with its role assignment."""

    role: Role | None = None


class RoleResponse(BaseModel):
    """Role lookup result; ``None`` means unassigned."""

    user_id: UUID
    role: Role | None = None
