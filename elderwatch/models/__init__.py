"""Database models."""

from elderwatch.models.caregiver_patients import caregiver_patients
from elderwatch.models.user_roles import ROLES, user_roles
from elderwatch.models.users import metadata, users

__all__ = [
    "ROLES",
    "caregiver_patients",
    "metadata",
    "user_roles",
    "users",
]
