"""Patient provisioning on behalf of an authenticated caregiver."""

import asyncio
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from elderwatch.config import settings
from elderwatch.core.exceptions import (
    DuplicateEmail,
    Forbidden,
    InternalError,
    ProvisioningError,
    RelationshipCreationFailed,
    RoleAssignmentFailed,
    ValidationError,
)
from elderwatch.core.validators import (
    PasswordPolicy,
    check_password,
    normalize_email,
    parse_metadata,
)
from elderwatch.schemas.users import PatientMetadata
from elderwatch.services.auth_service import AuthService
from elderwatch.services.identity_service import IdentityService
from elderwatch.services.relationship_service import RelationshipService
from elderwatch.services.role_service import RoleService

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProvisionedPatient:
    """Identity created by a successful provisioning call."""

    patient_id: UUID
    email: str


@dataclass
class _Attempt:
    caregiver_id: UUID | None = None
    patient_id: UUID | None = None


class ProvisioningService:
    """
    Create patient accounts for caregivers.

    A call authenticates the caller, requires a stored ``caregiver`` role,
    validates the input, then performs three durable writes in order: the
    identity, its ``patient`` role and the caregiver-patient link. Each write
    commits on its own. When the role or link write fails the new identity is
    deleted again unless compensation is disabled, and the specific failure is
    raised either way.
    """

    def __init__(
        self,
        auth_service: AuthService,
        password_policy: PasswordPolicy | None = None,
        compensate: bool | None = None,
        timeout: float | None = None,
    ):
        """Initialize with the auth service used to resolve callers."""
        self.auth = auth_service
        self.password_policy = password_policy or PasswordPolicy.from_settings()
        self.compensate = (
            settings.provisioning_compensate_on_failure if compensate is None else compensate
        )
        self.timeout = settings.provisioning_timeout_seconds if timeout is None else timeout

    async def provision_patient(
        self,
        db: AsyncSession,
        caller_credential: str | None,
        email: str | None,
        password: str | None,
        metadata: dict[str, Any] | None,
    ) -> ProvisionedPatient:
        """
        Provision a patient account linked to the calling caregiver.

        Args:
            db: Database session
            caller_credential: Caregiver's bearer access token
            email: Email of the new patient
            password: Initial password of the new patient
            metadata: Patient profile fields

        Returns:
            The new patient's ID and email

        Raises:
            Unauthenticated: Caller token missing, invalid or revoked
            Forbidden: Caller has no caregiver role assignment
            ValidationError: Bad email, password or metadata
            DuplicateEmail: Email already registered
            RoleAssignmentFailed: Patient role could not be written
            RelationshipCreationFailed: Caregiver link could not be written
            InternalError: Unexpected backend failure or timeout
        """
        attempt = _Attempt()
        try:
            async with asyncio.timeout(self.timeout):
                return await self._provision(db, attempt, caller_credential, email, password, metadata)
        except TimeoutError as e:
            logger.error(
                "provisioning_timed_out",
                timeout=self.timeout,
                caregiver_id=str(attempt.caregiver_id) if attempt.caregiver_id else None,
            )
            if attempt.patient_id is not None:
                await self._discard_identity(db, attempt.patient_id, "timeout")
            raise InternalError("Provisioning timed out") from e
        except ProvisioningError:
            raise
        except SQLAlchemyError as e:
            logger.error("provisioning_backend_error", error=str(e))
            raise InternalError() from e

    async def _provision(
        self,
        db: AsyncSession,
        attempt: _Attempt,
        caller_credential: str | None,
        email: str | None,
        password: str | None,
        metadata: dict[str, Any] | None,
    ) -> ProvisionedPatient:
        caller = await self.auth.authenticate(db, caller_credential)
        attempt.caregiver_id = caller["id"]

        # Read-only lookup: an unassigned caller is not a caregiver
        role = await RoleService.resolve_role(db, caller["id"])
        if role != "caregiver":
            logger.warning("provisioning_forbidden", caller_id=str(caller["id"]), role=role)
            raise Forbidden()

        if not email or not password:
            raise ValidationError(
                "Email and password are required",
                field="email" if not email else "password",
            )
        email = normalize_email(email)
        check_password(password, self.password_policy)
        profile = parse_metadata(PatientMetadata, metadata)

        if await IdentityService.get_identity_by_email(db, email):
            raise DuplicateEmail()

        # Known before the insert so a timeout during the commit can still discard it
        attempt.patient_id = uuid4()
        patient = await IdentityService.create_identity(
            db,
            user_id=attempt.patient_id,
            email=email,
            password=password,
            metadata=profile,
            user_type="patient",
            email_verified=True,
        )

        try:
            await RoleService.assign_role(db, patient["id"], "patient")
        except (SQLAlchemyError, ValueError) as e:
            logger.error("role_assignment_failed", patient_id=str(patient["id"]), error=str(e))
            await self._discard_identity(db, patient["id"], "role_assignment")
            raise RoleAssignmentFailed() from e

        try:
            await RelationshipService.link(db, caller["id"], patient["id"])
        except (SQLAlchemyError, ValueError) as e:
            logger.error(
                "relationship_creation_failed",
                caregiver_id=str(caller["id"]),
                patient_id=str(patient["id"]),
                error=str(e),
            )
            await self._discard_identity(db, patient["id"], "relationship")
            raise RelationshipCreationFailed() from e

        logger.info(
            "patient_provisioned",
            caregiver_id=str(caller["id"]),
            patient_id=str(patient["id"]),
        )
        return ProvisionedPatient(patient_id=patient["id"], email=patient["email"])

    async def _discard_identity(self, db: AsyncSession, patient_id: UUID, failed_step: str) -> None:
        """Delete an identity left behind by a failed provisioning call."""
        if not self.compensate:
            logger.error("orphaned_identity", patient_id=str(patient_id), failed_step=failed_step)
            return

        try:
            await db.rollback()
            await IdentityService.delete_identity(db, patient_id)
        except SQLAlchemyError as e:
            logger.error(
                "orphaned_identity",
                patient_id=str(patient_id),
                failed_step=failed_step,
                error=str(e),
            )
            return

        logger.warning("orphaned_identity_removed", patient_id=str(patient_id), failed_step=failed_step)
