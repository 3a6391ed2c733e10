"""Patient provisioning and relationship endpoints."""

from fastapi import APIRouter, status

from elderwatch.dependencies import (
    BearerToken,
    CurrentCaregiver,
    CurrentPatient,
    DatabaseSession,
    ProvisioningServiceDep,
)
from elderwatch.schemas.patients import (
    CaregiverListResponse,
    CaregiverSummary,
    CreatedUser,
    CreatePatientRequest,
    CreatePatientResponse,
    PatientListResponse,
    PatientSummary,
)
from elderwatch.services.relationship_service import RelationshipService

router = APIRouter(prefix="/patients", tags=["Patients"])


@router.post(
    "",
    response_model=CreatePatientResponse,
    status_code=status.HTTP_200_OK,
    summary="Create a patient account (caregivers only)",
    responses={
        400: {"description": "Validation error, missing fields or duplicate email"},
        401: {"description": "Missing or invalid credentials"},
        403: {"description": "Caller is not a caregiver"},
        500: {"description": "Role or relationship write failed"},
    },
)
async def create_patient(
    request: CreatePatientRequest,
    token: BearerToken,
    db: DatabaseSession,
    provisioning: ProvisioningServiceDep,
) -> CreatePatientResponse:
    """
    Provision a patient account on behalf of the calling caregiver.

    The account is created with a confirmed email, assigned the patient role
    and linked to the caller. Clients should re-fetch the patient list only
    after a successful response.
    """
    patient = await provisioning.provision_patient(
        db,
        caller_credential=token,
        email=request.email,
        password=request.password,
        metadata=request.metadata,
    )
    return CreatePatientResponse(user=CreatedUser(id=patient.patient_id, email=patient.email))


@router.get(
    "",
    response_model=PatientListResponse,
    summary="List the caller's patients (caregivers only)",
)
async def list_patients(caregiver: CurrentCaregiver, db: DatabaseSession) -> PatientListResponse:
    """List the patients linked to the calling caregiver."""
    rows = await RelationshipService.list_patients(db, caregiver["id"])
    items = [PatientSummary.model_validate(row) for row in rows]
    return PatientListResponse(items=items, total=len(items))


@router.get(
    "/caregivers",
    response_model=CaregiverListResponse,
    summary="List the caller's caregivers (patients only)",
)
async def list_caregivers(patient: CurrentPatient, db: DatabaseSession) -> CaregiverListResponse:
    """List the caregivers responsible for the calling patient."""
    rows = await RelationshipService.list_caregivers(db, patient["id"])
    items = [CaregiverSummary.model_validate(row) for row in rows]
    return CaregiverListResponse(items=items, total=len(items))
