"""Tests for patient provisioning at the service level."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from elderwatch.core.exceptions import (
    DuplicateEmail,
    Forbidden,
    InternalError,
    RelationshipCreationFailed,
    RoleAssignmentFailed,
    Unauthenticated,
    ValidationError,
)
from elderwatch.core.security import create_refresh_token
from elderwatch.models import caregiver_patients, user_roles, users
from elderwatch.services.identity_service import IdentityService
from elderwatch.services.provisioning_service import ProvisioningService
from elderwatch.services.relationship_service import RelationshipService
from elderwatch.services.role_service import RoleService
from tests.conftest import STRONG_PASSWORD, store_counts


@pytest.fixture
def provisioning(auth_service):
    return ProvisioningService(auth_service)


async def provision(provisioning, db, token, **overrides):
    params = {
        "email": "pat@example.com",
        "password": STRONG_PASSWORD,
        "metadata": {"first_name": "Ann", "phone": "555-0100"},
    }
    params.update(overrides)
    return await provisioning.provision_patient(db, token, **params)


class TestProvisionPatient:
    """Successful provisioning."""

    async def test_creates_identity_role_and_link(self, db_session, provisioning, caregiver):
        result = await provision(provisioning, db_session, caregiver["token"])

        assert result.email == "pat@example.com"

        user = (
            await db_session.execute(select(users).where(users.c.id == result.patient_id))
        ).mappings().one()
        assert user["email"] == "pat@example.com"
        assert user["email_verified"] is True
        assert user["first_name"] == "Ann"
        assert user["phone"] == "555-0100"
        assert user["user_type"] == "patient"

        role = await RoleService.resolve_role(db_session, result.patient_id)
        assert role == "patient"

        link = (
            await db_session.execute(
                select(caregiver_patients).where(
                    caregiver_patients.c.patient_id == result.patient_id
                )
            )
        ).mappings().one()
        assert link["caregiver_id"] == caregiver["id"]

    async def test_writes_exactly_one_row_per_store(self, db_session, provisioning, caregiver):
        before = await store_counts(db_session)

        await provision(provisioning, db_session, caregiver["token"])

        after = await store_counts(db_session)
        assert after == (before[0] + 1, before[1] + 1, before[2] + 1)

    async def test_email_is_normalized(self, db_session, provisioning, caregiver):
        result = await provision(
            provisioning, db_session, caregiver["token"], email="  Pat@Example.COM "
        )
        assert result.email == "pat@example.com"

    async def test_password_is_hashed(self, db_session, provisioning, caregiver):
        result = await provision(provisioning, db_session, caregiver["token"])

        stored = (
            await db_session.execute(
                select(users.c.password_hash).where(users.c.id == result.patient_id)
            )
        ).scalar_one()
        assert stored != STRONG_PASSWORD
        assert stored.startswith("$2")

    async def test_patient_appears_in_caregiver_list(self, db_session, provisioning, caregiver):
        result = await provision(provisioning, db_session, caregiver["token"])

        patients = await RelationshipService.list_patients(db_session, caregiver["id"])
        assert [p["id"] for p in patients] == [result.patient_id]


class TestAuthorization:
    """Authentication and role checks run before any write."""

    async def test_patient_caller_is_forbidden(self, db_session, provisioning, patient):
        before = await store_counts(db_session)

        with pytest.raises(Forbidden):
            await provision(provisioning, db_session, patient["token"])

        assert await store_counts(db_session) == before

    async def test_unassigned_caller_is_forbidden_and_gains_no_role(
        self, db_session, provisioning, unassigned_user
    ):
        before = await store_counts(db_session)

        with pytest.raises(Forbidden):
            await provision(provisioning, db_session, unassigned_user["token"])

        assert await store_counts(db_session) == before
        assert await RoleService.resolve_role(db_session, unassigned_user["id"]) is None

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
    async def test_missing_or_invalid_token(self, db_session, provisioning, caregiver, token):
        before = await store_counts(db_session)

        with pytest.raises(Unauthenticated):
            await provision(provisioning, db_session, token)

        assert await store_counts(db_session) == before

    async def test_refresh_token_is_not_a_credential(self, db_session, provisioning, caregiver):
        token = create_refresh_token(data={"sub": str(caregiver["id"])})

        with pytest.raises(Unauthenticated):
            await provision(provisioning, db_session, token)

    async def test_revoked_token(self, db_session, provisioning, auth_service, caregiver):
        auth_service.sign_out(caregiver["token"])

        with pytest.raises(Unauthenticated, match="revoked"):
            await provision(provisioning, db_session, caregiver["token"])

    async def test_authorization_checked_before_input(self, db_session, provisioning, patient):
        with pytest.raises(Forbidden):
            await provision(provisioning, db_session, patient["token"], email=None, password=None)


class TestValidation:
    """Input problems are rejected without writes."""

    @pytest.mark.parametrize(
        ("email", "password"),
        [(None, STRONG_PASSWORD), ("", STRONG_PASSWORD), ("pat@example.com", None)],
    )
    async def test_missing_fields(self, db_session, provisioning, caregiver, email, password):
        before = await store_counts(db_session)

        with pytest.raises(ValidationError, match="Email and password are required"):
            await provision(
                provisioning, db_session, caregiver["token"], email=email, password=password
            )

        assert await store_counts(db_session) == before

    @pytest.mark.parametrize("email", ["not-an-email", "pat@", "@example.com", "a b@example.com"])
    async def test_malformed_email(self, db_session, provisioning, caregiver, email):
        with pytest.raises(ValidationError) as exc_info:
            await provision(provisioning, db_session, caregiver["token"], email=email)
        assert exc_info.value.field == "email"

    @pytest.mark.parametrize(
        ("password", "message"),
        [
            ("Sh0rt!", "at least 8 characters"),
            ("str0ng!pw", "uppercase"),
            ("STR0NG!PW", "lowercase"),
            ("Strong!Pw", "number"),
            ("Str0ngPw1", "special character"),
        ],
    )
    async def test_weak_password(self, db_session, provisioning, caregiver, password, message):
        before = await store_counts(db_session)

        with pytest.raises(ValidationError, match=message) as exc_info:
            await provision(provisioning, db_session, caregiver["token"], password=password)

        assert exc_info.value.field == "password"
        assert await store_counts(db_session) == before

    async def test_unknown_metadata_field(self, db_session, provisioning, caregiver):
        with pytest.raises(ValidationError) as exc_info:
            await provision(
                provisioning, db_session, caregiver["token"], metadata={"favourite_colour": "red"}
            )
        assert exc_info.value.field == "metadata.favourite_colour"

    async def test_metadata_cannot_claim_caregiver_type(self, db_session, provisioning, caregiver):
        with pytest.raises(ValidationError) as exc_info:
            await provision(
                provisioning, db_session, caregiver["token"], metadata={"user_type": "caregiver"}
            )
        assert exc_info.value.field == "metadata.user_type"

    async def test_duplicate_email(self, db_session, provisioning, caregiver):
        await provision(provisioning, db_session, caregiver["token"])
        before = await store_counts(db_session)

        with pytest.raises(DuplicateEmail):
            await provision(provisioning, db_session, caregiver["token"], email="PAT@example.com")

        assert await store_counts(db_session) == before

    async def test_existing_caregiver_email_is_duplicate(self, db_session, provisioning, caregiver):
        with pytest.raises(DuplicateEmail):
            await provision(provisioning, db_session, caregiver["token"], email=caregiver["email"])

    async def test_unique_constraint_rejects_duplicate_past_precheck(
        self, db_session, provisioning, caregiver
    ):
        await provision(provisioning, db_session, caregiver["token"])
        before = await store_counts(db_session)

        # Simulates a concurrent request that passed the lookup first
        with patch.object(IdentityService, "get_identity_by_email", AsyncMock(return_value=None)):
            with pytest.raises(DuplicateEmail):
                await provision(provisioning, db_session, caregiver["token"])

        assert await store_counts(db_session) == before


class TestPartialFailure:
    """Failures after the identity write."""

    async def test_role_failure_removes_identity(self, db_session, provisioning, caregiver):
        before = await store_counts(db_session)

        with patch.object(
            RoleService, "assign_role", AsyncMock(side_effect=SQLAlchemyError("boom"))
        ):
            with pytest.raises(RoleAssignmentFailed, match="Failed to create patient role"):
                await provision(provisioning, db_session, caregiver["token"])

        assert await store_counts(db_session) == before

    async def test_relationship_failure_removes_identity_and_role(
        self, db_session, provisioning, caregiver
    ):
        before = await store_counts(db_session)

        with patch.object(
            RelationshipService, "link", AsyncMock(side_effect=SQLAlchemyError("boom"))
        ):
            with pytest.raises(RelationshipCreationFailed):
                await provision(provisioning, db_session, caregiver["token"])

        assert await store_counts(db_session) == before

    async def test_email_is_reusable_after_compensation(self, db_session, provisioning, caregiver):
        with patch.object(
            RelationshipService, "link", AsyncMock(side_effect=SQLAlchemyError("boom"))
        ):
            with pytest.raises(RelationshipCreationFailed):
                await provision(provisioning, db_session, caregiver["token"])

        result = await provision(provisioning, db_session, caregiver["token"])
        assert result.email == "pat@example.com"

    async def test_without_compensation_identity_is_left(
        self, db_session, auth_service, caregiver
    ):
        provisioning = ProvisioningService(auth_service, compensate=False)
        before = await store_counts(db_session)

        with patch.object(
            RoleService, "assign_role", AsyncMock(side_effect=SQLAlchemyError("boom"))
        ):
            with pytest.raises(RoleAssignmentFailed):
                await provision(provisioning, db_session, caregiver["token"])

        users_count, roles_count, links_count = await store_counts(db_session)
        assert users_count == before[0] + 1
        assert roles_count == before[1]
        assert links_count == before[2]

    async def test_timeout_discards_identity(self, db_session, auth_service, caregiver):
        provisioning = ProvisioningService(auth_service, timeout=0.05)
        before = await store_counts(db_session)

        async def slow_link(*args, **kwargs):
            await asyncio.sleep(1)

        with patch.object(RelationshipService, "link", slow_link):
            with pytest.raises(InternalError, match="timed out"):
                await provision(provisioning, db_session, caregiver["token"])

        assert await store_counts(db_session) == before

    async def test_unexpected_backend_error_is_internal(self, db_session, provisioning, caregiver):
        with patch.object(
            RoleService, "resolve_role", AsyncMock(side_effect=SQLAlchemyError("down"))
        ):
            with pytest.raises(InternalError):
                await provision(provisioning, db_session, caregiver["token"])

        remaining = (
            await db_session.execute(select(user_roles.c.user_id))
        ).scalars().all()
        assert remaining == [caregiver["id"]]

    async def test_timeout_after_identity_commit_discards_identity(
        self, db_session, auth_service, caregiver
    ):
        provisioning = ProvisioningService(auth_service, timeout=0.05)
        before = await store_counts(db_session)
        create_identity = IdentityService.create_identity

        async def create_then_stall(*args, **kwargs):
            await create_identity(*args, **kwargs)
            await asyncio.sleep(1)

        with patch.object(IdentityService, "create_identity", create_then_stall):
            with pytest.raises(InternalError, match="timed out"):
                await provision(provisioning, db_session, caregiver["token"])

        assert await store_counts(db_session) == before
