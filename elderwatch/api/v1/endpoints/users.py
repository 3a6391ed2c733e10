"""User endpoints."""

from fastapi import APIRouter

from elderwatch.dependencies import CurrentUser, DatabaseSession
from elderwatch.schemas.users import RoleResponse, UserWithRoleResponse
from elderwatch.services.role_service import RoleService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserWithRoleResponse)
async def get_current_user_profile(current_user: CurrentUser, db: DatabaseSession):
    """Get current user's profile and role."""
    role = await RoleService.resolve_role(db, current_user["id"])
    return UserWithRoleResponse.model_validate({**current_user, "role": role})


@router.get("/me/role", response_model=RoleResponse)
async def get_current_user_role(current_user: CurrentUser, db: DatabaseSession):
    """Look up the current user's role without assigning one."""
    role = await RoleService.resolve_role(db, current_user["id"])
    return RoleResponse(user_id=current_user["id"], role=role)


@router.post("/me/role/ensure", response_model=RoleResponse)
async def ensure_current_user_role(current_user: CurrentUser, db: DatabaseSession):
    """
    Return the current user's role, assigning the default role when missing.

    Used by the session context after sign-in. Authorization checks never go
    through this endpoint.
    """
    role = await RoleService.ensure_role(db, current_user["id"])
    return RoleResponse(user_id=current_user["id"], role=role)
