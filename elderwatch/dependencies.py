"""FastAPI dependencies."""

from typing import Annotated

import redis
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from elderwatch.core.exceptions import Forbidden
from elderwatch.core.redis_client import CacheManager, get_redis_client
from elderwatch.database import get_db
from elderwatch.services.auth_service import AuthService
from elderwatch.services.provisioning_service import ProvisioningService
from elderwatch.services.role_service import RoleService

# Security; missing headers are reported by the services as Unauthenticated
security = HTTPBearer(auto_error=False)


def get_cache_manager(
    redis_client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> CacheManager:
    """Wrap the Redis client in a cache manager."""
    return CacheManager(redis_client)


def get_auth_service(
    cache_manager: Annotated[CacheManager, Depends(get_cache_manager)],
) -> AuthService:
    """Build the auth service for a request."""
    return AuthService(cache_manager)


def get_provisioning_service(
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> ProvisioningService:
    """Build the provisioning service for a request."""
    return ProvisioningService(auth_service)


async def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str | None:
    """Extract the raw bearer token, if any."""
    return credentials.credentials if credentials else None


async def get_current_user(
    token: Annotated[str | None, Depends(get_bearer_token)],
    db: Annotated[AsyncSession, Depends(get_db)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> dict:
    """
    Get current user from the bearer token.

    Raises:
        Unauthenticated: If the token does not resolve to an active identity
    """
    return await auth_service.authenticate(db, token)


def require_role(role: str):
    """
    Build a dependency that only admits callers holding ``role``.

    The check uses the read-only role lookup.
    """

    async def checker(
        current_user: Annotated[dict, Depends(get_current_user)],
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> dict:
        if await RoleService.resolve_role(db, current_user["id"]) != role:
            raise Forbidden(f"Only {role}s can access this resource")
        return current_user

    return checker


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
BearerToken = Annotated[str | None, Depends(get_bearer_token)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
CurrentCaregiver = Annotated[dict, Depends(require_role("caregiver"))]
CurrentPatient = Annotated[dict, Depends(require_role("patient"))]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
ProvisioningServiceDep = Annotated[ProvisioningService, Depends(get_provisioning_service)]
