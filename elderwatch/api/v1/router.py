"""API v1 router configuration."""

from fastapi import APIRouter

from elderwatch.api.v1.endpoints import auth, health, patients, users

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, tags=["Users"])
api_router.include_router(patients.router, tags=["Patients"])
