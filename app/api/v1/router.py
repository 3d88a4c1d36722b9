"""API v1 router configuration."""

from fastapi import APIRouter

from app.api.v1.endpoints import (
    admin,
    appointments,
    auth,
    billing,
    health,
    services,
    users,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, tags=["Users"])
api_router.include_router(services.router, prefix="/services", tags=["Services"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(billing.router, tags=["Billing"])
api_router.include_router(admin.router, tags=["Admin"])
