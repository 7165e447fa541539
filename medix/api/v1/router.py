"""API v1 router configuration."""

from fastapi import APIRouter

from medix.api.v1.endpoints import (
    appointments,
    doctor_schedules,
    doctors,
    health,
    notifications,
    schedule_overrides,
    wallets,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router)
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(doctor_schedules.router)
api_router.include_router(schedule_overrides.router)
api_router.include_router(doctors.router)
api_router.include_router(wallets.router)
api_router.include_router(notifications.router)
