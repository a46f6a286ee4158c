# pyright: reportMissingTypeStubs=false
"""
Clinic API modules.

This package contains the clinic scheduling endpoints organized by domain.
"""

from fastapi import APIRouter

from api.clinic.availability import router as availability_router
from api.clinic.appointments import router as appointments_router

router = APIRouter()
router.include_router(availability_router)
router.include_router(appointments_router)

__all__ = [
    'router',
    'availability_router',
    'appointments_router',
]
