"""
Shared type definitions for the clinic scheduling backend.

This module contains dataclasses and types that are used across multiple services.
"""

from shared_types.scheduling import (
    AppointmentInterval,
    AvailabilityQuery,
    AvailabilityResult,
    BookingResult,
    BookingState,
    CandidateSlot,
    ClinicSchedule,
    ConflictDetail,
    ConflictResult,
    ExternalBusyBlock,
    Interval,
)

__all__ = [
    "AppointmentInterval",
    "AvailabilityQuery",
    "AvailabilityResult",
    "BookingResult",
    "BookingState",
    "CandidateSlot",
    "ClinicSchedule",
    "ConflictDetail",
    "ConflictResult",
    "ExternalBusyBlock",
    "Interval",
]
