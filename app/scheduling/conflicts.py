"""Overlap detection between a candidate interval and a practitioner's bookings."""

from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any

from app.scheduling.interval import MAX_DURATION_MINUTES, Interval
from app.schemas.appointments import AppointmentStatus
from app.services.appointment_repository import AppointmentRepository

# Cancelled appointments never block a slot
CONFLICT_EXEMPT_STATUSES = frozenset({AppointmentStatus.CANCELADA.value})


def find_overlapping(
    candidate: Interval,
    appointments: Iterable[Mapping[str, Any]],
    exclude_id: int | None = None,
) -> list[Mapping[str, Any]]:
    """
    Select the appointments that block ``candidate``.

    Args:
        candidate: Interval being requested
        appointments: Stored appointments of one practitioner
        exclude_id: Appointment to ignore (the one being rescheduled)

    Returns:
        Blocking appointments, in input order
    """
    return [
        appointment
        for appointment in appointments
        if appointment["id"] != exclude_id
        and appointment["status"] not in CONFLICT_EXEMPT_STATUSES
        and Interval.of(appointment).overlaps(candidate)
    ]


class ConflictDetector:
    """Finds a practitioner's live appointments overlapping a candidate interval."""

    def __init__(self, repository: AppointmentRepository):
        """Initialize detector with the appointment gateway."""
        self.repository = repository

    async def load_bookings(
        self,
        clinic_id: int,
        practitioner_id: int,
        window_start: datetime,
        window_end: datetime,
    ) -> list[dict]:
        """
        Load every live booking that can reach into ``[window_start, window_end)``.

        Appointments last at most ``MAX_DURATION_MINUTES``, so anything starting
        earlier than that before the window cannot touch it.
        """
        return await self.repository.list_practitioner_appointments(
            clinic_id=clinic_id,
            practitioner_id=practitioner_id,
            starts_from=window_start - timedelta(minutes=MAX_DURATION_MINUTES),
            starts_before=window_end,
            exclude_statuses=CONFLICT_EXEMPT_STATUSES,
        )

    async def find_conflicts(
        self,
        clinic_id: int,
        practitioner_id: int,
        candidate: Interval,
        exclude_id: int | None = None,
    ) -> list[Mapping[str, Any]]:
        """Empty when the candidate is free, otherwise the blocking appointments."""
        bookings = await self.load_bookings(
            clinic_id, practitioner_id, candidate.start, candidate.end
        )
        return find_overlapping(candidate, bookings, exclude_id)
