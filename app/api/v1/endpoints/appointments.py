"""Appointment scheduling endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Query, status
from fastapi.responses import JSONResponse

from app.dependencies import Scheduler
from app.schemas.appointments import AppointmentStatus, ErrorKind, SchedulingResult

router = APIRouter()

JsonBody = Annotated[dict[str, Any], Body()]

# HTTP status for each failure kind
ERROR_STATUS_CODES = {
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.STORAGE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_response(
    result: SchedulingResult,
    success_status: int = status.HTTP_200_OK,
) -> JSONResponse:
    """
    Render a scheduling result as a JSON response.

    Args:
        result: Agent outcome
        success_status: Status code used when the operation succeeded

    Returns:
        JSON response carrying the full result envelope
    """
    status_code = success_status if result.success else ERROR_STATUS_CODES[result.error_kind]
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


def _present(**params: Any) -> dict[str, Any]:
    """Drop query parameters that were not supplied."""
    return {key: value for key, value in params.items() if value is not None}


@router.post(
    "/",
    response_model=SchedulingResult,
    status_code=status.HTTP_201_CREATED,
    summary="Create new appointment",
)
async def create_appointment(payload: JsonBody, agent: Scheduler) -> JSONResponse:
    """
    Book an appointment after conflict validation.

    Returns 409 with the blocking appointments and suggested slots when the
    requested interval is taken.
    """
    result = await agent.create_appointment(payload)
    return to_response(result, status.HTTP_201_CREATED)


@router.get(
    "/",
    response_model=SchedulingResult,
    summary="List appointments",
)
async def list_appointments(
    agent: Scheduler,
    clinic_id: int = Query(...),
    practitioner_id: int | None = Query(None),
    contact_id: int | None = Query(None),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    date_from: str | None = Query(None),
    date_to: str | None = Query(None),
    limit: int | None = Query(None),
    offset: int = Query(0),
) -> JSONResponse:
    """
    List clinic appointments ordered by start time.

    Args:
        agent: Scheduling agent
        clinic_id: Clinic ID
        practitioner_id: Filter by practitioner
        contact_id: Filter by contact
        status_filter: Filter by status
        date_from: First calendar day (YYYY-MM-DD), inclusive
        date_to: Last calendar day (YYYY-MM-DD), inclusive
        limit: Page size
        offset: Rows to skip

    Returns:
        Result whose data is a page of appointments
    """
    payload = _present(
        clinic_id=clinic_id,
        practitioner_id=practitioner_id,
        contact_id=contact_id,
        status=status_filter.value if status_filter else None,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return to_response(await agent.list_appointments(payload))


@router.get(
    "/availability",
    response_model=SchedulingResult,
    summary="Get available time slots",
)
async def get_available_slots(
    agent: Scheduler,
    clinic_id: int = Query(...),
    practitioner_id: int = Query(...),
    date: str = Query(..., description="YYYY-MM-DD"),
    duration_minutes: int = Query(...),
    working_hours_start: str | None = Query(None, description="HH:MM"),
    working_hours_end: str | None = Query(None, description="HH:MM"),
) -> JSONResponse:
    """List free start times for a practitioner on one day."""
    payload = _present(
        clinic_id=clinic_id,
        practitioner_id=practitioner_id,
        date=date,
        duration_minutes=duration_minutes,
        working_hours_start=working_hours_start,
        working_hours_end=working_hours_end,
    )
    return to_response(await agent.get_available_slots(payload))


@router.get(
    "/statuses",
    response_model=SchedulingResult,
    summary="List valid status values",
)
async def valid_statuses(agent: Scheduler) -> JSONResponse:
    """Appointment, payment and cancellation vocabularies."""
    return to_response(agent.valid_statuses())


@router.get(
    "/{appointment_id}",
    response_model=SchedulingResult,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: int,
    agent: Scheduler,
    clinic_id: int = Query(...),
) -> JSONResponse:
    """Get a specific appointment of the clinic."""
    result = await agent.get_appointment(
        {"appointment_id": appointment_id, "clinic_id": clinic_id}
    )
    return to_response(result)


@router.patch(
    "/{appointment_id}/status",
    response_model=SchedulingResult,
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: int,
    payload: JsonBody,
    agent: Scheduler,
) -> JSONResponse:
    """
    Update appointment status (e.g., confirm, complete, no-show).

    Returns 409 when the status change is not allowed from the current status.
    """
    result = await agent.update_status({**payload, "appointment_id": appointment_id})
    return to_response(result)


@router.put(
    "/{appointment_id}/reschedule",
    response_model=SchedulingResult,
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: int,
    payload: JsonBody,
    agent: Scheduler,
) -> JSONResponse:
    """Move an appointment to a new date, time and optionally duration."""
    result = await agent.reschedule_appointment({**payload, "appointment_id": appointment_id})
    return to_response(result)


@router.post(
    "/{appointment_id}/cancel",
    response_model=SchedulingResult,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: int,
    payload: JsonBody,
    agent: Scheduler,
) -> JSONResponse:
    """Cancel an appointment on behalf of the patient or the practitioner."""
    result = await agent.cancel_appointment({**payload, "appointment_id": appointment_id})
    return to_response(result)
