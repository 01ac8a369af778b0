"""Scheduling agent: create, reschedule, cancel and query appointments."""

from collections.abc import Awaitable, Callable, Iterator, Mapping
from datetime import date, datetime, time, timedelta
from itertools import islice
from typing import Any, TypeVar
from zoneinfo import ZoneInfo

import structlog
from pydantic import BaseModel, ValidationError

from app.config import Settings
from app.core.exceptions import (
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    StorageException,
    ValidationException,
)
from app.scheduling.conflicts import ConflictDetector
from app.scheduling.interval import DEFAULT_DURATION_MINUTES, Interval
from app.scheduling.slots import SLOT_STEP_MINUTES, WorkingHours, iter_available_slots
from app.scheduling.status import ensure_reschedulable, ensure_transition
from app.schemas.appointments import (
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AvailabilityRequest,
    CancelledBy,
    CancelRequest,
    CreateAppointmentRequest,
    ErrorKind,
    GetAppointmentRequest,
    ListAppointmentsRequest,
    PaymentStatus,
    RescheduleRequest,
    SchedulingResult,
    Slot,
    StatusVocabulary,
    UpdateStatusRequest,
    parse_date,
    parse_time,
)
from app.services.appointment_repository import AppointmentRepository

logger = structlog.get_logger()

RequestT = TypeVar("RequestT", bound=BaseModel)
Payload = Mapping[str, Any] | BaseModel


def format_validation_error(exc: ValidationError) -> str:
    """Render pydantic errors as ``Validation error: field: message, ...``."""
    details = ", ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'payload'}: {error['msg']}"
        for error in exc.errors()
    )
    return f"Validation error: {details}"


class SchedulingAgent:
    """
    Orchestrates appointment scheduling for one clinic-scoped request.

    Every public operation validates its payload before touching storage and
    returns a :class:`SchedulingResult`; failures are reported through
    ``success``/``error_kind`` rather than raised.
    """

    def __init__(
        self,
        repository: AppointmentRepository,
        *,
        working_hours: WorkingHours | None = None,
        slot_step_minutes: int = SLOT_STEP_MINUTES,
        suggestion_limit: int = 5,
        default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
        default_list_limit: int = 50,
        timezone: str = "UTC",
    ):
        """Initialize agent with its gateway and scheduling defaults."""
        self.repository = repository
        self.conflicts = ConflictDetector(repository)
        self.working_hours = working_hours or WorkingHours.parse("08:00", "18:00")
        self.slot_step_minutes = slot_step_minutes
        self.suggestion_limit = suggestion_limit
        self.default_duration_minutes = default_duration_minutes
        self.default_list_limit = default_list_limit
        self.timezone = ZoneInfo(timezone)

    @classmethod
    def from_settings(
        cls, repository: AppointmentRepository, settings: Settings
    ) -> "SchedulingAgent":
        """Build an agent with the configured scheduling defaults."""
        return cls(
            repository,
            working_hours=WorkingHours.parse(
                settings.working_hours_start, settings.working_hours_end
            ),
            slot_step_minutes=settings.slot_step_minutes,
            suggestion_limit=settings.suggested_slots_limit,
            default_duration_minutes=settings.default_duration_minutes,
            default_list_limit=settings.list_default_limit,
            timezone=settings.clinic_timezone,
        )

    # Public operations

    async def create_appointment(self, payload: Payload) -> SchedulingResult:
        """Book a new appointment after reference and conflict checks."""
        return await self._run(
            "create_appointment", CreateAppointmentRequest, payload, self._create
        )

    async def update_status(self, payload: Payload) -> SchedulingResult:
        """Move an appointment along the status state machine."""
        return await self._run("update_status", UpdateStatusRequest, payload, self._update_status)

    async def reschedule_appointment(self, payload: Payload) -> SchedulingResult:
        """Move an appointment to a new interval, keeping its status."""
        return await self._run(
            "reschedule_appointment", RescheduleRequest, payload, self._reschedule
        )

    async def cancel_appointment(self, payload: Payload) -> SchedulingResult:
        """Cancel an appointment. Cancelling twice is a no-op."""
        return await self._run("cancel_appointment", CancelRequest, payload, self._cancel)

    async def get_appointment(self, payload: Payload) -> SchedulingResult:
        """Read one clinic-scoped appointment."""
        return await self._run("get_appointment", GetAppointmentRequest, payload, self._get)

    async def get_available_slots(self, payload: Payload) -> SchedulingResult:
        """List free start times for a practitioner on one day."""
        return await self._run(
            "get_available_slots", AvailabilityRequest, payload, self._availability
        )

    async def list_appointments(self, payload: Payload) -> SchedulingResult:
        """List clinic appointments ordered by start time."""
        return await self._run("list_appointments", ListAppointmentsRequest, payload, self._list)

    @staticmethod
    def valid_statuses() -> SchedulingResult:
        """Vocabulary of the enumerated appointment fields."""
        return SchedulingResult.ok(
            StatusVocabulary(
                appointment_statuses=[status.value for status in AppointmentStatus],
                payment_statuses=[status.value for status in PaymentStatus],
                cancelled_by=[party.value for party in CancelledBy],
            )
        )

    # Boundary

    async def _run(
        self,
        operation: str,
        schema: type[RequestT],
        payload: Payload,
        handler: Callable[[RequestT], Awaitable[SchedulingResult]],
    ) -> SchedulingResult:
        """Validate the payload, run the handler and turn failures into results."""
        try:
            request = payload if isinstance(payload, schema) else schema.model_validate(payload)
        except ValidationError as e:
            message = format_validation_error(e)
            logger.info("scheduling_validation_failed", operation=operation, error=message)
            return SchedulingResult.failure(ErrorKind.VALIDATION, message)

        try:
            return await handler(request)
        except ValidationException as e:
            await self.repository.rollback()
            logger.info("scheduling_validation_failed", operation=operation, error=e.message)
            return SchedulingResult.failure(ErrorKind.VALIDATION, e.message)
        except NotFoundException as e:
            await self.repository.rollback()
            return SchedulingResult.failure(ErrorKind.NOT_FOUND, e.message)
        except ConflictException as e:
            return SchedulingResult.conflict(e.message, conflicts=[], suggested_slots=[])
        except InvalidTransitionException as e:
            await self.repository.rollback()
            logger.info(
                "scheduling_invalid_transition",
                operation=operation,
                current=e.current,
                requested=e.requested,
            )
            return SchedulingResult.failure(ErrorKind.INVALID_TRANSITION, e.message)
        except StorageException as e:
            logger.error("scheduling_storage_error", operation=operation, error=e.message)
            return SchedulingResult.failure(ErrorKind.STORAGE, "Storage error")
        except Exception:
            await self.repository.rollback()
            logger.exception("scheduling_unexpected_error", operation=operation)
            return SchedulingResult.failure(ErrorKind.STORAGE, "Storage error")

    # Handlers

    async def _create(self, request: CreateAppointmentRequest) -> SchedulingResult:
        clinic_id = request.clinic_id
        practitioner_id = request.practitioner_id

        if not await self.repository.contact_in_clinic(clinic_id, request.contact_id):
            raise NotFoundException("Contact not found or does not belong to this clinic")

        if not await self.repository.practitioner_in_clinic(clinic_id, practitioner_id):
            raise NotFoundException("Practitioner not found, inactive or not part of this clinic")

        if request.tag_id is not None and not await self.repository.tag_in_clinic(
            clinic_id, request.tag_id
        ):
            raise NotFoundException("Appointment tag not found in this clinic")

        candidate = Interval(request.scheduled_start, request.duration_minutes)
        message = "Time slot conflicts with existing appointment"

        await self.repository.lock_practitioner(clinic_id, practitioner_id)
        blocking = await self.conflicts.find_conflicts(clinic_id, practitioner_id, candidate)
        if blocking:
            await self.repository.rollback()
            return await self._conflict_result(
                clinic_id, practitioner_id, candidate, message, blocking=blocking
            )

        values = request.model_dump(mode="json", exclude={"scheduled_date", "scheduled_time"})
        values["scheduled_start"] = candidate.start
        values["created_at"] = values["updated_at"] = self._now()

        try:
            row = await self.repository.insert_appointment(values)
            await self.repository.commit()
        except ConflictException:
            return await self._conflict_result(clinic_id, practitioner_id, candidate, message)

        appointment = AppointmentResponse.model_validate(row)
        logger.info(
            "appointment_created",
            appointment_id=appointment.id,
            clinic_id=clinic_id,
            practitioner_id=practitioner_id,
            scheduled_start=candidate.start.isoformat(),
            duration_minutes=candidate.duration_minutes,
        )
        return SchedulingResult.ok(appointment, appointment.id)

    async def _update_status(self, request: UpdateStatusRequest) -> SchedulingResult:
        current = await self._load(request.clinic_id, request.appointment_id)
        ensure_transition(current["status"], request.status)

        values: dict[str, Any] = {"status": request.status.value}
        if request.session_notes is not None:
            values["session_notes"] = request.session_notes
        if request.status is AppointmentStatus.CANCELADA:
            values["cancelled_by"] = request.cancelled_by.value
            values["cancellation_reason"] = request.reason
            values["cancelled_at"] = self._now()

        appointment = await self._save(
            request.clinic_id, request.appointment_id, values, current["status"]
        )
        logger.info(
            "appointment_status_updated",
            appointment_id=appointment.id,
            clinic_id=request.clinic_id,
            old_status=current["status"],
            new_status=appointment.status.value,
        )
        return SchedulingResult.ok(appointment, appointment.id)

    async def _reschedule(self, request: RescheduleRequest) -> SchedulingResult:
        clinic_id = request.clinic_id
        current = await self._load(clinic_id, request.appointment_id)
        ensure_reschedulable(current["status"])

        practitioner_id = current["practitioner_id"]
        duration = (
            request.duration_minutes
            or current["duration_minutes"]
            or self.default_duration_minutes
        )
        candidate = Interval(request.scheduled_start, duration)
        message = "New time slot conflicts with existing appointment"

        await self.repository.lock_practitioner(clinic_id, practitioner_id)
        blocking = await self.conflicts.find_conflicts(
            clinic_id, practitioner_id, candidate, exclude_id=request.appointment_id
        )
        if blocking:
            await self.repository.rollback()
            return await self._conflict_result(
                clinic_id,
                practitioner_id,
                candidate,
                message,
                blocking=blocking,
                exclude_id=request.appointment_id,
            )

        values = {"scheduled_start": candidate.start, "duration_minutes": duration}
        try:
            appointment = await self._save(
                clinic_id, request.appointment_id, values, current["status"]
            )
        except ConflictException:
            return await self._conflict_result(
                clinic_id,
                practitioner_id,
                candidate,
                message,
                exclude_id=request.appointment_id,
            )

        logger.info(
            "appointment_rescheduled",
            appointment_id=appointment.id,
            clinic_id=clinic_id,
            previous_start=current["scheduled_start"].isoformat(),
            scheduled_start=candidate.start.isoformat(),
            duration_minutes=duration,
        )
        return SchedulingResult.ok(appointment, appointment.id)

    async def _cancel(self, request: CancelRequest) -> SchedulingResult:
        current = await self._load(request.clinic_id, request.appointment_id)

        if current["status"] == AppointmentStatus.CANCELADA.value:
            appointment = AppointmentResponse.model_validate(current)
            logger.info(
                "appointment_already_cancelled",
                appointment_id=appointment.id,
                clinic_id=request.clinic_id,
            )
            return SchedulingResult.ok(appointment, appointment.id)

        ensure_transition(current["status"], AppointmentStatus.CANCELADA)

        values = {
            "status": AppointmentStatus.CANCELADA.value,
            "cancelled_by": request.cancelled_by.value,
            "cancellation_reason": request.reason,
            "cancelled_at": self._now(),
        }
        try:
            appointment = await self._save(
                request.clinic_id, request.appointment_id, values, current["status"]
            )
        except InvalidTransitionException as e:
            if e.current != AppointmentStatus.CANCELADA.value:
                raise
            # Another request cancelled it first
            return await self._cancel(request)

        logger.info(
            "appointment_cancelled",
            appointment_id=appointment.id,
            clinic_id=request.clinic_id,
            cancelled_by=request.cancelled_by.value,
        )
        return SchedulingResult.ok(appointment, appointment.id)

    async def _get(self, request: GetAppointmentRequest) -> SchedulingResult:
        appointment = AppointmentResponse.model_validate(
            await self._load(request.clinic_id, request.appointment_id)
        )
        return SchedulingResult.ok(appointment, appointment.id)

    async def _availability(self, request: AvailabilityRequest) -> SchedulingResult:
        working_hours = self._working_hours(request.working_hours_start, request.working_hours_end)
        slots = await self._available_slots(
            request.clinic_id,
            request.practitioner_id,
            parse_date(request.date),
            request.duration_minutes,
            working_hours,
        )
        return SchedulingResult.ok(list(slots))

    async def _list(self, request: ListAppointmentsRequest) -> SchedulingResult:
        limit = request.limit or self.default_list_limit
        starts_from = (
            datetime.combine(parse_date(request.date_from), time.min) if request.date_from else None
        )
        # date_to is an inclusive calendar day
        starts_before = (
            datetime.combine(parse_date(request.date_to) + timedelta(days=1), time.min)
            if request.date_to
            else None
        )

        rows, total = await self.repository.list_appointments(
            request.clinic_id,
            practitioner_id=request.practitioner_id,
            contact_id=request.contact_id,
            status=request.status.value if request.status else None,
            starts_from=starts_from,
            starts_before=starts_before,
            limit=limit,
            offset=request.offset,
        )
        return SchedulingResult.ok(
            AppointmentListResponse(
                total=total,
                limit=limit,
                offset=request.offset,
                items=[AppointmentResponse.model_validate(row) for row in rows],
            )
        )

    # Helpers

    def _now(self) -> datetime:
        """Current clinic-local wall-clock time."""
        return datetime.now(self.timezone).replace(tzinfo=None)

    def _working_hours(self, start: str | None, end: str | None) -> WorkingHours:
        try:
            return WorkingHours(
                start=parse_time(start) if start else self.working_hours.start,
                end=parse_time(end) if end else self.working_hours.end,
            )
        except ValueError as e:
            raise ValidationException(f"Validation error: working_hours_end: {e}") from e

    async def _load(self, clinic_id: int, appointment_id: int) -> dict:
        appointment = await self.repository.get_appointment(clinic_id, appointment_id)
        if appointment is None:
            raise NotFoundException("Appointment not found or does not belong to this clinic")
        return appointment

    async def _save(
        self,
        clinic_id: int,
        appointment_id: int,
        values: dict[str, Any],
        expected_status: str,
    ) -> AppointmentResponse:
        """
        Write ``values`` only if the row still has the status the caller checked.

        Raises:
            NotFoundException: If the appointment disappeared
            InvalidTransitionException: If another writer changed its status first
        """
        row = await self.repository.update_appointment(
            clinic_id,
            appointment_id,
            {**values, "updated_at": self._now()},
            expected_status=expected_status,
        )
        if row is None:
            await self.repository.rollback()
            latest = await self._load(clinic_id, appointment_id)
            requested = values.get("status", expected_status)
            raise InvalidTransitionException(
                latest["status"],
                requested,
                f"Appointment status changed to '{latest['status']}' while updating; "
                f"expected '{expected_status}'",
            )
        await self.repository.commit()
        return AppointmentResponse.model_validate(row)

    async def _available_slots(
        self,
        clinic_id: int,
        practitioner_id: int,
        day: date,
        duration_minutes: int,
        working_hours: WorkingHours,
        exclude_id: int | None = None,
    ) -> Iterator[Slot]:
        window_start, window_end = working_hours.bounds(day)
        bookings = await self.conflicts.load_bookings(
            clinic_id, practitioner_id, window_start, window_end
        )
        if exclude_id is not None:
            bookings = [booking for booking in bookings if booking["id"] != exclude_id]
        return iter_available_slots(
            day, duration_minutes, working_hours, bookings, self.slot_step_minutes
        )

    async def _conflict_result(
        self,
        clinic_id: int,
        practitioner_id: int,
        candidate: Interval,
        message: str,
        blocking: list[Mapping[str, Any]] | None = None,
        exclude_id: int | None = None,
    ) -> SchedulingResult:
        """Conflict outcome with the blocking appointments and the first free slots of that day."""
        if blocking is None:
            # The storage constraint rejected the write; re-read the winner for evidence.
            blocking = await self.conflicts.find_conflicts(
                clinic_id, practitioner_id, candidate, exclude_id=exclude_id
            )

        slots = await self._available_slots(
            clinic_id,
            practitioner_id,
            candidate.start.date(),
            candidate.duration_minutes,
            self.working_hours,
            exclude_id=exclude_id,
        )
        suggestions = list(islice(slots, self.suggestion_limit))

        logger.info(
            "appointment_conflict",
            clinic_id=clinic_id,
            practitioner_id=practitioner_id,
            scheduled_start=candidate.start.isoformat(),
            duration_minutes=candidate.duration_minutes,
            conflicting_ids=[appointment["id"] for appointment in blocking],
        )
        return SchedulingResult.conflict(
            message,
            conflicts=[AppointmentResponse.model_validate(row) for row in blocking],
            suggested_slots=suggestions,
        )
