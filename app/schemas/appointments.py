"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from enum import Enum
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    field_validator,
    model_validator,
)

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"

# Legacy integrations send the practitioner as ``user_id``
PRACTITIONER_ALIASES = AliasChoices("practitioner_id", "user_id")


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    AGENDADA = "agendada"
    CONFIRMADA = "confirmada"
    REALIZADA = "realizada"
    FALTOU = "faltou"
    CANCELADA = "cancelada"


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PENDENTE = "pendente"
    PAGO = "pago"
    CANCELADO = "cancelado"


class CancelledBy(str, Enum):
    """Who cancelled an appointment."""

    PATIENT = "patient"
    PRACTITIONER = "practitioner"


class ErrorKind(str, Enum):
    """Failure categories carried by a scheduling result."""

    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID_TRANSITION = "invalid_transition"
    STORAGE = "storage_error"


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` calendar date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_time(value: str) -> time:
    """Parse an ``HH:MM`` wall-clock time."""
    return datetime.strptime(value, "%H:%M").time()


def _valid_date(value: str) -> str:
    parse_date(value)
    return value


CalendarDate = Annotated[str, Field(pattern=DATE_PATTERN), AfterValidator(_valid_date)]
WallClock = Annotated[str, Field(pattern=TIME_PATTERN)]


class SchedulingRequest(BaseModel):
    """Base for every scheduling command. Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


class CreateAppointmentRequest(SchedulingRequest):
    """Schema for creating a new appointment."""

    contact_id: PositiveInt
    clinic_id: PositiveInt
    practitioner_id: PositiveInt = Field(validation_alias=PRACTITIONER_ALIASES)
    scheduled_date: CalendarDate
    scheduled_time: WallClock
    duration_minutes: int = Field(..., ge=15, le=480)
    status: AppointmentStatus = AppointmentStatus.AGENDADA
    doctor_name: str | None = Field(None, max_length=200)
    specialty: str | None = Field(None, max_length=200)
    appointment_type: str | None = Field(None, max_length=100)
    session_notes: str | None = Field(None, max_length=5000)
    payment_status: PaymentStatus = PaymentStatus.PENDENTE
    payment_amount: int | None = Field(None, ge=0)
    tag_id: PositiveInt | None = None

    @field_validator("status")
    @classmethod
    def validate_initial_status(cls, v: AppointmentStatus) -> AppointmentStatus:
        """New appointments start either scheduled or already confirmed."""
        if v not in (AppointmentStatus.AGENDADA, AppointmentStatus.CONFIRMADA):
            raise ValueError("Initial status must be 'agendada' or 'confirmada'")
        return v

    @property
    def scheduled_start(self) -> datetime:
        """Combined start timestamp."""
        return datetime.combine(parse_date(self.scheduled_date), parse_time(self.scheduled_time))


class UpdateStatusRequest(SchedulingRequest):
    """Schema for updating appointment status."""

    appointment_id: PositiveInt
    clinic_id: PositiveInt
    status: AppointmentStatus
    session_notes: str | None = Field(None, max_length=5000)
    cancelled_by: CancelledBy | None = None
    reason: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_cancellation(self) -> "UpdateStatusRequest":
        """A cancellation always records who cancelled."""
        if self.status is AppointmentStatus.CANCELADA and self.cancelled_by is None:
            raise ValueError("cancelled_by is required when status is 'cancelada'")
        return self


class RescheduleRequest(SchedulingRequest):
    """Schema for moving an appointment to a new interval."""

    appointment_id: PositiveInt
    clinic_id: PositiveInt
    scheduled_date: CalendarDate
    scheduled_time: WallClock
    duration_minutes: int | None = Field(None, ge=15, le=480)

    @property
    def scheduled_start(self) -> datetime:
        """Combined start timestamp."""
        return datetime.combine(parse_date(self.scheduled_date), parse_time(self.scheduled_time))


class CancelRequest(SchedulingRequest):
    """Schema for cancelling an appointment."""

    appointment_id: PositiveInt
    clinic_id: PositiveInt
    cancelled_by: CancelledBy
    reason: str | None = Field(None, max_length=1000)


class GetAppointmentRequest(SchedulingRequest):
    """Schema for reading a single appointment."""

    appointment_id: PositiveInt
    clinic_id: PositiveInt


class AvailabilityRequest(SchedulingRequest):
    """Schema for querying free slots of a practitioner on one day."""

    clinic_id: PositiveInt
    practitioner_id: PositiveInt = Field(validation_alias=PRACTITIONER_ALIASES)
    date: CalendarDate
    duration_minutes: int = Field(..., ge=15, le=480)
    working_hours_start: WallClock | None = None
    working_hours_end: WallClock | None = None


class ListAppointmentsRequest(SchedulingRequest):
    """Schema for appointment filtering and pagination."""

    clinic_id: PositiveInt
    practitioner_id: PositiveInt | None = Field(None, validation_alias=PRACTITIONER_ALIASES)
    contact_id: PositiveInt | None = None
    status: AppointmentStatus | None = None
    date_from: CalendarDate | None = None
    date_to: CalendarDate | None = None
    limit: int | None = Field(None, ge=1, le=100)
    offset: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def validate_date_range(self) -> "ListAppointmentsRequest":
        """date_from must not be after date_to."""
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must be on or before date_to")
        return self


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: int
    clinic_id: int
    contact_id: int
    practitioner_id: int
    tag_id: int | None = None
    scheduled_start: datetime
    duration_minutes: int
    status: AppointmentStatus
    cancelled_by: CancelledBy | None = None
    cancellation_reason: str | None = None
    doctor_name: str | None = None
    specialty: str | None = None
    appointment_type: str | None = None
    session_notes: str | None = None
    payment_status: PaymentStatus
    payment_amount: int | None = None
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    limit: int
    offset: int
    items: list[AppointmentResponse]


class Slot(BaseModel):
    """A bookable start time on the requested day."""

    time: str
    duration_minutes: int
    available: bool = True


class StatusVocabulary(BaseModel):
    """Values accepted for the enumerated appointment fields."""

    appointment_statuses: list[str]
    payment_statuses: list[str]
    cancelled_by: list[str]


class SchedulingResult(BaseModel):
    """Envelope returned by every scheduling operation."""

    success: bool
    data: Any = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    appointment_id: int | None = None
    conflicts: list[AppointmentResponse] | None = None
    suggested_slots: list[Slot] | None = None

    @classmethod
    def ok(cls, data: Any = None, appointment_id: int | None = None) -> "SchedulingResult":
        """Successful outcome."""
        return cls(success=True, data=data, appointment_id=appointment_id)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "SchedulingResult":
        """Failed outcome without conflict evidence."""
        return cls(success=False, error=message, error_kind=kind)

    @classmethod
    def conflict(
        cls,
        message: str,
        conflicts: list[AppointmentResponse],
        suggested_slots: list[Slot],
    ) -> "SchedulingResult":
        """Requested interval is taken; carries the blockers and alternatives."""
        return cls(
            success=False,
            error=message,
            error_kind=ErrorKind.CONFLICT,
            conflicts=conflicts,
            suggested_slots=suggested_slots,
        )
