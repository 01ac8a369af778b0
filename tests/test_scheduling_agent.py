"""Tests for the scheduling agent operations."""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import ConflictException, StorageException
from app.scheduling.interval import Interval
from app.schemas.appointments import AppointmentStatus, ErrorKind
from app.services.scheduling_agent import SchedulingAgent
from tests.reference_data import (
    CLINIC_ID,
    INACTIVE_PRACTITIONER_ID,
    OTHER_CLINIC_CONTACT_ID,
    OTHER_CLINIC_ID,
    PRACTITIONER_ID,
    SECOND_PRACTITIONER_ID,
    TAG_ID,
)


async def book(agent: SchedulingAgent, data: dict, **overrides) -> int:
    """Create an appointment and return its id."""
    result = await agent.create_appointment({**data, **overrides})
    assert result.success, result.error
    return result.appointment_id


async def slot_times(agent: SchedulingAgent, duration: int = 60, **overrides) -> list[str]:
    result = await agent.get_available_slots(
        {
            "clinic_id": CLINIC_ID,
            "practitioner_id": PRACTITIONER_ID,
            "date": "2030-06-10",
            "duration_minutes": duration,
            **overrides,
        }
    )
    assert result.success, result.error
    return [slot.time for slot in result.data]


def first_read_sees(
    agent: SchedulingAgent, monkeypatch: pytest.MonkeyPatch, status: str
) -> None:
    """Make the next appointment read report ``status``, as if taken before the last write."""
    real_get = agent.repository.get_appointment
    reads = 0

    async def get_appointment(clinic_id: int, appointment_id: int) -> dict | None:
        nonlocal reads
        reads += 1
        row = await real_get(clinic_id, appointment_id)
        if reads == 1 and row is not None:
            return {**row, "status": status}
        return row

    monkeypatch.setattr(agent.repository, "get_appointment", get_appointment)


# Create


@pytest.mark.asyncio
async def test_create_appointment(agent: SchedulingAgent, appointment_data: dict) -> None:
    """Test booking a free interval."""
    result = await agent.create_appointment(appointment_data)

    assert result.success is True
    assert result.error is None
    assert result.appointment_id == result.data.id
    assert result.data.status == AppointmentStatus.AGENDADA
    assert result.data.scheduled_start == datetime(2030, 6, 10, 10, 0)
    assert result.data.duration_minutes == 60
    assert result.data.payment_status == "pendente"
    assert result.data.doctor_name == "Dra. Ana"


@pytest.mark.asyncio
async def test_create_conflict_then_adjacent(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test 10:00 succeeds, 10:30 conflicts with it and 11:00 succeeds."""
    first_id = await book(agent, appointment_data)

    conflict = await agent.create_appointment({**appointment_data, "scheduled_time": "10:30"})

    assert conflict.success is False
    assert conflict.error_kind == ErrorKind.CONFLICT
    assert conflict.error == "Time slot conflicts with existing appointment"
    assert [appointment.id for appointment in conflict.conflicts] == [first_id]
    assert [slot.time for slot in conflict.suggested_slots] == [
        "08:00",
        "08:15",
        "08:30",
        "08:45",
        "09:00",
    ]

    adjacent = await agent.create_appointment({**appointment_data, "scheduled_time": "11:00"})
    assert adjacent.success is True


@pytest.mark.asyncio
async def test_create_allows_overlap_for_other_practitioner(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test conflicts are scoped to one practitioner."""
    await book(agent, appointment_data)

    result = await agent.create_appointment(
        {**appointment_data, "practitioner_id": SECOND_PRACTITIONER_ID}
    )

    assert result.success is True


@pytest.mark.asyncio
async def test_create_accepts_user_id_alias(agent: SchedulingAgent, appointment_data: dict) -> None:
    """Test integrations may name the practitioner user_id."""
    payload = {**appointment_data}
    payload["user_id"] = payload.pop("practitioner_id")

    result = await agent.create_appointment(payload)

    assert result.success is True
    assert result.data.practitioner_id == PRACTITIONER_ID


@pytest.mark.asyncio
async def test_create_with_tag_and_confirmed_status(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test optional tag and an already confirmed initial status."""
    result = await agent.create_appointment(
        {**appointment_data, "tag_id": TAG_ID, "status": "confirmada", "payment_amount": 15000}
    )

    assert result.success is True
    assert result.data.tag_id == TAG_ID
    assert result.data.status == AppointmentStatus.CONFIRMADA
    assert result.data.payment_amount == 15000


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"contact_id": OTHER_CLINIC_CONTACT_ID}, "Contact not found"),
        ({"contact_id": 999}, "Contact not found"),
        ({"practitioner_id": INACTIVE_PRACTITIONER_ID}, "Practitioner not found"),
        ({"practitioner_id": 999}, "Practitioner not found"),
        ({"clinic_id": OTHER_CLINIC_ID}, "Contact not found"),
        ({"tag_id": 999}, "tag not found"),
    ],
)
async def test_create_rejects_unknown_references(
    agent: SchedulingAgent, appointment_data: dict, overrides: dict, message: str
) -> None:
    """Test references must exist inside the caller's clinic."""
    result = await agent.create_appointment({**appointment_data, **overrides})

    assert result.success is False
    assert result.error_kind == ErrorKind.NOT_FOUND
    assert message in result.error


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"scheduled_date": "10/06/2030"}, "scheduled_date"),
        ({"scheduled_date": "2030-02-30"}, "scheduled_date"),
        ({"scheduled_time": "25:00"}, "scheduled_time"),
        ({"duration_minutes": 10}, "duration_minutes"),
        ({"duration_minutes": 600}, "duration_minutes"),
        ({"status": "realizada"}, "status"),
        ({"payment_status": "devendo"}, "payment_status"),
        ({"unexpected": True}, "unexpected"),
    ],
)
async def test_create_validation_errors(
    agent: SchedulingAgent, appointment_data: dict, overrides: dict, field: str
) -> None:
    """Test malformed payloads are rejected before touching storage."""
    result = await agent.create_appointment({**appointment_data, **overrides})

    assert result.success is False
    assert result.error_kind == ErrorKind.VALIDATION
    assert result.error.startswith("Validation error: ")
    assert field in result.error


@pytest.mark.asyncio
async def test_create_missing_fields(agent: SchedulingAgent) -> None:
    """Test every missing required field is named."""
    result = await agent.create_appointment({"clinic_id": CLINIC_ID})

    assert result.error_kind == ErrorKind.VALIDATION
    for field in ("contact_id", "scheduled_date", "scheduled_time", "duration_minutes"):
        assert field in result.error


@pytest.mark.asyncio
async def test_create_storage_conflict_is_reported_as_conflict(
    agent: SchedulingAgent, appointment_data: dict, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test a write rejected by the overlap constraint still returns evidence."""
    first_id = await book(agent, appointment_data)

    real_find_conflicts = agent.conflicts.find_conflicts
    calls = []

    async def racing_find_conflicts(*args, **kwargs):
        # The first check misses the concurrent booking
        calls.append(args)
        if len(calls) == 1:
            return []
        return await real_find_conflicts(*args, **kwargs)

    monkeypatch.setattr(agent.conflicts, "find_conflicts", racing_find_conflicts)
    monkeypatch.setattr(
        agent.repository,
        "insert_appointment",
        AsyncMock(side_effect=ConflictException("overlap")),
    )

    result = await agent.create_appointment({**appointment_data, "scheduled_time": "10:30"})

    assert result.error_kind == ErrorKind.CONFLICT
    assert [appointment.id for appointment in result.conflicts] == [first_id]
    assert result.suggested_slots


@pytest.mark.asyncio
async def test_storage_error_is_opaque(
    agent: SchedulingAgent, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test storage failures surface as a generic message."""
    monkeypatch.setattr(
        agent.repository,
        "get_appointment",
        AsyncMock(side_effect=StorageException("connection reset by peer")),
    )

    result = await agent.get_appointment({"clinic_id": CLINIC_ID, "appointment_id": 1})

    assert result.success is False
    assert result.error_kind == ErrorKind.STORAGE
    assert result.error == "Storage error"


@pytest.mark.asyncio
async def test_unexpected_error_is_reported_as_storage_error(
    agent: SchedulingAgent, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test an unanticipated failure still comes back as a result."""
    monkeypatch.setattr(
        agent.repository,
        "get_appointment",
        AsyncMock(side_effect=RuntimeError("cursor already closed")),
    )

    result = await agent.get_appointment({"clinic_id": CLINIC_ID, "appointment_id": 1})

    assert result.success is False
    assert result.error_kind == ErrorKind.STORAGE
    assert result.error == "Storage error"


@pytest.mark.asyncio
async def test_malformed_row_is_reported_as_storage_error(
    agent: SchedulingAgent, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test a stored row that fails to parse does not escape the agent."""
    monkeypatch.setattr(
        agent.repository,
        "get_appointment",
        AsyncMock(return_value={"id": 1, "clinic_id": CLINIC_ID, "status": "bogus"}),
    )

    result = await agent.get_appointment({"clinic_id": CLINIC_ID, "appointment_id": 1})

    assert result.error_kind == ErrorKind.STORAGE
    assert result.error == "Storage error"


# Availability


@pytest.mark.asyncio
async def test_availability_excludes_booked_interval(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test a 10:00-11:00 booking blocks 09:15 to 10:45 for one hour slots."""
    await book(agent, appointment_data)

    slots = await slot_times(agent)

    assert "09:00" in slots
    assert "11:00" in slots
    for blocked in ("09:15", "09:30", "09:45", "10:00", "10:15", "10:30", "10:45"):
        assert blocked not in slots
    assert slots == sorted(slots)
    assert slots[-1] == "17:00"


@pytest.mark.asyncio
async def test_availability_sees_previous_day_overnight_booking(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test a long booking that started the day before still blocks."""
    await book(
        agent,
        appointment_data,
        scheduled_date="2030-06-09",
        scheduled_time="23:00",
        duration_minutes=480,
    )

    slots = await slot_times(agent, working_hours_start="06:00", working_hours_end="10:00")

    assert slots[0] == "07:00"
    assert slots[-1] == "09:00"
    assert len(slots) == 9


@pytest.mark.asyncio
async def test_returned_slots_are_bookable(agent: SchedulingAgent, appointment_data: dict) -> None:
    """Test every offered slot can actually be booked."""
    await book(agent, appointment_data)
    await book(agent, appointment_data, scheduled_time="14:30", duration_minutes=45)

    for time in (await slot_times(agent, duration=30))[::6]:
        result = await agent.create_appointment(
            {**appointment_data, "scheduled_time": time, "duration_minutes": 30}
        )
        assert result.success, f"{time}: {result.error}"


@pytest.mark.asyncio
async def test_availability_rejects_inverted_working_hours(agent: SchedulingAgent) -> None:
    """Test working hours must end after they start."""
    result = await agent.get_available_slots(
        {
            "clinic_id": CLINIC_ID,
            "practitioner_id": PRACTITIONER_ID,
            "date": "2030-06-10",
            "duration_minutes": 60,
            "working_hours_start": "18:00",
            "working_hours_end": "08:00",
        }
    )

    assert result.error_kind == ErrorKind.VALIDATION


# Status


@pytest.mark.asyncio
async def test_update_status_progression(agent: SchedulingAgent, appointment_data: dict) -> None:
    """Test agendada -> confirmada -> realizada, then no further moves."""
    appointment_id = await book(agent, appointment_data)
    base = {"clinic_id": CLINIC_ID, "appointment_id": appointment_id}

    confirmed = await agent.update_status({**base, "status": "confirmada"})
    assert confirmed.success is True
    assert confirmed.data.status == AppointmentStatus.CONFIRMADA

    done = await agent.update_status(
        {**base, "status": "realizada", "session_notes": "Sessão concluída"}
    )
    assert done.success is True
    assert done.data.status == AppointmentStatus.REALIZADA
    assert done.data.session_notes == "Sessão concluída"

    again = await agent.update_status({**base, "status": "faltou"})
    assert again.success is False
    assert again.error_kind == ErrorKind.INVALID_TRANSITION


@pytest.mark.asyncio
async def test_update_status_to_cancelled_sets_timestamp(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test cancelling through a status change records who and when."""
    appointment_id = await book(agent, appointment_data)

    result = await agent.update_status(
        {
            "clinic_id": CLINIC_ID,
            "appointment_id": appointment_id,
            "status": "cancelada",
            "cancelled_by": "practitioner",
            "reason": "Agenda bloqueada",
        }
    )

    assert result.success is True
    assert result.data.cancelled_by == "practitioner"
    assert result.data.cancellation_reason == "Agenda bloqueada"
    assert result.data.cancelled_at is not None


@pytest.mark.asyncio
async def test_update_status_to_cancelled_requires_party(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test a cancellation through a status change must say who cancelled."""
    appointment_id = await book(agent, appointment_data)
    base = {"clinic_id": CLINIC_ID, "appointment_id": appointment_id}

    result = await agent.update_status({**base, "status": "cancelada"})

    assert result.success is False
    assert result.error_kind == ErrorKind.VALIDATION
    assert "cancelled_by" in result.error

    stored = await agent.get_appointment(base)
    assert stored.data.status == AppointmentStatus.AGENDADA


@pytest.mark.asyncio
async def test_status_change_loses_to_concurrent_cancel(
    agent: SchedulingAgent, appointment_data: dict, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test a status change checked against a stale read does not overwrite a cancellation."""
    appointment_id = await book(agent, appointment_data)
    base = {"clinic_id": CLINIC_ID, "appointment_id": appointment_id}
    await agent.cancel_appointment({**base, "cancelled_by": "patient"})
    first_read_sees(agent, monkeypatch, "agendada")

    result = await agent.update_status({**base, "status": "realizada"})

    assert result.success is False
    assert result.error_kind == ErrorKind.INVALID_TRANSITION
    assert "cancelada" in result.error
    stored = await agent.get_appointment(base)
    assert stored.data.status == AppointmentStatus.CANCELADA
    assert stored.data.cancelled_by == "patient"


@pytest.mark.asyncio
async def test_reschedule_loses_to_concurrent_completion(
    agent: SchedulingAgent, appointment_data: dict, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test a reschedule checked against a stale read leaves a finished appointment alone."""
    appointment_id = await book(agent, appointment_data)
    base = {"clinic_id": CLINIC_ID, "appointment_id": appointment_id}
    await agent.update_status({**base, "status": "realizada"})
    first_read_sees(agent, monkeypatch, "agendada")

    result = await agent.reschedule_appointment(
        {**base, "scheduled_date": "2030-06-10", "scheduled_time": "15:00"}
    )

    assert result.error_kind == ErrorKind.INVALID_TRANSITION
    stored = await agent.get_appointment(base)
    assert stored.data.status == AppointmentStatus.REALIZADA
    assert stored.data.scheduled_start == datetime(2030, 6, 10, 10, 0)


@pytest.mark.asyncio
async def test_update_status_unknown_appointment(agent: SchedulingAgent) -> None:
    """Test status change on a missing appointment."""
    result = await agent.update_status(
        {"clinic_id": CLINIC_ID, "appointment_id": 999, "status": "confirmada"}
    )

    assert result.error_kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_update_status_rejects_unknown_status(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test values outside the vocabulary are validation errors."""
    appointment_id = await book(agent, appointment_data)

    result = await agent.update_status(
        {"clinic_id": CLINIC_ID, "appointment_id": appointment_id, "status": "scheduled"}
    )

    assert result.error_kind == ErrorKind.VALIDATION


# Cancel


@pytest.mark.asyncio
async def test_cancel_then_confirm_is_invalid(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test a cancelled appointment cannot be confirmed."""
    appointment_id = await book(agent, appointment_data)
    base = {"clinic_id": CLINIC_ID, "appointment_id": appointment_id}

    cancelled = await agent.cancel_appointment(
        {**base, "cancelled_by": "patient", "reason": "Viagem"}
    )
    assert cancelled.success is True
    assert cancelled.data.status == AppointmentStatus.CANCELADA
    assert cancelled.data.cancelled_by == "patient"
    assert cancelled.data.cancellation_reason == "Viagem"
    assert cancelled.data.cancelled_at is not None

    confirm = await agent.update_status({**base, "status": "confirmada"})
    assert confirm.success is False
    assert confirm.error_kind == ErrorKind.INVALID_TRANSITION
    assert "cancelada" in confirm.error


@pytest.mark.asyncio
async def test_cancel_is_idempotent(agent: SchedulingAgent, appointment_data: dict) -> None:
    """Test cancelling twice keeps the first cancellation."""
    appointment_id = await book(agent, appointment_data)
    base = {"clinic_id": CLINIC_ID, "appointment_id": appointment_id}

    first = await agent.cancel_appointment({**base, "cancelled_by": "patient"})
    second = await agent.cancel_appointment({**base, "cancelled_by": "practitioner"})

    assert second.success is True
    assert second.data.cancelled_by == "patient"
    assert second.data.cancelled_at == first.data.cancelled_at


@pytest.mark.asyncio
async def test_concurrent_cancels_keep_first(
    agent: SchedulingAgent, appointment_data: dict, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test a cancel that raced another cancel still succeeds with the first one's record."""
    appointment_id = await book(agent, appointment_data)
    base = {"clinic_id": CLINIC_ID, "appointment_id": appointment_id}
    first = await agent.cancel_appointment({**base, "cancelled_by": "patient", "reason": "Viagem"})
    first_read_sees(agent, monkeypatch, "agendada")

    second = await agent.cancel_appointment({**base, "cancelled_by": "practitioner"})

    assert second.success is True
    assert second.data.cancelled_by == "patient"
    assert second.data.cancellation_reason == "Viagem"
    assert second.data.cancelled_at == first.data.cancelled_at


@pytest.mark.asyncio
async def test_audit_timestamps_are_ordered(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test created, updated and cancelled times come from one clock."""
    appointment_id = await book(agent, appointment_data)
    base = {"clinic_id": CLINIC_ID, "appointment_id": appointment_id}
    await agent.cancel_appointment({**base, "cancelled_by": "patient"})

    stored = (await agent.get_appointment(base)).data

    assert stored.created_at <= stored.cancelled_at <= stored.updated_at
    assert stored.created_at.tzinfo is None
    assert stored.cancelled_at.tzinfo is None


@pytest.mark.asyncio
async def test_cancel_completed_appointment_fails(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test finished appointments cannot be cancelled."""
    appointment_id = await book(agent, appointment_data)
    base = {"clinic_id": CLINIC_ID, "appointment_id": appointment_id}
    await agent.update_status({**base, "status": "realizada"})

    result = await agent.cancel_appointment({**base, "cancelled_by": "practitioner"})

    assert result.error_kind == ErrorKind.INVALID_TRANSITION


@pytest.mark.asyncio
async def test_cancel_frees_slot(agent: SchedulingAgent, appointment_data: dict) -> None:
    """Test the same interval can be booked again after cancelling."""
    appointment_id = await book(agent, appointment_data)
    await agent.cancel_appointment(
        {"clinic_id": CLINIC_ID, "appointment_id": appointment_id, "cancelled_by": "practitioner"}
    )

    assert "10:00" in await slot_times(agent)
    result = await agent.create_appointment(appointment_data)
    assert result.success is True


@pytest.mark.asyncio
async def test_cancel_requires_known_party(agent: SchedulingAgent, appointment_data: dict) -> None:
    """Test cancelled_by must be patient or practitioner."""
    appointment_id = await book(agent, appointment_data)

    result = await agent.cancel_appointment(
        {"clinic_id": CLINIC_ID, "appointment_id": appointment_id, "cancelled_by": "clinic"}
    )

    assert result.error_kind == ErrorKind.VALIDATION


# Reschedule


@pytest.mark.asyncio
async def test_reschedule_onto_own_interval(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test an appointment never conflicts with itself."""
    appointment_id = await book(agent, appointment_data)

    result = await agent.reschedule_appointment(
        {
            "clinic_id": CLINIC_ID,
            "appointment_id": appointment_id,
            "scheduled_date": "2030-06-10",
            "scheduled_time": "10:30",
        }
    )

    assert result.success is True
    assert result.data.scheduled_start == datetime(2030, 6, 10, 10, 30)
    assert result.data.duration_minutes == 60
    assert result.data.status == AppointmentStatus.AGENDADA


@pytest.mark.asyncio
async def test_reschedule_changes_duration(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test a new duration replaces the stored one."""
    appointment_id = await book(agent, appointment_data)

    result = await agent.reschedule_appointment(
        {
            "clinic_id": CLINIC_ID,
            "appointment_id": appointment_id,
            "scheduled_date": "2030-06-11",
            "scheduled_time": "08:00",
            "duration_minutes": 90,
        }
    )

    assert result.success is True
    assert result.data.scheduled_start == datetime(2030, 6, 11, 8, 0)
    assert result.data.duration_minutes == 90


@pytest.mark.asyncio
async def test_reschedule_conflict(agent: SchedulingAgent, appointment_data: dict) -> None:
    """Test moving onto another booking reports it and suggests slots."""
    first_id = await book(agent, appointment_data)
    second_id = await book(agent, appointment_data, scheduled_time="14:00")

    result = await agent.reschedule_appointment(
        {
            "clinic_id": CLINIC_ID,
            "appointment_id": second_id,
            "scheduled_date": "2030-06-10",
            "scheduled_time": "10:15",
        }
    )

    assert result.error_kind == ErrorKind.CONFLICT
    assert result.error == "New time slot conflicts with existing appointment"
    assert [appointment.id for appointment in result.conflicts] == [first_id]
    assert result.suggested_slots

    stored = await agent.get_appointment({"clinic_id": CLINIC_ID, "appointment_id": second_id})
    assert stored.data.scheduled_start == datetime(2030, 6, 10, 14, 0)


@pytest.mark.asyncio
async def test_reschedule_cancelled_appointment_fails(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test terminal appointments stay where they are."""
    appointment_id = await book(agent, appointment_data)
    base = {"clinic_id": CLINIC_ID, "appointment_id": appointment_id}
    await agent.cancel_appointment({**base, "cancelled_by": "patient"})

    result = await agent.reschedule_appointment(
        {**base, "scheduled_date": "2030-06-11", "scheduled_time": "09:00"}
    )

    assert result.error_kind == ErrorKind.INVALID_TRANSITION
    assert "cannot be rescheduled" in result.error


@pytest.mark.asyncio
async def test_no_overlaps_after_mixed_operations(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test successful operations never leave two live bookings overlapping."""
    ids = [
        await book(agent, appointment_data, scheduled_time=time)
        for time in ("08:00", "09:00", "10:00", "11:00")
    ]
    for time in ("08:30", "09:45", "11:00", "12:00"):
        await agent.reschedule_appointment(
            {
                "clinic_id": CLINIC_ID,
                "appointment_id": ids[0],
                "scheduled_date": "2030-06-10",
                "scheduled_time": time,
            }
        )
        await agent.create_appointment({**appointment_data, "scheduled_time": time})

    listed = await agent.list_appointments({"clinic_id": CLINIC_ID, "limit": 100})
    live = [item for item in listed.data.items if item.status != AppointmentStatus.CANCELADA]
    intervals = [Interval(item.scheduled_start, item.duration_minutes) for item in live]
    for i, a in enumerate(intervals):
        for b in intervals[i + 1 :]:
            assert not a.overlaps(b)


# Queries


@pytest.mark.asyncio
async def test_get_appointment_is_clinic_scoped(
    agent: SchedulingAgent, appointment_data: dict
) -> None:
    """Test another clinic cannot read the appointment."""
    appointment_id = await book(agent, appointment_data)

    own = await agent.get_appointment({"clinic_id": CLINIC_ID, "appointment_id": appointment_id})
    other = await agent.get_appointment(
        {"clinic_id": OTHER_CLINIC_ID, "appointment_id": appointment_id}
    )

    assert own.success is True
    assert own.appointment_id == appointment_id
    assert other.error_kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_list_sorted_and_paginated(agent: SchedulingAgent, appointment_data: dict) -> None:
    """Test listing orders by start and pages exactly."""
    for time in ("14:00", "09:00", "11:00"):
        await book(agent, appointment_data, scheduled_time=time)

    first_page = await agent.list_appointments({"clinic_id": CLINIC_ID, "limit": 2})
    second_page = await agent.list_appointments(
        {"clinic_id": CLINIC_ID, "limit": 2, "offset": 2}
    )

    assert first_page.data.total == 3
    assert first_page.data.limit == 2
    assert [item.scheduled_start.hour for item in first_page.data.items] == [9, 11]
    assert [item.scheduled_start.hour for item in second_page.data.items] == [14]
    assert second_page.data.offset == 2


@pytest.mark.asyncio
async def test_list_default_limit(agent: SchedulingAgent, appointment_data: dict) -> None:
    """Test the configured default page size applies."""
    await book(agent, appointment_data)

    result = await agent.list_appointments({"clinic_id": CLINIC_ID})

    assert result.data.limit == 50
    assert result.data.total == 1


@pytest.mark.asyncio
async def test_list_filters(agent: SchedulingAgent, appointment_data: dict) -> None:
    """Test filters combine with AND and date_to is inclusive."""
    first_id = await book(agent, appointment_data, scheduled_date="2030-06-10")
    second_id = await book(agent, appointment_data, scheduled_date="2030-06-11")
    await book(agent, appointment_data, scheduled_date="2030-06-12")
    await book(
        agent,
        appointment_data,
        scheduled_date="2030-06-11",
        practitioner_id=SECOND_PRACTITIONER_ID,
    )
    await agent.cancel_appointment(
        {"clinic_id": CLINIC_ID, "appointment_id": first_id, "cancelled_by": "patient"}
    )

    by_day = await agent.list_appointments(
        {
            "clinic_id": CLINIC_ID,
            "practitioner_id": PRACTITIONER_ID,
            "date_from": "2030-06-11",
            "date_to": "2030-06-11",
        }
    )
    cancelled = await agent.list_appointments({"clinic_id": CLINIC_ID, "status": "cancelada"})
    other_clinic = await agent.list_appointments({"clinic_id": OTHER_CLINIC_ID})

    assert [item.id for item in by_day.data.items] == [second_id]
    assert [item.id for item in cancelled.data.items] == [first_id]
    assert other_clinic.data.total == 0


@pytest.mark.asyncio
async def test_list_rejects_inverted_date_range(agent: SchedulingAgent) -> None:
    """Test date_from after date_to is a validation error."""
    result = await agent.list_appointments(
        {"clinic_id": CLINIC_ID, "date_from": "2030-06-12", "date_to": "2030-06-10"}
    )

    assert result.error_kind == ErrorKind.VALIDATION


def test_valid_statuses() -> None:
    """Test the status vocabulary."""
    result = SchedulingAgent.valid_statuses()

    assert result.success is True
    assert result.data.appointment_statuses == [
        "agendada",
        "confirmada",
        "realizada",
        "faltou",
        "cancelada",
    ]
    assert result.data.payment_statuses == ["pendente", "pago", "cancelado"]
    assert result.data.cancelled_by == ["patient", "practitioner"]
