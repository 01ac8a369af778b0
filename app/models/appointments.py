"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    text,
)

# Metadata for all tables
metadata = MetaData()

# Appointments table
# The PostgreSQL migration also adds a generated ``scheduled_end`` column and an
# exclusion constraint over (clinic_id, practitioner_id, interval) for live rows.
appointments = Table(
    "appointments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    # Ownership / references (validated by the scheduling agent, owned elsewhere)
    Column("clinic_id", Integer, nullable=False),
    Column("contact_id", Integer, nullable=False),
    Column("practitioner_id", Integer, nullable=False),
    Column("tag_id", Integer, nullable=True),
    # Interval, clinic-local wall clock
    Column("scheduled_start", DateTime, nullable=False),
    Column("duration_minutes", Integer, nullable=False, server_default=text("60")),
    # Status management
    Column("status", Text, nullable=False, server_default=text("'agendada'")),
    Column("cancelled_by", Text, nullable=True),
    Column("cancellation_reason", Text, nullable=True),
    # Metadata
    Column("doctor_name", Text, nullable=True),
    Column("specialty", Text, nullable=True),
    Column("appointment_type", Text, nullable=True),
    Column("session_notes", Text, nullable=True),
    # Payment, amount in minor currency units
    Column("payment_status", Text, nullable=False, server_default=text("'pendente'")),
    Column("payment_amount", Integer, nullable=True),
    # Audit fields
    Column("created_at", DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    Column("updated_at", DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    Column("cancelled_at", DateTime, nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('agendada', 'confirmada', 'realizada', 'faltou', 'cancelada')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "payment_status IN ('pendente', 'pago', 'cancelado')",
        name="appointments_payment_status_check",
    ),
    CheckConstraint(
        "cancelled_by IS NULL OR cancelled_by IN ('patient', 'practitioner')",
        name="appointments_cancelled_by_check",
    ),
    CheckConstraint(
        "duration_minutes BETWEEN 15 AND 480",
        name="appointments_duration_check",
    ),
    Index(
        "idx_appointments_practitioner_start",
        "clinic_id",
        "practitioner_id",
        "scheduled_start",
    ),
    Index("idx_appointments_clinic_start", "clinic_id", "scheduled_start"),
    Index("idx_appointments_contact_id", "contact_id"),
)
