"""Create appointments table with overlap protection.

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Needed for integer equality inside a GiST exclusion constraint
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    # Create appointments table
    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("clinic_id", sa.Integer(), nullable=False),
        sa.Column("contact_id", sa.Integer(), nullable=False),
        sa.Column("practitioner_id", sa.Integer(), nullable=False),
        sa.Column("tag_id", sa.Integer(), nullable=True),
        sa.Column("scheduled_start", sa.DateTime(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), server_default="60", nullable=False),
        sa.Column("status", sa.Text(), server_default="agendada", nullable=False),
        sa.Column("cancelled_by", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("doctor_name", sa.Text(), nullable=True),
        sa.Column("specialty", sa.Text(), nullable=True),
        sa.Column("appointment_type", sa.Text(), nullable=True),
        sa.Column("session_notes", sa.Text(), nullable=True),
        sa.Column("payment_status", sa.Text(), server_default="pendente", nullable=False),
        sa.Column("payment_amount", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "status IN ('agendada', 'confirmada', 'realizada', 'faltou', 'cancelada')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pendente', 'pago', 'cancelado')",
            name="appointments_payment_status_check",
        ),
        sa.CheckConstraint(
            "cancelled_by IS NULL OR cancelled_by IN ('patient', 'practitioner')",
            name="appointments_cancelled_by_check",
        ),
        sa.CheckConstraint(
            "duration_minutes BETWEEN 15 AND 480",
            name="appointments_duration_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create indexes
    op.create_index(
        "idx_appointments_practitioner_start",
        "appointments",
        ["clinic_id", "practitioner_id", "scheduled_start"],
    )
    op.create_index(
        "idx_appointments_clinic_start", "appointments", ["clinic_id", "scheduled_start"]
    )
    op.create_index("idx_appointments_contact_id", "appointments", ["contact_id"])

    # ===================================================================
    # OVERLAP GUARD: no two live appointments of a practitioner intersect
    # ===================================================================
    op.execute(
        """
        ALTER TABLE appointments
        ADD COLUMN scheduled_end TIMESTAMP
        GENERATED ALWAYS AS (scheduled_start + duration_minutes * INTERVAL '1 minute') STORED
    """
    )

    # tsrange defaults to '[)' bounds, so back-to-back appointments are allowed
    op.execute(
        """
        ALTER TABLE appointments
        ADD CONSTRAINT appointments_no_overlap
        EXCLUDE USING gist (
            clinic_id WITH =,
            practitioner_id WITH =,
            tsrange(scheduled_start, scheduled_end) WITH &&
        )
        WHERE (status <> 'cancelada')
    """
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.execute("ALTER TABLE appointments DROP CONSTRAINT IF EXISTS appointments_no_overlap")

    # Drop indexes
    op.drop_index("idx_appointments_contact_id", table_name="appointments")
    op.drop_index("idx_appointments_clinic_start", table_name="appointments")
    op.drop_index("idx_appointments_practitioner_start", table_name="appointments")

    # Drop table
    op.drop_table("appointments")
