"""Persistence gateway for appointments and the references they point to."""

from collections.abc import Iterable
from datetime import datetime
from typing import Any, NoReturn

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.engine import Result
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import Executable

from app.core.exceptions import ConflictException, StorageException
from app.core.redis_client import CacheManager
from app.models.appointments import appointments
from app.models.references import appointment_tags, clinic_users, contacts, users

logger = structlog.get_logger()

# Installed by the PostgreSQL migration
OVERLAP_CONSTRAINT = "appointments_no_overlap"
EXCLUSION_VIOLATION = "23P01"


def _is_overlap_violation(exc: IntegrityError) -> bool:
    """Check whether an integrity error comes from the no-overlap exclusion constraint."""
    code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    return code == EXCLUSION_VIOLATION or OVERLAP_CONSTRAINT in str(exc.orig)


class AppointmentRepository:
    """Clinic-scoped reads and writes over the ``appointments`` table."""

    def __init__(
        self,
        db: AsyncSession,
        cache_manager: CacheManager | None = None,
        cache_ttl: int = 300,
    ):
        """Initialize repository with a database session and optional cache manager."""
        self.db = db
        self.cache = cache_manager
        self.cache_ttl = cache_ttl

    @staticmethod
    def _get_practitioner_cache_key(clinic_id: int, practitioner_id: int) -> str:
        """Generate cache key for a practitioner's clinic membership."""
        return f"clinic:{clinic_id}:practitioner:{practitioner_id}"

    async def _fail(self, exc: SQLAlchemyError) -> NoReturn:
        """Roll back and re-raise a driver failure as an application exception."""
        await self.db.rollback()
        if isinstance(exc, IntegrityError) and _is_overlap_violation(exc):
            raise ConflictException("Time slot conflicts with existing appointment") from exc
        logger.error("appointment_storage_error", error=str(exc))
        raise StorageException() from exc

    async def _execute(self, stmt: Executable) -> Result:
        """Run a statement, translating driver failures into application exceptions."""
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self._fail(e)

    async def commit(self) -> None:
        """Commit the current unit of work."""
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._fail(e)

    async def rollback(self) -> None:
        """Abandon the current unit of work."""
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning("appointment_rollback_failed", error=str(e))

    async def lock_practitioner(self, clinic_id: int, practitioner_id: int) -> None:
        """
        Serialize writers for one practitioner until the transaction ends.

        Takes a transaction-scoped advisory lock on PostgreSQL, so that the
        conflict read and the following insert/update happen atomically with
        respect to other bookings for the same practitioner. Other backends
        rely on the database's own write serialization.
        """
        if self.db.bind is None or self.db.bind.dialect.name != "postgresql":
            return
        await self._execute(select(func.pg_advisory_xact_lock(clinic_id, practitioner_id)))

    # Reference lookups

    async def contact_in_clinic(self, clinic_id: int, contact_id: int) -> bool:
        """Check the contact exists and belongs to the clinic."""
        stmt = select(contacts.c.id).where(
            and_(contacts.c.id == contact_id, contacts.c.clinic_id == clinic_id)
        )
        result = await self._execute(stmt)
        return result.first() is not None

    async def practitioner_in_clinic(self, clinic_id: int, practitioner_id: int) -> bool:
        """
        Check the practitioner is an active user with an active membership in the clinic.

        Only positive answers are cached, so a newly added practitioner is
        accepted at once. A removed one stays bookable for at most the cache TTL.
        """
        if self.cache:
            cached = self.cache.get_json(
                self._get_practitioner_cache_key(clinic_id, practitioner_id)
            )
            if cached and cached.get("member"):
                return True

        stmt = (
            select(users.c.id)
            .join(clinic_users, clinic_users.c.user_id == users.c.id)
            .where(
                users.c.id == practitioner_id,
                users.c.is_active.is_(True),
                clinic_users.c.clinic_id == clinic_id,
                clinic_users.c.is_active.is_(True),
            )
        )
        result = await self._execute(stmt)
        member = result.first() is not None

        if member and self.cache:
            self.cache.set_json(
                self._get_practitioner_cache_key(clinic_id, practitioner_id),
                {"member": member},
                ttl=self.cache_ttl,
            )

        return member

    async def tag_in_clinic(self, clinic_id: int, tag_id: int) -> bool:
        """Check the tag exists and belongs to the clinic."""
        stmt = select(appointment_tags.c.id).where(
            and_(appointment_tags.c.id == tag_id, appointment_tags.c.clinic_id == clinic_id)
        )
        result = await self._execute(stmt)
        return result.first() is not None

    # Appointments

    async def get_appointment(self, clinic_id: int, appointment_id: int) -> dict | None:
        """Get one appointment, or None when missing or owned by another clinic."""
        stmt = select(appointments).where(
            and_(
                appointments.c.id == appointment_id,
                appointments.c.clinic_id == clinic_id,
            )
        )
        result = await self._execute(stmt)
        row = result.mappings().first()
        return dict(row) if row else None

    async def list_practitioner_appointments(
        self,
        clinic_id: int,
        practitioner_id: int,
        starts_from: datetime,
        starts_before: datetime,
        exclude_statuses: Iterable[str] = (),
    ) -> list[dict]:
        """
        List a practitioner's appointments starting inside ``[starts_from, starts_before)``.

        Args:
            clinic_id: Clinic ID
            practitioner_id: Practitioner ID
            starts_from: Inclusive lower bound on scheduled_start
            starts_before: Exclusive upper bound on scheduled_start
            exclude_statuses: Statuses to leave out

        Returns:
            Appointments ordered by scheduled_start
        """
        conditions = [
            appointments.c.clinic_id == clinic_id,
            appointments.c.practitioner_id == practitioner_id,
            appointments.c.scheduled_start >= starts_from,
            appointments.c.scheduled_start < starts_before,
        ]
        excluded = list(exclude_statuses)
        if excluded:
            conditions.append(appointments.c.status.not_in(excluded))

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.scheduled_start, appointments.c.id)
        )
        result = await self._execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def list_appointments(
        self,
        clinic_id: int,
        *,
        practitioner_id: int | None = None,
        contact_id: int | None = None,
        status: str | None = None,
        starts_from: datetime | None = None,
        starts_before: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        """
        List clinic appointments with AND-combined filters and pagination.

        Returns:
            Page of appointments ordered by scheduled_start, and the total match count
        """
        conditions = [appointments.c.clinic_id == clinic_id]

        if practitioner_id is not None:
            conditions.append(appointments.c.practitioner_id == practitioner_id)

        if contact_id is not None:
            conditions.append(appointments.c.contact_id == contact_id)

        if status is not None:
            conditions.append(appointments.c.status == status)

        if starts_from is not None:
            conditions.append(appointments.c.scheduled_start >= starts_from)

        if starts_before is not None:
            conditions.append(appointments.c.scheduled_start < starts_before)

        # Count total
        count_stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        total_result = await self._execute(count_stmt)
        total = total_result.scalar() or 0

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.scheduled_start.asc(), appointments.c.id.asc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._execute(stmt)
        return [dict(row) for row in result.mappings().all()], total

    async def insert_appointment(self, values: dict[str, Any]) -> dict:
        """Insert a new appointment and return the stored row."""
        stmt = insert(appointments).values(**values).returning(appointments)
        result = await self._execute(stmt)
        return dict(result.mappings().one())

    async def update_appointment(
        self,
        clinic_id: int,
        appointment_id: int,
        values: dict[str, Any],
        expected_status: str | None = None,
    ) -> dict | None:
        """
        Update a clinic-scoped appointment and return the stored row.

        Args:
            clinic_id: Clinic ID
            appointment_id: Appointment ID
            values: Columns to set
            expected_status: Only update while the row still has this status

        Returns:
            Updated row, or None when no row matched
        """
        conditions = [
            appointments.c.id == appointment_id,
            appointments.c.clinic_id == clinic_id,
        ]
        if expected_status is not None:
            conditions.append(appointments.c.status == expected_status)

        stmt = (
            update(appointments)
            .where(and_(*conditions))
            .values(**{"updated_at": func.now(), **values})
            .returning(appointments)
        )
        result = await self._execute(stmt)
        row = result.mappings().first()
        return dict(row) if row else None
