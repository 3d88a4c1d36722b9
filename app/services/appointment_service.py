"""Appointment lifecycle: status changes and procedure durations."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ConflictException, NotFoundException, SchemaMigrationRequired
from app.database import column_available, is_missing_schema_error, table_available
from app.models.appointments import appointment_durations, appointments
from app.schemas.appointments import (
    AppointmentResponse,
    AppointmentStatus,
    DurationResponse,
    DurationStorage,
)

logger = structlog.get_logger(__name__)

# Moves accepted when strict transitions are enabled
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.REJECTED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.REJECTED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


def is_allowed_transition(current: AppointmentStatus, new: AppointmentStatus) -> bool:
    """Re-applying the current status is always allowed."""
    return current == new or new in ALLOWED_TRANSITIONS[current]


class AppointmentService:
    """Service for changing appointment state."""

    def __init__(self, db: AsyncSession, strict_transitions: bool | None = None):
        """
        Initialize service with database session.

        Args:
            db: Database session
            strict_transitions: Enforce the transition table; defaults to
                the STRICT_STATUS_TRANSITIONS setting
        """
        self.db = db
        if strict_transitions is None:
            strict_transitions = settings.strict_status_transitions
        self.strict_transitions = strict_transitions

    async def get_appointment(self, appointment_id: UUID) -> dict:
        """
        Get an appointment row.

        Raises:
            NotFoundException: If appointment not found
        """
        result = await self.db.execute(
            select(appointments).where(appointments.c.id == appointment_id)
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Appointment not found")
        return dict(row)

    async def _ensure_exists(self, appointment_id: UUID) -> None:
        # Reads only the id so a missing optional column cannot fail it
        result = await self.db.execute(
            select(appointments.c.id).where(appointments.c.id == appointment_id)
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundException("Appointment not found")

    async def set_status(
        self,
        appointment_id: UUID,
        new_status: AppointmentStatus,
    ) -> AppointmentResponse:
        """
        Overwrite an appointment's status.

        Without strict transitions any status may replace any other and
        concurrent writers resolve as last write wins.

        Args:
            appointment_id: Appointment ID
            new_status: Status to store

        Returns:
            Updated appointment

        Raises:
            NotFoundException: If appointment not found
            ConflictException: If strict transitions reject the move
        """
        old_status = None
        if self.strict_transitions:
            current = await self.get_appointment(appointment_id)
            old_status = AppointmentStatus(current["status"])
            if not is_allowed_transition(old_status, new_status):
                raise ConflictException(
                    f"Cannot change appointment status from {old_status.value} "
                    f"to {new_status.value}"
                )

        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(status=new_status.value, updated_at=datetime.now(UTC))
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        if not row:
            await self.db.rollback()
            raise NotFoundException("Appointment not found")

        await self.db.commit()

        logger.info(
            "appointment_status_updated",
            appointment_id=str(appointment_id),
            old_status=old_status.value if old_status else None,
            new_status=new_status.value,
        )
        return AppointmentResponse.model_validate(dict(row))

    async def get_duration(self, appointment_id: UUID) -> DurationResponse:
        """
        Read an appointment's procedure duration.

        The durations table is consulted first, then the appointment's own
        column. An appointment with no duration recorded returns None.

        Raises:
            NotFoundException: If appointment not found
        """
        await self._ensure_exists(appointment_id)

        if await table_available(self.db, appointment_durations):
            result = await self.db.execute(
                select(appointment_durations.c.duration_minutes).where(
                    appointment_durations.c.appointment_id == appointment_id
                )
            )
            minutes = result.scalar_one_or_none()
            if minutes is not None:
                return DurationResponse(
                    appointment_id=appointment_id,
                    duration_minutes=minutes,
                    storage=DurationStorage.TABLE,
                )

        if await column_available(self.db, appointments.c.duration_minutes):
            result = await self.db.execute(
                select(appointments.c.duration_minutes).where(appointments.c.id == appointment_id)
            )
            minutes = result.scalar_one_or_none()
            if minutes is not None:
                return DurationResponse(
                    appointment_id=appointment_id,
                    duration_minutes=minutes,
                    storage=DurationStorage.APPOINTMENT,
                )

        return DurationResponse(appointment_id=appointment_id, duration_minutes=None)

    async def set_duration(
        self,
        appointment_id: UUID,
        minutes: int,
        actor_id: UUID,
    ) -> DurationResponse:
        """
        Record an appointment's procedure duration.

        Writes to the durations table, updating the existing row or adding
        one. When that table does not exist the value is stored on the
        appointment row instead.

        Args:
            appointment_id: Appointment ID
            minutes: Duration in minutes
            actor_id: Profile ID of the clinic user making the change

        Returns:
            Stored duration and where it was written

        Raises:
            NotFoundException: If appointment not found
            SchemaMigrationRequired: If neither storage location exists
        """
        await self._ensure_exists(appointment_id)
        now = datetime.now(UTC)

        if not await table_available(self.db, appointment_durations):
            logger.warning(
                "duration_table_unavailable",
                appointment_id=str(appointment_id),
                fallback="appointments.duration_minutes",
            )
            return await self._store_on_appointment(appointment_id, minutes, now)

        existing = await self.db.execute(
            select(appointment_durations.c.id).where(
                appointment_durations.c.appointment_id == appointment_id
            )
        )
        duration_id = existing.scalar_one_or_none()

        if duration_id is not None:
            stmt = (
                update(appointment_durations)
                .where(appointment_durations.c.id == duration_id)
                .values(duration_minutes=minutes, updated_by=actor_id, updated_at=now)
            )
        else:
            stmt = insert(appointment_durations).values(
                appointment_id=appointment_id,
                duration_minutes=minutes,
                created_by=actor_id,
            )
        await self.db.execute(stmt)
        await self.db.commit()

        logger.info(
            "appointment_duration_set",
            appointment_id=str(appointment_id),
            duration_minutes=minutes,
            storage=DurationStorage.TABLE.value,
        )
        return DurationResponse(
            appointment_id=appointment_id,
            duration_minutes=minutes,
            storage=DurationStorage.TABLE,
        )

    async def _store_on_appointment(
        self, appointment_id: UUID, minutes: int, now: datetime
    ) -> DurationResponse:
        try:
            await self.db.execute(
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values(duration_minutes=minutes, updated_at=now)
            )
        except DBAPIError as e:
            await self.db.rollback()
            if is_missing_schema_error(e):
                raise SchemaMigrationRequired("appointment_durations")
            raise
        await self.db.commit()

        logger.info(
            "appointment_duration_set",
            appointment_id=str(appointment_id),
            duration_minutes=minutes,
            storage=DurationStorage.APPOINTMENT.value,
        )
        return DurationResponse(
            appointment_id=appointment_id,
            duration_minutes=minutes,
            storage=DurationStorage.APPOINTMENT,
        )
