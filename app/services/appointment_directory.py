"""Appointment directory: appointments stitched with patients, services and durations."""

from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import GatewayUnavailableException, SchemaMigrationRequired
from app.database import is_missing_schema_error
from app.models.appointments import appointment_durations, appointment_services, appointments
from app.models.profiles import profiles
from app.models.services import services
from app.schemas.appointments import (
    AppointmentDirectoryResponse,
    AppointmentServiceItem,
    AppointmentStatus,
    AppointmentTab,
    DirectoryAppointment,
    DirectorySections,
    PatientSummary,
    SectionState,
)
from app.schemas.users import split_full_name

logger = structlog.get_logger(__name__)


def _scheduled_at(item: DirectoryAppointment) -> datetime:
    return datetime.combine(item.appointment_date, item.appointment_time)


def matches_tab(item: DirectoryAppointment, tab: AppointmentTab, now: datetime) -> bool:
    """Whether an appointment belongs in a directory tab."""
    if tab == AppointmentTab.PENDING:
        return item.status == AppointmentStatus.PENDING
    if tab == AppointmentTab.UPCOMING:
        return item.status == AppointmentStatus.CONFIRMED and _scheduled_at(item) > now
    if tab == AppointmentTab.TODAY:
        return item.status == AppointmentStatus.CONFIRMED and item.appointment_date == now.date()
    if tab == AppointmentTab.PAST:
        return item.status == AppointmentStatus.COMPLETED or _scheduled_at(item) < now
    if tab == AppointmentTab.CANCELLED:
        return item.status in (AppointmentStatus.CANCELLED, AppointmentStatus.REJECTED)
    return True


def matches_search(item: DirectoryAppointment, query: str) -> bool:
    """Case-insensitive substring match over patient name, branch and service names."""
    query = query.lower()
    fields = [item.patient_name, item.branch, *item.service_names]
    return any(value and query in value.lower() for value in fields)


def filter_appointments(
    items: Iterable[DirectoryAppointment],
    tab: AppointmentTab = AppointmentTab.ALL,
    search: str | None = None,
    now: datetime | None = None,
) -> list[DirectoryAppointment]:
    """
    Apply tab and free-text filters to already-fetched appointments.

    Appointment dates and times are clinic wall-clock values, so every tab
    compares them with the server's local time. TODAY uses the local date,
    not the UTC one.
    """
    if now is None:
        now = datetime.now()
    query = (search or "").strip()

    return [
        item
        for item in items
        if matches_tab(item, tab, now) and (not query or matches_search(item, query))
    ]


class AppointmentDirectory:
    """
    Loads appointments and the records they reference.

    The appointment query is the only hard dependency. Patients, services
    and durations are each loaded with a separate query; a failing query
    is logged, its section is flagged unavailable and the listing carries
    on without that data.
    """

    def __init__(self, db: AsyncSession):
        """Initialize directory with database session."""
        self.db = db

    async def _best_effort(
        self,
        section: str,
        sections: DirectorySections,
        loader: Callable[..., Awaitable[dict]],
        *args: Any,
    ) -> dict:
        try:
            return await loader(*args)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning("directory_section_unavailable", section=section, error=str(e))
            setattr(sections, section, SectionState.UNAVAILABLE)
            return {}

    async def _fetch_appointments(self, patient_id: UUID | None) -> list[dict]:
        query = select(appointments).order_by(
            appointments.c.appointment_date.asc(),
            appointments.c.appointment_time.asc(),
        )
        if patient_id is not None:
            query = query.where(appointments.c.patient_id == patient_id)

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("appointments_fetch_failed", error=str(e))
            if is_missing_schema_error(e):
                raise SchemaMigrationRequired("appointments")
            raise GatewayUnavailableException("Failed to load appointments")

        return [dict(row) for row in result.mappings().all()]

    async def _fetch_patients(self, patient_ids: set[UUID]) -> dict[UUID, dict]:
        result = await self.db.execute(
            select(
                profiles.c.id,
                profiles.c.full_name,
                profiles.c.email,
                profiles.c.phone,
            ).where(profiles.c.id.in_(patient_ids))
        )
        return {row["id"]: dict(row) for row in result.mappings().all()}

    async def _fetch_services(self, appointment_ids: list[UUID]) -> dict[UUID, list[dict]]:
        links = await self.db.execute(
            select(appointment_services.c.appointment_id, appointment_services.c.service_id).where(
                appointment_services.c.appointment_id.in_(appointment_ids)
            )
        )
        link_rows = links.mappings().all()
        if not link_rows:
            return {}

        service_ids = {row["service_id"] for row in link_rows}
        result = await self.db.execute(
            select(services.c.id, services.c.name).where(services.c.id.in_(service_ids))
        )
        service_map = {row["id"]: dict(row) for row in result.mappings().all()}

        by_appointment: dict[UUID, list[dict]] = {}
        for row in link_rows:
            service = service_map.get(row["service_id"])
            if service:
                by_appointment.setdefault(row["appointment_id"], []).append(service)
        return by_appointment

    async def _fetch_durations(self, appointment_ids: list[UUID]) -> dict[UUID, int]:
        try:
            result = await self.db.execute(
                select(
                    appointment_durations.c.appointment_id,
                    appointment_durations.c.duration_minutes,
                ).where(appointment_durations.c.appointment_id.in_(appointment_ids))
            )
        except SQLAlchemyError as e:
            if not is_missing_schema_error(e):
                raise
            # Durations then live only on the appointment rows
            await self.db.rollback()
            logger.info("duration_table_missing", fallback="appointments.duration_minutes")
            return {}
        return {row["appointment_id"]: int(row["duration_minutes"]) for row in result.mappings()}

    async def list_appointments(
        self,
        patient_id: UUID | None = None,
        tab: AppointmentTab = AppointmentTab.ALL,
        search: str | None = None,
        now: datetime | None = None,
    ) -> AppointmentDirectoryResponse:
        """
        List appointments, ascending by date, with related records attached.

        Args:
            patient_id: Restrict to one patient's appointments
            tab: Directory tab to filter by
            search: Free-text filter over patient name, branch and services
            now: Reference time for date-based tabs (defaults to local now)

        Returns:
            Filtered appointments and the load state of each section
        """
        sections = DirectorySections()
        rows = await self._fetch_appointments(patient_id)
        if not rows:
            return AppointmentDirectoryResponse(total=0, items=[], sections=sections)

        patient_ids = {row["patient_id"] for row in rows}
        appointment_ids = [row["id"] for row in rows]

        patient_map = await self._best_effort(
            "patients", sections, self._fetch_patients, patient_ids
        )
        services_map = await self._best_effort(
            "services", sections, self._fetch_services, appointment_ids
        )
        duration_map = await self._best_effort(
            "durations", sections, self._fetch_durations, appointment_ids
        )

        items = [
            self._assemble(row, patient_map, services_map, duration_map) for row in rows
        ]
        items = filter_appointments(items, tab, search, now)

        logger.info(
            "appointment_directory_loaded",
            total=len(items),
            tab=tab.value,
            complete=sections.complete,
        )
        return AppointmentDirectoryResponse(total=len(items), items=items, sections=sections)

    @staticmethod
    def _assemble(
        row: dict,
        patient_map: dict[UUID, dict],
        services_map: dict[UUID, list[dict]],
        duration_map: dict[UUID, int],
    ) -> DirectoryAppointment:
        patient = patient_map.get(row["patient_id"])
        summary = None
        if patient:
            first_name, last_name = split_full_name(patient["full_name"])
            summary = PatientSummary(
                id=patient["id"],
                full_name=patient["full_name"],
                first_name=first_name,
                last_name=last_name,
                email=patient["email"],
                phone=patient["phone"],
            )

        booked = [AppointmentServiceItem(**service) for service in services_map.get(row["id"], [])]

        values = dict(row)
        # Durations table wins over the appointment column
        if row["id"] in duration_map:
            values["duration_minutes"] = duration_map[row["id"]]

        return DirectoryAppointment(
            **values,
            patient=summary,
            patient_name=summary.full_name if summary else None,
            services=booked,
            service_names=[service.name for service in booked],
        )
