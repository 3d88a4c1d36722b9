"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AppointmentTab(str, Enum):
    """Directory views offered to clinic users."""

    ALL = "all"
    PENDING = "pending"
    UPCOMING = "upcoming"
    TODAY = "today"
    PAST = "past"
    CANCELLED = "cancelled"


class SectionState(str, Enum):
    """Whether a best-effort directory section was loaded."""

    OK = "ok"
    UNAVAILABLE = "unavailable"


class DurationStorage(str, Enum):
    """Where a procedure duration is kept."""

    TABLE = "appointment_durations"
    APPOINTMENT = "appointments"


ALLOWED_DURATIONS = (15, 30, 45, 60, 90, 120, 180, 240)


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus


class DurationUpdate(BaseModel):
    """Schema for setting a procedure duration."""

    duration_minutes: int = Field(..., description="One of 15, 30, 45, 60, 90, 120, 180, 240")

    @field_validator("duration_minutes")
    @classmethod
    def validate_choice(cls, v: int) -> int:
        """Only the offered durations are accepted."""
        if v not in ALLOWED_DURATIONS:
            raise ValueError(f"Duration must be one of {', '.join(map(str, ALLOWED_DURATIONS))}")
        return v


class DurationResponse(BaseModel):
    """Stored procedure duration."""

    appointment_id: UUID
    duration_minutes: int | None
    storage: DurationStorage | None = None


class AppointmentResponse(BaseModel):
    """Raw appointment record."""

    id: UUID
    patient_id: UUID
    appointment_date: date
    appointment_time: time
    status: AppointmentStatus
    branch: str | None = None
    teeth_involved: str | None = None
    notes: str | None = None
    is_emergency: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PatientSummary(BaseModel):
    """Patient fields shown alongside an appointment."""

    id: UUID
    full_name: str | None = None
    first_name: str = ""
    last_name: str = ""
    email: str | None = None
    phone: str | None = None


class AppointmentServiceItem(BaseModel):
    """Catalog service booked on an appointment."""

    id: UUID
    name: str


class DirectoryAppointment(AppointmentResponse):
    """Appointment enriched with patient, services and duration."""

    patient: PatientSummary | None = None
    patient_name: str | None = None
    services: list[AppointmentServiceItem] = []
    service_names: list[str] = []
    duration_minutes: int | None = None


class DirectorySections(BaseModel):
    """Load state of each best-effort section."""

    patients: SectionState = SectionState.OK
    services: SectionState = SectionState.OK
    durations: SectionState = SectionState.OK

    @property
    def complete(self) -> bool:
        return all(
            state == SectionState.OK for state in (self.patients, self.services, self.durations)
        )


class AppointmentDirectoryResponse(BaseModel):
    """Directory listing."""

    total: int
    items: list[DirectoryAppointment]
    sections: DirectorySections
