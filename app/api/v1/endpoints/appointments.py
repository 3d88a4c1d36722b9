"""Appointment endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import ClinicUser, CurrentUser, DatabaseSession
from app.schemas.appointments import (
    AppointmentDirectoryResponse,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AppointmentTab,
    DurationResponse,
    DurationUpdate,
)
from app.schemas.users import UserRole
from app.services.appointment_directory import AppointmentDirectory
from app.services.appointment_service import AppointmentService

router = APIRouter()


@router.get(
    "/",
    response_model=AppointmentDirectoryResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Appointment directory",
)
async def list_appointments(
    current_user: CurrentUser,
    db: DatabaseSession,
    tab: AppointmentTab = Query(AppointmentTab.ALL, description="Directory tab"),
    search: str | None = Query(None, description="Patient name, branch or service"),
    patient_id: UUID | None = Query(None, description="Filter by patient (clinic users)"),
) -> AppointmentDirectoryResponse:
    """
    List appointments with patient, services and duration attached.

    Patients only see their own appointments. The ``sections`` field tells
    which related records could not be loaded.

    Args:
        current_user: Authenticated user
        db: Database session
        tab: Directory tab to show
        search: Free-text filter
        patient_id: Patient to restrict to; forced to the caller for patients

    Returns:
        Directory listing
    """
    if current_user["role"] == UserRole.PATIENT.value:
        patient_id = current_user["id"]
    directory = AppointmentDirectory(db)
    return await directory.list_appointments(patient_id=patient_id, tab=tab, search=search)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    clinic_user: ClinicUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Confirm, reject, complete or cancel an appointment.

    Raises:
        HTTPException: If appointment not found or the move is not allowed
    """
    service = AppointmentService(db)
    return await service.set_status(appointment_id, data.status)


@router.get(
    "/{appointment_id}/duration",
    response_model=DurationResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get procedure duration",
)
async def get_appointment_duration(
    appointment_id: UUID,
    clinic_user: ClinicUser,
    db: DatabaseSession,
) -> DurationResponse:
    """Get the recorded procedure duration, or null when none is set."""
    return await AppointmentService(db).get_duration(appointment_id)


@router.put(
    "/{appointment_id}/duration",
    response_model=DurationResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Set procedure duration",
)
async def set_appointment_duration(
    appointment_id: UUID,
    data: DurationUpdate,
    clinic_user: ClinicUser,
    db: DatabaseSession,
) -> DurationResponse:
    """
    Record how long a procedure takes.

    Args:
        appointment_id: Appointment ID
        data: Duration in minutes
        clinic_user: Authenticated admin, doctor or staff member
        db: Database session

    Returns:
        Stored duration and the table it was written to
    """
    service = AppointmentService(db)
    return await service.set_duration(appointment_id, data.duration_minutes, clinic_user["id"])
