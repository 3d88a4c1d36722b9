"""Tests for procedure duration tracking."""

from datetime import date, timedelta
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.models.appointments import appointment_durations, appointments
from app.schemas.appointments import DurationStorage
from app.services.appointment_service import AppointmentService


@pytest.mark.asyncio
async def test_set_duration_creates_row(
    client: AsyncClient,
    db_session,
    doctor_user: dict,
    doctor_headers: dict,
    sample_appointment: dict,
) -> None:
    """The first duration for an appointment inserts a row."""
    response = await client.put(
        f"/api/v1/appointments/{sample_appointment['id']}/duration",
        json={"duration_minutes": 45},
        headers=doctor_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["duration_minutes"] == 45
    assert data["storage"] == "appointment_durations"

    result = await db_session.execute(
        select(appointment_durations).where(
            appointment_durations.c.appointment_id == sample_appointment["id"]
        )
    )
    row = result.mappings().one()
    assert row["duration_minutes"] == 45
    assert row["created_by"] == doctor_user["id"]


@pytest.mark.asyncio
async def test_set_duration_updates_existing_row(
    client: AsyncClient,
    db_session,
    doctor_headers: dict,
    staff_user: dict,
    staff_headers: dict,
    sample_appointment: dict,
) -> None:
    """A second duration updates the same row and records the editor."""
    url = f"/api/v1/appointments/{sample_appointment['id']}/duration"
    await client.put(url, json={"duration_minutes": 30}, headers=doctor_headers)
    await client.put(url, json={"duration_minutes": 90}, headers=staff_headers)

    result = await db_session.execute(
        select(appointment_durations).where(
            appointment_durations.c.appointment_id == sample_appointment["id"]
        )
    )
    rows = result.mappings().all()
    assert len(rows) == 1
    assert rows[0]["duration_minutes"] == 90
    assert rows[0]["updated_by"] == staff_user["id"]
    assert rows[0]["updated_at"] is not None

    response = await client.get(url, headers=staff_headers)
    assert response.json()["duration_minutes"] == 90


@pytest.mark.asyncio
async def test_duration_shown_in_directory(
    client: AsyncClient,
    doctor_headers: dict,
    sample_appointment: dict,
) -> None:
    """The directory reports the stored duration."""
    await client.put(
        f"/api/v1/appointments/{sample_appointment['id']}/duration",
        json={"duration_minutes": 120},
        headers=doctor_headers,
    )

    listing = await client.get("/api/v1/appointments/", headers=doctor_headers)
    assert listing.json()["items"][0]["duration_minutes"] == 120


@pytest.mark.asyncio
async def test_duration_choices_are_validated(
    client: AsyncClient,
    doctor_headers: dict,
    sample_appointment: dict,
) -> None:
    """Only the offered durations are accepted."""
    response = await client.put(
        f"/api/v1/appointments/{sample_appointment['id']}/duration",
        json={"duration_minutes": 50},
        headers=doctor_headers,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_patient_cannot_set_duration(
    client: AsyncClient,
    patient_headers: dict,
    sample_appointment: dict,
) -> None:
    """Durations are set by clinic users only."""
    response = await client.put(
        f"/api/v1/appointments/{sample_appointment['id']}/duration",
        json={"duration_minutes": 30},
        headers=patient_headers,
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_duration_for_missing_appointment(client: AsyncClient, doctor_headers: dict) -> None:
    """Unknown appointments return 404."""
    response = await client.put(
        f"/api/v1/appointments/{uuid4()}/duration",
        json={"duration_minutes": 30},
        headers=doctor_headers,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_no_duration_recorded(
    client: AsyncClient,
    doctor_headers: dict,
    sample_appointment: dict,
) -> None:
    """Reading an unset duration returns null."""
    response = await client.get(
        f"/api/v1/appointments/{sample_appointment['id']}/duration",
        headers=doctor_headers,
    )

    assert response.status_code == 200
    assert response.json() == {
        "appointment_id": str(sample_appointment["id"]),
        "duration_minutes": None,
        "storage": None,
    }


@pytest.mark.asyncio
async def test_falls_back_to_appointment_column(
    legacy_client: AsyncClient,
    legacy_db_session,
    make_profile,
    make_appointment,
    auth_headers_for,
) -> None:
    """Without the durations table the value lands on the appointment row."""
    doctor = await make_profile(legacy_db_session, "doctor", "Dana Cruz")
    patient = await make_profile(legacy_db_session, "patient", "Lea Bautista")
    appointment = await make_appointment(
        legacy_db_session, patient["id"], date.today() + timedelta(days=2)
    )
    headers = auth_headers_for(doctor)

    response = await legacy_client.put(
        f"/api/v1/appointments/{appointment['id']}/duration",
        json={"duration_minutes": 60},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["storage"] == "appointments"

    stored = await legacy_db_session.execute(
        select(appointments.c.duration_minutes).where(appointments.c.id == appointment["id"])
    )
    assert stored.scalar_one() == 60

    read_back = await legacy_client.get(
        f"/api/v1/appointments/{appointment['id']}/duration", headers=headers
    )
    assert read_back.json()["duration_minutes"] == 60

    listing = await legacy_client.get("/api/v1/appointments/", headers=headers)
    data = listing.json()
    assert data["items"][0]["duration_minutes"] == 60
    assert data["sections"]["durations"] == "ok"


@pytest.mark.asyncio
async def test_table_value_wins_over_column(
    db_session,
    doctor_user: dict,
    patient_user: dict,
    make_appointment,
) -> None:
    """When both locations hold a value the durations table is used."""
    appointment = await make_appointment(
        db_session, patient_user["id"], date.today(), duration_minutes=15
    )
    service = AppointmentService(db_session)

    before = await service.get_duration(appointment["id"])
    assert before.duration_minutes == 15
    assert before.storage == DurationStorage.APPOINTMENT

    await service.set_duration(appointment["id"], 180, doctor_user["id"])
    after = await service.get_duration(appointment["id"])

    assert after.duration_minutes == 180
    assert after.storage == DurationStorage.TABLE
