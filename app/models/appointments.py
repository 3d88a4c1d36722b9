"""Appointment tables using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Integer,
    MetaData,
    Table,
    Text,
    Time,
    Uuid,
    text,
)

metadata = MetaData()

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("patient_id", Uuid, nullable=False, index=True),
    # Schedule
    Column("appointment_date", Date, nullable=False, index=True),
    Column("appointment_time", Time, nullable=False),
    Column("branch", Text, nullable=True),
    # Clinical details
    Column("teeth_involved", Text, nullable=True),
    Column("notes", Text, nullable=True),
    Column("is_emergency", Boolean, nullable=False, server_default=text("false")),
    # Status management
    Column("status", Text, nullable=False, server_default=text("'pending'")),
    # Used only when appointment_durations is unavailable
    Column("duration_minutes", Integer, nullable=True),
    # Audit fields
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'rejected', 'completed', 'cancelled')",
        name="appointments_status_check",
    ),
)

appointment_services = Table(
    "appointment_services",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("appointment_id", Uuid, nullable=False, index=True),
    Column("service_id", Uuid, nullable=False),
)

appointment_durations = Table(
    "appointment_durations",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("appointment_id", Uuid, nullable=False, unique=True),
    Column("duration_minutes", Integer, nullable=False),
    Column("created_by", Uuid, nullable=True),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Column("updated_by", Uuid, nullable=True),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)
