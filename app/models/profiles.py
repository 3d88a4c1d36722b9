"""Profiles table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    text,
)

metadata = MetaData()

profiles = Table(
    "profiles",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Firebase identity
    Column("firebase_uid", Text, nullable=False, unique=True, index=True),
    Column("email", Text, nullable=False, index=True),
    # Profile info
    Column("full_name", Text),
    Column("phone", String(20)),
    Column("address", Text),
    Column("role", Text, nullable=False, server_default=text("'patient'")),
    # Account state
    Column("disabled", Boolean, nullable=False, server_default=text("false")),
    # Audit
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
        "role IN ('admin', 'doctor', 'staff', 'patient')",
        name="profiles_role_check",
    ),
)
