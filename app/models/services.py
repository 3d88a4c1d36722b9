"""Service catalog and doctor pricing tables."""

from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)

metadata = MetaData()

services = Table(
    "services",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("name", Text, nullable=False),
    Column("description", Text, nullable=True),
    Column("category", Text, nullable=False, server_default=text("'general'")),
    # Catalog price and the displayed range
    Column("price", Numeric(10, 2), nullable=False),
    Column("price_min", Numeric(10, 2), nullable=True),
    Column("price_max", Numeric(10, 2), nullable=True),
    # Typical procedure length in minutes
    Column("duration", Integer, nullable=False, server_default=text("30")),
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
)

# Per-doctor override of the catalog price
doctor_service_pricing = Table(
    "doctor_service_pricing",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("doctor_id", Uuid, nullable=False, index=True),
    Column("service_id", Uuid, nullable=False),
    Column("price", Numeric(10, 2), nullable=False),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    UniqueConstraint("doctor_id", "service_id", name="uq_doctor_service_pricing"),
)
