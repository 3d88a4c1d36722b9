"""Initial migration - profiles, catalog, appointments and billing tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
    )


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.TIMESTAMP(timezone=True),
        server_default=None if nullable else sa.text("NOW()"),
        nullable=nullable,
    )


def upgrade() -> None:
    """Upgrade database schema."""
    # Enable pgcrypto extension
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.create_table(
        "profiles",
        _id_column(),
        sa.Column("firebase_uid", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("phone", sa.VARCHAR(length=20), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), server_default="patient", nullable=False),
        sa.Column("disabled", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "role IN ('admin', 'doctor', 'staff', 'patient')",
            name="profiles_role_check",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("firebase_uid"),
    )
    op.create_index("ix_profiles_firebase_uid", "profiles", ["firebase_uid"])
    op.create_index("ix_profiles_email", "profiles", ["email"])

    op.create_table(
        "services",
        _id_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), server_default="general", nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("price_min", sa.Numeric(10, 2), nullable=True),
        sa.Column("price_max", sa.Numeric(10, 2), nullable=True),
        sa.Column("duration", sa.Integer(), server_default=sa.text("30"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "doctor_service_pricing",
        _id_column(),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("service_id", postgresql.UUID(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["doctor_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("doctor_id", "service_id", name="uq_doctor_service_pricing"),
    )
    op.create_index(
        "ix_doctor_service_pricing_doctor_id", "doctor_service_pricing", ["doctor_id"]
    )

    op.create_table(
        "appointments",
        _id_column(),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("appointment_time", sa.Time(), nullable=False),
        sa.Column("branch", sa.Text(), nullable=True),
        sa.Column("teeth_involved", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_emergency", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'rejected', 'completed', 'cancelled')",
            name="appointments_status_check",
        ),
        sa.ForeignKeyConstraint(["patient_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("ix_appointments_appointment_date", "appointments", ["appointment_date"])

    op.create_table(
        "appointment_services",
        _id_column(),
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        sa.Column("service_id", postgresql.UUID(), nullable=False),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_appointment_services_appointment_id", "appointment_services", ["appointment_id"]
    )

    op.create_table(
        "invoices",
        _id_column(),
        sa.Column("invoice_number", sa.Text(), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("invoice_date", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("due_date", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("discount", sa.Numeric(12, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("tax", sa.Numeric(12, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(12, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("payment_method", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", postgresql.UUID(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('pending', 'partial', 'paid')",
            name="invoices_status_check",
        ),
        sa.ForeignKeyConstraint(["patient_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number"),
    )
    op.create_index("ix_invoices_patient_id", "invoices", ["patient_id"])

    op.create_table(
        "invoice_items",
        _id_column(),
        sa.Column("invoice_id", postgresql.UUID(), nullable=False),
        sa.Column("service_name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_invoice_items_invoice_id", "invoice_items", ["invoice_id"])

    op.create_table(
        "payments",
        _id_column(),
        sa.Column("invoice_id", postgresql.UUID(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_date", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("payment_method", sa.Text(), nullable=False),
        sa.Column("reference_number", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("doctor_approval_status", sa.Text(), nullable=True),
        sa.Column("created_by", postgresql.UUID(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_payments_invoice_id", "payments", ["invoice_id"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("ix_payments_invoice_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_invoice_items_invoice_id", table_name="invoice_items")
    op.drop_table("invoice_items")
    op.drop_index("ix_invoices_patient_id", table_name="invoices")
    op.drop_table("invoices")
    op.drop_index("ix_appointment_services_appointment_id", table_name="appointment_services")
    op.drop_table("appointment_services")
    op.drop_index("ix_appointments_appointment_date", table_name="appointments")
    op.drop_index("ix_appointments_patient_id", table_name="appointments")
    op.drop_table("appointments")
    op.drop_index("ix_doctor_service_pricing_doctor_id", table_name="doctor_service_pricing")
    op.drop_table("doctor_service_pricing")
    op.drop_table("services")
    op.drop_index("ix_profiles_email", table_name="profiles")
    op.drop_index("ix_profiles_firebase_uid", table_name="profiles")
    op.drop_table("profiles")
