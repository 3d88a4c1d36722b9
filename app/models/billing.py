"""Invoice and payment tables using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    Table,
    Text,
    Uuid,
    text,
)

metadata = MetaData()

invoices = Table(
    "invoices",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("invoice_number", Text, nullable=False, unique=True),
    Column("patient_id", Uuid, nullable=False, index=True),
    Column("invoice_date", DateTime(timezone=True), nullable=False),
    Column("due_date", DateTime(timezone=True), nullable=True),
    # Amounts
    Column("subtotal", Numeric(12, 2), nullable=False, server_default=text("0")),
    Column("discount", Numeric(12, 2), nullable=False, server_default=text("0")),
    Column("tax", Numeric(12, 2), nullable=False, server_default=text("0")),
    Column("total_amount", Numeric(12, 2), nullable=False),
    Column("amount_paid", Numeric(12, 2), nullable=False, server_default=text("0")),
    Column("status", Text, nullable=False, server_default=text("'pending'")),
    Column("payment_method", Text, nullable=True),
    Column("notes", Text, nullable=True),
    # Audit
    Column("created_by", Uuid, nullable=True),
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
        "status IN ('pending', 'partial', 'paid')",
        name="invoices_status_check",
    ),
)

invoice_items = Table(
    "invoice_items",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("invoice_id", Uuid, nullable=False, index=True),
    Column("service_name", Text, nullable=False),
    Column("description", Text, nullable=True),
    Column("quantity", Integer, nullable=False, server_default=text("1")),
    Column("price", Numeric(12, 2), nullable=False),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
)

payments = Table(
    "payments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("invoice_id", Uuid, nullable=False, index=True),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("payment_date", DateTime(timezone=True), nullable=False),
    Column("payment_method", Text, nullable=False),
    Column("reference_number", Text, nullable=False),
    # May carry "Payment proof: <url>" and, on legacy rows, approval annotations
    Column("notes", Text, nullable=True),
    # Two status columns kept for compatibility with older rows
    Column("doctor_approval_status", Text, nullable=True),
    Column("approval_status", Text, nullable=True),
    Column("created_by", Uuid, nullable=True),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
)
