"""Create appointment_durations table.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 00:10:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "appointment_durations",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("created_by", postgresql.UUID(), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column("updated_by", postgresql.UUID(), nullable=True),
        sa.Column("updated_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint("duration_minutes > 0", name="appointment_durations_positive"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("appointment_id"),
    )

    # Carry over durations already stored on appointment rows
    op.execute(
        """
        INSERT INTO appointment_durations (appointment_id, duration_minutes)
        SELECT id, duration_minutes FROM appointments
        WHERE duration_minutes IS NOT NULL
        """
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table("appointment_durations")
