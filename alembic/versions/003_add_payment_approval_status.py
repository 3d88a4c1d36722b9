"""Add approval_status to payments and backfill from doctor approvals.

Revision ID: 003
Revises: 002
Create Date: 2026-10-19 00:20:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.add_column("payments", sa.Column("approval_status", sa.Text(), nullable=True))

    op.execute(
        """
        UPDATE payments SET approval_status = doctor_approval_status
        WHERE doctor_approval_status IS NOT NULL
        """
    )

    op.create_index("ix_payments_approval_status", "payments", ["approval_status"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("ix_payments_approval_status", table_name="payments")
    op.drop_column("payments", "approval_status")
