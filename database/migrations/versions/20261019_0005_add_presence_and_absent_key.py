"""add user presence and one absentee row per class

Revision ID: 20261019_0005
Revises: 20261019_0004
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0005"
down_revision = "20261019_0004"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "users",
        sa.Column("is_online", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.add_column(
        "users",
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True),
    )

    # Keep only the newest absentee row of each class before adding the key.
    op.execute(
        """
        DELETE FROM absent_records
        WHERE id NOT IN (
            SELECT id FROM (
                SELECT id, ROW_NUMBER() OVER (
                    PARTITION BY faculty_id, class_date, entry_id
                    ORDER BY recorded_at DESC
                ) AS position
                FROM absent_records
            ) ranked
            WHERE position = 1
        )
        """
    )
    op.create_unique_constraint(
        "uq_absent_faculty_date_entry",
        "absent_records",
        ["faculty_id", "class_date", "entry_id"],
    )


def downgrade() -> None:
    op.drop_constraint("uq_absent_faculty_date_entry", "absent_records", type_="unique")
    op.drop_column("users", "last_active_at")
    op.drop_column("users", "is_online")
