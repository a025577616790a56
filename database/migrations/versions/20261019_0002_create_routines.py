"""create routines

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


routine_type = sa.Enum("weekly", "monthly", name="routine_type")
routine_state = sa.Enum("draft", "published", "superseded", name="routine_state")


def upgrade() -> None:
    op.create_table(
        "routines",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("faculty_id", sa.String(length=36), nullable=False),
        sa.Column("routine_type", routine_type, nullable=False, server_default="weekly"),
        sa.Column("entries", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("previous_version_id", sa.String(length=36), nullable=True),
        sa.Column("is_latest", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("state", routine_state, nullable=False, server_default="draft"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("created_by_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_routines_faculty_id", "routines", ["faculty_id"], unique=False)
    op.create_index(
        "uq_routines_latest_per_faculty",
        "routines",
        ["faculty_id"],
        unique=True,
        postgresql_where=sa.text("is_latest"),
        sqlite_where=sa.text("is_latest = 1"),
    )


def downgrade() -> None:
    op.drop_index("uq_routines_latest_per_faculty", table_name="routines")
    op.drop_index("ix_routines_faculty_id", table_name="routines")
    op.drop_table("routines")
    routine_state.drop(op.get_bind(), checkfirst=True)
    routine_type.drop(op.get_bind(), checkfirst=True)
