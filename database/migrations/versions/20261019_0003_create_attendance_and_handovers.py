"""create attendance records, absent records and handover requests

Revision ID: 20261019_0003
Revises: 20261019_0002
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0003"
down_revision = "20261019_0002"
branch_labels = None
depends_on = None


handover_status = sa.Enum("pending", "approved", "rejected", name="handover_status")


def upgrade() -> None:
    op.create_table(
        "attendance_records",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("faculty_id", sa.String(length=36), nullable=False),
        sa.Column("class_date", sa.Date(), nullable=False),
        sa.Column("entry_id", sa.String(length=64), nullable=False),
        sa.Column("routine_id", sa.String(length=36), nullable=True),
        sa.Column("subject", sa.String(length=200), nullable=True),
        sa.Column("time_slot", sa.String(length=50), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("absent_students", sa.JSON(), nullable=False),
        sa.Column("marked_by_id", sa.String(length=36), nullable=True),
        sa.Column("marked_by_role", sa.String(length=20), nullable=False, server_default="faculty"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("faculty_id", "class_date", "entry_id", name="uq_attendance_faculty_date_entry"),
    )
    op.create_index("ix_attendance_records_faculty_id", "attendance_records", ["faculty_id"], unique=False)
    op.create_index("ix_attendance_records_class_date", "attendance_records", ["class_date"], unique=False)

    op.create_table(
        "absent_records",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_date", sa.Date(), nullable=False),
        sa.Column("faculty_id", sa.String(length=36), nullable=False),
        sa.Column("faculty_name", sa.String(length=200), nullable=True),
        sa.Column("routine_id", sa.String(length=36), nullable=True),
        sa.Column("entry_id", sa.String(length=64), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=True),
        sa.Column("absent_students", sa.JSON(), nullable=False),
        sa.Column("recorded_by", sa.String(length=20), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_absent_records_class_date", "absent_records", ["class_date"], unique=False)

    op.create_table(
        "handover_requests",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("faculty_id", sa.String(length=36), nullable=False),
        sa.Column("faculty_name", sa.String(length=200), nullable=True),
        sa.Column("class_id", sa.String(length=64), nullable=True),
        sa.Column("routine_id", sa.String(length=36), nullable=True),
        sa.Column("date_of_class", sa.Date(), nullable=False),
        sa.Column("time_slot", sa.String(length=50), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("course", sa.String(length=200), nullable=False),
        sa.Column("room_no", sa.String(length=50), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("substitute_id", sa.String(length=36), nullable=False),
        sa.Column("substitute_name", sa.String(length=200), nullable=True),
        sa.Column("status", handover_status, nullable=False, server_default="pending"),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("decided_by_id", sa.String(length=36), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_handover_requests_faculty_id", "handover_requests", ["faculty_id"], unique=False)
    op.create_index("ix_handover_requests_substitute_id", "handover_requests", ["substitute_id"], unique=False)
    op.create_index("ix_handover_requests_date_of_class", "handover_requests", ["date_of_class"], unique=False)
    op.create_index("ix_handover_requests_status", "handover_requests", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_handover_requests_status", table_name="handover_requests")
    op.drop_index("ix_handover_requests_date_of_class", table_name="handover_requests")
    op.drop_index("ix_handover_requests_substitute_id", table_name="handover_requests")
    op.drop_index("ix_handover_requests_faculty_id", table_name="handover_requests")
    op.drop_table("handover_requests")
    op.drop_index("ix_absent_records_class_date", table_name="absent_records")
    op.drop_table("absent_records")
    op.drop_index("ix_attendance_records_class_date", table_name="attendance_records")
    op.drop_index("ix_attendance_records_faculty_id", table_name="attendance_records")
    op.drop_table("attendance_records")
    handover_status.drop(op.get_bind(), checkfirst=True)
