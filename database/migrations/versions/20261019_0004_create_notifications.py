"""create notifications and announcements

Revision ID: 20261019_0004
Revises: 20261019_0003
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261019_0004"
down_revision = "20261019_0003"
branch_labels = None
depends_on = None


notification_type = postgresql.ENUM(
    "routine",
    "handover",
    "approval",
    "rejection",
    "announcement",
    "attendance",
    name="notification_type",
    create_type=False,
)
announcement_status = sa.Enum("sent", "scheduled", name="announcement_status")


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        notification_type.create(bind, checkfirst=True)
        type_column = notification_type
    else:
        type_column = sa.Enum(*notification_type.enums, name="notification_type")

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("notification_type", type_column, nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("related_id", sa.String(length=36), nullable=True),
        sa.Column("sender_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)

    op.create_table(
        "announcements",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("notification_type", type_column, nullable=False, server_default="announcement"),
        sa.Column("sender_id", sa.String(length=36), nullable=False),
        sa.Column("sender_name", sa.String(length=200), nullable=True),
        sa.Column("department", sa.String(length=200), nullable=True),
        sa.Column("send_to_all", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("recipient_ids", sa.JSON(), nullable=False),
        sa.Column("status", announcement_status, nullable=False, server_default="sent"),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("announcements")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    announcement_status.drop(op.get_bind(), checkfirst=True)
    notification_type.drop(op.get_bind(), checkfirst=True)
