"""Initial schema: positions, bookings, audit_logs, user_stats with indexes and constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Positions table - the human-assigned code is the primary key
    op.create_table(
        "positions",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_positions_active_name", "positions", ["is_active", "name"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column(
            "position",
            sa.String(32),
            sa.ForeignKey("positions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("end_time > start_time", name="check_booking_end_after_start"),
        sa.CheckConstraint(
            "status IN ('active', 'completed', 'cancelled')", name="check_booking_status"
        ),
        sa.CheckConstraint(
            "type IN ('controlling', 'training', 'exam')", name="check_booking_type"
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    # Overlap query: WHERE position = ? AND date = ? AND status = 'active'
    op.create_index("ix_bookings_position_date_status", "bookings", ["position", "date", "status"])
    # Month listing: WHERE date BETWEEN first_day AND last_day
    op.create_index("ix_bookings_date", "bookings", ["date"])
    # Sweeper: WHERE status = 'completed' AND updated_at < threshold
    op.create_index("ix_bookings_status_updated", "bookings", ["status", "updated_at"])

    # Audit log table (append-only)
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("booking_id", sa.String(64), nullable=True),
        sa.Column("position_id", sa.String(32), nullable=True),
        sa.Column("details", sa.Text(), nullable=False),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_id", "audit_logs", ["id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_booking_id", "audit_logs", ["booking_id"])
    op.create_index("ix_audit_logs_position_id", "audit_logs", ["position_id"])
    op.create_index("ix_audit_logs_timestamp", "audit_logs", ["timestamp"])

    # User stats table
    op.create_table(
        "user_stats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("controlling_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("booking_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("controlling_per_month", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_user_stats_id", "user_stats", ["id"])
    op.create_index("ix_user_stats_user_id", "user_stats", ["user_id"], unique=True)


def downgrade() -> None:
    op.drop_table("user_stats")
    op.drop_table("audit_logs")
    op.drop_table("bookings")
    op.drop_table("positions")
