"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_PREDICATE = sa.text("status IN ('waiting', 'notified')")


def upgrade() -> None:
    # Businesses table
    op.create_table(
        "businesses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, index=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.String(500), nullable=False),
        sa.Column("phone_number", sa.String(50), nullable=True),
        sa.Column("category", sa.String(30), nullable=False, server_default="other", index=True),
        sa.Column("average_wait_time", sa.Integer(), nullable=False, server_default="15"),
        sa.Column("current_queue_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_queue_capacity", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("current_queue_count >= 0", name="ck_businesses_queue_count_non_negative"),
        sa.CheckConstraint("average_wait_time >= 0", name="ck_businesses_average_wait_non_negative"),
        sa.CheckConstraint("max_queue_capacity >= 0", name="ck_businesses_capacity_non_negative"),
    )

    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("phone_number", sa.String(50), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="customer"),
        sa.Column("business_id", sa.String(36), sa.ForeignKey("businesses.id"), nullable=True, index=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Queue entries table
    op.create_table(
        "queue_entries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("business_id", sa.String(36), sa.ForeignKey("businesses.id"), nullable=False, index=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("estimated_wait_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="waiting"),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_queue_entries_business_status", "queue_entries", ["business_id", "status"])
    op.create_index("idx_queue_entries_user_status", "queue_entries", ["user_id", "status"])
    # At most one active entry per (user, business)
    op.create_index(
        "uq_queue_entries_active_member",
        "queue_entries",
        ["user_id", "business_id"],
        unique=True,
        postgresql_where=ACTIVE_PREDICATE,
        sqlite_where=ACTIVE_PREDICATE,
    )


def downgrade() -> None:
    op.drop_index("uq_queue_entries_active_member", table_name="queue_entries")
    op.drop_index("idx_queue_entries_user_status", table_name="queue_entries")
    op.drop_index("idx_queue_entries_business_status", table_name="queue_entries")
    op.drop_table("queue_entries")
    op.drop_table("users")
    op.drop_table("businesses")
