"""create tracking_records, tracking_events

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

fulfillment_status = sa.Enum(
    "pending",
    "confirmed",
    "printed",
    "quality_check",
    "packaged",
    "shipped",
    "in_transit",
    "out_for_delivery",
    "delivered",
    "failed",
    "cancelled",
    name="fulfillment_status",
)


def upgrade() -> None:
    bind = op.get_bind()
    fulfillment_status.create(bind, checkfirst=True)

    op.create_table(
        "tracking_records",
        sa.Column("order_id", sa.String(length=128), nullable=False),
        sa.Column("current_status", fulfillment_status, nullable=False),
        sa.Column("current_step", sa.Integer(), nullable=False),
        sa.Column("last_sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("progress_percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("carrier", sa.String(length=128), nullable=True),
        sa.Column("tracking_number", sa.String(length=128), nullable=True),
        sa.Column("tracking_url", sa.String(length=1024), nullable=True),
        sa.Column("estimated_delivery", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("order_id"),
    )

    op.create_table(
        "tracking_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.String(length=128), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("status", fulfillment_status, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("dedup_key", sa.String(length=255), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["order_id"], ["tracking_records.order_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id", "sequence", name="uq_tracking_events_order_sequence"),
        sa.UniqueConstraint(
            "order_id", "dedup_key", name="uq_tracking_events_order_dedup_key"
        ),
    )
    op.create_index(
        op.f("ix_tracking_events_order_id"), "tracking_events", ["order_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_tracking_events_order_id"), table_name="tracking_events")
    op.drop_table("tracking_events")
    op.drop_table("tracking_records")

    bind = op.get_bind()
    fulfillment_status.drop(bind, checkfirst=True)
