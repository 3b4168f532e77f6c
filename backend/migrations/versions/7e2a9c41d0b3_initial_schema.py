"""Initial schema for VendorSync.

Revision ID: 7e2a9c41d0b3
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "7e2a9c41d0b3"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "vendor_accounts",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("country_code", sa.String(length=2), nullable=True),
        sa.Column("marketplace_id", sa.String(length=20), nullable=True),
        sa.Column("access_token", sa.String(length=2048), nullable=True),
        sa.Column("is_authorized", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("archived", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        if_not_exists=True,
    )

    op.create_table(
        "sync_checkpoints",
        sa.Column("stream_id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("sync_type", sa.String(length=50), primary_key=True, nullable=False),
        sa.Column("last_end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "last_sync_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("record_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        if_not_exists=True,
    )

    op.create_table(
        "retry_segments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("stream_id", sa.String(length=64), nullable=False),
        sa.Column("sync_type", sa.String(length=50), nullable=False),
        sa.Column("segment_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("segment_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("retry_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        if_not_exists=True,
    )
    op.create_index(
        "idx_retry_segments_retry_at", "retry_segments", ["retry_at"], if_not_exists=True
    )

    op.create_table(
        "report_jobs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("stream_id", sa.String(length=64), nullable=False),
        sa.Column("external_job_id", sa.String(length=100), nullable=False),
        sa.Column("report_kind", sa.String(length=100), nullable=False),
        sa.Column("data_date", sa.Date(), nullable=True),
        sa.Column("partition_key", sa.String(length=50), server_default="ALL", nullable=False),
        sa.Column("retry_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        if_not_exists=True,
    )
    op.create_index("idx_report_jobs_retry_at", "report_jobs", ["retry_at"], if_not_exists=True)

    op.create_table(
        "report_data_partitions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("stream_id", sa.String(length=64), nullable=False),
        sa.Column("report_kind", sa.String(length=100), nullable=False),
        sa.Column("data_date", sa.Date(), nullable=False),
        sa.Column("partition_key", sa.String(length=50), nullable=False),
        sa.Column("data", postgresql.JSONB(), nullable=False),
        sa.Column("row_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "stream_id", "report_kind", "data_date", "partition_key", name="uq_report_partition"
        ),
        if_not_exists=True,
    )

    op.create_table(
        "report_sync_states",
        sa.Column("stream_id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("report_kind", sa.String(length=100), primary_key=True, nullable=False),
        sa.Column("partition_key", sa.String(length=50), primary_key=True, nullable=False),
        sa.Column("last_data_end_at", sa.Date(), nullable=False),
        sa.Column("record_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        if_not_exists=True,
    )

    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("purchase_order_number", sa.String(length=50), nullable=False),
        sa.Column("order_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("order_state", sa.String(length=50), nullable=True),
        sa.Column("selling_party_id", sa.String(length=50), nullable=True),
        sa.Column("ship_to_party_id", sa.String(length=50), nullable=True),
        sa.Column("item_count", sa.Integer(), nullable=True),
        sa.Column("data", postgresql.JSONB(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("account_id", "purchase_order_number", name="uq_purchase_order"),
        if_not_exists=True,
    )
    op.create_index(
        "ix_purchase_orders_order_date", "purchase_orders", ["order_date"], if_not_exists=True
    )

    op.create_table(
        "direct_fulfillment_orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("purchase_order_number", sa.String(length=50), nullable=False),
        sa.Column("order_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("order_status", sa.String(length=50), nullable=True),
        sa.Column("item_count", sa.Integer(), nullable=True),
        sa.Column("data", postgresql.JSONB(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("account_id", "purchase_order_number", name="uq_df_order"),
        if_not_exists=True,
    )
    op.create_index(
        "idx_df_orders_order_date",
        "direct_fulfillment_orders",
        [sa.text("order_date DESC")],
        if_not_exists=True,
    )

    op.create_table(
        "shipment_details",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("reference_number", sa.String(length=100), nullable=False),
        sa.Column("shipment_id", sa.String(length=100), nullable=True),
        sa.Column("data", postgresql.JSONB(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("account_id", "reference_number", name="uq_shipment_detail"),
        if_not_exists=True,
    )

    op.create_table(
        "job_task_statuses",
        sa.Column("job_name", sa.String(length=100), primary_key=True, nullable=False),
        sa.Column("task_type", sa.String(length=100), nullable=False),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_status", sa.String(length=20), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("next_scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        if_not_exists=True,
    )


def downgrade() -> None:
    op.drop_index("idx_df_orders_order_date", table_name="direct_fulfillment_orders", if_exists=True)
    op.drop_index("ix_purchase_orders_order_date", table_name="purchase_orders", if_exists=True)
    op.drop_index("idx_report_jobs_retry_at", table_name="report_jobs", if_exists=True)
    op.drop_index("idx_retry_segments_retry_at", table_name="retry_segments", if_exists=True)

    op.drop_table("job_task_statuses", if_exists=True)
    op.drop_table("shipment_details", if_exists=True)
    op.drop_table("direct_fulfillment_orders", if_exists=True)
    op.drop_table("purchase_orders", if_exists=True)
    op.drop_table("report_sync_states", if_exists=True)
    op.drop_table("report_data_partitions", if_exists=True)
    op.drop_table("report_jobs", if_exists=True)
    op.drop_table("retry_segments", if_exists=True)
    op.drop_table("sync_checkpoints", if_exists=True)
    op.drop_table("vendor_accounts", if_exists=True)
