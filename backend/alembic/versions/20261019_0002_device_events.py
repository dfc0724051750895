"""device events for staged rollouts

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 14:00:00
"""
from alembic import op
import sqlalchemy as sa


revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "device_events",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("device_id", sa.String(length=255), nullable=False),
        sa.Column("bundle_id", sa.String(length=36), nullable=False),
        sa.Column("event_type", sa.String(length=16), nullable=False),
        sa.Column("platform", sa.String(length=16), nullable=False),
        sa.Column("app_version", sa.String(length=64), nullable=True),
        sa.Column("channel", sa.String(length=120), nullable=False),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("event_type IN ('PROMOTED', 'RECOVERED')", name="ck_device_events_event_type"),
        sa.CheckConstraint("platform IN ('ios', 'android')", name="ck_device_events_platform"),
    )
    op.create_index("ix_device_events_bundle_event_type", "device_events", ["bundle_id", "event_type"])
    op.create_index("ix_device_events_device_id", "device_events", ["device_id"])


def downgrade() -> None:
    op.drop_index("ix_device_events_device_id", table_name="device_events")
    op.drop_index("ix_device_events_bundle_event_type", table_name="device_events")
    op.drop_table("device_events")
