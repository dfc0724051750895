"""bundles catalog

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""
from alembic import op
import sqlalchemy as sa


revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "bundles",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("platform", sa.String(length=16), nullable=False),
        sa.Column("channel", sa.String(length=120), nullable=False, server_default="production"),
        sa.Column("target_app_version", sa.String(length=255), nullable=True),
        sa.Column("fingerprint_hash", sa.String(length=64), nullable=True),
        sa.Column("should_force_update", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("storage_uri", sa.Text(), nullable=False),
        sa.Column("file_hash", sa.String(length=128), nullable=False),
        sa.Column("git_commit_hash", sa.String(length=64), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("rollout_percentage", sa.Integer(), nullable=True),
        sa.Column("target_device_ids_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("platform IN ('ios', 'android')", name="ck_bundles_platform"),
        sa.CheckConstraint(
            "rollout_percentage IS NULL OR (rollout_percentage >= 0 AND rollout_percentage <= 100)",
            name="ck_bundles_rollout_percentage",
        ),
    )
    op.create_index("ix_bundles_platform_channel_enabled", "bundles", ["platform", "channel", "enabled"])
    op.create_index("ix_bundles_target_app_version", "bundles", ["target_app_version"])
    op.create_index("ix_bundles_fingerprint_hash", "bundles", ["fingerprint_hash"])


def downgrade() -> None:
    op.drop_index("ix_bundles_fingerprint_hash", table_name="bundles")
    op.drop_index("ix_bundles_target_app_version", table_name="bundles")
    op.drop_index("ix_bundles_platform_channel_enabled", table_name="bundles")
    op.drop_table("bundles")
