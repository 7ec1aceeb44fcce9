"""generation_jobs and content_drafts tables

Revision ID: 0001
Revises: None
Create Date: 2026-10-19 09:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "content_drafts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("content_type", sa.String(50), nullable=False),
        sa.Column("media_url", sa.String(2048), nullable=True),
        sa.Column("thumbnail_url", sa.String(2048), nullable=True),
        sa.Column("media_engine", sa.String(50), nullable=True),
        sa.Column("media_type", sa.String(20), nullable=True, comment="image | video"),
        sa.Column("media_generated_at", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )

    op.create_table(
        "generation_jobs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("content_draft_id", sa.String(36), nullable=True),
        sa.Column("engine", sa.String(50), nullable=False),
        sa.Column("content_type", sa.String(50), nullable=False),
        sa.Column("prompt", sa.Text, nullable=False),
        sa.Column("config", sa.JSON, nullable=False),
        sa.Column("external_task_id", sa.String(255), nullable=False),
        sa.Column(
            "status", sa.String(20), nullable=False, server_default="queued",
            comment="queued | processing | completed | failed | timeout",
        ),
        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        sa.Column("eta_seconds", sa.Integer, nullable=True),
        sa.Column("retry_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("media_url", sa.String(2048), nullable=True),
        sa.Column("thumbnail_url", sa.String(2048), nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("last_polled_at", sa.DateTime, nullable=True),
        sa.Column("last_poll_attempt_at", sa.DateTime, nullable=True),
        sa.Column("completed_at", sa.DateTime, nullable=True),
        sa.Column("draft_updated_at", sa.DateTime, nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("poll_lease_token", sa.String(64), nullable=True),
        sa.Column("poll_lease_expires_at", sa.DateTime, nullable=True),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )
    op.create_index("ix_generation_jobs_content_draft_id", "generation_jobs", ["content_draft_id"])
    op.create_index("ix_generation_jobs_status", "generation_jobs", ["status"])


def downgrade() -> None:
    op.drop_index("ix_generation_jobs_status", table_name="generation_jobs")
    op.drop_index("ix_generation_jobs_content_draft_id", table_name="generation_jobs")
    op.drop_table("generation_jobs")
    op.drop_table("content_drafts")
