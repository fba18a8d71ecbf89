"""create_run_lifecycle_tables

Revision ID: create_run_tables
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision = "create_run_tables"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*names: str) -> list[sa.Column]:
    return [
        sa.Column(
            name,
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        )
        for name in names
    ]


def upgrade() -> None:
    op.create_table(
        "assistant",
        sa.Column("assistant_id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("model", sa.Text(), nullable=False),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.Column("tools", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb")),
        sa.Column("metadata", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb")),
        *_timestamps("created_at", "updated_at"),
    )

    op.create_table(
        "thread",
        sa.Column("thread_id", sa.Text(), primary_key=True),
        sa.Column(
            "metadata_json", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb")
        ),
        *_timestamps("created_at", "updated_at"),
    )

    op.create_table(
        "message",
        sa.Column("message_id", sa.Text(), primary_key=True),
        sa.Column(
            "thread_id",
            sa.Text(),
            sa.ForeignKey("thread.thread_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("content", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb")),
        sa.Column("run_id", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb")),
        *_timestamps("created_at"),
    )
    op.create_index("idx_message_thread_id", "message", ["thread_id"])

    op.create_table(
        "runs",
        sa.Column("run_id", sa.Text(), primary_key=True),
        sa.Column(
            "thread_id",
            sa.Text(),
            sa.ForeignKey("thread.thread_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "assistant_id",
            sa.Text(),
            sa.ForeignKey("assistant.assistant_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.Text(), server_default=sa.text("'queued'"), nullable=False),
        sa.Column("model", sa.Text(), nullable=True),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.Column("tools", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb")),
        sa.Column("metadata", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb")),
        sa.Column("required_action", postgresql.JSONB(), nullable=True),
        sa.Column("last_error", postgresql.JSONB(), nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("failed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('queued', 'in_progress', 'requires_action', 'cancelling', "
            "'cancelled', 'completed', 'failed', 'expired')",
            name="runs_status_check",
        ),
    )
    op.create_index("idx_runs_thread_id", "runs", ["thread_id"])
    op.create_index("idx_runs_status", "runs", ["status"])
    op.create_index("idx_runs_assistant_id", "runs", ["assistant_id"])
    op.create_index("idx_runs_created_at", "runs", ["created_at"])

    op.create_table(
        "run_steps",
        sa.Column("step_id", sa.Text(), primary_key=True),
        sa.Column(
            "run_id",
            sa.Text(),
            sa.ForeignKey("runs.run_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("thread_id", sa.Text(), nullable=False),
        sa.Column("assistant_id", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), server_default=sa.text("'pending'"), nullable=False),
        sa.Column(
            "step_details", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb")
        ),
        *_timestamps("created_at"),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index("idx_run_steps_run_id", "run_steps", ["run_id"])
    op.create_index("idx_run_steps_created_at", "run_steps", ["created_at"])
    op.create_index(
        "uq_run_steps_pending_tool_calls",
        "run_steps",
        ["run_id"],
        unique=True,
        postgresql_where=sa.text("type = 'tool_calls' AND status = 'pending'"),
    )

    op.create_table(
        "run_jobs",
        sa.Column("job_id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("payload", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb")),
        sa.Column("status", sa.Text(), server_default=sa.text("'waiting'"), nullable=False),
        sa.Column("attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("claimed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps("created_at", "updated_at"),
    )
    op.create_index(
        "idx_run_jobs_name_status_created", "run_jobs", ["name", "status", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("idx_run_jobs_name_status_created", table_name="run_jobs")
    op.drop_table("run_jobs")
    op.drop_index("uq_run_steps_pending_tool_calls", table_name="run_steps")
    op.drop_index("idx_run_steps_created_at", table_name="run_steps")
    op.drop_index("idx_run_steps_run_id", table_name="run_steps")
    op.drop_table("run_steps")
    for index in (
        "idx_runs_created_at",
        "idx_runs_assistant_id",
        "idx_runs_status",
        "idx_runs_thread_id",
    ):
        op.drop_index(index, table_name="runs")
    op.drop_table("runs")
    op.drop_index("idx_message_thread_id", table_name="message")
    op.drop_table("message")
    op.drop_table("thread")
    op.drop_table("assistant")
