"""SQLAlchemy ORM setup for persistent assistant/thread/run records.

This module creates:
• `Base` – the declarative base used by our models.
• `Assistant`, `Thread`, `Message` – collaborator records runs refer to.
• `Run`, `RunStep` – the run lifecycle records.
• `RunJob` – the job table backing the run queue (one row per outstanding run).
• `get_session` – FastAPI dependency helper for routers.

JSON columns are JSONB on PostgreSQL and plain JSON elsewhere so the same
models work against the SQLite database used by the tests.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    ForeignKey,
    Index,
    Integer,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from ..utils.ids import generate_id

Base = declarative_base()

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _timestamp(**kwargs: Any) -> Any:
    return mapped_column(
        TIMESTAMP(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        **kwargs,
    )


class Assistant(Base):
    __tablename__ = "assistant"

    assistant_id: Mapped[str] = mapped_column(
        Text, primary_key=True, default=lambda: generate_id("asst")
    )
    name: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    model: Mapped[str] = mapped_column(Text, nullable=False)
    instructions: Mapped[str | None] = mapped_column(Text)
    tools: Mapped[list] = mapped_column(JSONType, default=list)
    metadata_dict: Mapped[dict] = mapped_column(
        JSONType, default=dict, name="metadata"
    )
    created_at: Mapped[datetime] = _timestamp()
    updated_at: Mapped[datetime] = _timestamp(onupdate=_utcnow)


class Thread(Base):
    __tablename__ = "thread"

    thread_id: Mapped[str] = mapped_column(
        Text, primary_key=True, default=lambda: generate_id("thread")
    )
    metadata_json: Mapped[dict] = mapped_column(
        "metadata_json", JSONType, default=dict
    )
    created_at: Mapped[datetime] = _timestamp()
    updated_at: Mapped[datetime] = _timestamp(onupdate=_utcnow)


class Message(Base):
    __tablename__ = "message"

    message_id: Mapped[str] = mapped_column(
        Text, primary_key=True, default=lambda: generate_id("msg")
    )
    thread_id: Mapped[str] = mapped_column(
        Text, ForeignKey("thread.thread_id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[list] = mapped_column(JSONType, default=list)
    run_id: Mapped[str | None] = mapped_column(Text)
    metadata_dict: Mapped[dict] = mapped_column(
        JSONType, default=dict, name="metadata"
    )
    created_at: Mapped[datetime] = _timestamp()

    __table_args__ = (Index("idx_message_thread_id", "thread_id"),)


class Run(Base):
    __tablename__ = "runs"

    run_id: Mapped[str] = mapped_column(
        Text, primary_key=True, default=lambda: generate_id("run")
    )
    # thread_id and assistant_id are never part of an UPDATE after creation
    thread_id: Mapped[str] = mapped_column(
        Text, ForeignKey("thread.thread_id", ondelete="CASCADE"), nullable=False
    )
    assistant_id: Mapped[str] = mapped_column(
        Text, ForeignKey("assistant.assistant_id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=text("'queued'")
    )
    model: Mapped[str | None] = mapped_column(Text)
    instructions: Mapped[str | None] = mapped_column(Text)
    tools: Mapped[list] = mapped_column(JSONType, default=list)
    metadata_dict: Mapped[dict] = mapped_column(
        JSONType, default=dict, name="metadata"
    )
    required_action: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    last_error: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = _timestamp()
    updated_at: Mapped[datetime] = _timestamp()
    started_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True))
    failed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True))
    expires_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True))

    # Indexes for performance
    __table_args__ = (
        Index("idx_runs_thread_id", "thread_id"),
        Index("idx_runs_status", "status"),
        Index("idx_runs_assistant_id", "assistant_id"),
        Index("idx_runs_created_at", "created_at"),
    )


class RunStep(Base):
    __tablename__ = "run_steps"

    step_id: Mapped[str] = mapped_column(
        Text, primary_key=True, default=lambda: generate_id("step")
    )
    run_id: Mapped[str] = mapped_column(
        Text, ForeignKey("runs.run_id", ondelete="CASCADE"), nullable=False
    )
    thread_id: Mapped[str] = mapped_column(Text, nullable=False)
    assistant_id: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=text("'pending'")
    )
    step_details: Mapped[dict] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = _timestamp()
    completed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True))

    __table_args__ = (
        Index("idx_run_steps_run_id", "run_id"),
        Index("idx_run_steps_created_at", "created_at"),
        # At most one unresolved tool_calls step per run
        Index(
            "uq_run_steps_pending_tool_calls",
            "run_id",
            unique=True,
            postgresql_where=text("type = 'tool_calls' AND status = 'pending'"),
            sqlite_where=text("type = 'tool_calls' AND status = 'pending'"),
        ),
    )


class RunJob(Base):
    __tablename__ = "run_jobs"

    # Equal to the run id: one outstanding job per run
    job_id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, default=dict)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=text("'waiting'")
    )  # 'waiting', 'active'
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    claimed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True))
    created_at: Mapped[datetime] = _timestamp()
    updated_at: Mapped[datetime] = _timestamp(onupdate=_utcnow)

    __table_args__ = (
        Index("idx_run_jobs_name_status_created", "name", "status", "created_at"),
    )


# ---------------------------------------------------------------------------
# Session factory
# ---------------------------------------------------------------------------

async_session_maker: async_sessionmaker[AsyncSession] | None = None


def _get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Return a cached async_sessionmaker bound to db_manager.engine."""
    global async_session_maker
    if async_session_maker is None:
        from .database import db_manager

        engine = db_manager.get_engine()
        async_session_maker = async_sessionmaker(engine, expire_on_commit=False)
    return async_session_maker


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields an AsyncSession."""
    maker = _get_session_maker()
    async with maker() as session:
        yield session
