"""Run Store helpers shared by the run controller and the execution worker

Status writes are always conditional: ``UPDATE runs SET status = :target
WHERE run_id = :id AND status IN (:expected)``. The rowcount tells the caller
whether it won; nothing is read back and re-checked in Python.
"""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..constants import TOOL_CALLS_STEP_TYPE
from ..core.orm import Run as RunORM
from ..core.orm import RunStep as RunStepORM
from ..models import Run, RunStep
from ..utils import to_unix
from ..utils.run_status import sources_for


def run_to_pydantic(row: RunORM) -> Run:
    return Run(
        id=row.run_id,
        created_at=to_unix(row.created_at),
        thread_id=row.thread_id,
        assistant_id=row.assistant_id,
        status=row.status,
        required_action=row.required_action,
        last_error=row.last_error,
        expires_at=to_unix(row.expires_at),
        started_at=to_unix(row.started_at),
        cancelled_at=to_unix(row.cancelled_at),
        failed_at=to_unix(row.failed_at),
        completed_at=to_unix(row.completed_at),
        model=row.model,
        instructions=row.instructions,
        tools=row.tools or [],
        metadata=row.metadata_dict or {},
    )


def step_to_pydantic(row: RunStepORM) -> RunStep:
    return RunStep(
        id=row.step_id,
        created_at=to_unix(row.created_at),
        run_id=row.run_id,
        thread_id=row.thread_id,
        assistant_id=row.assistant_id,
        type=row.type,
        status=row.status,
        step_details=row.step_details or {},
        completed_at=to_unix(row.completed_at),
    )


async def get_run_row(session: AsyncSession, run_id: str) -> RunORM | None:
    """Load a run bypassing any stale copy in the identity map."""
    return await session.scalar(
        select(RunORM)
        .where(RunORM.run_id == run_id)
        .execution_options(populate_existing=True)
    )


async def find_run(session: AsyncSession, thread_id: str, run_id: str) -> RunORM:
    """Return the run of ``thread_id`` or raise 404"""
    run_orm = await session.scalar(
        select(RunORM)
        .where(RunORM.run_id == run_id, RunORM.thread_id == thread_id)
        .execution_options(populate_existing=True)
    )
    if not run_orm:
        raise HTTPException(404, f"Run '{run_id}' not found")
    return run_orm


async def latest_tool_calls_step(
    session: AsyncSession, run_id: str, *, pending_only: bool = False
) -> RunStepORM | None:
    stmt = select(RunStepORM).where(
        RunStepORM.run_id == run_id,
        RunStepORM.type == TOOL_CALLS_STEP_TYPE,
    )
    if pending_only:
        stmt = stmt.where(RunStepORM.status == "pending")
    return await session.scalar(
        stmt.order_by(RunStepORM.created_at.desc(), RunStepORM.step_id.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )


async def update_run_status(
    session: AsyncSession,
    run_id: str,
    expected: Iterable[str],
    status: str,
    **values: Any,
) -> bool:
    """Move ``run_id`` to ``status`` if it is currently in ``expected``.

    Returns True when the row was updated. Raises ``ValueError`` if
    ``expected`` names a status the transition table does not allow to reach
    ``status``; that is a programming error, not a race.
    """
    expected = frozenset(expected)
    illegal = expected - sources_for(status)
    if illegal:
        raise ValueError(
            f"Illegal run transition {sorted(illegal)} -> '{status}'"
        )

    result = await session.execute(
        update(RunORM)
        .where(RunORM.run_id == run_id, RunORM.status.in_(sorted(expected)))
        .values(status=status, updated_at=datetime.now(UTC), **values)
        .execution_options(synchronize_session=False)
    )
    return bool(result.rowcount)
