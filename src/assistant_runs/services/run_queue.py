"""Run queue: the hand-off point between the API and the execution worker.

The controller only needs two capabilities from a queue backend (see
``TaskQueue``): add a job keyed by run id, and remove that job if no worker
has claimed it yet. ``DatabaseRunQueue`` implements them on the
``run_jobs`` table inside the caller's transaction, which lets a run status
change and its queue interaction commit together.

Remove only deletes ``waiting`` jobs and claim moves a job out of
``waiting`` with the same guard, so for any waiting job at most one of them
succeeds. Delivery is at least once: an ``active`` job that is not acked
within the visibility timeout becomes claimable again.
"""

import os
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import structlog
from fastapi import Depends
from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from ..constants import DEFAULT_JOB_VISIBILITY_TIMEOUT, THREAD_RUN_JOB_NAME
from ..core.orm import RunJob as RunJobORM
from ..core.orm import get_session

logger = structlog.getLogger(__name__)


class TaskQueue(Protocol):
    """Capability interface the run controller depends on"""

    async def add(self, name: str, payload: dict[str, Any], *, job_id: str) -> bool:
        """Enqueue a job. Idempotent on ``job_id``; returns False if it already exists."""
        ...

    async def remove(self, job_id: str) -> int:
        """Remove a job that no worker has claimed. Returns the number removed (0 or 1)."""
        ...


@dataclass(frozen=True)
class ClaimedJob:
    """A job a worker now owns"""

    job_id: str
    name: str
    payload: dict[str, Any]
    attempts: int

    @property
    def run_id(self) -> str:
        return self.payload.get("runId", self.job_id)

    @property
    def redelivered(self) -> bool:
        return self.attempts > 1


class DatabaseRunQueue:
    """``TaskQueue`` backed by the ``run_jobs`` table.

    Every method works inside the session's current transaction and leaves
    the commit to the caller.
    """

    def __init__(
        self,
        session: AsyncSession,
        name: str = THREAD_RUN_JOB_NAME,
        *,
        visibility_timeout: float | None = None,
    ):
        self.session = session
        self.name = name
        self.visibility_timeout = (
            visibility_timeout
            if visibility_timeout is not None
            else float(
                os.getenv("RUN_JOB_VISIBILITY_TIMEOUT", DEFAULT_JOB_VISIBILITY_TIMEOUT)
            )
        )

    def _insert(self):
        if self.session.get_bind().dialect.name == "postgresql":
            return postgresql.insert(RunJobORM)
        return sqlite.insert(RunJobORM)

    async def add(self, name: str, payload: dict[str, Any], *, job_id: str) -> bool:
        result = await self.session.execute(
            self._insert()
            .values(job_id=job_id, name=name, payload=payload, status="waiting")
            .on_conflict_do_nothing(index_elements=["job_id"])
        )
        if not result.rowcount:
            logger.info(f"[queue.add] job already outstanding job_id={job_id}")
            return False

        logger.info(f"[queue.add] enqueued job_id={job_id} name={name}")
        return True

    async def remove(self, job_id: str) -> int:
        result = await self.session.execute(
            delete(RunJobORM).where(
                RunJobORM.job_id == job_id,
                RunJobORM.status == "waiting",
            )
        )
        removed = result.rowcount or 0
        logger.info(f"[queue.remove] job_id={job_id} removed={removed}")
        return removed

    def _claimable(self, now: datetime):
        """Waiting jobs, and active jobs whose claim has timed out."""
        stale_before = now - timedelta(seconds=self.visibility_timeout)
        return or_(
            RunJobORM.status == "waiting",
            and_(
                RunJobORM.status == "active",
                RunJobORM.claimed_at < stale_before,
            ),
        )

    async def claim(self) -> ClaimedJob | None:
        """Move the oldest claimable job to ``active`` and return it."""
        now = datetime.now(UTC)
        job = await self.session.scalar(
            select(RunJobORM)
            .where(RunJobORM.name == self.name, self._claimable(now))
            .order_by(RunJobORM.created_at)
            .limit(1)
            .with_for_update(skip_locked=True)
            .execution_options(populate_existing=True)
        )
        if job is None:
            return None

        result = await self.session.execute(
            update(RunJobORM)
            .where(RunJobORM.job_id == job.job_id, self._claimable(now))
            .values(
                status="active",
                attempts=RunJobORM.attempts + 1,
                claimed_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            # Removed by a cancellation or claimed elsewhere since the select
            return None

        if job.status == "active":
            logger.warning(
                f"[queue.claim] redelivering timed out job job_id={job.job_id} attempts={job.attempts + 1}"
            )
        return ClaimedJob(
            job_id=job.job_id,
            name=job.name,
            payload=dict(job.payload or {}),
            attempts=(job.attempts or 0) + 1,
        )

    async def ack(self, job_id: str) -> None:
        """Drop a claimed job once its run has been settled."""
        await self.session.execute(
            delete(RunJobORM).where(RunJobORM.job_id == job_id)
        )

    async def has_job(self, job_id: str) -> bool:
        found = await self.session.scalar(
            select(RunJobORM.job_id).where(RunJobORM.job_id == job_id)
        )
        return found is not None


def get_run_queue(session: AsyncSession = Depends(get_session)) -> DatabaseRunQueue:
    """Dependency injection for the run queue"""
    return DatabaseRunQueue(session)
