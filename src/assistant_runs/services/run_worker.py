"""Execution worker: the consumer side of the run queue

The worker claims one job at a time, moves the run to ``in_progress``,
hands it to a pluggable executor and settles the run to the executor's
outcome. Settling and acknowledging the job happen in one transaction, so a
run is never left ``in_progress`` without a job once the worker is done with
it. A job whose worker died before acking is redelivered once the queue's
visibility timeout passes; the run is executed again from ``in_progress``,
or failed once it has been delivered more than ``RUN_JOB_MAX_ATTEMPTS``
times.

The executor is any ``async def executor(run: Run) -> RunOutcome``; it is
loaded from the ``RUN_EXECUTOR`` import path (``package.module:attribute``).
How a run is actually executed is deliberately not this module's concern.
"""

import asyncio
import contextlib
import copy
import importlib
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

import structlog
from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..constants import (
    DEFAULT_JOB_MAX_ATTEMPTS,
    DEFAULT_WORKER_POLL_INTERVAL,
    THREAD_RUN_JOB_NAME,
    TOOL_CALLS_STEP_TYPE,
)
from ..core.orm import Run as RunORM
from ..core.orm import RunJob as RunJobORM
from ..core.orm import RunStep as RunStepORM
from ..models import Run
from ..utils import generate_id
from .run_queue import ClaimedJob, DatabaseRunQueue
from .run_store import get_run_row, latest_tool_calls_step, run_to_pydantic, update_run_status

logger = structlog.getLogger(__name__)

OutcomeStatus = Literal["completed", "failed", "expired", "requires_action"]


@dataclass
class RunOutcome:
    """What an executor reports back for one execution attempt"""

    status: OutcomeStatus
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    last_error: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if self.status not in ("completed", "failed", "expired", "requires_action"):
            raise ValueError(f"Invalid run outcome status '{self.status}'")
        if self.status == "requires_action" and not self.tool_calls:
            raise ValueError("A requires_action outcome needs at least one tool call")

    @classmethod
    def failed(cls, message: str, code: str = "server_error") -> "RunOutcome":
        return cls(status="failed", last_error={"code": code, "message": message})


Executor = Callable[[Run], Awaitable[RunOutcome]]


async def complete_immediately(run: Run) -> RunOutcome:
    """Default executor: finishes every run without doing any work."""
    return RunOutcome(status="completed")


def load_executor(path: str | None = None) -> Executor:
    """Resolve ``module:attribute`` to an executor callable."""
    path = path or os.getenv("RUN_EXECUTOR")
    if not path:
        return complete_immediately

    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"Invalid RUN_EXECUTOR '{path}'. Expected 'package.module:attribute'"
        )
    module = importlib.import_module(module_name)
    executor = getattr(module, attr)
    if not callable(executor):
        raise ValueError(f"RUN_EXECUTOR '{path}' is not callable")
    logger.info(f"Loaded run executor {path}")
    return executor


def _pending_tool_calls(tool_calls: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Tool calls as stored on the step: function calls start with no output."""
    calls = copy.deepcopy(tool_calls)
    for call in calls:
        call.setdefault("id", generate_id("call"))
        if call.get("type") == "function":
            call.setdefault("function", {})["output"] = None
    return calls


def _required_action(tool_calls: list[dict[str, Any]]) -> dict[str, Any]:
    public_calls = copy.deepcopy(tool_calls)
    for call in public_calls:
        if call.get("type") == "function":
            call.get("function", {}).pop("output", None)
    return {
        "type": "submit_tool_outputs",
        "submit_tool_outputs": {"tool_calls": public_calls},
    }


class RunWorker:
    """Polls the run queue and drives claimed runs through execution"""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        executor: Executor | None = None,
        *,
        name: str = THREAD_RUN_JOB_NAME,
        poll_interval: float | None = None,
        visibility_timeout: float | None = None,
        max_attempts: int | None = None,
    ):
        self.session_maker = session_maker
        self.executor = executor or complete_immediately
        self.name = name
        self.poll_interval = (
            poll_interval
            if poll_interval is not None
            else float(
                os.getenv("RUN_WORKER_POLL_INTERVAL", DEFAULT_WORKER_POLL_INTERVAL)
            )
        )
        self.visibility_timeout = visibility_timeout
        self.max_attempts = (
            max_attempts
            if max_attempts is not None
            else int(os.getenv("RUN_JOB_MAX_ATTEMPTS", DEFAULT_JOB_MAX_ATTEMPTS))
        )

    async def run(self, stop_event: asyncio.Event) -> None:
        """Main worker loop, returns once ``stop_event`` is set."""
        logger.info(f"Run worker started name={self.name}")
        while not stop_event.is_set():
            try:
                if await self.process_next():
                    continue
                await self.sweep_cancelling()
            except Exception as e:
                logger.exception(f"Run worker error: {e}")

            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
        logger.info("Run worker stopped")

    async def process_next(self) -> bool:
        """Claim and process one job. Returns False when the queue is empty."""
        async with self.session_maker() as session:
            queue = DatabaseRunQueue(
                session, self.name, visibility_timeout=self.visibility_timeout
            )
            job = await queue.claim()
            if job is None:
                await session.rollback()
                return False
            await session.commit()

            run_id = job.run_id
            run_orm = await get_run_row(session, run_id)
            if run_orm is None:
                logger.warning(f"[worker] job for unknown run run_id={run_id}")
                await self._finish(session, queue, job)
                return True

            if job.attempts > self.max_attempts:
                await self._give_up(session, queue, job)
                return True

            started = await update_run_status(
                session,
                run_id,
                {"queued"},
                "in_progress",
                started_at=func.coalesce(RunORM.started_at, datetime.now(UTC)),
            )
            if not started:
                current = await get_run_row(session, run_id)
                if not (job.redelivered and current.status == "in_progress"):
                    await session.rollback()
                    await self._settle_cancelled(session, queue, job)
                    return True
                logger.warning(
                    f"[worker] resuming run left in_progress by a previous attempt run_id={run_id}"
                )

            run = run_to_pydantic(await get_run_row(session, run_id))
            # No transaction stays open while the executor runs
            await session.commit()
            logger.info(f"[worker] run started run_id={run_id} attempt={job.attempts}")

            try:
                outcome = await self.executor(run)
            except Exception as e:
                logger.exception(f"[worker] executor failed run_id={run_id}")
                outcome = RunOutcome.failed(str(e) or type(e).__name__)

            await self._settle(session, queue, job, run, outcome)
            return True

    async def _give_up(
        self, session: AsyncSession, queue: DatabaseRunQueue, job: ClaimedJob
    ) -> None:
        """Fail a run whose job keeps being redelivered without being settled."""
        failed = await update_run_status(
            session,
            job.run_id,
            {"queued", "in_progress"},
            "failed",
            failed_at=datetime.now(UTC),
            last_error={
                "code": "server_error",
                "message": f"Run was not settled after {self.max_attempts} attempts",
            },
        )
        if not failed:
            await session.rollback()
            await self._settle_cancelled(session, queue, job)
            return

        await self._finish(session, queue, job)
        logger.error(
            f"[worker] run failed after repeated delivery run_id={job.run_id} attempts={job.attempts}"
        )

    async def _settle(
        self,
        session: AsyncSession,
        queue: DatabaseRunQueue,
        job: ClaimedJob,
        run: Run,
        outcome: RunOutcome,
    ) -> None:
        now = datetime.now(UTC)
        values: dict[str, Any] = {}
        if outcome.status == "requires_action":
            step = await self._pending_step(session, run, outcome.tool_calls)
            values["required_action"] = _required_action(
                step.step_details["tool_calls"]
            )
        elif outcome.status == "completed":
            values["completed_at"] = now
        elif outcome.status == "failed":
            values["failed_at"] = now
            values["last_error"] = outcome.last_error
        elif outcome.status == "expired":
            values["expires_at"] = func.coalesce(RunORM.expires_at, now)

        settled = await update_run_status(
            session, run.id, {"in_progress"}, outcome.status, **values
        )
        if not settled:
            # Cancelled while executing; drop the outcome
            await session.rollback()
            await self._settle_cancelled(session, queue, job)
            return

        await self._finish(session, queue, job)
        logger.info(f"[worker] run settled run_id={run.id} status={outcome.status}")

    async def _pending_step(
        self, session: AsyncSession, run: Run, tool_calls: list[dict[str, Any]]
    ) -> RunStepORM:
        """Lookup-or-create the run's single pending tool_calls step."""
        step_details = {
            "type": TOOL_CALLS_STEP_TYPE,
            "tool_calls": _pending_tool_calls(tool_calls),
        }
        step = await latest_tool_calls_step(session, run.id, pending_only=True)
        if step is not None:
            step.step_details = step_details
        else:
            step = RunStepORM(
                step_id=generate_id("step"),
                run_id=run.id,
                thread_id=run.thread_id,
                assistant_id=run.assistant_id,
                type=TOOL_CALLS_STEP_TYPE,
                status="pending",
                step_details=step_details,
            )
            session.add(step)
        await session.flush()
        return step

    async def _settle_cancelled(
        self, session: AsyncSession, queue: DatabaseRunQueue, job: ClaimedJob
    ) -> None:
        """Finish a job whose run is no longer runnable."""
        cancelled = await update_run_status(
            session, job.run_id, {"cancelling"}, "cancelled"
        )
        if cancelled:
            logger.info(f"[worker] run cancelled run_id={job.run_id}")
        else:
            run_orm = await get_run_row(session, job.run_id)
            logger.warning(
                f"[worker] dropping stale job run_id={job.run_id} status={run_orm.status if run_orm else None}"
            )
        await self._finish(session, queue, job)

    async def _finish(
        self, session: AsyncSession, queue: DatabaseRunQueue, job: ClaimedJob
    ) -> None:
        await queue.ack(job.job_id)
        await session.commit()

    async def sweep_cancelling(self) -> int:
        """Settle ``cancelling`` runs that no job will ever pick up.

        A run cancelled while paused in ``requires_action`` has no job, so
        the queue race in the controller cannot finish it.
        """
        async with self.session_maker() as session:
            result = await session.scalars(
                select(RunORM.run_id).where(
                    RunORM.status == "cancelling",
                    ~exists().where(RunJobORM.job_id == RunORM.run_id),
                )
            )
            settled = 0
            for run_id in result.all():
                if await update_run_status(session, run_id, {"cancelling"}, "cancelled"):
                    settled += 1
            await session.commit()

        if settled:
            logger.info(f"[worker] swept cancelling runs settled={settled}")
        return settled
