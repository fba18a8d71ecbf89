"""Run Lifecycle Controller

Validates run requests, persists status transitions and talks to the run
queue. The controller never executes a run: it hands runs to the worker by
enqueueing a job keyed by run id, and it takes them back either by removing
that job before it is claimed (cancellation) or by resuming a run paused in
``requires_action`` once tool outputs arrive.

No request holds a lock. Each status write is a conditional update and the
rowcount decides the outcome, so a concurrent worker transition surfaces as
a 409 instead of being overwritten.
"""

import copy
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import Depends, HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..constants import (
    MANAGED_TOOL_TYPES,
    SUBMITTABLE_TOOL_TYPES,
    THREAD_RUN_JOB_NAME,
)
from ..core.orm import Assistant as AssistantORM
from ..core.orm import Run as RunORM
from ..core.orm import RunStep as RunStepORM
from ..core.orm import get_session
from ..models import (
    ListResponse,
    PaginationParams,
    Run,
    RunCreate,
    RunModify,
    RunStep,
    SubmitToolOutputsResponse,
    ThreadAndRunCreate,
    ToolOutput,
)
from ..utils import generate_id
from ..utils.pagination import paginate, paginated_object
from ..utils.run_status import (
    TOOL_OUTPUT_STATUSES,
    ensure_status_in,
    ensure_transition,
    sources_for,
)
from .assistant_service import find_assistant
from .run_queue import TaskQueue, get_run_queue
from .run_store import (
    find_run,
    latest_tool_calls_step,
    run_to_pydantic,
    step_to_pydantic,
    update_run_status,
)
from .thread_service import add_thread, find_thread

logger = structlog.getLogger(__name__)


def apply_tool_outputs(
    step: RunStepORM, tool_outputs: list[ToolOutput]
) -> list[dict[str, Any]]:
    """Return a copy of the step's tool calls with ``tool_outputs`` written in.

    Raises before anything is persisted, so a rejected submission leaves the
    stored step untouched.
    """
    tool_calls = (step.step_details or {}).get("tool_calls")
    if not isinstance(tool_calls, list):
        logger.error(
            f"[submit_tool_outputs] step without tool_calls list step_id={step.step_id} run_id={step.run_id}"
        )
        raise HTTPException(500, f"Run step '{step.step_id}' has no tool calls")

    tool_calls = copy.deepcopy(tool_calls)
    calls_by_id = {call.get("id"): call for call in tool_calls}
    seen: set[str] = set()

    for tool_output in tool_outputs:
        call_id = tool_output.tool_call_id
        if call_id in seen:
            raise HTTPException(400, f"Duplicate tool call '{call_id}' in tool outputs")
        seen.add(call_id)

        call = calls_by_id.get(call_id)
        if call is None:
            raise HTTPException(400, f"Invalid tool call '{call_id}'")

        call_type = call.get("type")
        if call_type in SUBMITTABLE_TOOL_TYPES:
            function = call.setdefault("function", {})
            if function.get("output") is not None:
                raise HTTPException(
                    400, f"Tool call '{call_id}' already has an output"
                )
            function["output"] = tool_output.output
        elif call_type in MANAGED_TOOL_TYPES:
            raise HTTPException(
                400,
                f"Tool call '{call_id}' is a {call_type} call; third-party "
                "tool calls are not supported at this time",
            )
        else:
            logger.error(
                f"[submit_tool_outputs] unknown tool call type={call_type!r} call_id={call_id} step_id={step.step_id}"
            )
            raise HTTPException(500, "Invalid tool call type")

    missing = [
        call.get("id")
        for call in tool_calls
        if call.get("type") in SUBMITTABLE_TOOL_TYPES
        and (call.get("function") or {}).get("output") is None
    ]
    if missing:
        raise HTTPException(
            400, f"Missing tool outputs for tool calls: {', '.join(missing)}"
        )
    return tool_calls


class RunService:
    """Run Lifecycle Controller bound to one session and queue"""

    def __init__(self, session: AsyncSession, queue: TaskQueue):
        self.session = session
        self.queue = queue

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _stage_run(
        self, thread_id: str, assistant: AssistantORM, request: RunCreate
    ) -> RunORM:
        run_orm = RunORM(
            run_id=generate_id("run"),
            thread_id=thread_id,
            assistant_id=assistant.assistant_id,
            status="queued",
            model=request.model or assistant.model,
            instructions=(
                request.instructions
                if request.instructions is not None
                else assistant.instructions
            ),
            tools=request.tools if request.tools is not None else (assistant.tools or []),
            metadata_dict=request.metadata or {},
        )
        self.session.add(run_orm)
        return run_orm

    async def _enqueue(self, run_id: str) -> None:
        added = await self.queue.add(
            THREAD_RUN_JOB_NAME, {"runId": run_id}, job_id=run_id
        )
        if not added:
            # The outstanding job will pick the run up as it is now
            logger.warning(f"[enqueue] job already outstanding run_id={run_id}")

    async def create_run(self, thread_id: str, request: RunCreate) -> Run:
        await find_thread(self.session, thread_id)
        assistant = await find_assistant(self.session, request.assistant_id)

        run_orm = self._stage_run(thread_id, assistant, request)
        await self._enqueue(run_orm.run_id)
        await self.session.commit()
        await self.session.refresh(run_orm)

        logger.info(
            f"[create_run] queued run_id={run_orm.run_id} thread_id={thread_id} assistant_id={assistant.assistant_id}"
        )
        return run_to_pydantic(run_orm)

    async def create_thread_and_run(self, request: ThreadAndRunCreate) -> Run:
        assistant = await find_assistant(self.session, request.assistant_id)

        thread_orm = await add_thread(self.session, request.thread)
        run_orm = self._stage_run(thread_orm.thread_id, assistant, request)
        await self._enqueue(run_orm.run_id)
        await self.session.commit()
        await self.session.refresh(run_orm)

        logger.info(
            f"[create_thread_and_run] queued run_id={run_orm.run_id} thread_id={thread_orm.thread_id}"
        )
        return run_to_pydantic(run_orm)

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    async def get_run(self, thread_id: str, run_id: str) -> Run:
        return run_to_pydantic(await find_run(self.session, thread_id, run_id))

    async def list_runs(
        self, thread_id: str, params: PaginationParams
    ) -> ListResponse[Run]:
        await find_thread(self.session, thread_id)
        rows, has_more = await paginate(
            self.session,
            select(RunORM).where(RunORM.thread_id == thread_id),
            created_col=RunORM.created_at,
            id_col=RunORM.run_id,
            params=params,
        )
        logger.info(
            f"[list_runs] thread_id={thread_id} count={len(rows)} has_more={has_more}"
        )
        return paginated_object(rows, has_more, run_to_pydantic)

    async def list_run_steps(
        self, thread_id: str, run_id: str, params: PaginationParams
    ) -> ListResponse[RunStep]:
        await find_run(self.session, thread_id, run_id)
        rows, has_more = await paginate(
            self.session,
            select(RunStepORM).where(RunStepORM.run_id == run_id),
            created_col=RunStepORM.created_at,
            id_col=RunStepORM.step_id,
            params=params,
        )
        return paginated_object(rows, has_more, step_to_pydantic)

    async def get_run_step(self, thread_id: str, run_id: str, step_id: str) -> RunStep:
        await find_run(self.session, thread_id, run_id)
        step = await self.session.scalar(
            select(RunStepORM).where(
                RunStepORM.step_id == step_id, RunStepORM.run_id == run_id
            )
        )
        if not step:
            raise HTTPException(404, f"Run step '{step_id}' not found")
        return step_to_pydantic(step)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def modify_run(self, thread_id: str, run_id: str, request: RunModify) -> Run:
        """Merge metadata into the run. Status is never writable here."""
        extra = request.model_extra or {}
        if "status" in extra:
            raise HTTPException(
                400,
                "Run status cannot be modified; use the cancel or "
                "submit_tool_outputs endpoints",
            )
        if extra:
            raise HTTPException(
                400, f"Unsupported fields for modify run: {', '.join(sorted(extra))}"
            )

        run_orm = await find_run(self.session, thread_id, run_id)
        if request.metadata is None:
            return run_to_pydantic(run_orm)

        # Read-modify-write to avoid DB-specific JSON concat operators
        await self.session.execute(
            update(RunORM)
            .where(RunORM.run_id == run_id)
            .values(
                {
                    RunORM.metadata_dict: {
                        **(run_orm.metadata_dict or {}),
                        **request.metadata,
                    },
                    RunORM.updated_at: datetime.now(UTC),
                }
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

        logger.info(
            f"[modify_run] metadata updated run_id={run_id} keys={sorted(request.metadata)}"
        )
        return run_to_pydantic(await find_run(self.session, thread_id, run_id))

    async def submit_tool_outputs(
        self, thread_id: str, run_id: str, tool_outputs: list[ToolOutput]
    ) -> SubmitToolOutputsResponse:
        """Write tool outputs into the pending step and resume the run.

        The step update, the ``requires_action -> queued`` transition and the
        new queue job commit together or not at all.
        """
        run_orm = await find_run(self.session, thread_id, run_id)

        step = await latest_tool_calls_step(self.session, run_id)
        if not step:
            raise HTTPException(404, f"No tool call step found for run '{run_id}'")

        ensure_status_in(run_orm.status, TOOL_OUTPUT_STATUSES, "submit tool outputs")

        tool_calls = apply_tool_outputs(step, tool_outputs)
        now = datetime.now(UTC)

        step_result = await self.session.execute(
            update(RunStepORM)
            .where(RunStepORM.step_id == step.step_id, RunStepORM.status == "pending")
            .values(
                status="completed",
                completed_at=now,
                step_details={**(step.step_details or {}), "tool_calls": tool_calls},
            )
            .execution_options(synchronize_session=False)
        )
        resumed = bool(step_result.rowcount) and await update_run_status(
            self.session,
            run_id,
            TOOL_OUTPUT_STATUSES,
            "queued",
            required_action=None,
        )
        if not resumed:
            await self.session.rollback()
            logger.warning(
                f"[submit_tool_outputs] lost race run_id={run_id} step_id={step.step_id}"
            )
            raise HTTPException(
                409, f"Run '{run_id}' changed while submitting tool outputs"
            )

        await self._enqueue(run_id)
        await self.session.commit()

        logger.info(
            f"[submit_tool_outputs] resumed run_id={run_id} step_id={step.step_id} outputs={len(tool_outputs)}"
        )
        return SubmitToolOutputsResponse(run_id=run_id, thread_id=thread_id)

    async def cancel_run(self, thread_id: str, run_id: str) -> Run:
        """Signal cancellation, then try to win the race against the worker.

        If the run's job is still waiting it is removed and the run is
        cancelled immediately. Otherwise the run stays ``cancelling`` and the
        worker settles it.

        Setting ``cancelling`` is not unconditional: a ``cancelled`` run is
        returned unchanged and a ``completed``, ``failed`` or ``expired`` run
        is rejected with 400, since no transition leaves a terminal status.
        """
        run_orm = await find_run(self.session, thread_id, run_id)
        if run_orm.status == "cancelled":
            logger.info(f"[cancel_run] already cancelled run_id={run_id}")
            return run_to_pydantic(run_orm)

        ensure_transition(run_orm.status, "cancelling", "cancel run")

        signalled = await update_run_status(
            self.session,
            run_id,
            sources_for("cancelling"),
            "cancelling",
            cancelled_at=func.coalesce(RunORM.cancelled_at, datetime.now(UTC)),
        )
        if not signalled:
            await self.session.rollback()
            current = await find_run(self.session, thread_id, run_id)
            if current.status == "cancelled":
                return run_to_pydantic(current)
            ensure_transition(current.status, "cancelling", "cancel run")
            raise HTTPException(409, f"Run '{run_id}' changed while cancelling")
        await self.session.commit()
        logger.info(f"[cancel_run] status=cancelling run_id={run_id}")

        removed = await self.queue.remove(run_id)
        if removed:
            settled = await update_run_status(
                self.session, run_id, {"cancelling"}, "cancelled"
            )
            logger.info(
                f"[cancel_run] removed waiting job run_id={run_id} settled={settled}"
            )
        else:
            logger.info(
                f"[cancel_run] job already claimed or absent, left to worker run_id={run_id}"
            )
        await self.session.commit()

        return run_to_pydantic(await find_run(self.session, thread_id, run_id))


def get_run_service(
    session: AsyncSession = Depends(get_session),
    queue: TaskQueue = Depends(get_run_queue),
) -> RunService:
    """Dependency injection for RunService"""
    return RunService(session, queue)
