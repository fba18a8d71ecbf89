"""Run endpoints (OpenAI Assistants compatible)

Route handlers stay thin; lifecycle rules live in ``RunService``.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..models import (
    ListResponse,
    PaginationParams,
    Run,
    RunCreate,
    RunModify,
    RunStep,
    SubmitToolOutputsRequest,
    SubmitToolOutputsResponse,
    ThreadAndRunCreate,
)
from ..services.run_service import RunService, get_run_service

router = APIRouter()


@router.post("/threads/runs", response_model=Run)
async def create_thread_and_run(
    request: ThreadAndRunCreate,
    service: RunService = Depends(get_run_service),
):
    """Create a thread and queue a run on it in one request"""
    return await service.create_thread_and_run(request)


@router.post("/threads/{thread_id}/runs", response_model=Run)
async def create_run(
    thread_id: str,
    request: RunCreate,
    service: RunService = Depends(get_run_service),
):
    """Queue a run on an existing thread"""
    return await service.create_run(thread_id, request)


@router.get("/threads/{thread_id}/runs", response_model=ListResponse[Run])
async def list_runs(
    thread_id: str,
    params: Annotated[PaginationParams, Query()],
    service: RunService = Depends(get_run_service),
):
    return await service.list_runs(thread_id, params)


@router.get("/threads/{thread_id}/runs/{run_id}", response_model=Run)
async def get_run(
    thread_id: str,
    run_id: str,
    service: RunService = Depends(get_run_service),
):
    return await service.get_run(thread_id, run_id)


@router.post("/threads/{thread_id}/runs/{run_id}", response_model=Run)
async def modify_run(
    thread_id: str,
    run_id: str,
    request: RunModify,
    service: RunService = Depends(get_run_service),
):
    """Update run metadata"""
    return await service.modify_run(thread_id, run_id, request)


@router.post(
    "/threads/{thread_id}/runs/{run_id}/submit_tool_outputs",
    response_model=SubmitToolOutputsResponse,
)
async def submit_tool_outputs(
    thread_id: str,
    run_id: str,
    request: SubmitToolOutputsRequest,
    service: RunService = Depends(get_run_service),
):
    """Provide outputs for a run paused in requires_action and resume it"""
    return await service.submit_tool_outputs(thread_id, run_id, request.tool_outputs)


@router.post("/threads/{thread_id}/runs/{run_id}/cancel", response_model=Run)
async def cancel_run(
    thread_id: str,
    run_id: str,
    service: RunService = Depends(get_run_service),
):
    """Cancel a run.

    Returns ``cancelled`` when the run had not been picked up yet, otherwise
    ``cancelling`` until the worker stops it.
    """
    return await service.cancel_run(thread_id, run_id)


@router.get(
    "/threads/{thread_id}/runs/{run_id}/steps", response_model=ListResponse[RunStep]
)
async def list_run_steps(
    thread_id: str,
    run_id: str,
    params: Annotated[PaginationParams, Query()],
    service: RunService = Depends(get_run_service),
):
    return await service.list_run_steps(thread_id, run_id, params)


@router.get("/threads/{thread_id}/runs/{run_id}/steps/{step_id}", response_model=RunStep)
async def get_run_step(
    thread_id: str,
    run_id: str,
    step_id: str,
    service: RunService = Depends(get_run_service),
):
    return await service.get_run_step(thread_id, run_id, step_id)
