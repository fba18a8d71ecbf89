"""Run-related Pydantic models (OpenAI Assistants compatible)"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.run_status import RunStatusValue, validate_run_status
from .threads import ThreadCreate


class RunCreate(BaseModel):
    """Request model for creating a run on an existing thread"""

    assistant_id: str = Field(..., description="Assistant to execute")
    model: str | None = Field(
        None, description="Overrides the assistant's model for this run"
    )
    instructions: str | None = Field(
        None, description="Overrides the assistant's instructions for this run"
    )
    tools: list[dict[str, Any]] | None = Field(
        None, description="Overrides the assistant's tools for this run"
    )
    metadata: dict[str, Any] | None = Field(None, description="Run metadata")


class ThreadAndRunCreate(RunCreate):
    """Request model for creating a thread and a run in one call"""

    thread: ThreadCreate | None = Field(
        None, description="Thread to create (messages and metadata)"
    )


class RunModify(BaseModel):
    """Patch accepted by modify run.

    Only ``metadata`` is modifiable. Unknown keys are kept in
    ``model_extra`` so the service can reject them by name (notably
    ``status``, which only the lifecycle endpoints may change).
    """

    metadata: dict[str, Any] | None = Field(None, description="Metadata to merge")

    model_config = ConfigDict(extra="allow")


class ToolOutput(BaseModel):
    tool_call_id: str = Field(..., description="Id of the tool call being answered")
    output: str = Field(..., description="Output of the tool call")


class SubmitToolOutputsRequest(BaseModel):
    """Request model for submitting tool outputs to a paused run"""

    tool_outputs: list[ToolOutput] = Field(..., min_length=1)


class SubmitToolOutputsResponse(BaseModel):
    run_id: str
    thread_id: str


class Run(BaseModel):
    """Run entity model

    Status values: queued, in_progress, requires_action, cancelling,
    cancelled, completed, failed, expired
    """

    id: str
    object: Literal["thread.run"] = "thread.run"
    created_at: int
    thread_id: str
    assistant_id: str
    status: RunStatusValue
    required_action: dict[str, Any] | None = None
    last_error: dict[str, Any] | None = None
    expires_at: int | None = None
    started_at: int | None = None
    cancelled_at: int | None = None
    failed_at: int | None = None
    completed_at: int | None = None
    model: str | None = None
    instructions: str | None = None
    tools: list[dict[str, Any]] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if not isinstance(v, str):
            raise ValueError(f"Status must be a string, got {type(v)}")
        return validate_run_status(v)


class RunStep(BaseModel):
    """Run step entity model"""

    id: str
    object: Literal["thread.run.step"] = "thread.run.step"
    created_at: int
    run_id: str
    thread_id: str
    assistant_id: str
    type: Literal["tool_calls", "message_creation"]
    status: Literal["pending", "completed"]
    step_details: dict[str, Any] = Field(default_factory=dict)
    completed_at: int | None = None
