"""Pydantic models for the assistant runs API"""

from .assistants import Assistant, AssistantCreate
from .common import ListResponse, PaginationParams
from .errors import AgentProtocolError, get_error_type
from .runs import (
    Run,
    RunCreate,
    RunModify,
    RunStep,
    SubmitToolOutputsRequest,
    SubmitToolOutputsResponse,
    ThreadAndRunCreate,
    ToolOutput,
)
from .threads import MessageCreate, Thread, ThreadCreate

__all__ = [
    "AgentProtocolError",
    "Assistant",
    "AssistantCreate",
    "ListResponse",
    "MessageCreate",
    "PaginationParams",
    "Run",
    "RunCreate",
    "RunModify",
    "RunStep",
    "SubmitToolOutputsRequest",
    "SubmitToolOutputsResponse",
    "Thread",
    "ThreadAndRunCreate",
    "ThreadCreate",
    "ToolOutput",
    "get_error_type",
]
