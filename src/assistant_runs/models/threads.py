"""Thread and message Pydantic models"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    """Initial message attached to a new thread"""

    role: Literal["user", "assistant"] = "user"
    content: str | list[dict[str, Any]]
    metadata: dict[str, Any] | None = None


class ThreadCreate(BaseModel):
    """Request model for creating threads"""

    messages: list[MessageCreate] = Field(
        default_factory=list, description="Messages to start the thread with"
    )
    metadata: dict[str, Any] | None = Field(None, description="Thread metadata")


class Thread(BaseModel):
    """Thread entity model"""

    id: str
    object: Literal["thread"] = "thread"
    created_at: int
    metadata: dict[str, Any] = Field(default_factory=dict)

