"""Assistant-related Pydantic models"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class AssistantCreate(BaseModel):
    """Request model for creating assistants"""

    model: str = Field(..., description="Model the assistant runs with")
    name: str | None = Field(None, description="Human-readable assistant name")
    description: str | None = Field(None, description="Assistant description")
    instructions: str | None = Field(None, description="System instructions")
    tools: list[dict[str, Any]] = Field(
        default_factory=list, description="Tools enabled on the assistant"
    )
    metadata: dict[str, Any] | None = Field(
        None, description="Assistant metadata"
    )


class Assistant(BaseModel):
    """Assistant entity model"""

    id: str
    object: Literal["assistant"] = "assistant"
    created_at: int
    name: str | None = None
    description: str | None = None
    model: str
    instructions: str | None = None
    tools: list[dict[str, Any]] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
