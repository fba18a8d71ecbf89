"""Shared request/response models"""

from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginationParams(BaseModel):
    """Query parameters accepted by every list endpoint"""

    limit: int = Field(20, ge=1, le=100, description="Number of objects to return")
    order: Literal["asc", "desc"] = Field(
        "desc", description="Sort order by created_at"
    )
    after: str | None = Field(None, description="Cursor: object id to start after")
    before: str | None = Field(None, description="Cursor: object id to end before")


class ListResponse(BaseModel, Generic[T]):
    """OpenAI-style paginated list envelope"""

    object: Literal["list"] = "list"
    data: list[T]
    first_id: str | None = None
    last_id: str | None = None
    has_more: bool = False
