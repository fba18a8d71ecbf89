"""Service layer for assistant records

Assistants are configuration that runs point at: a run copies the
assistant's model, instructions and tools unless the request overrides
them. Only creation and lookup are needed by the run lifecycle.
"""

import structlog
from fastapi import Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.orm import Assistant as AssistantORM
from ..core.orm import get_session
from ..models import Assistant, AssistantCreate
from ..utils import generate_id, to_unix

logger = structlog.getLogger(__name__)


def to_pydantic(row: AssistantORM) -> Assistant:
    """Convert SQLAlchemy ORM object to the API model."""
    return Assistant(
        id=row.assistant_id,
        created_at=to_unix(row.created_at),
        name=row.name,
        description=row.description,
        model=row.model,
        instructions=row.instructions,
        tools=row.tools or [],
        metadata=row.metadata_dict or {},
    )


async def find_assistant(session: AsyncSession, assistant_id: str) -> AssistantORM:
    """Return the assistant row or raise 404"""
    assistant = await session.scalar(
        select(AssistantORM).where(AssistantORM.assistant_id == assistant_id)
    )
    if not assistant:
        raise HTTPException(404, f"Assistant '{assistant_id}' not found")
    return assistant


class AssistantService:
    """Service for managing assistants"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_assistant(self, request: AssistantCreate) -> Assistant:
        assistant_orm = AssistantORM(
            assistant_id=generate_id("asst"),
            name=request.name,
            description=request.description,
            model=request.model,
            instructions=request.instructions,
            tools=request.tools,
            metadata_dict=request.metadata or {},
        )
        self.session.add(assistant_orm)
        await self.session.commit()
        await self.session.refresh(assistant_orm)

        logger.info(f"[create_assistant] assistant_id={assistant_orm.assistant_id}")
        return to_pydantic(assistant_orm)

    async def get_assistant(self, assistant_id: str) -> Assistant:
        return to_pydantic(await find_assistant(self.session, assistant_id))


def get_assistant_service(
    session: AsyncSession = Depends(get_session),
) -> AssistantService:
    """Dependency injection for AssistantService"""
    return AssistantService(session)
