"""Service layer for threads and their initial messages"""

from typing import Any

import structlog
from fastapi import Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.orm import Message as MessageORM
from ..core.orm import Thread as ThreadORM
from ..core.orm import get_session
from ..models import MessageCreate, Thread, ThreadCreate
from ..utils import generate_id, to_unix

logger = structlog.getLogger(__name__)


def to_pydantic(row: ThreadORM) -> Thread:
    return Thread(
        id=row.thread_id,
        created_at=to_unix(row.created_at),
        metadata=row.metadata_json or {},
    )


def _message_content(content: str | list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Normalize plain-text content to the content-part list format."""
    if isinstance(content, str):
        return [{"type": "text", "text": {"value": content, "annotations": []}}]
    return content


async def find_thread(session: AsyncSession, thread_id: str) -> ThreadORM:
    """Return the thread row or raise 404"""
    thread = await session.scalar(
        select(ThreadORM).where(ThreadORM.thread_id == thread_id)
    )
    if not thread:
        raise HTTPException(404, f"Thread '{thread_id}' not found")
    return thread


async def add_thread(
    session: AsyncSession, request: ThreadCreate | None
) -> ThreadORM:
    """Stage a thread and its initial messages on ``session`` without committing.

    Used on its own by create thread and together with a run by create
    thread-and-run, so both records land in one transaction.
    """
    request = request or ThreadCreate()
    thread_orm = ThreadORM(
        thread_id=generate_id("thread"),
        metadata_json=request.metadata or {},
    )
    session.add(thread_orm)
    await session.flush()
    for message in request.messages:
        session.add(_message_row(thread_orm.thread_id, message))
    return thread_orm


def _message_row(thread_id: str, message: MessageCreate) -> MessageORM:
    return MessageORM(
        message_id=generate_id("msg"),
        thread_id=thread_id,
        role=message.role,
        content=_message_content(message.content),
        metadata_dict=message.metadata or {},
    )


class ThreadService:
    """Service for managing threads"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_thread(self, request: ThreadCreate) -> Thread:
        thread_orm = await add_thread(self.session, request)
        await self.session.commit()
        await self.session.refresh(thread_orm)

        logger.info(
            f"[create_thread] thread_id={thread_orm.thread_id} messages={len(request.messages)}"
        )
        return to_pydantic(thread_orm)

    async def get_thread(self, thread_id: str) -> Thread:
        return to_pydantic(await find_thread(self.session, thread_id))


def get_thread_service(session: AsyncSession = Depends(get_session)) -> ThreadService:
    """Dependency injection for ThreadService"""
    return ThreadService(session)
