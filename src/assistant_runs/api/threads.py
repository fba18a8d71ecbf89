"""Thread endpoints"""

from fastapi import APIRouter, Depends

from ..models import Thread, ThreadCreate
from ..services.thread_service import ThreadService, get_thread_service

router = APIRouter()


@router.post("/threads", response_model=Thread)
async def create_thread(
    request: ThreadCreate,
    service: ThreadService = Depends(get_thread_service),
):
    """Create a thread, optionally seeded with messages"""
    return await service.create_thread(request)


@router.get("/threads/{thread_id}", response_model=Thread)
async def get_thread(
    thread_id: str,
    service: ThreadService = Depends(get_thread_service),
):
    return await service.get_thread(thread_id)
