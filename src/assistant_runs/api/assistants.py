"""Assistant endpoints

Assistants are only needed here as the configuration runs execute against,
so the surface is limited to create and get.
"""

from fastapi import APIRouter, Depends

from ..models import Assistant, AssistantCreate
from ..services.assistant_service import AssistantService, get_assistant_service

router = APIRouter()


@router.post("/assistants", response_model=Assistant)
async def create_assistant(
    request: AssistantCreate,
    service: AssistantService = Depends(get_assistant_service),
):
    """Create a new assistant"""
    return await service.create_assistant(request)


@router.get("/assistants/{assistant_id}", response_model=Assistant)
async def get_assistant(
    assistant_id: str,
    service: AssistantService = Depends(get_assistant_service),
):
    """Get assistant by ID"""
    return await service.get_assistant(assistant_id)
