"""Health check endpoints"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from .database import db_manager

router = APIRouter()


@router.get("/")
async def health() -> JSONResponse:
    """Liveness plus a database round trip"""
    database_ok = await db_manager.ping()
    return JSONResponse(
        status_code=200 if database_ok else 503,
        content={
            "status": "healthy" if database_ok else "unhealthy",
            "database": "ok" if database_ok else "unavailable",
        },
    )
