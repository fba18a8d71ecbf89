"""Test application and HTTP client helpers"""

import httpx
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assistant_runs.api.assistants import router as assistants_router
from assistant_runs.api.runs import router as runs_router
from assistant_runs.api.threads import router as threads_router
from assistant_runs.core.orm import get_session
from assistant_runs.main import register_exception_handlers


def create_test_app(session_maker: async_sessionmaker[AsyncSession]) -> FastAPI:
    """Build an app with the real routers bound to the test database"""
    app = FastAPI()
    app.include_router(assistants_router)
    app.include_router(threads_router)
    app.include_router(runs_router)
    register_exception_handlers(app)

    async def override_get_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    return app


def make_client(app: FastAPI) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    )
