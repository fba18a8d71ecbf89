"""FastAPI application for the Assistant Runs server"""

import asyncio
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ruff: noqa: E402 - imports below read configuration loaded above
import sentry_sdk
import structlog
from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration

from . import __version__
from .api.assistants import router as assistants_router
from .api.runs import router as runs_router
from .api.threads import router as threads_router
from .core.database import db_manager
from .core.health import router as health_router
from .core.orm import _get_session_maker
from .middleware import StructLogMiddleware
from .models.errors import AgentProtocolError, get_error_type
from .services.run_worker import RunWorker, load_executor
from .utils.setup_logging import setup_logging

setup_logging()
logger = structlog.getLogger(__name__)

sentry_sdk.init(
    dsn=os.getenv("SENTRY_DSN"),
    environment=os.getenv("SENTRY_ENVIRONMENT"),
    send_default_pii=True,
    disabled_integrations=[FastApiIntegration()],
)


def worker_enabled() -> bool:
    return os.getenv("RUN_WORKER_ENABLED", "false").lower() == "true"


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """FastAPI lifespan context manager for startup/shutdown"""
    await db_manager.initialize()

    stop_event = asyncio.Event()
    worker_task: asyncio.Task | None = None
    if worker_enabled():
        worker = RunWorker(_get_session_maker(), load_executor())
        worker_task = asyncio.create_task(worker.run(stop_event))
        logger.info("✅ Run worker started")

    yield

    # Shutdown: let the worker finish its current job, then close connections
    stop_event.set()
    if worker_task is not None:
        await worker_task

    await db_manager.close()


# Create FastAPI application
app = FastAPI(
    title="Assistant Runs",
    description="OpenAI-compatible threads/runs server with a queue-backed run lifecycle",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

health_app = FastAPI()
main_app = FastAPI()


app.mount("/health", health_app)
app.mount("/", main_app)


health_app.include_router(health_router, prefix="", tags=["Health"])

main_app.add_middleware(StructLogMiddleware)
main_app.add_middleware(CorrelationIdMiddleware)

# Add CORS middleware
main_app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
main_app.include_router(assistants_router, prefix="", tags=["Assistants"])
main_app.include_router(threads_router, prefix="", tags=["Threads"])
main_app.include_router(runs_router, prefix="", tags=["Runs"])


# Error handling
async def agent_protocol_exception_handler(
    _request: Request, exc: HTTPException
) -> JSONResponse:
    """Convert HTTP exceptions to the error envelope"""
    return JSONResponse(
        status_code=exc.status_code,
        content=AgentProtocolError(
            error=get_error_type(exc.status_code),
            message=exc.detail,
            details=getattr(exc, "details", None),
        ).model_dump(),
    )


async def validation_exception_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=AgentProtocolError(
            error=get_error_type(422),
            message="Request validation failed",
            details={"errors": jsonable_errors(exc)},
        ).model_dump(),
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


async def general_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions"""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content=AgentProtocolError(
            error="internal_error",
            message="An unexpected error occurred",
            details={"exception": str(exc)},
        ).model_dump(),
    )


def register_exception_handlers(target: FastAPI) -> None:
    target.add_exception_handler(HTTPException, agent_protocol_exception_handler)
    target.add_exception_handler(RequestValidationError, validation_exception_handler)
    target.add_exception_handler(Exception, general_exception_handler)


register_exception_handlers(main_app)


@main_app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint"""
    return {"message": "Assistant Runs", "version": __version__, "status": "running"}


app = SentryAsgiMiddleware(app)

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(app, host="0.0.0.0", port=port)  # nosec B104 - binding to all interfaces is intentional
