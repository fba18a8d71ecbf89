"""Request logging middleware built on structlog"""

import time

import structlog
from asgi_correlation_id import correlation_id
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = structlog.getLogger("assistant_runs.access")


class StructLogMiddleware:
    """Log one structured ``http_request`` event per request.

    The correlation id set by ``CorrelationIdMiddleware`` (when present) is
    bound into structlog contextvars so that every log line emitted while
    handling the request carries it. Exceptions are logged and re-raised so
    that application-level exception handlers still produce the response.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        structlog.contextvars.clear_contextvars()
        request_id = correlation_id.get()
        if request_id:
            structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            logger.exception(
                "http_request_failed",
                method=scope.get("method"),
                path=scope.get("path"),
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise
        else:
            logger.info(
                "http_request",
                method=scope.get("method"),
                path=scope.get("path"),
                status_code=status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
        finally:
            structlog.contextvars.clear_contextvars()
