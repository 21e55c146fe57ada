from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from . import __version__
from .config import settings
from .engine import ReviewEngine
from .errors import ConflictError, EngineError, NotFoundError, StorageError, ValidationError
from .jobs import BackgroundJobs
from .logging import configure_logging, logger
from .routers import health
from .routers import learners as learners_router
from .routers import sessions as sessions_router

_STATUS_BY_ERROR: list[tuple[type[EngineError], int]] = [
    (NotFoundError, 404),
    (ConflictError, 409),
    (ValidationError, 422),
    (StorageError, 503),
]


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Emit one structured `request_complete` line per request.

    リクエストごとに `request_id` を採番し、レイテンシと成否を構造化ログへ記録する。
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:  # type: ignore[override]
        start = time.time()
        request_id = request.headers.get("x-request-id") or uuid4().hex
        request.state.request_id = request_id
        status_code: int | None = None
        is_error = False
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        except Exception:
            is_error = True
            status_code = 500
            raise
        finally:
            log_method = logger.error if is_error else logger.info
            log_method(
                "request_complete",
                path=request.url.path,
                method=request.method,
                status_code=status_code,
                latency_ms=(time.time() - start) * 1000,
                is_error=is_error,
                request_id=request_id,
            )


async def _engine_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = 500
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code >= 500:
        logger.error("engine_error", error_type=exc.__class__.__name__, error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": exc.__class__.__name__},
    )


def create_app(engine: ReviewEngine | None = None, *, run_background: bool = True) -> FastAPI:
    """Create and configure the FastAPI application instance.

    engine を渡さない場合は設定に従ってストアを選び、バックグラウンドの再計算用
    ワーカープールを備えたエンジンを生成する。
    """
    configure_logging()
    if engine is None:
        engine = ReviewEngine(settings=settings, jobs=BackgroundJobs(max_workers=settings.background_workers))

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if run_background:
            engine.start_background()
        logger.info("app_started", store_backend=settings.store_backend, environment=settings.environment)
        try:
            yield
        finally:
            # 周期ジョブとワーカープールを停止する
            engine.stop_background()

    app = FastAPI(title="Review Engine API", version=__version__, lifespan=lifespan)
    app.state.engine = engine

    app.add_middleware(AccessLogMiddleware)
    app.add_exception_handler(EngineError, _engine_error_handler)

    app.include_router(health.router)
    app.include_router(learners_router.router, prefix="/api/learners")
    app.include_router(sessions_router.router, prefix="/api/sessions")
    return app


app = create_app()
