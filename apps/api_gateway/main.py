"""
API Gateway (FastAPI).

Функции:
- /health, /ready, /metrics
- /v1/videos: загрузка, список, статус, скачивание архива кадров

В QUEUE_MODE=inline консюмеры обработки и DLQ запускаются в этом же процессе.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from apps.api_gateway.deps import get_pipeline
from apps.api_gateway.routers.videos import router as videos_router
from video_frame_pipeline.common.config import get_settings
from video_frame_pipeline.common.errors import AppError, ErrCode
from video_frame_pipeline.common.logging import get_project_logger, setup_logging
from video_frame_pipeline.common.metrics import setup_metrics_endpoint
from video_frame_pipeline.services.consumer_runner import ConsumerRunner
from video_frame_pipeline.services.readiness_service import (
    enforce_startup_readiness,
    evaluate_readiness,
)
from video_frame_pipeline.storage.files import ensure_dirs

log = get_project_logger()

_STATUS_BY_CODE = {
    ErrCode.VALIDATION: 400,
    ErrCode.UNAUTHORIZED: 401,
    ErrCode.NOT_FOUND: 404,
    ErrCode.CONFLICT: 409,
    ErrCode.DB_ERROR: 503,
    ErrCode.STORAGE_ERROR: 503,
}


def _start_inline_consumers() -> list[ConsumerRunner]:
    s = get_settings()
    pipeline = get_pipeline()
    runners = [
        ConsumerRunner(
            name="inline-processing",
            bus=pipeline.bus,
            topic=pipeline.processing,
            group=s.processing_group,
            handler=pipeline.processing_consumer().handle,
            slots=s.processing_concurrency,
            block_ms=1000,
        ),
        ConsumerRunner(
            name="inline-dlq",
            bus=pipeline.bus,
            topic=pipeline.dlq,
            group=s.dlq_group,
            handler=pipeline.dlq_consumer().handle,
            slots=s.dlq_concurrency,
            block_ms=1000,
        ),
    ]
    for r in runners:
        r.start()
    return runners


def _create_app() -> FastAPI:
    app = FastAPI(title="Video Frame Pipeline", version="0.1.0")
    settings = get_settings()
    runners: list[ConsumerRunner] = []

    setup_metrics_endpoint(app)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        status_code = _STATUS_BY_CODE.get(exc.code, 500)
        if status_code >= 500:
            log.error(
                "http_app_error",
                extra={"payload": {"path": request.url.path, "code": exc.code, "err": exc.message}},
            )
        return JSONResponse(
            status_code=status_code,
            content={"detail": {"code": exc.code, "message": exc.message, "details": exc.details}},
        )

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True}

    @app.get("/ready")
    def ready() -> JSONResponse:
        state = evaluate_readiness()
        return JSONResponse(
            status_code=200 if state.ready else 503,
            content={
                "ready": state.ready,
                "issues": [
                    {"severity": i.severity, "code": i.code, "message": i.message}
                    for i in state.issues
                ],
            },
        )

    @app.on_event("startup")
    def startup() -> None:
        ensure_dirs()
        if (settings.queue_mode or "").strip().lower() == "inline":
            runners.extend(_start_inline_consumers())

    @app.on_event("shutdown")
    def shutdown() -> None:
        for r in runners:
            r.stop()
        runners.clear()

    app.include_router(videos_router, prefix="/v1")
    return app


setup_logging("api-gateway")
enforce_startup_readiness(service_name="api-gateway")

app = _create_app()
