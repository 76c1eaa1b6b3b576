"""
Метрики Prometheus для сервиса.

Назначение:
- Экспорт /metrics
- Общие счётчики и гистограммы для стадий пайплайна
- Используется API Gateway и воркерами
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import FastAPI, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# =============================================================================
# СЧЁТЧИКИ И МЕТРИКИ
# =============================================================================
REQUESTS_TOTAL = Counter(
    "vfp_requests_total",
    "Общее количество HTTP запросов",
    ["service", "route", "method", "status"],
)

HTTP_REQUEST_LATENCY_MS = Histogram(
    "vfp_http_request_latency_ms",
    "Задержка HTTP запроса (мс)",
    ["service", "route", "method"],
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
)

# Задержки по стадиям пайплайна (extract/archive/...)
PIPELINE_STAGE_LATENCY_MS = Histogram(
    "vfp_pipeline_stage_latency_ms",
    "Задержка выполнения стадий пайплайна (мс)",
    ["service", "stage"],
    buckets=(50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000, 60000, 300000),
)

# Обработка сообщений очередей (ack/drop/skip/error)
QUEUE_TASKS_TOTAL = Counter(
    "vfp_queue_tasks_total",
    "Количество обработанных сообщений очереди",
    ["service", "queue", "result"],
)

VIDEOS_PROCESSED_TOTAL = Counter(
    "vfp_videos_processed_total",
    "Итоги обработки видео",
    ["path", "status", "cause"],  # path=primary|dlq
)

DLQ_ROUTED_TOTAL = Counter(
    "vfp_dlq_routed_total",
    "Конверты, отправленные в DLQ",
    ["source", "result"],  # source=publish|processing, result=sent|lost
)

LOCK_ACQUIRE_TOTAL = Counter(
    "vfp_lock_acquire_total",
    "Попытки захвата распределённого lock'а",
    ["result"],  # acquired|held|fail_open|failed
)

QUEUE_DEPTH = Gauge(
    "vfp_queue_depth",
    "Текущая глубина stream-очередей",
    ["topic"],
)

QUEUE_PENDING = Gauge(
    "vfp_queue_pending",
    "Текущее количество pending сообщений в consumer group",
    ["topic", "group"],
)

METRICS_COLLECTION_ERRORS_TOTAL = Counter(
    "vfp_metrics_collection_errors_total",
    "Ошибки сборки служебных метрик",
    ["source"],
)

SYSTEM_READINESS = Gauge(
    "vfp_system_readiness",
    "Runtime readiness check status (1=ready, 0=not ready)",
)


@contextmanager
def track_stage_latency(service: str, stage: str) -> Iterator[None]:
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        PIPELINE_STAGE_LATENCY_MS.labels(service=service, stage=stage).observe(elapsed_ms)


def refresh_queue_metrics() -> None:
    try:
        from video_frame_pipeline.common.config import get_settings
        from video_frame_pipeline.queue.redis import redis_client
        from video_frame_pipeline.queue.streams import stream_name

        s = get_settings()
        if (s.queue_mode or "").strip().lower() == "inline":
            return
        r = redis_client()
        topics = (
            (s.processing_topic, s.processing_partitions, s.processing_group),
            (s.dlq_topic, s.dlq_partitions, s.dlq_group),
        )
        for topic, partitions, group in topics:
            depth = 0
            pending = 0
            for p in range(max(1, partitions)):
                stream = stream_name(topic, p)
                depth += _stream_len(r, stream)
                pending += _xpending_count(r, stream, group)
            QUEUE_DEPTH.labels(topic=topic).set(depth)
            QUEUE_PENDING.labels(topic=topic, group=group).set(pending)
    except Exception:
        METRICS_COLLECTION_ERRORS_TOTAL.labels(source="queue_metrics").inc()


def _stream_len(r, stream: str) -> int:
    try:
        return int(r.xlen(stream))
    except Exception:
        return 0


def _xpending_count(r, stream: str, group: str) -> int:
    try:
        pending = r.xpending(stream, group)
        if isinstance(pending, dict):
            return int(pending.get("pending", 0))
    except Exception:
        return 0
    return 0


def refresh_system_readiness_metrics() -> None:
    try:
        from video_frame_pipeline.services.readiness_service import evaluate_readiness

        state = evaluate_readiness()
        SYSTEM_READINESS.set(1 if state.ready else 0)
    except Exception:
        METRICS_COLLECTION_ERRORS_TOTAL.labels(source="readiness_metrics").inc()


# =============================================================================
# ENDPOINT /metrics
# =============================================================================
def setup_metrics_endpoint(app: FastAPI) -> None:
    """
    Регистрирует endpoint /metrics для Prometheus.
    """

    @app.middleware("http")
    async def http_metrics(request: Request, call_next):
        route = request.url.path
        method = request.method
        started = time.perf_counter()

        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        status_code = str(response.status_code)

        REQUESTS_TOTAL.labels(
            service="api-gateway",
            route=route,
            method=method,
            status=status_code,
        ).inc()
        HTTP_REQUEST_LATENCY_MS.labels(
            service="api-gateway",
            route=route,
            method=method,
        ).observe(elapsed_ms)
        return response

    @app.get("/metrics")
    def metrics() -> Response:
        refresh_queue_metrics()
        refresh_system_readiness_metrics()
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
