"""
Логирование воркеров и gateway.

Каждая запись: имя события (snake_case) + контекст в extra={"payload": {...}}.
Поле service: имя процесса (api-gateway, worker-processing, worker-dlq).
LOG_FORMAT=json (по умолчанию) или text.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

from video_frame_pipeline.common.config import get_settings
from video_frame_pipeline.common.time import utc_now

PROJECT_LOGGER = "video-frame-pipeline"


class _ServiceFilter(logging.Filter):
    def __init__(self, service: str) -> None:
        super().__init__()
        self.service = service

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": utc_now().isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "service": getattr(record, "service", None),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload = getattr(record, "payload", None)
        if isinstance(payload, dict):
            entry["payload"] = payload
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """
    Локальная отладка: событие и payload одной строкой.
    """

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s [%(service)s] %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "service"):
            record.service = "-"
        line = super().format(record)
        payload = getattr(record, "payload", None)
        if isinstance(payload, dict) and payload:
            line += " " + " ".join(f"{k}={v}" for k, v in payload.items())
        return line


def setup_logging(service: str) -> None:
    s = get_settings()
    root = logging.getLogger()
    level = getattr(logging, (s.log_level or "INFO").upper(), logging.INFO)
    root.setLevel(level)

    # повторный вызов (reload uvicorn) не добавляет хэндлеров
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_ServiceFilter(service))
    handler.setFormatter(TextFormatter() if (s.log_format or "").lower() == "text" else JsonFormatter())
    root.addHandler(handler)

    # access-лог дублирует vfp_requests_total
    logging.getLogger("uvicorn.access").setLevel(max(level, logging.WARNING))


def get_project_logger() -> logging.Logger:
    return logging.getLogger(PROJECT_LOGGER)
