"""
Runtime readiness checks for production rollout.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass

from video_frame_pipeline.common.config import get_settings
from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.queue.redis import redis_healthy

log = get_project_logger()


@dataclass
class ReadinessIssue:
    severity: str  # error|warning
    code: str
    message: str


@dataclass
class ReadinessState:
    ready: bool
    issues: list[ReadinessIssue]


def _is_prod_env(app_env: str | None) -> bool:
    env = (app_env or "").strip().lower()
    return env in {"prod", "production"}


def _ffmpeg_available(binary: str) -> bool:
    return shutil.which(binary) is not None


def evaluate_readiness() -> ReadinessState:
    s = get_settings()
    issues: list[ReadinessIssue] = []
    is_prod = _is_prod_env(s.app_env)

    if not _ffmpeg_available(s.ffmpeg_bin):
        issues.append(
            ReadinessIssue(
                severity="error" if is_prod else "warning",
                code="ffmpeg_not_found",
                message=f"FFMPEG_BIN={s.ffmpeg_bin} не найден в PATH",
            )
        )

    if not (s.smtp_host or "").strip():
        issues.append(
            ReadinessIssue(
                severity="warning",
                code="smtp_not_configured",
                message="SMTP_HOST не задан, письма пользователям отправляться не будут",
            )
        )

    if s.frame_sample_fps < 1:
        issues.append(
            ReadinessIssue(
                severity="error",
                code="frame_sample_fps_invalid",
                message="FRAME_SAMPLE_FPS должен быть >= 1",
            )
        )

    if s.consumer_claim_idle_ms > s.lock_ttl_sec * 1000:
        issues.append(
            ReadinessIssue(
                severity="error" if is_prod else "warning",
                code="claim_idle_exceeds_lock_ttl",
                message=(
                    f"CONSUMER_CLAIM_IDLE_MS={s.consumer_claim_idle_ms} больше LOCK_TTL_SEC={s.lock_ttl_sec}: "
                    "долгую обработку может подхватить второй воркер"
                ),
            )
        )

    if (s.queue_mode or "").strip().lower() != "inline" and not redis_healthy():
        issues.append(
            ReadinessIssue(
                severity="error",
                code="redis_unreachable",
                message=f"Redis недоступен: {s.redis_url}",
            )
        )

    if is_prod:
        if (s.store_mode or "").strip().lower() == "memory":
            issues.append(
                ReadinessIssue(
                    severity="error",
                    code="memory_store_in_prod",
                    message="STORE_MODE=memory запрещен в prod",
                )
            )
        if (s.queue_mode or "").strip().lower() == "inline":
            issues.append(
                ReadinessIssue(
                    severity="error",
                    code="inline_queue_in_prod",
                    message="QUEUE_MODE=inline запрещен в prod",
                )
            )
        if s.lock_fail_open:
            issues.append(
                ReadinessIssue(
                    severity="warning",
                    code="lock_fail_open_in_prod",
                    message="LOCK_FAIL_OPEN=true: при недоступном Redis возможна двойная обработка",
                )
            )
        if not (s.api_keys or "").strip():
            issues.append(
                ReadinessIssue(
                    severity="error",
                    code="api_keys_empty_in_prod",
                    message="В prod требуется непустой API_KEYS",
                )
            )

    ready = all(i.severity != "error" for i in issues)
    return ReadinessState(ready=ready, issues=issues)


def enforce_startup_readiness(*, service_name: str) -> ReadinessState:
    s = get_settings()
    state = evaluate_readiness()
    errors = [i for i in state.issues if i.severity == "error"]

    if errors:
        log.error(
            "startup_readiness_failed",
            extra={
                "payload": {
                    "service": service_name,
                    "app_env": s.app_env,
                    "error_codes": [e.code for e in errors],
                }
            },
        )
    else:
        log.info(
            "startup_readiness_ok",
            extra={
                "payload": {
                    "service": service_name,
                    "app_env": s.app_env,
                    "warnings": [i.code for i in state.issues],
                }
            },
        )

    should_fail_fast = _is_prod_env(s.app_env) and bool(s.readiness_fail_fast_in_prod)
    if should_fail_fast and errors:
        msg = ", ".join(e.code for e in errors)
        raise RuntimeError(f"startup readiness failed for {service_name}: {msg}")
    return state
