"""
FastAPI Depends.

Сюда выносим:
- идентификацию пользователя (заголовки от upstream-прокси X-User-*)
- проверку X-API-Key, если задан API_KEYS
- доступ к собранному пайплайну
"""

from __future__ import annotations

import secrets

from fastapi import Header, HTTPException, Request, status

from video_frame_pipeline.common.config import get_settings
from video_frame_pipeline.common.errors import ErrCode
from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.domain.models import UserRef
from video_frame_pipeline.services.container import Pipeline, build_pipeline

log = get_project_logger()

_pipeline: Pipeline | None = None


def get_pipeline() -> Pipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline(service_name="api-gateway")
    return _pipeline


def _request_meta(request: Request | None) -> tuple[str, str, str | None]:
    if request is None:
        return "unknown", "UNKNOWN", None
    endpoint = request.url.path
    method = request.method
    client_ip = request.client.host if request.client else None
    return endpoint, method, client_ip


def _deny(request: Request, reason: str) -> HTTPException:
    endpoint, method, client_ip = _request_meta(request)
    log.warning(
        "security_audit_deny",
        extra={
            "payload": {
                "endpoint": endpoint,
                "method": method,
                "reason": reason,
                "client_ip": client_ip,
            }
        },
    )
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": ErrCode.UNAUTHORIZED, "message": reason},
    )


def _api_key_valid(x_api_key: str | None) -> bool:
    keys = [k.strip() for k in (get_settings().api_keys or "").split(",") if k.strip()]
    if not keys:
        return True
    if not x_api_key:
        return False
    return any(secrets.compare_digest(x_api_key, k) for k in keys)


def user_dep(
    request: Request,
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    x_user_email: str | None = Header(default=None, alias="X-User-Email"),
    x_user_name: str | None = Header(default=None, alias="X-User-Name"),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> UserRef:
    """
    Пользователь запроса. Аутентификацию выполняет upstream, сюда приходят заголовки.
    """
    if not _api_key_valid(x_api_key):
        raise _deny(request, "invalid_api_key")
    if not (x_user_id or "").strip() or not (x_user_email or "").strip():
        raise _deny(request, "user_identity_missing")
    return UserRef(
        id=x_user_id.strip(),
        email=x_user_email.strip(),
        name=(x_user_name or "").strip() or None,
    )
