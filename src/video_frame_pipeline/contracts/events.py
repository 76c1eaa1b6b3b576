"""
Контракты событий очередей.

Важно:
- payload всегда JSON, имена полей на проводе: camelCase
- событие в топике обработки тегировано полем eventType
- декодирование идёт по тегу (tagged variant); всё, что не декодируется -
  PoisonMessageError (сообщение подтверждается и отбрасывается)
"""

from __future__ import annotations

import json
import traceback
import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from video_frame_pipeline.common.errors import PoisonMessageError
from video_frame_pipeline.common.time import utc_ms
from video_frame_pipeline.domain.enums import EventType

PROCESSING_KEY_PREFIX = "video-"
DLQ_KEY = "failure"

# Исторические имена типа в конвертах DLQ (до введения тега video_upload)
_UPLOAD_TYPE_ALIASES = {"video_upload", "video upload", "VideoUploadEvent"}


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), ensure_ascii=False)


# =============================================================================
# ТОПИК ОБРАБОТКИ
# =============================================================================
class VideoUploadEvent(_WireModel):
    event_type: Literal["video_upload"] = Field(default="video_upload", alias="eventType")
    video_id: uuid.UUID = Field(alias="videoId")
    user_id: str = Field(alias="userId")
    user_email: str = Field(alias="userEmail")
    user_name: str | None = Field(default=None, alias="userName")


ProcessingEvent = VideoUploadEvent

_EVENT_TYPES: dict[str, type[_WireModel]] = {
    EventType.video_upload.value: VideoUploadEvent,
}


def processing_key(video_id: uuid.UUID | str) -> str:
    """
    Ключ сообщения: все события одного видео попадают в одну партицию.
    """
    return f"{PROCESSING_KEY_PREFIX}{video_id}"


def _load_json(raw: str | bytes | dict) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise PoisonMessageError("Payload is not valid JSON", details={"err": str(e)[:200]}) from e
    if not isinstance(data, dict):
        raise PoisonMessageError("Payload is not a JSON object")
    return data


def decode_processing_event(raw: str | bytes | dict) -> ProcessingEvent:
    """
    Декодирует событие топика обработки по тегу eventType.
    """
    data = _load_json(raw)
    tag = data.get("eventType")
    if tag is None:
        raise PoisonMessageError("Missing eventType tag")
    model = _EVENT_TYPES.get(str(tag))
    if model is None:
        raise PoisonMessageError("Unknown event type", details={"eventType": str(tag)[:64]})
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise PoisonMessageError(
            "Event payload does not match schema",
            details={"eventType": str(tag), "errors": e.error_count()},
        ) from e


# =============================================================================
# DLQ
# =============================================================================
class DeadLetterEnvelope(_WireModel):
    original_event: Any = Field(alias="originalEvent")
    event_type: str | None = Field(default=None, alias="eventType")
    failure_reason: str | None = Field(default=None, alias="failureReason")
    failure_timestamp: int = Field(alias="failureTimestamp")
    stack_trace: str | None = Field(default=None, alias="stackTrace")
    original_topic: str | None = Field(default=None, alias="originalTopic")

    def is_video_upload(self) -> bool:
        return (self.event_type or "") in _UPLOAD_TYPE_ALIASES


def build_envelope(
    *,
    original_event: Any,
    event_type: str,
    error: BaseException,
    original_topic: str | None = None,
    with_stack: bool = False,
) -> DeadLetterEnvelope:
    stack: str | None = None
    if with_stack:
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return DeadLetterEnvelope(
        original_event=original_event,
        event_type=event_type,
        failure_reason=str(error) or type(error).__name__,
        failure_timestamp=utc_ms(),
        stack_trace=stack,
        original_topic=original_topic,
    )


def decode_envelope(raw: str | bytes | dict) -> DeadLetterEnvelope:
    data = _load_json(raw)
    try:
        return DeadLetterEnvelope.model_validate(data)
    except PydanticValidationError as e:
        raise PoisonMessageError(
            "DLQ envelope does not match schema", details={"errors": e.error_count()}
        ) from e
