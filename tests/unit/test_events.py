from __future__ import annotations

import json
import uuid

import pytest

from video_frame_pipeline.common.errors import PoisonMessageError
from video_frame_pipeline.contracts.events import (
    DeadLetterEnvelope,
    VideoUploadEvent,
    build_envelope,
    decode_envelope,
    decode_processing_event,
    processing_key,
)


def test_event_wire_format_is_camel_case() -> None:
    vid = uuid.uuid4()
    ev = VideoUploadEvent(video_id=vid, user_id="u-1", user_email="a@b.c")
    assert ev.to_wire() == {
        "eventType": "video_upload",
        "videoId": str(vid),
        "userId": "u-1",
        "userEmail": "a@b.c",
        "userName": None,
    }
    assert processing_key(vid) == f"video-{vid}"


def test_decode_tagged_upload_ignores_unknown_fields() -> None:
    vid = uuid.uuid4()
    ev = decode_processing_event(
        json.dumps(
            {"eventType": "video_upload", "videoId": str(vid), "userId": "u", "userEmail": "u@x.io", "extra": 1}
        )
    )
    assert ev.video_id == vid
    assert ev.event_type == "video_upload"


def test_missing_event_type_tag_is_poison() -> None:
    payload = {"videoId": str(uuid.uuid4()), "userId": "u", "userEmail": "u@x.io"}
    with pytest.raises(PoisonMessageError, match="eventType"):
        decode_processing_event(json.dumps(payload))


@pytest.mark.parametrize(
    "raw",
    [
        "not-json",
        "[1, 2]",
        json.dumps({"eventType": "video_deleted", "videoId": str(uuid.uuid4())}),
        json.dumps({"eventType": "video_upload", "videoId": "not-a-uuid", "userId": "u", "userEmail": "e"}),
        json.dumps({"eventType": "video_upload", "userId": "u"}),
    ],
)
def test_undecodable_payloads_are_poison(raw: str) -> None:
    with pytest.raises(PoisonMessageError):
        decode_processing_event(raw)


def test_envelope_carries_failure_details() -> None:
    try:
        raise RuntimeError("broker timeout")
    except RuntimeError as e:
        env = build_envelope(
            original_event={"videoId": "x"},
            event_type="video_upload",
            error=e,
            original_topic="video.processing.events",
            with_stack=True,
        )

    wire = env.to_wire()
    assert wire["failureReason"] == "broker timeout"
    assert wire["originalTopic"] == "video.processing.events"
    assert "RuntimeError" in wire["stackTrace"]
    assert isinstance(wire["failureTimestamp"], int)
    assert decode_envelope(env.to_json()) == env


def test_envelope_without_stack_by_default() -> None:
    env = build_envelope(original_event={}, event_type="video_upload", error=ValueError("x"))
    assert env.stack_trace is None
    assert env.original_topic is None


@pytest.mark.parametrize("event_type", ["video_upload", "video upload", "VideoUploadEvent"])
def test_envelope_upload_type_aliases(event_type: str) -> None:
    env = DeadLetterEnvelope(original_event={}, event_type=event_type, failure_timestamp=1)
    assert env.is_video_upload() is True


def test_envelope_other_type_is_not_upload() -> None:
    env = DeadLetterEnvelope(original_event={}, event_type="invoice", failure_timestamp=1)
    assert env.is_video_upload() is False
