from __future__ import annotations

import json
import logging

from video_frame_pipeline.common.logging import JsonFormatter, TextFormatter, _ServiceFilter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="video-frame-pipeline",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="video_processing_finished",
        args=(),
        exc_info=None,
    )
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_json_line_carries_service_and_payload() -> None:
    record = _record(payload={"video_id": "v-1", "frame_count": 10})
    _ServiceFilter("worker-processing").filter(record)

    entry = json.loads(JsonFormatter().format(record))

    assert entry["msg"] == "video_processing_finished"
    assert entry["service"] == "worker-processing"
    assert entry["payload"] == {"video_id": "v-1", "frame_count": 10}
    assert entry["ts"].endswith("Z")


def test_text_line_inlines_payload() -> None:
    record = _record(payload={"video_id": "v-1"})
    _ServiceFilter("worker-dlq").filter(record)

    line = TextFormatter().format(record)

    assert "[worker-dlq] video_processing_finished" in line
    assert line.endswith("video_id=v-1")


def test_text_line_without_filter() -> None:
    line = TextFormatter().format(_record())
    assert "[-] video_processing_finished" in line
