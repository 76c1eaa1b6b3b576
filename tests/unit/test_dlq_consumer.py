from __future__ import annotations

from video_frame_pipeline.domain.enums import VideoStatus


def test_dlq_retry_recovers_failed_video(make_harness) -> None:
    h = make_harness(script=[(1, 0), (0, 4)])
    video = h.upload("clip.mp4")
    assert h.run_processing() == ["failed"]
    assert h.store.find_by_id(video.id).status == VideoStatus.ERROR

    assert h.run_dlq() == ["finished"]

    stored = h.store.find_by_id(video.id)
    assert stored.status == VideoStatus.FINISHED
    assert stored.frame_count == 4
    assert stored.error_message is None
    # письмо об ошибке + письмо об успехе
    assert len(h.mail.sent) == 2
    assert "кадры готовы" in h.mail.sent[-1][1]


def test_dlq_retry_failure_suffixes_message(make_harness) -> None:
    h = make_harness(script=[(0, 0)])
    video = h.upload("corrupt.mp4")
    h.run_processing()

    assert h.run_dlq() == ["failed"]

    stored = h.store.find_by_id(video.id)
    assert stored.status == VideoStatus.ERROR
    assert stored.error_message.endswith("after DLQ retry")
    assert "No frames" in stored.error_message
    # пользователь уже получил письмо на первичном пути
    assert len(h.mail.sent) == 1
    # DLQ не отправляет в DLQ повторно
    assert len(h.dlq_messages()) == 1


def test_unknown_envelope_type_is_dropped(harness) -> None:
    harness.pipeline.dlq_router.route(
        original_event={"invoiceId": 7},
        event_type="invoice_created",
        error=RuntimeError("boom"),
        source="test",
    )

    assert harness.run_dlq() == ["unknown_type"]
    assert harness.extractor.calls == []
    assert harness.bus.pending(harness.settings.dlq_topic, harness.settings.dlq_group) == []


def test_publish_failure_goes_to_dlq_and_is_processed_there(make_harness, isolated_settings) -> None:
    h = make_harness(fail_topics={isolated_settings.processing_topic})
    video = h.upload("clip.mp4")

    assert h.store.find_by_id(video.id).status == VideoStatus.UPLOADED
    assert h.poll_processing() == []
    assert len(h.dlq_messages()) == 1

    assert h.run_dlq() == ["finished"]
    assert h.store.find_by_id(video.id).status == VideoStatus.FINISHED
    assert len(h.mail.sent) == 1


def test_publish_failure_then_dlq_failure_notifies_once(make_harness, isolated_settings) -> None:
    h = make_harness(script=[(0, 0)], fail_topics={isolated_settings.processing_topic})
    video = h.upload("corrupt.mp4")

    assert h.run_dlq() == ["failed"]
    stored = h.store.find_by_id(video.id)
    assert stored.error_message.endswith("after DLQ retry")
    assert len(h.mail.sent) == 1


def test_dlq_skips_finished_video(harness) -> None:
    video = harness.upload("clip.mp4")
    harness.run_processing()
    harness.pipeline.dlq_router.route(
        original_event={
            "eventType": "video_upload",
            "videoId": str(video.id),
            "userId": harness.user.id,
            "userEmail": harness.user.email,
        },
        event_type="video_upload",
        error=RuntimeError("late failure"),
        source="test",
    )

    assert harness.run_dlq() == ["skipped_terminal"]
    assert len(harness.extractor.calls) == 1


def test_dlq_retry_disabled_leaves_video_in_error(make_harness, isolated_settings) -> None:
    isolated_settings.dlq_retry_enabled = False
    h = make_harness(script=[(1, 0), (0, 3)])
    video = h.upload("clip.mp4")
    h.run_processing()

    assert h.run_dlq() == ["retry_disabled"]
    assert h.store.find_by_id(video.id).status == VideoStatus.ERROR
    assert len(h.extractor.calls) == 1


def test_dlq_poison_envelope_dropped(harness) -> None:
    harness.bus.send(harness.pipeline.dlq, "failure", "[]")
    harness.bus.send(harness.pipeline.dlq, "failure", '{"eventType": "video_upload"}')

    assert harness.run_dlq() == ["poison", "poison"]
