from __future__ import annotations

import threading

from video_frame_pipeline.services.consumer_runner import ConsumerRunner


def test_runner_slots_drain_all_partitions(harness) -> None:
    topic = harness.pipeline.processing
    handled: list[str] = []
    guard = threading.Lock()
    done = threading.Event()

    def handler(msg) -> str:
        with guard:
            handled.append(msg.key)
            if len(handled) == 5:
                done.set()
        return "ok"

    for i in range(5):
        harness.bus.send(topic, f"video-{i}", "{}")

    runner = ConsumerRunner(
        name="test", bus=harness.bus, topic=topic, group="g:test", handler=handler, slots=3, block_ms=50
    )
    runner.start()
    try:
        assert done.wait(5)
    finally:
        runner.stop()

    assert sorted(handled) == [f"video-{i}" for i in range(5)]


def test_slot_partitions_respect_shards(harness) -> None:
    topic = harness.pipeline.processing
    runner = ConsumerRunner(
        name="test",
        bus=harness.bus,
        topic=topic,
        group="g",
        handler=lambda m: "ok",
        slots=3,
        shard_index=1,
        shard_count=2,
    )
    assert [runner.partitions_for(s) for s in range(3)] == [[3], [4], [5]]


def test_handler_error_does_not_kill_slot(harness) -> None:
    topic = harness.pipeline.processing
    seen: list[str] = []
    bad_seen = threading.Event()
    done = threading.Event()

    def handler(msg) -> str:
        seen.append(msg.key)
        if msg.key == "video-bad":
            bad_seen.set()
            raise RuntimeError("boom")
        done.set()
        return "ok"

    harness.bus.send(topic, "video-bad", "{}")
    runner = ConsumerRunner(
        name="test", bus=harness.bus, topic=topic, group="g:err", handler=handler, slots=1, block_ms=50
    )
    runner.start()
    try:
        assert bad_seen.wait(5)
        harness.bus.send(topic, "video-good", "{}")
        assert done.wait(5)
    finally:
        runner.stop()
    assert "video-good" in seen
