from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from video_frame_pipeline.common.errors import TransientInfraError
from video_frame_pipeline.common.time import utc_now
from video_frame_pipeline.domain import state_machine as sm
from video_frame_pipeline.domain.enums import VideoStatus
from video_frame_pipeline.domain.models import Video
from video_frame_pipeline.storage.models import Base
from video_frame_pipeline.storage.status_store import SqlStatusStore


@pytest.fixture()
def store():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield SqlStatusStore(sessionmaker(bind=engine, autoflush=False))
    engine.dispose()


def _video(user_id: str = "u-1", **kw) -> Video:
    return Video(
        id=uuid.uuid4(),
        user_id=user_id,
        original_path="/data/uploads/20240101_000000_clip.mp4",
        original_filename="clip.mp4",
        file_size=2048,
        status=VideoStatus.UPLOADED,
        uploaded_at=utc_now(),
        **kw,
    )


def test_save_and_find_roundtrip(store) -> None:
    v = _video()
    store.save(v)

    got = store.find_by_id(v.id)
    assert got is not None
    assert got.id == v.id
    assert got.status == VideoStatus.UPLOADED
    assert got.original_filename == "clip.mp4"
    assert got.file_size == 2048
    assert store.find_by_id(uuid.uuid4()) is None


def test_save_is_last_write_wins(store) -> None:
    v = store.save(_video())
    v = store.save(sm.start_processing(v))
    store.save(sm.finish(v, zip_path="/data/outputs/frames_x.zip", frame_count=7))

    got = store.find_by_id(v.id)
    assert got.status == VideoStatus.FINISHED
    assert got.frame_count == 7
    assert got.zip_path == "/data/outputs/frames_x.zip"
    assert got.error_message is None


def test_list_by_user_newest_first(store) -> None:
    older = _video()
    newer = replace(_video(), uploaded_at=older.uploaded_at + timedelta(minutes=5))
    store.save(older)
    store.save(newer)
    store.save(_video(user_id="u-2"))

    assert [v.id for v in store.list_by_user("u-1")] == [newer.id, older.id]


def test_db_errors_are_wrapped(store) -> None:
    broken = SqlStatusStore(
        sessionmaker(bind=create_engine("sqlite://", poolclass=StaticPool))
    )
    with pytest.raises(TransientInfraError) as exc:
        broken.find_by_id(uuid.uuid4())
    assert exc.value.code == "db_error"
