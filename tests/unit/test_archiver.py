from __future__ import annotations

import zipfile
from pathlib import Path

from video_frame_pipeline.processing.archiver import ZipArchiver, bundle_name


def _frames(d: Path, n: int) -> list[Path]:
    d.mkdir(parents=True, exist_ok=True)
    out = []
    for i in range(n):
        f = d / f"frame_{i + 1:04d}.png"
        f.write_bytes(b"png")
        out.append(f)
    return out


def test_archive_contains_all_frames_flat(tmp_path: Path) -> None:
    files = _frames(tmp_path / "work", 3)
    dest = tmp_path / "out" / "frames.zip"

    assert ZipArchiver().archive(files, dest) is True
    with zipfile.ZipFile(dest) as zf:
        assert sorted(zf.namelist()) == ["frame_0001.png", "frame_0002.png", "frame_0003.png"]


def test_archive_failure_removes_partial_bundle(tmp_path: Path) -> None:
    files = _frames(tmp_path / "work", 2)
    files.append(tmp_path / "work" / "missing.png")
    dest = tmp_path / "out" / "frames.zip"

    assert ZipArchiver().archive(files, dest) is False
    assert not dest.exists()


def test_archive_of_nothing_fails(tmp_path: Path) -> None:
    assert ZipArchiver().archive([], tmp_path / "frames.zip") is False


def test_bundle_name_shape() -> None:
    name = bundle_name("0f8fad5b-d9cb-469f-a165-70867728950e")
    assert name.startswith("frames_")
    assert name.endswith("_0f8fad5b.zip")
