"""
Упаковка кадров в один архив.

Archiver.archive(files, dest) -> bool: False означает сбой, частичный архив удаляется.
"""

from __future__ import annotations

import zipfile
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.common.time import file_stamp

log = get_project_logger()


class Archiver(Protocol):
    def archive(self, files: Sequence[Path], dest: Path) -> bool: ...


def bundle_name(video_id: object) -> str:
    # метка времени + префикс id видео
    return f"frames_{file_stamp()}_{str(video_id)[:8]}.zip"


class ZipArchiver:
    def archive(self, files: Sequence[Path], dest: Path) -> bool:
        if not files:
            log.warning("archive_skipped_empty", extra={"payload": {"dest": dest.name}})
            return False
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for f in files:
                    zf.write(f, arcname=f.name)
        except (OSError, zipfile.BadZipFile) as e:
            log.error(
                "archive_failed",
                extra={"payload": {"dest": dest.name, "files": len(files), "err": str(e)[:200]}},
            )
            dest.unlink(missing_ok=True)
            return False
        log.info("archive_created", extra={"payload": {"dest": dest.name, "files": len(files)}})
        return True
