"""
Извлечение кадров из видео через ffmpeg.

Команда:
    ffmpeg -i <video> -vf fps=<N> -y <workdir>/frame_%04d.<ext>

Результат: код возврата и отсортированный список файлов кадров.
Код возврата 0 ещё не успех: видео без кадров (битое/неподдерживаемое)
обрабатывается вызывающей стороной отдельно.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from video_frame_pipeline.common.config import get_settings
from video_frame_pipeline.common.logging import get_project_logger

log = get_project_logger()

# код "command not found" в shell
EXIT_NOT_FOUND = 127


@dataclass
class ExtractionResult:
    exit_code: int
    frames: list[Path] = field(default_factory=list)
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class FrameExtractor(Protocol):
    def extract(self, video_path: Path, workdir: Path) -> ExtractionResult: ...


class FfmpegFrameExtractor:
    def __init__(
        self,
        *,
        binary: str | None = None,
        fps: int | None = None,
        image_ext: str | None = None,
    ) -> None:
        s = get_settings()
        self.binary = binary or s.ffmpeg_bin
        self.fps = max(1, int(fps or s.frame_sample_fps))
        self.image_ext = (image_ext or s.frame_image_ext).lstrip(".").lower()

    def command(self, video_path: Path, workdir: Path) -> list[str]:
        return [
            self.binary,
            "-i",
            str(video_path),
            "-vf",
            f"fps={self.fps}",
            "-y",
            str(workdir / f"frame_%04d.{self.image_ext}"),
        ]

    def extract(self, video_path: Path, workdir: Path) -> ExtractionResult:
        cmd = self.command(video_path, workdir)
        try:
            proc = subprocess.run(cmd, check=False, capture_output=True, text=True)
        except FileNotFoundError:
            log.error("ffmpeg_not_found", extra={"payload": {"binary": self.binary}})
            return ExtractionResult(exit_code=EXIT_NOT_FOUND, output=f"{self.binary}: not found")

        # ffmpeg пишет прогресс в stderr, хвоста хватает для диагностики
        output = (proc.stderr or proc.stdout or "")[-2000:]
        frames = sorted(workdir.glob(f"*.{self.image_ext}"))
        log.info(
            "frames_extracted",
            extra={
                "payload": {
                    "video": video_path.name,
                    "exit_code": proc.returncode,
                    "frames": len(frames),
                }
            },
        )
        return ExtractionResult(exit_code=proc.returncode, frames=frames, output=output)
