"""
Файловое хранилище: загрузки, архивы кадров, временные каталоги.

Каталоги (из конфигурации):
- UPLOADS_DIR: исходные видео
- OUTPUTS_DIR: архивы кадров
- TEMP_DIR: рабочие каталоги ffmpeg (удаляются после обработки)
"""

from __future__ import annotations

import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

from video_frame_pipeline.common.config import get_settings
from video_frame_pipeline.common.errors import (
    ErrCode,
    NotFoundError,
    TransientInfraError,
    ValidationError,
)
from video_frame_pipeline.common.logging import get_project_logger

log = get_project_logger()


def uploads_dir() -> Path:
    return Path(get_settings().uploads_dir).resolve()


def outputs_dir() -> Path:
    return Path(get_settings().outputs_dir).resolve()


def temp_dir() -> Path:
    return Path(get_settings().temp_dir).resolve()


def ensure_dirs() -> None:
    """
    Создаёт рабочие каталоги на старте процесса.
    """
    for d in (uploads_dir(), outputs_dir(), temp_dir()):
        existed = d.exists()
        d.mkdir(parents=True, exist_ok=True)
        if not existed:
            log.info("storage_dir_created", extra={"payload": {"dir": str(d)}})


def safe_filename(filename: str) -> str:
    # только базовое имя: клиентский путь отбрасываем
    name = Path((filename or "").replace("\\", "/")).name.strip()
    if not name or name in {".", ".."}:
        raise ValidationError("Invalid filename")
    return name


def save_upload(stream: BinaryIO, stored_name: str) -> tuple[Path, int]:
    """
    Сохраняет поток в UPLOADS_DIR. Возвращает (путь, размер в байтах).
    """
    name = safe_filename(stored_name)
    d = uploads_dir()
    try:
        d.mkdir(parents=True, exist_ok=True)
        path = d / name
        with path.open("wb") as out:
            shutil.copyfileobj(stream, out)
        return path, path.stat().st_size
    except OSError as e:
        raise TransientInfraError(
            ErrCode.STORAGE_ERROR, "Upload could not be stored", details={"err": str(e)[:200]}
        ) from e


def resolve_bundle(filename: str) -> Path:
    """
    Путь к архиву кадров в OUTPUTS_DIR (с защитой от path traversal).
    """
    if not filename or ".." in filename.replace("\\", "/").split("/"):
        raise ValidationError("Invalid bundle name")
    base = outputs_dir()
    path = (base / filename).resolve()
    if base not in path.parents:
        raise ValidationError("Invalid bundle name")
    if not path.is_file():
        raise NotFoundError("Bundle not found", details={"bundle": filename})
    return path


@contextmanager
def scoped_workdir(name: str) -> Iterator[Path]:
    """
    Изолированный рабочий каталог в TEMP_DIR. Удаляется на любом выходе, включая исключения.
    """
    d = temp_dir() / safe_filename(name)
    d.mkdir(parents=True, exist_ok=True)
    try:
        yield d
    finally:
        shutil.rmtree(d, ignore_errors=True)
        if d.exists():
            log.warning("workdir_cleanup_failed", extra={"payload": {"dir": str(d)}})
