"""
Уведомления владельца видео об итоге обработки.

Fire-and-forget: ошибки рендера/отправки логируются и наружу не пробрасываются,
на статус видео они не влияют.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from video_frame_pipeline.common.config import get_settings
from video_frame_pipeline.common.errors import ErrCode
from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.domain.models import UserRef, Video

from .base import Notifier

log = get_project_logger()

_TEMPLATES_DIR = Path(__file__).parent / "email" / "templates"

# подсказки пользователю по коду причины
_GUIDANCE = {
    ErrCode.NO_FRAMES: "Файл, вероятно, повреждён или имеет неподдерживаемый формат. "
    "Проверьте, что видео открывается локально, и загрузите его заново.",
    ErrCode.EXTRACTOR_FAILED: "Не удалось прочитать видео. Попробуйте перекодировать файл "
    "(например, в MP4/H.264) и загрузить его снова.",
    ErrCode.ARCHIVE_FAILED: "Кадры извлечены, но архив не удалось сохранить. "
    "Попробуйте загрузить видео повторно чуть позже.",
}
_DEFAULT_GUIDANCE = "Попробуйте загрузить видео ещё раз. Если ошибка повторится, обратитесь в поддержку."


def _jinja() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
        keep_trailing_newline=True,
    )


class VideoNotifier:
    def __init__(self, provider: Notifier, env: Environment | None = None) -> None:
        self.provider = provider
        self.env = env or _jinja()
        self.product = get_settings().product_name

    def notify_finished(self, user: UserRef, video: Video) -> bool:
        return self._send(
            user,
            video,
            template="video_finished.txt.j2",
            subject=f"{self.product}: кадры готовы",
            context={"frame_count": video.frame_count, "zip_name": Path(video.zip_path or "").name},
        )

    def notify_failed(self, user: UserRef, video: Video, *, cause: str | None = None) -> bool:
        return self._send(
            user,
            video,
            template="video_failed.txt.j2",
            subject=f"{self.product}: ошибка обработки видео",
            context={
                "error_message": video.error_message or "",
                "guidance": _GUIDANCE.get(cause or "", _DEFAULT_GUIDANCE),
            },
        )

    def _send(self, user: UserRef, video: Video, *, template: str, subject: str, context: dict) -> bool:
        try:
            body = self.env.get_template(template).render(
                product=self.product,
                user_name=user.name or user.email,
                video_id=str(video.id),
                filename=video.original_filename or Path(video.original_path).name,
                **context,
            )
            result = self.provider.send(user.email, subject, body)
        except Exception as e:
            log.error(
                "notification_failed",
                extra={
                    "payload": {
                        "video_id": str(video.id),
                        "template": template,
                        "err": str(e)[:200],
                    }
                },
            )
            return False
        if not result.ok:
            log.warning(
                "notification_not_delivered",
                extra={
                    "payload": {
                        "video_id": str(video.id),
                        "provider": result.provider,
                        "err": (result.error or "")[:200],
                    }
                },
            )
        return result.ok
