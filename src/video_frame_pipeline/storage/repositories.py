"""
Репозитории (DAO слой).

Правила:
- Никакой бизнес-логики
- Только CRUD и запросы
"""

from __future__ import annotations

from sqlalchemy import desc
from sqlalchemy.orm import Session

from .models import VideoRow


# =============================================================================
# VIDEO REPOSITORY
# =============================================================================
class VideoRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, video_id: str) -> VideoRow | None:
        return self.session.get(VideoRow, video_id)

    def save(self, row: VideoRow) -> VideoRow:
        """
        Upsert по первичному ключу (last-write-wins).
        """
        return self.session.merge(row)

    def list_by_user(self, user_id: str, *, limit: int = 100) -> list[VideoRow]:
        return (
            self.session.query(VideoRow)
            .filter(VideoRow.user_id == user_id)
            .order_by(desc(VideoRow.uploaded_at))
            .limit(max(1, min(limit, 500)))
            .all()
        )
