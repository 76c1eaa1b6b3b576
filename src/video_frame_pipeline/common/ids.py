"""
Генерация идентификаторов.

Назначение:
- video_id
- токен владельца распределённого lock'а
"""

from __future__ import annotations

import secrets
import uuid


def new_video_id() -> uuid.UUID:
    return uuid.uuid4()


def new_lock_token() -> str:
    return secrets.token_hex(16)
