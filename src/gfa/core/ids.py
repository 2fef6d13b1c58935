from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4


def now_utc() -> datetime:
    return datetime.now(UTC)


def make_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


def synthetic_drive_id(game_id: str, possession: str, number: int) -> str:
    """Id for a drive cut from untagged plays; the same snapshot always yields the same ids."""
    return f"{game_id}:{possession}:{number}"
