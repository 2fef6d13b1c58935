from .errors import (
    EngineIntegrityError,
    EventStoreError,
    build_forensic_artifact,
    integrity_failure,
    persist_forensic_artifact,
)
from .ids import make_id, now_utc, synthetic_drive_id

__all__ = [
    "EngineIntegrityError",
    "EventStoreError",
    "build_forensic_artifact",
    "integrity_failure",
    "make_id",
    "now_utc",
    "persist_forensic_artifact",
    "synthetic_drive_id",
]
