from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Mapping, Sequence

from gfa.contracts import ForensicArtifact
from gfa.core.ids import make_id, now_utc


class EngineIntegrityError(RuntimeError):
    """An aggregate violated a consistency rule; carries the artifact describing it."""

    def __init__(self, artifact: ForensicArtifact) -> None:
        super().__init__(f"[{artifact.error_code}] {artifact.message}")
        self.artifact = artifact

    @property
    def code(self) -> str:
        return self.artifact.error_code


class EventStoreError(RuntimeError):
    """Raised by event store adapters when the source is unreachable or malformed."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation


def build_forensic_artifact(
    *,
    engine_scope: str,
    error_code: str,
    message: str,
    state_snapshot: Mapping[str, Any] | None = None,
    context: Mapping[str, Any] | None = None,
    identifiers: Mapping[str, str] | None = None,
    causal_fragment: Sequence[str] = (),
) -> ForensicArtifact:
    return ForensicArtifact(
        artifact_id=make_id("forensic"),
        timestamp=now_utc(),
        engine_scope=engine_scope,
        error_code=error_code,
        message=message,
        state_snapshot=dict(state_snapshot or {}),
        context=dict(context or {}),
        identifiers=dict(identifiers or {}),
        causal_fragment=list(causal_fragment),
    )


def integrity_failure(engine_scope: str, error_code: str, message: str, **details: Any) -> EngineIntegrityError:
    return EngineIntegrityError(
        build_forensic_artifact(engine_scope=engine_scope, error_code=error_code, message=message, **details)
    )


def persist_forensic_artifact(artifact: ForensicArtifact, output_dir: Path) -> Path:
    """Write one artifact as JSON; the file name embeds the artifact id."""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"forensic_{artifact.error_code.lower()}_{artifact.artifact_id}.json"
    path.write_text(json.dumps(asdict(artifact), default=str, indent=2, sort_keys=True), encoding="utf-8")
    return path
