from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterable

from gfa.contracts import ParticipationEvent, ParticipationType, PlayEvent, ValidationIssue

logger = logging.getLogger(__name__)

_LEGACY_ATTRIBUTION = (
    ("qb_id", ParticipationType.PASSER),
    ("ball_carrier_id", ParticipationType.RUSHER),
    ("target_id", ParticipationType.RECEIVER),
)


@dataclass(slots=True)
class NormalizedEvents:
    plays: list[PlayEvent]
    participations: list[ParticipationEvent]
    issues: list[ValidationIssue]


def play_order_key(play: PlayEvent) -> tuple[str, int, float, str]:
    # Untimed plays sort after timed ones inside a game.
    has_time = 0 if play.timestamp is not None else 1
    return (play.game_id, has_time, play.timestamp if play.timestamp is not None else 0.0, play.play_id)


class EventNormalizer:
    """Repairs a raw event snapshot into the shape the rollup engine expects.

    Problems never raise. Each one becomes a warning issue and the offending
    field or record is repaired or dropped.
    """

    def normalize(self, plays: Iterable[PlayEvent], participations: Iterable[ParticipationEvent]) -> NormalizedEvents:
        issues: list[ValidationIssue] = []

        repaired: dict[str, PlayEvent] = {}
        for play in plays:
            if play.play_id in repaired:
                issues.append(
                    ValidationIssue(
                        code="DUPLICATE_PLAY",
                        severity="warning",
                        field_path="play_id",
                        entity_id=play.play_id,
                        message="play id seen more than once; first occurrence kept",
                    )
                )
                continue
            repaired[play.play_id] = self._repair_play(play, issues)

        ordered_plays = sorted(repaired.values(), key=play_order_key)
        play_rank = {p.play_id: idx for idx, p in enumerate(ordered_plays)}

        kept: list[ParticipationEvent] = []
        seen: set[tuple] = set()
        for part in participations:
            if part.play_id not in play_rank:
                issues.append(
                    ValidationIssue(
                        code="ORPHAN_PARTICIPATION",
                        severity="warning",
                        field_path="play_id",
                        entity_id=part.player_id,
                        message=f"participation references unknown play {part.play_id}",
                    )
                )
                continue
            identity = (
                part.play_id,
                part.player_id,
                part.participation_type,
                part.result,
                part.yards,
                part.is_touchdown,
            )
            if identity in seen:
                issues.append(
                    ValidationIssue(
                        code="DUPLICATE_PARTICIPATION",
                        severity="warning",
                        field_path="participation",
                        entity_id=part.play_id,
                        message=f"duplicate {part.participation_type.value} for player {part.player_id}",
                    )
                )
                continue
            seen.add(identity)
            kept.append(part)

        kept.extend(self._reconcile_attribution(ordered_plays, kept, issues))
        kept.sort(key=lambda p: (play_rank[p.play_id], p.player_id, p.participation_type.value))

        if issues:
            logger.warning("normalized snapshot with %d issue(s)", len(issues))
        return NormalizedEvents(plays=ordered_plays, participations=kept, issues=self._finalize(issues))

    def _repair_play(self, play: PlayEvent, issues: list[ValidationIssue]) -> PlayEvent:
        changes: dict[str, None] = {}
        if play.down is not None and not 1 <= play.down <= 4:
            changes["down"] = None
        if play.distance is not None and play.distance < 0:
            changes["distance"] = None
        if play.field_position is not None and not 0 <= play.field_position <= 100:
            changes["field_position"] = None
        for name in sorted(changes):
            issues.append(
                ValidationIssue(
                    code="INVALID_PLAY_CONTEXT",
                    severity="warning",
                    field_path=name,
                    entity_id=play.play_id,
                    message=f"{name}={getattr(play, name)!r} out of range; treated as untagged",
                )
            )
        tagged_quarter = isinstance(play.quarter, int)
        if not tagged_quarter or not 1 <= play.quarter <= 5:
            issues.append(
                ValidationIssue(
                    code="INVALID_PLAY_CONTEXT",
                    severity="warning",
                    field_path="quarter",
                    entity_id=play.play_id,
                    message=f"quarter={play.quarter!r} out of range; clamped",
                )
            )
            quarter = min(max(play.quarter, 1), 5) if tagged_quarter else 1
            return replace(play, quarter=quarter, **changes)
        return replace(play, **changes) if changes else play

    def _reconcile_attribution(
        self,
        plays: list[PlayEvent],
        participations: list[ParticipationEvent],
        issues: list[ValidationIssue],
    ) -> list[ParticipationEvent]:
        by_play: dict[tuple[str, ParticipationType], set[str]] = {}
        for part in participations:
            by_play.setdefault((part.play_id, part.participation_type), set()).add(part.player_id)

        synthesized: list[ParticipationEvent] = []
        for play in plays:
            for attr, ptype in _LEGACY_ATTRIBUTION:
                legacy_id = getattr(play, attr)
                if not legacy_id:
                    continue
                tagged = by_play.get((play.play_id, ptype))
                if tagged is None:
                    synthesized.append(
                        ParticipationEvent(
                            play_id=play.play_id,
                            player_id=legacy_id,
                            participation_type=ptype,
                            result=self._legacy_result(play, ptype),
                            yards=play.yards_gained,
                            is_touchdown=play.is_touchdown,
                        )
                    )
                elif legacy_id not in tagged:
                    issues.append(
                        ValidationIssue(
                            code="ATTRIBUTION_MISMATCH",
                            severity="warning",
                            field_path=attr,
                            entity_id=play.play_id,
                            message=f"{attr}={legacy_id} disagrees with {ptype.value} participation",
                        )
                    )
        if synthesized:
            logger.debug("synthesized %d participation(s) from legacy attribution", len(synthesized))
        return synthesized

    @staticmethod
    def _legacy_result(play: PlayEvent, ptype: ParticipationType) -> str | None:
        if ptype == ParticipationType.RUSHER:
            return None
        tag = (play.result or "").lower()
        if "interception" in tag or (play.is_turnover and play.turnover_type == "interception"):
            return "interception" if ptype == ParticipationType.PASSER else "incomplete"
        if "sack" in tag:
            return "sack" if ptype == ParticipationType.PASSER else None
        if "incomplete" in tag:
            return "incomplete"
        if "complete" in tag or play.is_touchdown:
            return "complete"
        return None

    def _finalize(self, issues: list[ValidationIssue]) -> list[ValidationIssue]:
        return sorted(issues, key=lambda x: (x.severity, x.code, x.entity_id, x.field_path))


def normalize_snapshot(plays: Iterable[PlayEvent], participations: Iterable[ParticipationEvent]) -> NormalizedEvents:
    return EventNormalizer().normalize(plays, participations)
