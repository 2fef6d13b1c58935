from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from gfa.analytics.drives import DriveSet, drives_for
from gfa.analytics.reports import REPORTS, ReportAssembler
from gfa.analytics.rollup import RollupTable, aggregate, in_context
from gfa.analytics.tiers import resolve
from gfa.analytics.validation import normalize_snapshot
from gfa.contracts import (
    Drive,
    EnabledFeatures,
    EventStore,
    ParticipationEvent,
    Player,
    PlayEvent,
    ReportPayload,
    ReportScope,
    ValidationIssue,
)
from gfa.core import EventStoreError

logger = logging.getLogger(__name__)


class AnalyticsPaths:
    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def sqlite_path(self) -> Path:
        return self.root / "data" / "events.sqlite3"

    @property
    def export_dir(self) -> Path:
        return self.root / "exports"

    @property
    def forensic_dir(self) -> Path:
        return self.root / "forensics"


@dataclass(slots=True)
class Snapshot:
    team_id: str
    scope: ReportScope
    features: EnabledFeatures
    players: list[Player]
    plays: list[PlayEvent] | None
    participations: list[ParticipationEvent] | None
    drives: list[Drive] | None
    issues: list[ValidationIssue] = field(default_factory=list)


class AnalyticsService:
    """Fetches one event snapshot per request and assembles reports from it.

    Store faults degrade the affected sections instead of failing the call.
    """

    def __init__(self, store: EventStore, paths: AnalyticsPaths | None = None, max_workers: int = 4) -> None:
        self.store = store
        self.paths = paths
        self.max_workers = max_workers

    def load_snapshot(self, team_id: str, scope: ReportScope) -> Snapshot:
        scope.validate()
        try:
            features = resolve(self.store.fetch_tier_config(team_id))
        except EventStoreError as exc:
            logger.warning("tier config unavailable for %s (%s); using most restrictive tier", team_id, exc)
            features = EnabledFeatures()

        try:
            players = self.store.fetch_players(team_id)
        except EventStoreError as exc:
            logger.warning("roster unavailable for %s: %s", team_id, exc)
            players = []

        try:
            raw_plays = self.store.fetch_plays(team_id, scope)
        except EventStoreError as exc:
            logger.warning("plays unavailable for %s %s: %s", team_id, scope.label(), exc)
            return Snapshot(team_id, scope, features, players, None, None, None)

        participations: list[ParticipationEvent] | None
        try:
            participations = self.store.fetch_participations(team_id, [p.play_id for p in raw_plays])
        except EventStoreError as exc:
            logger.warning("participations unavailable for %s %s: %s", team_id, scope.label(), exc)
            participations = None

        drives: list[Drive] | None
        try:
            drives = self.store.fetch_drives(team_id, scope)
        except EventStoreError as exc:
            logger.warning("persisted drives unavailable for %s (%s); synthesizing", team_id, exc)
            drives = None

        normalized = normalize_snapshot(raw_plays, participations or [])
        return Snapshot(
            team_id=team_id,
            scope=scope,
            features=features,
            players=players,
            plays=normalized.plays,
            participations=normalized.participations if participations is not None else None,
            drives=drives,
            issues=normalized.issues,
        )

    def rollups_for(self, snapshot: Snapshot) -> RollupTable | None:
        if snapshot.plays is None:
            return None
        try:
            return aggregate(
                snapshot.plays,
                snapshot.participations,
                snapshot.scope,
                snapshot.features,
                issues=snapshot.issues,
            )
        except Exception:
            logger.exception("rollup failed for %s", snapshot.scope.label())
            return None

    def drives_for(self, snapshot: Snapshot) -> DriveSet | None:
        if snapshot.plays is None:
            return None
        context = [p for p in snapshot.plays if in_context(p, snapshot.scope)]
        try:
            return drives_for(context, snapshot.drives)
        except Exception:
            logger.exception("drive resolution failed for %s", snapshot.scope.label())
            return None

    def build_report(self, team_id: str, report_name: str, scope: ReportScope) -> ReportPayload:
        return self.build_reports(team_id, [report_name], scope, max_workers=1)[0]

    def build_reports(
        self,
        team_id: str,
        names: Sequence[str],
        scope: ReportScope,
        max_workers: int | None = None,
    ) -> list[ReportPayload]:
        unknown = [n for n in names if n not in REPORTS]
        if unknown:
            raise ValueError(f"unknown report(s): {', '.join(unknown)}")

        snapshot = self.load_snapshot(team_id, scope)
        rollups = self.rollups_for(snapshot)
        drives = self.drives_for(snapshot)
        assembler = ReportAssembler(
            snapshot.players,
            forensic_dir=self.paths.forensic_dir if self.paths is not None else None,
        )
        workers = max(1, max_workers or self.max_workers)
        if workers == 1 or len(names) == 1:
            return [assembler.build(name, rollups, drives, scope) for name in names]
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(assembler.build, name, rollups, drives, scope) for name in names]
            return [f.result() for f in futures]
