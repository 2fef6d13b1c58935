from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable

from gfa.analytics import positions
from gfa.analytics.drives import DriveSet, summarize_drives
from gfa.analytics.formulas import OL_SLOT_ORDER
from gfa.analytics.rollup import (
    DefenderLine,
    PassingLine,
    PlayCodeLine,
    ReceivingLine,
    RollupTable,
    RushingLine,
    rank_play_codes,
)
from gfa.contracts import (
    Feature,
    PayloadStatus,
    Player,
    PositionBucket,
    Possession,
    ReportPayload,
    ReportScope,
    ReportSection,
    ScopeKind,
    SectionStatus,
)
from gfa.core import EngineIntegrityError, integrity_failure, persist_forensic_artifact

logger = logging.getLogger(__name__)

PASSING_FIELDS = (
    "games", "attempts", "completions", "completion_pct", "yards", "yards_per_attempt", "touchdowns",
    "interceptions", "sacks", "sack_rate", "success_rate", "explosive_passes", "long",
)
RUSHING_FIELDS = (
    "games", "carries", "yards", "yards_per_carry", "touchdowns", "fumbles", "success_rate",
    "explosive_runs", "explosive_rate", "long",
)
RECEIVING_FIELDS = (
    "games", "targets", "receptions", "catch_rate", "yards", "yards_per_reception", "yards_per_target",
    "touchdowns", "drops", "explosive_catches", "success_rate", "long",
)
BLOCKING_FIELDS = ("games", "primary_slot", "assignments", "wins", "losses", "neutrals", "block_win_rate", "penalties")
BLOCKING_UNIT_FIELDS = ("assignments", "wins", "losses", "neutrals", "penalties", "block_win_rate")
PLAY_CODE_FIELDS = ("play_code", "plays", "yards", "avg_yards", "success_rate", "explosive_plays")
DL_FIELDS = (
    "games", "plays", "tackles", "primary_tackles", "assist_tackles", "missed_tackles", "missed_tackle_rate",
    "tackles_for_loss", "sacks", "pressures", "hurries", "hits", "forced_fumbles", "fumble_recoveries", "havoc_plays",
)
LB_FIELDS = (
    "games", "plays", "tackles", "primary_tackles", "assist_tackles", "missed_tackles", "missed_tackle_rate",
    "tackles_for_loss", "sacks", "pressures", "interceptions", "pass_breakups", "forced_fumbles",
    "coverage_snaps", "coverage_success_rate", "havoc_plays",
)
DB_FIELDS = (
    "games", "plays", "tackles", "primary_tackles", "assist_tackles", "missed_tackles", "missed_tackle_rate",
    "interceptions", "pass_breakups", "forced_fumbles", "coverage_snaps", "coverage_wins", "coverage_losses",
    "coverage_success_rate", "havoc_plays",
)
ALL_DEFENDER_FIELDS = (
    "games", "plays", "tackles", "primary_tackles", "assist_tackles", "missed_tackles", "tackles_for_loss",
    "sacks", "pressures", "interceptions", "pass_breakups", "forced_fumbles", "fumble_recoveries",
    "coverage_snaps", "special_teams_tackles", "havoc_plays",
)
RETURNER_FIELDS = (
    "total_returns", "kick_returns", "kick_return_yards", "kick_return_average", "punt_returns",
    "punt_return_yards", "punt_return_average", "fair_catches", "touchdowns", "long",
)
KICKER_FIELDS = (
    "total_kicks", "kickoffs", "touchbacks", "touchback_rate", "field_goal_attempts", "field_goals_made",
    "field_goal_pct", "field_goal_long", "pat_attempts", "pats_made", "pat_pct", "punts", "punt_yards",
    "punt_average", "punt_long",
)
TEAM_FIELDS = (
    "games", "plays", "yards", "yards_per_play", "yards_per_game", "rushes", "rush_yards", "yards_per_carry",
    "pass_attempts", "completions", "completion_pct", "pass_yards", "sacks", "first_downs", "touchdowns",
    "turnovers", "success_rate", "explosive_plays", "explosive_rate", "third_down_attempts",
    "third_down_conversions", "third_down_pct", "fourth_down_attempts", "fourth_down_conversions",
    "red_zone_plays", "red_zone_touchdowns",
)
TEAM_PASSING_FIELDS = ("games", "pass_attempts", "completions", "completion_pct", "pass_yards", "sacks", "turnovers")
TEAM_RUSHING_FIELDS = ("games", "rushes", "rush_yards", "yards_per_carry", "success_rate", "explosive_plays")
DOWN_FIELDS = ("down", "plays", "yards", "yards_per_play", "success_rate", "conversions", "conversion_rate")
SITUATION_FIELDS = (
    "label", "plays", "yards", "yards_per_play", "success_rate", "first_downs", "explosive_plays", "explosive_rate",
)
SPECIAL_TEAMS_FIELDS = (
    "kickoffs", "kickoff_touchbacks", "kick_returns", "kick_return_yards", "kick_return_average", "punts",
    "punt_yards", "punt_average", "punt_returns", "punt_return_yards", "punt_return_average",
    "field_goal_attempts", "field_goals_made", "field_goal_pct", "pat_attempts", "pats_made", "pat_pct",
)
DISRUPTION_FIELDS = (
    "defensive_plays", "sacks", "tackles_for_loss", "forced_fumbles", "pass_breakups", "interceptions",
    "pressures", "havoc_plays", "havoc_rate", "pressure_rate",
)
DRIVE_SUMMARY_FIELDS = (
    "possession", "method", "drives", "plays", "yards", "points", "first_downs", "points_per_drive",
    "plays_per_drive", "yards_per_drive", "scoring_drives", "scoring_drive_rate", "three_and_outs",
    "three_and_out_rate", "red_zone_drives", "red_zone_touchdowns", "red_zone_td_rate", "stops", "stop_rate",
)
DRIVE_LOG_FIELDS = (
    "drive_id", "game_id", "possession", "drive_number", "quarter", "start_field_position",
    "end_field_position", "play_count", "yards_gained", "first_downs", "points", "result", "three_and_out",
    "scoring_drive", "reached_red_zone",
)

_NO_SLOT = len(OL_SLOT_ORDER)
PLAY_CODE_LIMIT = 5


def _value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, float):
        return round(value, 2)
    return value


def pick(source: Any, names: Iterable[str]) -> dict[str, Any]:
    return {name: _value(getattr(source, name)) for name in names}


@dataclass(slots=True)
class SectionContext:
    rollups: RollupTable
    drives: DriveSet | None
    scope: ReportScope
    players: dict[str, Player]

    def wants(self, player_id: str) -> bool:
        return self.scope.kind != ScopeKind.PLAYER or player_id == self.scope.player_id

    def identity(self, player_id: str, bucket: PositionBucket | None = None) -> dict[str, Any]:
        player = self.players.get(player_id)
        if player is None:
            return {"player_id": player_id, "name": "", "jersey_number": "", "positions": ""}
        row: dict[str, Any] = {
            "player_id": player.player_id,
            "name": player.name,
            "jersey_number": player.jersey_number,
            "positions": "/".join(sorted(positions.held_positions(player))),
        }
        if bucket is not None:
            row["depth"] = positions.best_depth(player, bucket)
        return row


SectionBuilder = Callable[[SectionContext], tuple[list[dict[str, Any]], dict[str, Any]]]


@dataclass(frozen=True, slots=True)
class SectionSpec:
    key: str
    title: str
    required_feature: Feature | None
    builder: SectionBuilder
    source: str = "plays"


def check_row(section_key: str, row: dict[str, Any], scope: ReportScope) -> None:
    for name, value in row.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        bad = not math.isfinite(value)
        if name.endswith("_rate") or name.endswith("_pct"):
            bad = bad or not 0.0 <= value <= 100.0
        if bad:
            raise integrity_failure(
                "report_assembler",
                "RATE_OUT_OF_RANGE",
                f"{section_key}.{name}={value!r} outside valid range",
                state_snapshot={"row": dict(row)},
                context={"section": section_key, "scope": scope.label()},
                identifiers={"player_id": str(row.get("player_id", ""))},
                causal_fragment=[section_key, name],
            )


def check_tackles(line: DefenderLine, scope: ReportScope) -> None:
    if line.primary_tackles + line.assist_tackles == line.tackles:
        return
    raise integrity_failure(
        "rollup",
        "TACKLE_TOTAL_MISMATCH",
        f"primary + assist tackles != total for {line.player_id}",
        state_snapshot={
            "primary_tackles": line.primary_tackles,
            "assist_tackles": line.assist_tackles,
            "tackles": line.tackles,
        },
        context={"scope": scope.label()},
        identifiers={"player_id": line.player_id},
        causal_fragment=["defenders", "tackles"],
    )


def _bucket_rows(
    bucket: PositionBucket,
    family: str,
    fields: tuple[str, ...],
    factory: Callable[[str], Any],
) -> SectionBuilder:
    def build(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        lines = getattr(ctx.rollups, family) or {}
        active = ctx.rollups.active_players
        rows = []
        for player in positions.members(ctx.players.values(), bucket):
            if player.player_id not in active or not ctx.wants(player.player_id):
                continue
            line = lines.get(player.player_id)
            if line is None:
                line = factory(player.player_id)
            if isinstance(line, DefenderLine):
                check_tackles(line, ctx.scope)
            rows.append({**ctx.identity(player.player_id, bucket), **pick(line, fields)})
        return rows, {}

    return build


def _blocking(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    lines = [line for pid, line in (ctx.rollups.blocking or {}).items() if ctx.wants(pid)]
    rows = [{**ctx.identity(line.player_id, PositionBucket.OL), **pick(line, BLOCKING_FIELDS)} for line in lines]
    rows.sort(
        key=lambda r: (
            OL_SLOT_ORDER.index(r["primary_slot"]) if r["primary_slot"] in OL_SLOT_ORDER else _NO_SLOT,
            r["name"],
            r["player_id"],
        )
    )
    unit = ctx.rollups.blocking_unit
    return rows, pick(unit, BLOCKING_UNIT_FIELDS) if unit is not None else {}


def _play_code_rows(lines: list[PlayCodeLine]) -> list[dict[str, Any]]:
    return [pick(line, PLAY_CODE_FIELDS) for line in lines]


def _top_plays(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    ranked = rank_play_codes(ctx.rollups.play_codes.values())
    return _play_code_rows(ranked[:PLAY_CODE_LIMIT]), {"ranked_play_codes": len(ranked)}


def _bottom_plays(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    ranked = rank_play_codes(ctx.rollups.play_codes.values())
    return _play_code_rows(list(reversed(ranked[-PLAY_CODE_LIMIT:]))), {"ranked_play_codes": len(ranked)}


def _all_defenders(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    rows = []
    for pid, line in (ctx.rollups.defenders or {}).items():
        if not ctx.wants(pid):
            continue
        check_tackles(line, ctx.scope)
        rows.append({**ctx.identity(pid), **pick(line, ALL_DEFENDER_FIELDS)})
    return rows, {}


def _returners(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    lines = [line for pid, line in (ctx.rollups.returning or {}).items() if ctx.wants(pid)]
    lines.sort(key=lambda line: (-line.total_returns, line.player_id))
    return [{**ctx.identity(line.player_id), **pick(line, RETURNER_FIELDS)} for line in lines], {}


def _kickers(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    lines = [line for pid, line in (ctx.rollups.kicking or {}).items() if ctx.wants(pid)]
    lines.sort(key=lambda line: (-line.total_kicks, line.player_id))
    return [{**ctx.identity(line.player_id), **pick(line, KICKER_FIELDS)} for line in lines], {}


def _team(side: str, fields: tuple[str, ...]) -> SectionBuilder:
    def build(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        return [], pick(getattr(ctx.rollups, side), fields)

    return build


def _downs(side: str) -> SectionBuilder:
    def build(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        lines = getattr(ctx.rollups, f"{side}_downs")
        return [pick(line, DOWN_FIELDS) for line in lines.values()], {}

    return build


def _special_teams(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    return [], pick(ctx.rollups.special_teams, SPECIAL_TEAMS_FIELDS)


def _disruption(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    if ctx.rollups.disruption is None:
        return [], {}
    return [], pick(ctx.rollups.disruption, DISRUPTION_FIELDS)


def _situations(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    return [pick(line, SITUATION_FIELDS) for line in (ctx.rollups.situational or {}).values()], {}


def _drive_summary_row(ctx: SectionContext, possession: Possession) -> dict[str, Any]:
    summary = summarize_drives(ctx.drives.drives, possession, ctx.drives.estimated_plays, ctx.drives.method)
    row = pick(summary, DRIVE_SUMMARY_FIELDS)
    for result, count in sorted(summary.results.items()):
        row[f"result_{result}"] = count
    return row


def _drive_summary(possession: Possession) -> SectionBuilder:
    def build(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        return [], _drive_summary_row(ctx, possession)

    return build


def _drive_overview(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    return [_drive_summary_row(ctx, Possession.OFFENSE), _drive_summary_row(ctx, Possession.DEFENSE)], {}


def _drive_log(ctx: SectionContext) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    drives = sorted(ctx.drives.drives, key=lambda d: (d.game_id, d.drive_number, d.possession.value))
    return [pick(drive, DRIVE_LOG_FIELDS) for drive in drives], {}


def _participation_section(key: str, title: str, feature: Feature, builder: SectionBuilder) -> SectionSpec:
    return SectionSpec(key, title, feature, builder, source="participations")


OFFENSE = SectionSpec("offense", "Offense", None, _team("offense", TEAM_FIELDS))
DEFENSE = SectionSpec("defense", "Defense", None, _team("defense", TEAM_FIELDS))
OFFENSE_DOWNS = SectionSpec("offense_downs", "Offense by Down", None, _downs("offense"))
DEFENSE_DOWNS = SectionSpec("defense_downs", "Defense by Down", None, _downs("defense"))
SPECIAL_TEAMS = SectionSpec("special_teams", "Special Teams", None, _special_teams)
TEAM_PASSING = SectionSpec("team_passing", "Team Passing", None, _team("offense", TEAM_PASSING_FIELDS))
TEAM_RUSHING = SectionSpec("team_rushing", "Team Rushing", None, _team("offense", TEAM_RUSHING_FIELDS))
TOP_PLAYS = SectionSpec("top_plays", "Top Plays", None, _top_plays)
BOTTOM_PLAYS = SectionSpec("bottom_plays", "Bottom Plays", None, _bottom_plays)
DRIVES = SectionSpec("drives", "Drives", Feature.DRIVE_ANALYTICS, _drive_overview, source="drives")
OFFENSE_DRIVES = SectionSpec(
    "offense_drives", "Offensive Drives", Feature.DRIVE_ANALYTICS, _drive_summary(Possession.OFFENSE), source="drives"
)
DEFENSE_DRIVES = SectionSpec(
    "defense_drives", "Defensive Drives", Feature.DRIVE_ANALYTICS, _drive_summary(Possession.DEFENSE), source="drives"
)
DRIVE_LOG = SectionSpec("drive_log", "Drive Log", Feature.DRIVE_ANALYTICS, _drive_log, source="drives")
DISRUPTION = _participation_section("disruption", "Defensive Disruption", Feature.DEFENSIVE_TRACKING, _disruption)

PASSING = _participation_section(
    "passing", "Quarterbacks", Feature.PLAYER_ATTRIBUTION,
    _bucket_rows(PositionBucket.QB, "passing", PASSING_FIELDS, PassingLine),
)
RUSHING = _participation_section(
    "rushing", "Running Backs", Feature.PLAYER_ATTRIBUTION,
    _bucket_rows(PositionBucket.RB, "rushing", RUSHING_FIELDS, RushingLine),
)
RECEIVING = _participation_section(
    "receiving", "Receivers and Tight Ends", Feature.PLAYER_ATTRIBUTION,
    _bucket_rows(PositionBucket.WR_TE, "receiving", RECEIVING_FIELDS, ReceivingLine),
)
BLOCKING = _participation_section("blocking", "Offensive Line", Feature.OL_TRACKING, _blocking)
RETURNERS = _participation_section("returners", "Returners", Feature.PLAYER_ATTRIBUTION, _returners)
KICKERS = _participation_section("kickers", "Kickers and Punters", Feature.PLAYER_ATTRIBUTION, _kickers)
ALL_DEFENDERS = _participation_section("all_defenders", "All Defenders", Feature.DEFENSIVE_TRACKING, _all_defenders)

_DL_ROWS = _bucket_rows(PositionBucket.DL, "defenders", DL_FIELDS, DefenderLine)
_LB_ROWS = _bucket_rows(PositionBucket.LB, "defenders", LB_FIELDS, DefenderLine)
_DB_ROWS = _bucket_rows(PositionBucket.DB, "defenders", DB_FIELDS, DefenderLine)

_GAME_SECTIONS = (OFFENSE, DEFENSE, OFFENSE_DOWNS, DEFENSE_DOWNS, SPECIAL_TEAMS, DRIVES, DISRUPTION)

REPORTS: dict[str, tuple[SectionSpec, ...]] = {
    "qb": (PASSING, TEAM_PASSING),
    "rb": (RUSHING, TEAM_RUSHING),
    "wr_te": (RECEIVING, TEAM_PASSING),
    "ol": (BLOCKING,),
    "dl": (_participation_section("defenders", "Defensive Line", Feature.DEFENSIVE_TRACKING, _DL_ROWS),),
    "lb": (_participation_section("defenders", "Linebackers", Feature.DEFENSIVE_TRACKING, _LB_ROWS),),
    "db": (_participation_section("defenders", "Defensive Backs", Feature.DEFENSIVE_TRACKING, _DB_ROWS),),
    "returner": (RETURNERS, SPECIAL_TEAMS),
    "kicker": (KICKERS, SPECIAL_TEAMS),
    "drive": (OFFENSE_DRIVES, DEFENSE_DRIVES, DRIVE_LOG),
    "game": _GAME_SECTIONS,
    "season": _GAME_SECTIONS + (ALL_DEFENDERS,),
    "situational": (
        SectionSpec("offense_splits", "Situational Splits", Feature.SITUATIONAL_SPLITS, _situations),
    ),
    "offense": (
        OFFENSE, OFFENSE_DOWNS, TOP_PLAYS, BOTTOM_PLAYS, PASSING, RUSHING, RECEIVING, BLOCKING, OFFENSE_DRIVES,
    ),
    "defense": (
        DEFENSE,
        DEFENSE_DOWNS,
        DISRUPTION,
        _participation_section("defensive_line", "Defensive Line", Feature.DEFENSIVE_TRACKING, _DL_ROWS),
        _participation_section("linebackers", "Linebackers", Feature.DEFENSIVE_TRACKING, _LB_ROWS),
        _participation_section("defensive_backs", "Defensive Backs", Feature.DEFENSIVE_TRACKING, _DB_ROWS),
        DEFENSE_DRIVES,
    ),
    "special_teams": (SPECIAL_TEAMS, RETURNERS, KICKERS),
}

REPORT_NAMES = tuple(REPORTS)


class ReportAssembler:
    """Turns a rollup table and drive set into a named, sectioned payload.

    Sections are gated and built independently: a disabled feature yields a
    requires_tier section, and a failing builder only takes its own section
    down.
    """

    def __init__(self, players: Iterable[Player] = (), forensic_dir: Path | None = None) -> None:
        self.players = {p.player_id: p for p in players}
        self.forensic_dir = forensic_dir

    def build(
        self,
        report_name: str,
        rollups: RollupTable | None,
        drives: DriveSet | None,
        scope: ReportScope,
    ) -> ReportPayload:
        specs = REPORTS.get(report_name)
        if specs is None:
            raise ValueError(f"unknown report {report_name!r}; expected one of {', '.join(REPORT_NAMES)}")
        scope.validate()

        if rollups is None or not rollups.has_play_input:
            logger.warning("report %s for %s has no usable plays", report_name, scope.label())
            sections = [
                ReportSection(
                    key=spec.key,
                    title=spec.title,
                    status=SectionStatus.UNAVAILABLE,
                    required_feature=spec.required_feature,
                    note="no play data in scope",
                )
                for spec in specs
            ]
            return ReportPayload(
                report_name=report_name,
                scope=scope,
                status=PayloadStatus.UNAVAILABLE,
                sections=sections,
                issues=list(rollups.issues) if rollups is not None else [],
                generated_from=self._provenance(rollups, drives),
            )

        ctx = SectionContext(rollups=rollups, drives=drives, scope=scope, players=self.players)
        sections = [self._section(spec, ctx) for spec in specs]
        return ReportPayload(
            report_name=report_name,
            scope=scope,
            status=PayloadStatus.OK,
            sections=sections,
            issues=list(rollups.issues),
            generated_from=self._provenance(rollups, drives),
        )

    def _section(self, spec: SectionSpec, ctx: SectionContext) -> ReportSection:
        section = ReportSection(
            key=spec.key,
            title=spec.title,
            status=SectionStatus.UNAVAILABLE,
            required_feature=spec.required_feature,
        )
        if spec.required_feature is not None and not ctx.rollups.features.enabled(spec.required_feature):
            section.status = SectionStatus.REQUIRES_TIER
            section.note = f"requires {spec.required_feature.value}"
            return section
        if spec.source == "participations" and ctx.rollups.participation_fault:
            section.note = "participation data unavailable"
            return section
        if spec.source == "drives" and ctx.drives is None:
            section.note = "drive data unavailable"
            return section

        try:
            rows, fields = spec.builder(ctx)
            for row in rows:
                check_row(spec.key, row, ctx.scope)
            check_row(spec.key, fields, ctx.scope)
        except EngineIntegrityError as exc:
            logger.error("integrity failure in section %s: %s", spec.key, exc)
            if self.forensic_dir is not None:
                path = persist_forensic_artifact(exc.artifact, self.forensic_dir)
                logger.error("forensic artifact written to %s", path)
            section.note = f"integrity check failed: {exc.code}"
            return section
        except Exception:
            logger.exception("section %s failed for %s", spec.key, ctx.scope.label())
            section.note = "section could not be computed"
            return section

        section.status = SectionStatus.AVAILABLE
        section.rows = rows
        section.fields = fields
        return section

    @staticmethod
    def _provenance(rollups: RollupTable | None, drives: DriveSet | None) -> dict[str, Any]:
        if rollups is None:
            return {"plays": 0, "participations": 0, "drive_method": None, "features": []}
        return {
            "plays": len(rollups.plays),
            "participations": len(rollups.participations),
            "drive_method": drives.method if drives is not None else None,
            "features": [f.value for f in Feature if rollups.features.enabled(f)],
        }
