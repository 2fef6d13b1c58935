from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence


class PlayType(str, Enum):
    RUN = "run"
    PASS = "pass"
    SCREEN = "screen"
    RPO = "rpo"
    TRICK = "trick"
    KICK = "kick"
    PUNT = "punt"
    FIELD_GOAL = "field_goal"
    PAT = "pat"
    TWO_POINT = "two_point"


class SpecialTeamsUnit(str, Enum):
    KICKOFF = "kickoff"
    KICK_RETURN = "kick_return"
    PUNT = "punt"
    PUNT_RETURN = "punt_return"
    FIELD_GOAL = "field_goal"
    PAT = "pat"


class ParticipationType(str, Enum):
    PASSER = "passer"
    RUSHER = "rusher"
    RECEIVER = "receiver"
    OL_LT = "ol_lt"
    OL_LG = "ol_lg"
    OL_C = "ol_c"
    OL_RG = "ol_rg"
    OL_RT = "ol_rt"
    OL_PENALTY = "ol_penalty"
    PRIMARY_TACKLE = "primary_tackle"
    ASSIST_TACKLE = "assist_tackle"
    MISSED_TACKLE = "missed_tackle"
    TACKLE_FOR_LOSS = "tackle_for_loss"
    PRESSURE = "pressure"
    INTERCEPTION = "interception"
    PASS_BREAKUP = "pass_breakup"
    FORCED_FUMBLE = "forced_fumble"
    FUMBLE_RECOVERY = "fumble_recovery"
    COVERAGE_ASSIGNMENT = "coverage_assignment"
    LB_PASS_COVERAGE = "lb_pass_coverage"
    DB_PASS_COVERAGE = "db_pass_coverage"
    KICKER = "kicker"
    PUNTER = "punter"
    RETURNER = "returner"
    COVERAGE_TACKLE = "coverage_tackle"


class Phase(str, Enum):
    OFFENSE = "offense"
    OFFENSIVE_LINE = "offensive_line"
    DEFENSE = "defense"
    SPECIAL_TEAMS = "special_teams"


class BlockResult(str, Enum):
    WIN = "win"
    LOSS = "loss"
    NEUTRAL = "neutral"


class Possession(str, Enum):
    OFFENSE = "offense"
    DEFENSE = "defense"


class DriveResult(str, Enum):
    TOUCHDOWN = "touchdown"
    FIELD_GOAL = "field_goal"
    PUNT = "punt"
    TURNOVER = "turnover"
    DOWNS = "downs"
    END_HALF = "end_half"
    END_GAME = "end_game"
    SAFETY = "safety"
    UNRESOLVED = "unresolved"


class AnalyticsTier(str, Enum):
    LITTLE_LEAGUE = "little_league"
    HS_BASIC = "hs_basic"
    HS_ADVANCED = "hs_advanced"
    AI_POWERED = "ai_powered"


class Feature(str, Enum):
    BASIC = "basic"
    DRIVE_ANALYTICS = "drive_analytics"
    PLAYER_ATTRIBUTION = "player_attribution"
    OL_TRACKING = "ol_tracking"
    DEFENSIVE_TRACKING = "defensive_tracking"
    SITUATIONAL_SPLITS = "situational_splits"


class PositionBucket(str, Enum):
    QB = "QB"
    RB = "RB"
    WR_TE = "WR/TE"
    OL = "OL"
    DL = "DL"
    LB = "LB"
    DB = "DB"
    K = "K"
    P = "P"


class ScopeKind(str, Enum):
    SEASON = "season"
    GAME = "game"
    PLAYER = "player"


class SectionStatus(str, Enum):
    AVAILABLE = "available"
    REQUIRES_TIER = "requires_tier"
    UNAVAILABLE = "unavailable"


class PayloadStatus(str, Enum):
    OK = "ok"
    UNAVAILABLE = "unavailable"


@dataclass(slots=True)
class PlayEvent:
    play_id: str
    team_id: str
    game_id: str
    season: int
    down: int | None
    distance: int | None
    field_position: int | None
    quarter: int
    is_opponent_play: bool
    play_type: PlayType
    yards_gained: int = 0
    is_turnover: bool = False
    is_touchdown: bool = False
    resulted_in_first_down: bool = False
    drive_id: str | None = None
    special_teams_unit: SpecialTeamsUnit | None = None
    timestamp: float | None = None
    result: str | None = None
    turnover_type: str | None = None
    qb_id: str | None = None
    ball_carrier_id: str | None = None
    target_id: str | None = None
    has_motion: bool | None = None
    is_play_action: bool | None = None
    facing_blitz: bool | None = None
    play_code: str | None = None

    @property
    def possession(self) -> Possession:
        return Possession.DEFENSE if self.is_opponent_play else Possession.OFFENSE

    @property
    def possession_field_position(self) -> int | None:
        if self.field_position is None:
            return None
        return 100 - self.field_position if self.is_opponent_play else self.field_position

    @property
    def is_special_teams(self) -> bool:
        return self.special_teams_unit is not None or self.play_type in {
            PlayType.KICK,
            PlayType.PUNT,
            PlayType.FIELD_GOAL,
            PlayType.PAT,
        }


@dataclass(slots=True)
class ParticipationEvent:
    play_id: str
    player_id: str
    participation_type: ParticipationType
    result: str | None = None
    yards: int | None = None
    is_touchdown: bool = False


@dataclass(slots=True)
class Player:
    player_id: str
    name: str
    jersey_number: str = ""
    position_depths: dict[str, int] = field(default_factory=dict)
    primary_position: str = ""


@dataclass(slots=True)
class Drive:
    drive_id: str
    game_id: str
    team_id: str
    possession: Possession
    drive_number: int
    quarter: int
    plays: list[PlayEvent]
    start_field_position: int | None
    end_field_position: int | None
    play_count: int
    yards_gained: int
    first_downs: int
    points: int
    result: DriveResult

    @property
    def scoring_drive(self) -> bool:
        return self.result in {DriveResult.TOUCHDOWN, DriveResult.FIELD_GOAL}

    @property
    def three_and_out(self) -> bool:
        return self.result == DriveResult.PUNT and 1 <= self.play_count <= 3 and self.first_downs == 0

    @property
    def reached_red_zone(self) -> bool:
        return any(
            p.possession_field_position is not None and p.possession_field_position >= 80
            for p in self.plays
        )


@dataclass(slots=True)
class TierConfig:
    team_id: str
    tier: AnalyticsTier = AnalyticsTier.LITTLE_LEAGUE
    enable_drive_analytics: bool = False
    enable_player_attribution: bool = False
    enable_ol_tracking: bool = False
    enable_defensive_tracking: bool = False
    enable_situational_splits: bool = False


@dataclass(frozen=True, slots=True)
class EnabledFeatures:
    drive_analytics: bool = False
    player_attribution: bool = False
    ol_tracking: bool = False
    defensive_tracking: bool = False
    situational_splits: bool = False
    basic: bool = True

    def enabled(self, feature: Feature) -> bool:
        return bool(getattr(self, feature.value))


@dataclass(frozen=True, slots=True)
class ReportScope:
    kind: ScopeKind
    season: int | None = None
    game_id: str | None = None
    player_id: str | None = None

    @classmethod
    def for_season(cls, season: int) -> ReportScope:
        return cls(kind=ScopeKind.SEASON, season=season)

    @classmethod
    def for_game(cls, game_id: str) -> ReportScope:
        return cls(kind=ScopeKind.GAME, game_id=game_id)

    @classmethod
    def for_player(cls, player_id: str, season: int | None = None) -> ReportScope:
        return cls(kind=ScopeKind.PLAYER, season=season, player_id=player_id)

    def validate(self) -> None:
        if self.kind == ScopeKind.SEASON and self.season is None:
            raise ValueError("season scope requires a season")
        if self.kind == ScopeKind.GAME and not self.game_id:
            raise ValueError("game scope requires a game_id")
        if self.kind == ScopeKind.PLAYER and not self.player_id:
            raise ValueError("player scope requires a player_id")

    def label(self) -> str:
        if self.kind == ScopeKind.GAME:
            return f"game:{self.game_id}"
        if self.kind == ScopeKind.PLAYER:
            suffix = f"@{self.season}" if self.season is not None else ""
            return f"player:{self.player_id}{suffix}"
        return f"season:{self.season}"


@dataclass(slots=True)
class ValidationIssue:
    code: str
    severity: str
    field_path: str
    entity_id: str
    message: str


@dataclass(slots=True)
class ValidationResult:
    ok: bool
    issues: list[ValidationIssue]


class ValidationError(ValueError):
    def __init__(self, issues: list[ValidationIssue]) -> None:
        message = "; ".join(f"{i.code}:{i.entity_id}:{i.message}" for i in issues)
        super().__init__(message)
        self.issues = issues


@dataclass(slots=True)
class ReportSection:
    key: str
    title: str
    status: SectionStatus
    required_feature: Feature | None = None
    rows: list[dict[str, Any]] = field(default_factory=list)
    fields: dict[str, Any] = field(default_factory=dict)
    note: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "status": self.status.value,
            "required_feature": self.required_feature.value if self.required_feature else None,
            "rows": [dict(r) for r in self.rows],
            "fields": dict(self.fields),
            "note": self.note,
        }


@dataclass(slots=True)
class ReportPayload:
    report_name: str
    scope: ReportScope
    status: PayloadStatus
    sections: list[ReportSection]
    issues: list[ValidationIssue] = field(default_factory=list)
    generated_from: dict[str, Any] = field(default_factory=dict)

    def section(self, key: str) -> ReportSection | None:
        for s in self.sections:
            if s.key == key:
                return s
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "report_name": self.report_name,
            "scope": {
                "kind": self.scope.kind.value,
                "season": self.scope.season,
                "game_id": self.scope.game_id,
                "player_id": self.scope.player_id,
            },
            "status": self.status.value,
            "sections": [s.to_dict() for s in self.sections],
            "issues": [
                {
                    "code": i.code,
                    "severity": i.severity,
                    "field_path": i.field_path,
                    "entity_id": i.entity_id,
                    "message": i.message,
                }
                for i in self.issues
            ],
            "generated_from": dict(self.generated_from),
        }


@dataclass(slots=True)
class ForensicArtifact:
    artifact_id: str
    timestamp: datetime
    engine_scope: str
    error_code: str
    message: str
    state_snapshot: Mapping[str, Any]
    context: Mapping[str, Any]
    identifiers: Mapping[str, str]
    causal_fragment: Sequence[str]


class EventStore(Protocol):
    def fetch_tier_config(self, team_id: str) -> TierConfig | Mapping[str, Any] | None: ...

    def fetch_players(self, team_id: str) -> list[Player]: ...

    def fetch_plays(self, team_id: str, scope: ReportScope) -> list[PlayEvent]: ...

    def fetch_participations(self, team_id: str, play_ids: Sequence[str]) -> list[ParticipationEvent]: ...

    def fetch_drives(self, team_id: str, scope: ReportScope) -> list[Drive]: ...
