from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Hashable, Iterable, Protocol, TypeVar

from gfa.analytics import formulas
from gfa.contracts import (
    BlockResult,
    EnabledFeatures,
    Feature,
    ParticipationEvent,
    ParticipationType,
    Phase,
    PlayEvent,
    ReportScope,
    ScopeKind,
    SpecialTeamsUnit,
    ValidationIssue,
)

logger = logging.getLogger(__name__)

MIN_PLAY_CODE_PLAYS = 3

SITUATION_ORDER = (
    "1st down",
    "2nd & short",
    "2nd & medium",
    "2nd & long",
    "3rd & short",
    "3rd & medium",
    "3rd & long",
    "4th down",
    "red zone",
    "motion",
    "no motion",
    "play action",
    "no play action",
    "vs blitz",
    "no blitz",
)


@dataclass(slots=True)
class Touch:
    play: PlayEvent
    participation: ParticipationEvent


class Accumulator(Protocol):
    def add(self, record) -> None: ...


K = TypeVar("K", bound=Hashable)
R = TypeVar("R")
A = TypeVar("A", bound=Accumulator)


def fold(records: Iterable[R], key: Callable[[R], K | None], factory: Callable[[K], A]) -> dict[K, A]:
    """Group records by key and feed each group into a fresh accumulator.

    Records whose key is None are skipped. Output is ordered by sorted key.
    """
    groups: dict[K, A] = {}
    for record in records:
        k = key(record)
        if k is None:
            continue
        acc = groups.get(k)
        if acc is None:
            acc = factory(k)
            groups[k] = acc
        acc.add(record)
    return {k: groups[k] for k in sorted(groups)}


@dataclass(slots=True)
class TeamPlayLine:
    side: str
    plays: int = 0
    yards: int = 0
    rushes: int = 0
    rush_yards: int = 0
    pass_attempts: int = 0
    completions: int = 0
    pass_yards: int = 0
    sacks: int = 0
    first_downs: int = 0
    touchdowns: int = 0
    turnovers: int = 0
    success_plays: int = 0
    success_eligible: int = 0
    explosive_plays: int = 0
    third_down_attempts: int = 0
    third_down_conversions: int = 0
    fourth_down_attempts: int = 0
    fourth_down_conversions: int = 0
    red_zone_plays: int = 0
    red_zone_touchdowns: int = 0
    game_ids: set[str] = field(default_factory=set)

    def add(self, play: PlayEvent, passer: ParticipationEvent | None = None) -> None:
        """Count one scrimmage snap; `passer` is the play's tagged passer, when there is one."""
        self.game_ids.add(play.game_id)
        self.plays += 1
        self.yards += play.yards_gained
        if formulas.is_passing_play(play):
            if formulas.is_sack(play, passer):
                self.sacks += 1
            else:
                self.pass_attempts += 1
                if formulas.is_completion(play, passer):
                    self.completions += 1
                    self.pass_yards += play.yards_gained
        elif formulas.is_rushing_play(play):
            self.rushes += 1
            self.rush_yards += play.yards_gained
        converted = play.resulted_in_first_down or play.is_touchdown
        scored = formulas.is_offensive_touchdown(play)
        self.first_downs += int(play.resulted_in_first_down)
        self.touchdowns += int(scored)
        self.turnovers += int(play.is_turnover)
        success = formulas.is_success(play)
        if success is not None:
            self.success_eligible += 1
            self.success_plays += int(success)
        self.explosive_plays += int(formulas.is_explosive(play, participation=passer))
        if play.down == 3:
            self.third_down_attempts += 1
            self.third_down_conversions += int(converted and not play.is_turnover)
        elif play.down == 4:
            self.fourth_down_attempts += 1
            self.fourth_down_conversions += int(converted and not play.is_turnover)
        if formulas.is_red_zone(play):
            self.red_zone_plays += 1
            self.red_zone_touchdowns += int(scored)

    @property
    def games(self) -> int:
        return len(self.game_ids)

    @property
    def yards_per_play(self) -> float:
        return formulas.per(self.yards, self.plays)

    @property
    def yards_per_carry(self) -> float:
        return formulas.per(self.rush_yards, self.rushes)

    @property
    def completion_pct(self) -> float:
        return formulas.pct(self.completions, self.pass_attempts)

    @property
    def success_rate(self) -> float:
        return formulas.pct(self.success_plays, self.success_eligible)

    @property
    def explosive_rate(self) -> float:
        return formulas.pct(self.explosive_plays, self.plays)

    @property
    def third_down_pct(self) -> float:
        return formulas.pct(self.third_down_conversions, self.third_down_attempts)

    @property
    def yards_per_game(self) -> float:
        return formulas.per(self.yards, self.games)


@dataclass(slots=True)
class DownLine:
    down: int
    plays: int = 0
    yards: int = 0
    success_plays: int = 0
    success_eligible: int = 0
    conversions: int = 0

    def add(self, play: PlayEvent) -> None:
        self.plays += 1
        self.yards += play.yards_gained
        success = formulas.is_success(play)
        if success is not None:
            self.success_eligible += 1
            self.success_plays += int(success)
        self.conversions += int((play.resulted_in_first_down or play.is_touchdown) and not play.is_turnover)

    @property
    def yards_per_play(self) -> float:
        return formulas.per(self.yards, self.plays)

    @property
    def success_rate(self) -> float:
        return formulas.pct(self.success_plays, self.success_eligible)

    @property
    def conversion_rate(self) -> float:
        return formulas.pct(self.conversions, self.plays)


@dataclass(slots=True)
class SituationLine:
    label: str
    plays: int = 0
    yards: int = 0
    success_plays: int = 0
    success_eligible: int = 0
    first_downs: int = 0
    explosive_plays: int = 0

    def add(self, play: PlayEvent, passer: ParticipationEvent | None = None) -> None:
        self.plays += 1
        self.yards += play.yards_gained
        success = formulas.is_success(play)
        if success is not None:
            self.success_eligible += 1
            self.success_plays += int(success)
        self.first_downs += int(play.resulted_in_first_down)
        self.explosive_plays += int(formulas.is_explosive(play, participation=passer))

    @property
    def yards_per_play(self) -> float:
        return formulas.per(self.yards, self.plays)

    @property
    def success_rate(self) -> float:
        return formulas.pct(self.success_plays, self.success_eligible)

    @property
    def explosive_rate(self) -> float:
        return formulas.pct(self.explosive_plays, self.plays)


@dataclass(slots=True)
class SpecialTeamsLine:
    kickoffs: int = 0
    kickoff_touchbacks: int = 0
    kick_returns: int = 0
    kick_return_yards: int = 0
    punts: int = 0
    punt_yards: int = 0
    punt_returns: int = 0
    punt_return_yards: int = 0
    field_goal_attempts: int = 0
    field_goals_made: int = 0
    pat_attempts: int = 0
    pats_made: int = 0

    def add(self, play: PlayEvent) -> None:
        kind = formulas.special_teams_kind(play)
        if kind == SpecialTeamsUnit.KICKOFF:
            self.kickoffs += 1
            self.kickoff_touchbacks += int("touchback" in (play.result or "").lower())
        elif kind == SpecialTeamsUnit.KICK_RETURN:
            self.kick_returns += 1
            self.kick_return_yards += play.yards_gained
        elif kind == SpecialTeamsUnit.PUNT:
            self.punts += 1
            self.punt_yards += play.yards_gained
        elif kind == SpecialTeamsUnit.PUNT_RETURN:
            self.punt_returns += 1
            self.punt_return_yards += play.yards_gained
        elif kind == SpecialTeamsUnit.FIELD_GOAL:
            self.field_goal_attempts += 1
            self.field_goals_made += int(formulas.is_kick_made(play))
        elif kind == SpecialTeamsUnit.PAT:
            self.pat_attempts += 1
            self.pats_made += int(formulas.is_kick_made(play))

    @property
    def field_goal_pct(self) -> float:
        return formulas.pct(self.field_goals_made, self.field_goal_attempts)

    @property
    def pat_pct(self) -> float:
        return formulas.pct(self.pats_made, self.pat_attempts)

    @property
    def punt_average(self) -> float:
        return formulas.per(self.punt_yards, self.punts)

    @property
    def kick_return_average(self) -> float:
        return formulas.per(self.kick_return_yards, self.kick_returns)

    @property
    def punt_return_average(self) -> float:
        return formulas.per(self.punt_return_yards, self.punt_returns)


@dataclass(slots=True)
class PassingLine:
    player_id: str
    attempts: int = 0
    completions: int = 0
    yards: int = 0
    touchdowns: int = 0
    interceptions: int = 0
    sacks: int = 0
    success_plays: int = 0
    success_eligible: int = 0
    explosive_passes: int = 0
    long: int = 0
    game_ids: set[str] = field(default_factory=set)

    def add(self, touch: Touch) -> None:
        play, part = touch.play, touch.participation
        self.game_ids.add(play.game_id)
        success = formulas.is_success(play)
        if success is not None:
            self.success_eligible += 1
            self.success_plays += int(success)
        if formulas.is_sack(play, part):
            self.sacks += 1
            return
        self.attempts += 1
        if formulas.is_interception(play, part):
            self.interceptions += 1
            return
        if not formulas.is_completion(play, part):
            return
        gained = part.yards if part.yards is not None else play.yards_gained
        self.completions += 1
        self.yards += gained
        self.long = max(self.long, gained)
        self.touchdowns += int(formulas.is_offensive_touchdown(play, part))
        self.explosive_passes += int(gained >= formulas.EXPLOSIVE_PASS_YARDS)

    @property
    def dropbacks(self) -> int:
        return self.attempts + self.sacks

    @property
    def games(self) -> int:
        return len(self.game_ids)

    @property
    def completion_pct(self) -> float:
        return formulas.pct(self.completions, self.attempts)

    @property
    def yards_per_attempt(self) -> float:
        return formulas.per(self.yards, self.attempts)

    @property
    def sack_rate(self) -> float:
        return formulas.pct(self.sacks, self.dropbacks)

    @property
    def success_rate(self) -> float:
        return formulas.pct(self.success_plays, self.success_eligible)


@dataclass(slots=True)
class RushingLine:
    player_id: str
    carries: int = 0
    yards: int = 0
    touchdowns: int = 0
    fumbles: int = 0
    success_plays: int = 0
    success_eligible: int = 0
    explosive_runs: int = 0
    long: int = 0
    game_ids: set[str] = field(default_factory=set)

    def add(self, touch: Touch) -> None:
        play, part = touch.play, touch.participation
        gained = part.yards if part.yards is not None else play.yards_gained
        self.game_ids.add(play.game_id)
        self.carries += 1
        self.yards += gained
        self.long = max(self.long, gained)
        self.touchdowns += int(formulas.is_offensive_touchdown(play, part))
        self.fumbles += int(play.is_turnover and play.turnover_type == "fumble")
        self.explosive_runs += int(gained >= formulas.EXPLOSIVE_RUN_YARDS)
        success = formulas.is_success(play)
        if success is not None:
            self.success_eligible += 1
            self.success_plays += int(success)

    @property
    def games(self) -> int:
        return len(self.game_ids)

    @property
    def yards_per_carry(self) -> float:
        return formulas.per(self.yards, self.carries)

    @property
    def success_rate(self) -> float:
        return formulas.pct(self.success_plays, self.success_eligible)

    @property
    def explosive_rate(self) -> float:
        return formulas.pct(self.explosive_runs, self.carries)


@dataclass(slots=True)
class ReceivingLine:
    player_id: str
    targets: int = 0
    receptions: int = 0
    yards: int = 0
    touchdowns: int = 0
    drops: int = 0
    explosive_catches: int = 0
    success_plays: int = 0
    success_eligible: int = 0
    long: int = 0
    game_ids: set[str] = field(default_factory=set)

    def add(self, touch: Touch) -> None:
        play, part = touch.play, touch.participation
        self.game_ids.add(play.game_id)
        self.targets += 1
        self.drops += int((part.result or "").lower() == "drop")
        success = formulas.is_success(play)
        if success is not None:
            self.success_eligible += 1
            self.success_plays += int(success)
        if not formulas.is_completion(play, part):
            return
        gained = part.yards if part.yards is not None else play.yards_gained
        self.receptions += 1
        self.yards += gained
        self.long = max(self.long, gained)
        self.touchdowns += int(formulas.is_offensive_touchdown(play, part))
        self.explosive_catches += int(gained >= formulas.EXPLOSIVE_PASS_YARDS)

    @property
    def games(self) -> int:
        return len(self.game_ids)

    @property
    def catch_rate(self) -> float:
        return formulas.pct(self.receptions, self.targets)

    @property
    def yards_per_reception(self) -> float:
        return formulas.per(self.yards, self.receptions)

    @property
    def yards_per_target(self) -> float:
        return formulas.per(self.yards, self.targets)

    @property
    def success_rate(self) -> float:
        return formulas.pct(self.success_plays, self.success_eligible)


@dataclass(slots=True)
class BlockingLine:
    player_id: str
    assignments: int = 0
    wins: int = 0
    losses: int = 0
    neutrals: int = 0
    penalties: int = 0
    slot_counts: dict[str, int] = field(default_factory=dict)
    game_ids: set[str] = field(default_factory=set)

    def add(self, touch: Touch) -> None:
        part = touch.participation
        self.game_ids.add(touch.play.game_id)
        if part.participation_type == ParticipationType.OL_PENALTY:
            self.penalties += 1
            return
        outcome = formulas.classify_block(part)
        if outcome is None:
            return
        self.assignments += 1
        if outcome == BlockResult.WIN:
            self.wins += 1
        elif outcome == BlockResult.LOSS:
            self.losses += 1
        else:
            self.neutrals += 1
        slot = formulas.OL_SLOTS[part.participation_type]
        self.slot_counts[slot] = self.slot_counts.get(slot, 0) + 1

    @property
    def primary_slot(self) -> str | None:
        if not self.slot_counts:
            return None
        return min(self.slot_counts, key=lambda s: (-self.slot_counts[s], formulas.OL_SLOT_ORDER.index(s)))

    @property
    def block_win_rate(self) -> float:
        return formulas.block_win_rate(self.wins, self.assignments)

    @property
    def games(self) -> int:
        return len(self.game_ids)


@dataclass(slots=True)
class DefenderLine:
    player_id: str
    tackles: int = 0
    primary_tackles: int = 0
    assist_tackles: int = 0
    missed_tackles: int = 0
    tackles_for_loss: int = 0
    pressures: int = 0
    sacks: int = 0
    hurries: int = 0
    hits: int = 0
    interceptions: int = 0
    pass_breakups: int = 0
    forced_fumbles: int = 0
    fumble_recoveries: int = 0
    coverage_snaps: int = 0
    coverage_wins: int = 0
    coverage_losses: int = 0
    special_teams_tackles: int = 0
    havoc_plays: int = 0
    play_ids: set[str] = field(default_factory=set)
    game_ids: set[str] = field(default_factory=set)

    def add(self, touch: Touch) -> None:
        part = touch.participation
        kind = part.participation_type
        tag = (part.result or "").lower()
        self.play_ids.add(part.play_id)
        self.game_ids.add(touch.play.game_id)
        self.havoc_plays += int(formulas.is_havoc(part))
        if kind == ParticipationType.PRIMARY_TACKLE:
            self.primary_tackles += 1
            self.tackles += 1
        elif kind == ParticipationType.ASSIST_TACKLE:
            self.assist_tackles += 1
            self.tackles += 1
        elif kind == ParticipationType.MISSED_TACKLE:
            self.missed_tackles += 1
        elif kind == ParticipationType.TACKLE_FOR_LOSS:
            self.tackles_for_loss += 1
        elif kind == ParticipationType.PRESSURE:
            self.pressures += 1
            self.sacks += int(tag == "sack")
            self.hurries += int(tag == "hurry")
            self.hits += int(tag == "hit")
        elif kind == ParticipationType.INTERCEPTION:
            self.interceptions += 1
        elif kind == ParticipationType.PASS_BREAKUP:
            self.pass_breakups += 1
        elif kind == ParticipationType.FORCED_FUMBLE:
            self.forced_fumbles += 1
        elif kind == ParticipationType.FUMBLE_RECOVERY:
            self.fumble_recoveries += 1
        elif kind in formulas.COVERAGE_TYPES:
            self.coverage_snaps += 1
            self.coverage_wins += int(tag == "win")
            self.coverage_losses += int(tag == "loss")
        elif kind == ParticipationType.COVERAGE_TACKLE:
            self.special_teams_tackles += 1

    @property
    def plays(self) -> int:
        return len(self.play_ids)

    @property
    def games(self) -> int:
        return len(self.game_ids)

    @property
    def missed_tackle_rate(self) -> float:
        return formulas.pct(self.missed_tackles, self.tackles + self.missed_tackles)

    @property
    def coverage_success_rate(self) -> float:
        return formulas.pct(self.coverage_wins, self.coverage_snaps)


@dataclass(slots=True)
class ReturnerLine:
    player_id: str
    kick_returns: int = 0
    kick_return_yards: int = 0
    punt_returns: int = 0
    punt_return_yards: int = 0
    fair_catches: int = 0
    touchdowns: int = 0
    long: int = 0

    def add(self, touch: Touch) -> None:
        play, part = touch.play, touch.participation
        if (part.result or "").lower() == "fair_catch":
            self.fair_catches += 1
            return
        gained = part.yards if part.yards is not None else play.yards_gained
        kind = formulas.special_teams_kind(play)
        if kind in {SpecialTeamsUnit.PUNT, SpecialTeamsUnit.PUNT_RETURN}:
            self.punt_returns += 1
            self.punt_return_yards += gained
        else:
            self.kick_returns += 1
            self.kick_return_yards += gained
        self.long = max(self.long, gained)
        self.touchdowns += int(formulas.is_offensive_touchdown(play, part))

    @property
    def total_returns(self) -> int:
        return self.kick_returns + self.punt_returns

    @property
    def kick_return_average(self) -> float:
        return formulas.per(self.kick_return_yards, self.kick_returns)

    @property
    def punt_return_average(self) -> float:
        return formulas.per(self.punt_return_yards, self.punt_returns)


@dataclass(slots=True)
class KickingLine:
    player_id: str
    kickoffs: int = 0
    touchbacks: int = 0
    field_goal_attempts: int = 0
    field_goals_made: int = 0
    field_goal_long: int = 0
    pat_attempts: int = 0
    pats_made: int = 0
    punts: int = 0
    punt_yards: int = 0
    punt_long: int = 0

    def add(self, touch: Touch) -> None:
        play, part = touch.play, touch.participation
        yards = part.yards if part.yards is not None else play.yards_gained
        if part.participation_type == ParticipationType.PUNTER:
            self.punts += 1
            self.punt_yards += yards
            self.punt_long = max(self.punt_long, yards)
            return
        kind = formulas.special_teams_kind(play)
        if kind == SpecialTeamsUnit.FIELD_GOAL:
            self.field_goal_attempts += 1
            if formulas.is_kick_made(play, part):
                self.field_goals_made += 1
                self.field_goal_long = max(self.field_goal_long, yards)
        elif kind == SpecialTeamsUnit.PAT:
            self.pat_attempts += 1
            self.pats_made += int(formulas.is_kick_made(play, part))
        else:
            self.kickoffs += 1
            tag = (part.result or play.result or "").lower()
            self.touchbacks += int("touchback" in tag)

    @property
    def total_kicks(self) -> int:
        return self.kickoffs + self.field_goal_attempts + self.pat_attempts + self.punts

    @property
    def field_goal_pct(self) -> float:
        return formulas.pct(self.field_goals_made, self.field_goal_attempts)

    @property
    def pat_pct(self) -> float:
        return formulas.pct(self.pats_made, self.pat_attempts)

    @property
    def touchback_rate(self) -> float:
        return formulas.pct(self.touchbacks, self.kickoffs)

    @property
    def punt_average(self) -> float:
        return formulas.per(self.punt_yards, self.punts)


@dataclass(slots=True)
class PlayCodeLine:
    play_code: str
    plays: int = 0
    yards: int = 0
    success_plays: int = 0
    success_eligible: int = 0
    explosive_plays: int = 0

    def add(self, play: PlayEvent) -> None:
        self.plays += 1
        self.yards += play.yards_gained
        success = formulas.is_success(play)
        if success is not None:
            self.success_eligible += 1
            self.success_plays += int(success)
        self.explosive_plays += int(formulas.is_explosive(play))

    @property
    def success_rate(self) -> float:
        return formulas.pct(self.success_plays, self.success_eligible)

    @property
    def avg_yards(self) -> float:
        return formulas.per(self.yards, self.plays)


def rank_play_codes(lines: Iterable[PlayCodeLine], min_plays: int = MIN_PLAY_CODE_PLAYS) -> list[PlayCodeLine]:
    """Play codes called at least `min_plays` times, best success rate first."""
    called = [line for line in lines if line.plays >= min_plays]
    return sorted(called, key=lambda line: (-line.success_rate, -line.avg_yards, line.play_code))


@dataclass(slots=True)
class DisruptionLine:
    defensive_plays: int = 0
    sacks: int = 0
    tackles_for_loss: int = 0
    forced_fumbles: int = 0
    pass_breakups: int = 0
    interceptions: int = 0
    pressures: int = 0
    havoc_plays: int = 0

    @property
    def havoc_rate(self) -> float:
        return formulas.pct(self.havoc_plays, self.defensive_plays)

    @property
    def pressure_rate(self) -> float:
        return formulas.pct(self.pressures, self.defensive_plays)


BLOCKING_TYPES = frozenset(formulas.OL_SLOTS) | {ParticipationType.OL_PENALTY}

_ALL_DEFENSE_TYPES = frozenset(
    t for t in ParticipationType if formulas.phase_of(t) == Phase.DEFENSE
) | {ParticipationType.COVERAGE_TACKLE}

FAMILIES: tuple[tuple[str, Feature, frozenset[ParticipationType], Callable[[str], Accumulator]], ...] = (
    ("passing", Feature.PLAYER_ATTRIBUTION, frozenset({ParticipationType.PASSER}), PassingLine),
    ("rushing", Feature.PLAYER_ATTRIBUTION, frozenset({ParticipationType.RUSHER}), RushingLine),
    ("receiving", Feature.PLAYER_ATTRIBUTION, frozenset({ParticipationType.RECEIVER}), ReceivingLine),
    ("returning", Feature.PLAYER_ATTRIBUTION, frozenset({ParticipationType.RETURNER}), ReturnerLine),
    (
        "kicking",
        Feature.PLAYER_ATTRIBUTION,
        frozenset({ParticipationType.KICKER, ParticipationType.PUNTER}),
        KickingLine,
    ),
    ("blocking", Feature.OL_TRACKING, BLOCKING_TYPES, BlockingLine),
    ("defenders", Feature.DEFENSIVE_TRACKING, _ALL_DEFENSE_TYPES, DefenderLine),
)


@dataclass(slots=True)
class RollupTable:
    scope: ReportScope
    features: EnabledFeatures
    plays: list[PlayEvent]
    participations: list[ParticipationEvent]
    offense: TeamPlayLine
    defense: TeamPlayLine
    offense_downs: dict[int, DownLine]
    defense_downs: dict[int, DownLine]
    special_teams: SpecialTeamsLine
    passing: dict[str, PassingLine] | None = None
    rushing: dict[str, RushingLine] | None = None
    receiving: dict[str, ReceivingLine] | None = None
    returning: dict[str, ReturnerLine] | None = None
    kicking: dict[str, KickingLine] | None = None
    blocking: dict[str, BlockingLine] | None = None
    defenders: dict[str, DefenderLine] | None = None
    situational: dict[str, SituationLine] | None = None
    play_codes: dict[str, PlayCodeLine] = field(default_factory=dict)
    blocking_unit: BlockingLine | None = None
    disruption: DisruptionLine | None = None
    participation_fault: bool = False
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def has_play_input(self) -> bool:
        return bool(self.plays)

    @property
    def active_players(self) -> frozenset[str]:
        return frozenset(p.player_id for p in self.participations)


def in_context(play: PlayEvent, scope: ReportScope) -> bool:
    """Season/game filter; player selection is applied separately."""
    if scope.kind == ScopeKind.GAME:
        return play.game_id == scope.game_id
    if scope.season is not None:
        return play.season == scope.season
    return True


def select_plays(
    plays: Iterable[PlayEvent],
    participations: Iterable[ParticipationEvent],
    scope: ReportScope,
) -> list[PlayEvent]:
    selected = [p for p in plays if in_context(p, scope)]
    if scope.kind == ScopeKind.PLAYER:
        touched = {x.play_id for x in participations if x.player_id == scope.player_id}
        selected = [p for p in selected if p.play_id in touched]
    return selected


def aggregate(
    events: Iterable[PlayEvent],
    participations: Iterable[ParticipationEvent] | None,
    scope: ReportScope,
    enabled_features: EnabledFeatures,
    issues: Iterable[ValidationIssue] = (),
) -> RollupTable:
    scope.validate()
    participation_fault = participations is None
    all_parts = list(participations or [])
    plays = select_plays(events, all_parts, scope)
    by_id = {p.play_id: p for p in plays}
    parts = [x for x in all_parts if x.play_id in by_id]
    logger.debug("rollup %s: %d plays, %d participations", scope.label(), len(plays), len(parts))

    scrimmage = [p for p in plays if formulas.is_scrimmage(p)]
    own = [p for p in scrimmage if not p.is_opponent_play]
    opp = [p for p in scrimmage if p.is_opponent_play]
    passers = _passers(parts)

    offense = TeamPlayLine(side="offense")
    for play in own:
        offense.add(play, passers.get(play.play_id))
    defense = TeamPlayLine(side="defense")
    for play in opp:
        defense.add(play, passers.get(play.play_id))
    special_teams = SpecialTeamsLine()
    for play in plays:
        if play.is_special_teams:
            special_teams.add(play)

    table = RollupTable(
        scope=scope,
        features=enabled_features,
        plays=plays,
        participations=parts,
        offense=offense,
        defense=defense,
        offense_downs=fold(own, lambda p: p.down, DownLine),
        defense_downs=fold(opp, lambda p: p.down, DownLine),
        special_teams=special_teams,
        play_codes=fold(own, lambda p: p.play_code or None, PlayCodeLine),
        participation_fault=participation_fault,
        issues=list(issues),
    )

    if not participation_fault:
        touches = [Touch(by_id[x.play_id], x) for x in parts]
        for name, feature, types, factory in FAMILIES:
            if not enabled_features.enabled(feature):
                continue
            grouped = fold(
                touches,
                lambda t, types=types: t.participation.player_id if t.participation.participation_type in types else None,
                factory,
            )
            setattr(table, name, grouped)
        if enabled_features.ol_tracking:
            table.blocking_unit = _blocking_unit(touches, scope)
        if enabled_features.defensive_tracking:
            table.disruption = _disruption(opp, parts)

    if enabled_features.situational_splits:
        table.situational = _situations(own, passers)
    return table


def _passers(parts: Iterable[ParticipationEvent]) -> dict[str, ParticipationEvent]:
    passers: dict[str, ParticipationEvent] = {}
    for part in parts:
        if part.participation_type == ParticipationType.PASSER:
            passers.setdefault(part.play_id, part)
    return passers


def _blocking_unit(touches: Iterable[Touch], scope: ReportScope) -> BlockingLine:
    unit = BlockingLine(player_id="unit")
    for touch in touches:
        part = touch.participation
        if part.participation_type not in BLOCKING_TYPES:
            continue
        if scope.kind == ScopeKind.PLAYER and part.player_id != scope.player_id:
            continue
        unit.add(touch)
    return unit


def _situation_labels(play: PlayEvent) -> list[str]:
    labels: list[str] = []
    label = formulas.situation_label(play)
    if label is not None:
        labels.append(label)
    if formulas.is_red_zone(play):
        labels.append("red zone")
    if play.has_motion is not None:
        labels.append("motion" if play.has_motion else "no motion")
    if play.is_play_action is not None:
        labels.append("play action" if play.is_play_action else "no play action")
    if play.facing_blitz is not None:
        labels.append("vs blitz" if play.facing_blitz else "no blitz")
    return labels


def _situations(plays: list[PlayEvent], passers: dict[str, ParticipationEvent]) -> dict[str, SituationLine]:
    lines: dict[str, SituationLine] = {}
    for play in plays:
        for label in _situation_labels(play):
            line = lines.get(label)
            if line is None:
                line = lines[label] = SituationLine(label=label)
            line.add(play, passers.get(play.play_id))
    return {label: lines[label] for label in SITUATION_ORDER if label in lines}


def _disruption(defensive_plays: list[PlayEvent], parts: list[ParticipationEvent]) -> DisruptionLine:
    by_play: dict[str, list[ParticipationEvent]] = {}
    for part in parts:
        by_play.setdefault(part.play_id, []).append(part)

    line = DisruptionLine(defensive_plays=len(defensive_plays))
    for play in defensive_plays:
        tagged = by_play.get(play.play_id, [])
        kinds = {p.participation_type for p in tagged}
        sack_pressure = any(
            p.participation_type == ParticipationType.PRESSURE and (p.result or "").lower() == "sack" for p in tagged
        )
        line.sacks += int(sack_pressure or formulas.is_sack(play))
        line.interceptions += int(ParticipationType.INTERCEPTION in kinds or formulas.is_interception(play))
        line.tackles_for_loss += int(ParticipationType.TACKLE_FOR_LOSS in kinds)
        line.forced_fumbles += int(ParticipationType.FORCED_FUMBLE in kinds)
        line.pass_breakups += int(ParticipationType.PASS_BREAKUP in kinds)
        line.pressures += int(ParticipationType.PRESSURE in kinds)
        line.havoc_plays += int(formulas.havoc_count(tagged) > 0)
    return line
