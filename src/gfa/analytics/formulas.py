from __future__ import annotations

from typing import Iterable

from gfa.contracts import (
    BlockResult,
    ParticipationEvent,
    ParticipationType,
    Phase,
    PlayEvent,
    PlayType,
    SpecialTeamsUnit,
)

# Success thresholds as (numerator, denominator) fractions of the distance to go.
SUCCESS_FRACTION_BY_DOWN: dict[int, tuple[int, int]] = {
    1: (4, 10),
    2: (6, 10),
    3: (1, 1),
    4: (1, 1),
}
EXPLOSIVE_RUN_YARDS = 10
EXPLOSIVE_PASS_YARDS = 15
SHORT_YARDAGE_MAX = 3
MEDIUM_YARDAGE_MAX = 6
RED_ZONE_START = 80

PASSING_PLAY_TYPES = frozenset({PlayType.PASS, PlayType.SCREEN})
RUSHING_PLAY_TYPES = frozenset({PlayType.RUN})
OPTION_PLAY_TYPES = frozenset({PlayType.RPO, PlayType.TRICK})

_ST_KIND_BY_PLAY_TYPE = {
    PlayType.KICK: SpecialTeamsUnit.KICKOFF,
    PlayType.PUNT: SpecialTeamsUnit.PUNT,
    PlayType.FIELD_GOAL: SpecialTeamsUnit.FIELD_GOAL,
    PlayType.PAT: SpecialTeamsUnit.PAT,
}

OL_SLOTS: dict[ParticipationType, str] = {
    ParticipationType.OL_LT: "LT",
    ParticipationType.OL_LG: "LG",
    ParticipationType.OL_C: "C",
    ParticipationType.OL_RG: "RG",
    ParticipationType.OL_RT: "RT",
}
OL_SLOT_ORDER = ("LT", "LG", "C", "RG", "RT")

COVERAGE_TYPES = frozenset(
    {
        ParticipationType.COVERAGE_ASSIGNMENT,
        ParticipationType.LB_PASS_COVERAGE,
        ParticipationType.DB_PASS_COVERAGE,
    }
)
HAVOC_TYPES = frozenset(
    {
        ParticipationType.TACKLE_FOR_LOSS,
        ParticipationType.FORCED_FUMBLE,
        ParticipationType.INTERCEPTION,
        ParticipationType.PASS_BREAKUP,
    }
)

_PHASES: dict[ParticipationType, Phase] = {
    ParticipationType.PASSER: Phase.OFFENSE,
    ParticipationType.RUSHER: Phase.OFFENSE,
    ParticipationType.RECEIVER: Phase.OFFENSE,
    ParticipationType.OL_LT: Phase.OFFENSIVE_LINE,
    ParticipationType.OL_LG: Phase.OFFENSIVE_LINE,
    ParticipationType.OL_C: Phase.OFFENSIVE_LINE,
    ParticipationType.OL_RG: Phase.OFFENSIVE_LINE,
    ParticipationType.OL_RT: Phase.OFFENSIVE_LINE,
    ParticipationType.OL_PENALTY: Phase.OFFENSIVE_LINE,
    ParticipationType.KICKER: Phase.SPECIAL_TEAMS,
    ParticipationType.PUNTER: Phase.SPECIAL_TEAMS,
    ParticipationType.RETURNER: Phase.SPECIAL_TEAMS,
    ParticipationType.COVERAGE_TACKLE: Phase.SPECIAL_TEAMS,
}


def phase_of(participation_type: ParticipationType) -> Phase:
    return _PHASES.get(participation_type, Phase.DEFENSE)


def _result_tag(value: str | None) -> str:
    return (value or "").strip().lower()


def is_success(play: PlayEvent) -> bool | None:
    """Down-and-distance success for a single snap.

    Returns None when the play lacks the context needed to judge it.
    """
    if play.is_turnover:
        return False
    if play.resulted_in_first_down or play.is_touchdown:
        return True
    if play.down is None or play.distance is None:
        return None
    fraction = SUCCESS_FRACTION_BY_DOWN.get(play.down)
    if fraction is None:
        return None
    num, den = fraction
    return play.yards_gained * den >= play.distance * num


def is_defensive_success(play: PlayEvent) -> bool | None:
    success = is_success(play)
    if success is None:
        return None
    return not success


def is_completion(play: PlayEvent, participation: ParticipationEvent | None = None) -> bool:
    if participation is not None and participation.result:
        tag = _result_tag(participation.result)
        if tag in {"complete", "completion", "catch", "reception"}:
            return True
        if tag in {"incomplete", "drop", "interception", "sack"}:
            return False
    if play.is_turnover and play.turnover_type == "interception":
        return False
    tag = _result_tag(play.result)
    if "incomplete" in tag or "interception" in tag or "sack" in tag:
        return False
    if "complete" in tag:
        return True
    return play.is_touchdown and is_passing_play(play)


def is_passing_play(play: PlayEvent) -> bool:
    if play.play_type in PASSING_PLAY_TYPES:
        return True
    if play.play_type in OPTION_PLAY_TYPES:
        tag = _result_tag(play.result)
        return tag.startswith("pass") or "complete" in tag or "interception" in tag or "sack" in tag
    return False


def is_rushing_play(play: PlayEvent) -> bool:
    if play.play_type in RUSHING_PLAY_TYPES:
        return True
    return play.play_type in OPTION_PLAY_TYPES and not is_passing_play(play)


def is_sack(play: PlayEvent, participation: ParticipationEvent | None = None) -> bool:
    if participation is not None and participation.result:
        return _result_tag(participation.result) == "sack"
    return "sack" in _result_tag(play.result)


def is_interception(play: PlayEvent, participation: ParticipationEvent | None = None) -> bool:
    if participation is not None and _result_tag(participation.result) == "interception":
        return True
    if play.is_turnover and play.turnover_type == "interception":
        return True
    return "interception" in _result_tag(play.result)


def is_scrimmage(play: PlayEvent) -> bool:
    return not play.is_special_teams and play.play_type != PlayType.TWO_POINT


def special_teams_kind(play: PlayEvent) -> SpecialTeamsUnit | None:
    if play.special_teams_unit is not None:
        return play.special_teams_unit
    return _ST_KIND_BY_PLAY_TYPE.get(play.play_type)


def is_kick_made(play: PlayEvent, participation: ParticipationEvent | None = None) -> bool:
    tag = _result_tag(participation.result if participation is not None else None) or _result_tag(play.result)
    if "missed" in tag or "blocked" in tag or "no_good" in tag:
        return False
    return "made" in tag or "good" in tag


def is_explosive(
    play: PlayEvent,
    yards: int | None = None,
    participation: ParticipationEvent | None = None,
) -> bool:
    gained = play.yards_gained if yards is None else yards
    if is_passing_play(play):
        return is_completion(play, participation) and gained >= EXPLOSIVE_PASS_YARDS
    if is_rushing_play(play):
        return gained >= EXPLOSIVE_RUN_YARDS
    return False


def is_offensive_touchdown(play: PlayEvent, participation: ParticipationEvent | None = None) -> bool:
    """Touchdown scored by the side that snapped the ball.

    A score on a snap that was also a turnover belongs to the other side.
    """
    if play.is_turnover:
        return False
    return play.is_touchdown or (participation is not None and participation.is_touchdown)


def is_havoc(participation: ParticipationEvent) -> bool:
    if participation.participation_type in HAVOC_TYPES:
        return True
    return participation.participation_type == ParticipationType.PRESSURE and _result_tag(participation.result) == "sack"


def havoc_count(participations: Iterable[ParticipationEvent]) -> int:
    return sum(1 for p in participations if is_havoc(p))


def classify_block(participation: ParticipationEvent) -> BlockResult | None:
    if participation.participation_type not in OL_SLOTS:
        return None
    tag = _result_tag(participation.result)
    if tag == BlockResult.WIN.value:
        return BlockResult.WIN
    if tag == BlockResult.LOSS.value:
        return BlockResult.LOSS
    return BlockResult.NEUTRAL


def block_win_rate(wins: int, total_assignments: int) -> float:
    return pct(wins, total_assignments)


def is_red_zone(play: PlayEvent) -> bool:
    position = play.possession_field_position
    return position is not None and position >= RED_ZONE_START


def distance_bucket(distance: int | None) -> str | None:
    if distance is None:
        return None
    if distance <= SHORT_YARDAGE_MAX:
        return "short"
    if distance <= MEDIUM_YARDAGE_MAX:
        return "medium"
    return "long"


def situation_label(play: PlayEvent) -> str | None:
    if play.down is None:
        return None
    if play.down == 1:
        return "1st down"
    if play.down == 4:
        return "4th down"
    bucket = distance_bucket(play.distance)
    if bucket is None:
        return None
    ordinal = "2nd" if play.down == 2 else "3rd"
    return f"{ordinal} & {bucket}"


def pct(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator * 100.0


def per(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator
