from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Sequence

from gfa.analytics import formulas
from gfa.contracts import Drive, DriveResult, PlayEvent, PlayType, Possession, SpecialTeamsUnit
from gfa.core import synthetic_drive_id

logger = logging.getLogger(__name__)

POINTS_BY_RESULT = {
    DriveResult.TOUCHDOWN: 6,
    DriveResult.FIELD_GOAL: 3,
}
STOP_RESULTS = frozenset({DriveResult.PUNT, DriveResult.DOWNS, DriveResult.TURNOVER})
_NON_DRIVE_UNITS = frozenset({SpecialTeamsUnit.KICKOFF, SpecialTeamsUnit.KICK_RETURN, SpecialTeamsUnit.PAT})


class DriveState(str, Enum):
    BETWEEN_DRIVES = "between_drives"
    IN_DRIVE = "in_drive"


def classify_terminal(play: PlayEvent) -> DriveResult | None:
    """Return the drive result a play ends its drive with, or None if the drive continues.

    A turnover outranks a touchdown on the same snap.
    """
    tag = (play.result or "").lower()
    if play.turnover_type == "downs":
        return DriveResult.DOWNS
    if play.is_turnover:
        return DriveResult.TURNOVER
    if play.is_touchdown:
        return DriveResult.TOUCHDOWN
    if "safety" in tag:
        return DriveResult.SAFETY
    kind = formulas.special_teams_kind(play)
    if kind in {SpecialTeamsUnit.PUNT, SpecialTeamsUnit.PUNT_RETURN} or "punt" in tag:
        return DriveResult.PUNT
    if kind == SpecialTeamsUnit.FIELD_GOAL or "field_goal" in tag:
        return DriveResult.FIELD_GOAL if formulas.is_kick_made(play) else DriveResult.DOWNS
    if (
        play.down == 4
        and formulas.is_scrimmage(play)
        and not play.resulted_in_first_down
        and play.distance is not None
        and play.yards_gained < play.distance
    ):
        return DriveResult.DOWNS
    return None


def is_drive_play(play: PlayEvent) -> bool:
    if play.play_type == PlayType.TWO_POINT:
        return False
    return formulas.special_teams_kind(play) not in _NON_DRIVE_UNITS


def cut_short_result(last: PlayEvent) -> DriveResult:
    """Result for a drive whose id changed before any terminal play was tagged."""
    if last.down == 4 and formulas.is_scrimmage(last) and not last.resulted_in_first_down:
        return DriveResult.DOWNS
    return DriveResult.UNRESOLVED


def _half(quarter: int) -> int:
    if quarter <= 2:
        return 1
    if quarter <= 4:
        return 2
    return 3


def _order_key(play: PlayEvent) -> tuple[int, int, float, str]:
    has_time = 0 if play.timestamp is not None else 1
    return (play.quarter, has_time, play.timestamp if play.timestamp is not None else 0.0, play.play_id)


def build_drive(
    drive_id: str,
    drive_number: int,
    plays: Sequence[PlayEvent],
    result: DriveResult,
) -> Drive:
    first = plays[0]
    scrimmage = [p for p in plays if formulas.is_scrimmage(p)]
    last_spot = scrimmage[-1] if scrimmage else plays[-1]
    return Drive(
        drive_id=drive_id,
        game_id=first.game_id,
        team_id=first.team_id,
        possession=first.possession,
        drive_number=drive_number,
        quarter=first.quarter,
        plays=list(plays),
        start_field_position=first.possession_field_position,
        end_field_position=last_spot.possession_field_position,
        play_count=len(scrimmage),
        yards_gained=sum(p.yards_gained for p in scrimmage),
        first_downs=sum(1 for p in scrimmage if p.resulted_in_first_down),
        points=POINTS_BY_RESULT.get(result, 0),
        result=result,
    )


class DriveSynthesizer:
    """Walks one game's plays for one possession type and cuts them into drives."""

    def __init__(self, game_id: str, possession: Possession) -> None:
        self.game_id = game_id
        self.possession = possession
        self.state = DriveState.BETWEEN_DRIVES
        self.drives: list[Drive] = []
        self._open: list[PlayEvent] = []
        self._open_id: str | None = None

    def run(self, plays: Iterable[PlayEvent]) -> list[Drive]:
        for play in sorted(plays, key=_order_key):
            self.feed(play)
        self.finish()
        return self.drives

    def feed(self, play: PlayEvent) -> None:
        if not is_drive_play(play):
            return
        if self.state == DriveState.IN_DRIVE:
            last = self._open[-1]
            if _half(play.quarter) != _half(last.quarter):
                self._close(DriveResult.END_HALF)
            elif play.drive_id is not None and self._open_id is not None and play.drive_id != self._open_id:
                self._close(cut_short_result(last))
        if self.state == DriveState.BETWEEN_DRIVES:
            self._open = []
            self._open_id = play.drive_id
            self.state = DriveState.IN_DRIVE
        self._open.append(play)
        if self._open_id is None:
            self._open_id = play.drive_id
        terminal = classify_terminal(play)
        if terminal is not None:
            self._close(terminal)

    def finish(self) -> None:
        if self.state != DriveState.IN_DRIVE:
            return
        last = self._open[-1]
        self._close(DriveResult.END_GAME if last.quarter >= 4 else DriveResult.END_HALF)

    def _close(self, result: DriveResult) -> None:
        number = len(self.drives) + 1
        drive_id = self._open_id or synthetic_drive_id(self.game_id, self.possession.value, number)
        self.drives.append(build_drive(drive_id, number, self._open, result))
        self._open = []
        self._open_id = None
        self.state = DriveState.BETWEEN_DRIVES


def _split(plays: Iterable[PlayEvent]) -> dict[tuple[str, Possession], list[PlayEvent]]:
    groups: dict[tuple[str, Possession], list[PlayEvent]] = {}
    for play in plays:
        groups.setdefault((play.game_id, play.possession), []).append(play)
    return {k: groups[k] for k in sorted(groups, key=lambda k: (k[0], k[1].value))}


def synthesize(events: Iterable[PlayEvent]) -> list[Drive]:
    drives: list[Drive] = []
    for (game_id, possession), plays in _split(events).items():
        game_drives = DriveSynthesizer(game_id, possession).run(plays)
        logger.debug("synthesized %d %s drive(s) for game %s", len(game_drives), possession.value, game_id)
        drives.extend(game_drives)
    return drives


def is_orderable(plays: Sequence[PlayEvent]) -> bool:
    return any(p.timestamp is not None or p.drive_id is not None for p in plays)


@dataclass(slots=True)
class DriveSet:
    drives: list[Drive]
    estimated_plays: list[PlayEvent] = field(default_factory=list)
    method: str = "synthesized"


def drives_for(plays: Sequence[PlayEvent], persisted: Sequence[Drive] | None = None) -> DriveSet:
    """Resolve drives for a play set: persisted drives when the store has them, synthesis otherwise.

    Games whose plays carry neither timestamps nor drive ids cannot be walked
    in order; their plays are set aside for the estimated summary.
    """
    if persisted:
        by_drive: dict[str, list[PlayEvent]] = {}
        for play in plays:
            if play.drive_id is not None:
                by_drive.setdefault(play.drive_id, []).append(play)
        game_ids = {p.game_id for p in plays}
        attached = []
        for drive in sorted(persisted, key=lambda d: (d.game_id, d.possession.value, d.drive_number)):
            if game_ids and drive.game_id not in game_ids:
                continue
            drive_plays = sorted(by_drive.get(drive.drive_id, []), key=_order_key)
            attached.append(_with_plays(drive, drive_plays))
        return DriveSet(drives=attached, method="persisted")

    by_game: dict[str, list[PlayEvent]] = {}
    for play in plays:
        by_game.setdefault(play.game_id, []).append(play)
    orderable: list[PlayEvent] = []
    unordered: list[PlayEvent] = []
    for game_id in sorted(by_game):
        game_plays = by_game[game_id]
        if is_orderable(game_plays):
            orderable.extend(game_plays)
        else:
            logger.warning("game %s has no timestamps or drive ids; drive totals will be estimated", game_id)
            unordered.extend(game_plays)
    return DriveSet(
        drives=synthesize(orderable),
        estimated_plays=unordered,
        method="estimated" if unordered else "synthesized",
    )


def _with_plays(drive: Drive, plays: list[PlayEvent]) -> Drive:
    if not plays:
        return drive
    return replace(drive, plays=plays)


@dataclass(slots=True)
class DriveSummary:
    possession: Possession
    drives: int = 0
    plays: int = 0
    yards: int = 0
    points: int = 0
    first_downs: int = 0
    results: dict[str, int] = field(default_factory=dict)
    scoring_drives: int = 0
    three_and_outs: int | None = 0
    red_zone_drives: int | None = 0
    red_zone_touchdowns: int | None = 0
    method: str = "synthesized"

    @property
    def points_per_drive(self) -> float:
        return formulas.per(self.points, self.drives)

    @property
    def plays_per_drive(self) -> float:
        return formulas.per(self.plays, self.drives)

    @property
    def yards_per_drive(self) -> float:
        return formulas.per(self.yards, self.drives)

    @property
    def scoring_drive_rate(self) -> float:
        return formulas.pct(self.scoring_drives, self.drives)

    @property
    def three_and_out_rate(self) -> float | None:
        if self.three_and_outs is None:
            return None
        return formulas.pct(self.three_and_outs, self.drives)

    @property
    def red_zone_td_rate(self) -> float | None:
        if self.red_zone_drives is None or self.red_zone_touchdowns is None:
            return None
        return formulas.pct(self.red_zone_touchdowns, self.red_zone_drives)

    @property
    def stops(self) -> int:
        return sum(self.results.get(r.value, 0) for r in STOP_RESULTS)

    @property
    def stop_rate(self) -> float:
        return formulas.pct(self.stops, self.drives)


def summarize_drives(
    drives: Iterable[Drive],
    possession: Possession,
    estimated_plays: Sequence[PlayEvent] = (),
    method: str = "synthesized",
) -> DriveSummary:
    summary = DriveSummary(possession=possession, method=method)
    for drive in drives:
        if drive.possession != possession:
            continue
        summary.drives += 1
        summary.plays += drive.play_count
        summary.yards += drive.yards_gained
        summary.points += drive.points
        summary.first_downs += drive.first_downs
        summary.results[drive.result.value] = summary.results.get(drive.result.value, 0) + 1
        summary.scoring_drives += int(drive.scoring_drive)
        summary.three_and_outs += int(drive.three_and_out)
        if drive.reached_red_zone:
            summary.red_zone_drives += 1
            summary.red_zone_touchdowns += int(drive.result == DriveResult.TOUCHDOWN)
    own_estimated = [p for p in estimated_plays if p.possession == possession]
    if own_estimated:
        _merge_estimate(summary, estimate_drive_summary(own_estimated, possession))
    return summary


def estimate_drive_summary(plays: Sequence[PlayEvent], possession: Possession) -> DriveSummary:
    """Drive totals for plays that cannot be ordered into drives.

    Each terminal play closes one drive; trailing unterminated plays count as
    one more. Figures that need play order are reported as unavailable.
    """
    summary = DriveSummary(
        possession=possession,
        three_and_outs=None,
        red_zone_drives=None,
        red_zone_touchdowns=None,
        method="estimated",
    )
    open_plays = 0
    for play in plays:
        if not is_drive_play(play):
            continue
        if formulas.is_scrimmage(play):
            summary.plays += 1
            summary.yards += play.yards_gained
            summary.first_downs += int(play.resulted_in_first_down)
        open_plays += 1
        result = classify_terminal(play)
        if result is None:
            continue
        open_plays = 0
        summary.drives += 1
        summary.points += POINTS_BY_RESULT.get(result, 0)
        summary.results[result.value] = summary.results.get(result.value, 0) + 1
        summary.scoring_drives += int(result in POINTS_BY_RESULT)
    if open_plays:
        summary.drives += 1
        summary.results[DriveResult.END_GAME.value] = summary.results.get(DriveResult.END_GAME.value, 0) + 1
    return summary


def _merge_estimate(summary: DriveSummary, estimate: DriveSummary) -> None:
    summary.drives += estimate.drives
    summary.plays += estimate.plays
    summary.yards += estimate.yards
    summary.points += estimate.points
    summary.first_downs += estimate.first_downs
    summary.scoring_drives += estimate.scoring_drives
    for key, count in estimate.results.items():
        summary.results[key] = summary.results.get(key, 0) + count
    summary.three_and_outs = None
    summary.red_zone_drives = None
    summary.red_zone_touchdowns = None
    summary.method = "estimated"
