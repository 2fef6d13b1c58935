from __future__ import annotations

from typing import Any, Sequence

from gfa.contracts import (
    Drive,
    EnabledFeatures,
    ParticipationEvent,
    ParticipationType,
    Player,
    PlayEvent,
    PlayType,
    ReportScope,
    ScopeKind,
    SpecialTeamsUnit,
    TierConfig,
)
from gfa.core import EventStoreError

ALL_FEATURES = EnabledFeatures(
    drive_analytics=True,
    player_attribution=True,
    ol_tracking=True,
    defensive_tracking=True,
    situational_splits=True,
)

PT = ParticipationType


def play(
    play_id: str,
    *,
    game_id: str = "G1",
    season: int = 2025,
    down: int | None = 1,
    distance: int | None = 10,
    field_position: int | None = 30,
    quarter: int = 1,
    opponent: bool = False,
    play_type: PlayType = PlayType.RUN,
    yards: int = 0,
    team_id: str = "T1",
    **extra: Any,
) -> PlayEvent:
    return PlayEvent(
        play_id=play_id,
        team_id=team_id,
        game_id=game_id,
        season=season,
        down=down,
        distance=distance,
        field_position=field_position,
        quarter=quarter,
        is_opponent_play=opponent,
        play_type=play_type,
        yards_gained=yards,
        **extra,
    )


def part(
    play_id: str,
    player_id: str,
    kind: ParticipationType,
    result: str | None = None,
    yards: int | None = None,
    touchdown: bool = False,
) -> ParticipationEvent:
    return ParticipationEvent(
        play_id=play_id,
        player_id=player_id,
        participation_type=kind,
        result=result,
        yards=yards,
        is_touchdown=touchdown,
    )


def player(player_id: str, name: str, jersey: str, depths: dict[str, int], primary: str = "") -> Player:
    return Player(
        player_id=player_id,
        name=name,
        jersey_number=jersey,
        position_depths=dict(depths),
        primary_position=primary,
    )


def sample_roster() -> list[Player]:
    return [
        player("Q1", "Avery Quinn", "7", {"QB": 1}, "QB"),
        player("Q2", "Blake Stone", "12", {"QB": 2, "S": 1}, "S"),
        player("R1", "Cole Rivers", "22", {"RB": 1}, "RB"),
        player("W1", "Dane Wells", "11", {"WR": 1}, "WR"),
        player("E1", "Eli Tate", "88", {"TE": 1}, "TE"),
        player("L1", "Lou Banks", "70", {"LT": 1}, "LT"),
        player("L2", "Mo Center", "55", {"C": 1}, "C"),
        player("D1", "Finn Dale", "90", {"DE": 1}, "DE"),
        player("M1", "Gus Moore", "50", {"MLB": 1}, "MLB"),
        player("C1", "Hal Corner", "24", {"CB": 1}, "CB"),
        player("X1", "Ike Nobody", "0", {}, ""),
        player("K1", "Jay Foote", "3", {"K": 1, "P": 1}, "K"),
    ]


def sample_game(game_id: str = "G1", season: int = 2025, prefix: str = "") -> tuple[list[PlayEvent], list[ParticipationEvent]]:
    """One tagged game.

    Offense: a five-play touchdown drive, PAT, kickoff, then a two-play drive
    ending in an interception. Defense: a three-and-out forced into a punt,
    then a one-play touchdown allowed.
    """
    g = dict(game_id=game_id, season=season)

    def pid(name: str) -> str:
        return f"{prefix}{name}"

    plays = [
        play(pid("p1"), down=1, distance=10, field_position=25, yards=5, timestamp=10.0, **g),
        play(
            pid("p2"), down=2, distance=5, field_position=30, yards=12, play_type=PlayType.PASS,
            result="pass_complete", resulted_in_first_down=True, timestamp=20.0, **g,
        ),
        play(
            pid("p3"), down=1, distance=10, field_position=42, yards=0, play_type=PlayType.PASS,
            result="pass_incomplete", timestamp=30.0, **g,
        ),
        play(pid("p4"), down=2, distance=10, field_position=42, yards=18, resulted_in_first_down=True, timestamp=40.0, **g),
        play(
            pid("p5"), down=1, distance=10, field_position=60, yards=40, play_type=PlayType.PASS,
            result="pass_complete", is_touchdown=True, timestamp=50.0, **g,
        ),
        play(
            pid("p6"), down=None, distance=None, field_position=97, play_type=PlayType.PAT, result="made",
            special_teams_unit=SpecialTeamsUnit.PAT, timestamp=60.0, **g,
        ),
        play(
            pid("p7"), down=None, distance=None, field_position=35, play_type=PlayType.KICK, result="touchback",
            special_teams_unit=SpecialTeamsUnit.KICKOFF, timestamp=70.0, **g,
        ),
        play(pid("d1"), opponent=True, down=1, distance=10, field_position=75, yards=-2, timestamp=100.0, **g),
        play(
            pid("d2"), opponent=True, down=2, distance=12, field_position=77, yards=-7, play_type=PlayType.PASS,
            result="sack", timestamp=110.0, **g,
        ),
        play(
            pid("d3"), opponent=True, down=3, distance=19, field_position=84, yards=0, play_type=PlayType.PASS,
            result="pass_incomplete", timestamp=120.0, **g,
        ),
        play(
            pid("d4"), opponent=True, down=4, distance=19, field_position=84, yards=10, play_type=PlayType.PUNT,
            special_teams_unit=SpecialTeamsUnit.PUNT_RETURN, result="punt", timestamp=130.0, **g,
        ),
        play(pid("p8"), quarter=2, down=1, distance=10, field_position=20, yards=2, timestamp=200.0, **g),
        play(
            pid("p9"), quarter=2, down=2, distance=8, field_position=22, yards=0, play_type=PlayType.PASS,
            result="interception", is_turnover=True, turnover_type="interception", timestamp=210.0, **g,
        ),
        play(
            pid("d5"), quarter=2, opponent=True, down=1, distance=10, field_position=40, yards=40,
            play_type=PlayType.PASS, result="pass_complete", is_touchdown=True, timestamp=300.0, **g,
        ),
    ]
    parts = [
        part(pid("p1"), "R1", PT.RUSHER, yards=5),
        part(pid("p1"), "L1", PT.OL_LT, "win"),
        part(pid("p1"), "L2", PT.OL_C, "neutral"),
        part(pid("p2"), "Q1", PT.PASSER, "complete", 12),
        part(pid("p2"), "W1", PT.RECEIVER, "complete", 12),
        part(pid("p3"), "Q1", PT.PASSER, "incomplete"),
        part(pid("p3"), "E1", PT.RECEIVER, "drop"),
        part(pid("p3"), "L1", PT.OL_LT, "loss"),
        part(pid("p4"), "R1", PT.RUSHER, yards=18),
        part(pid("p5"), "Q2", PT.PASSER, "complete", 40, True),
        part(pid("p5"), "W1", PT.RECEIVER, "complete", 40, True),
        part(pid("p6"), "K1", PT.KICKER, "made"),
        part(pid("p7"), "K1", PT.KICKER, "touchback"),
        part(pid("d1"), "D1", PT.TACKLE_FOR_LOSS),
        part(pid("d1"), "D1", PT.PRIMARY_TACKLE),
        part(pid("d1"), "X1", PT.ASSIST_TACKLE),
        part(pid("d2"), "D1", PT.PRESSURE, "sack"),
        part(pid("d2"), "D1", PT.PRIMARY_TACKLE),
        part(pid("d3"), "C1", PT.PASS_BREAKUP),
        part(pid("d3"), "C1", PT.DB_PASS_COVERAGE, "win"),
        part(pid("d4"), "W1", PT.RETURNER, yards=10),
        part(pid("p8"), "R1", PT.RUSHER, yards=2),
        part(pid("p9"), "Q1", PT.PASSER, "interception"),
        part(pid("d5"), "M1", PT.LB_PASS_COVERAGE, "loss"),
    ]
    return plays, parts


class MemoryEventStore:
    """In-memory EventStore; `failures` maps a method name to the error it raises."""

    def __init__(
        self,
        *,
        config: TierConfig | dict | None = None,
        players: Sequence[Player] = (),
        plays: Sequence[PlayEvent] = (),
        participations: Sequence[ParticipationEvent] = (),
        drives: Sequence[Drive] = (),
        failures: dict[str, Exception] | None = None,
    ) -> None:
        self.config = config
        self.players = list(players)
        self.plays = list(plays)
        self.participations = list(participations)
        self.drives = list(drives)
        self.failures = failures or {}

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.failures:
            raise self.failures[operation]

    def fetch_tier_config(self, team_id: str):
        self._maybe_fail("fetch_tier_config")
        return self.config

    def fetch_players(self, team_id: str) -> list[Player]:
        self._maybe_fail("fetch_players")
        return list(self.players)

    def fetch_plays(self, team_id: str, scope: ReportScope) -> list[PlayEvent]:
        self._maybe_fail("fetch_plays")
        plays = [p for p in self.plays if p.team_id == team_id]
        if scope.kind == ScopeKind.GAME:
            return [p for p in plays if p.game_id == scope.game_id]
        if scope.season is not None:
            return [p for p in plays if p.season == scope.season]
        return plays

    def fetch_participations(self, team_id: str, play_ids: Sequence[str]) -> list[ParticipationEvent]:
        self._maybe_fail("fetch_participations")
        wanted = set(play_ids)
        return [p for p in self.participations if p.play_id in wanted]

    def fetch_drives(self, team_id: str, scope: ReportScope) -> list[Drive]:
        self._maybe_fail("fetch_drives")
        return list(self.drives)


def store_down(operation: str) -> dict[str, Exception]:
    return {operation: EventStoreError(operation, "connection refused")}
