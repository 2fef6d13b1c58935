from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Iterable, Sequence

from gfa.contracts import (
    AnalyticsTier,
    Drive,
    DriveResult,
    ParticipationEvent,
    ParticipationType,
    Player,
    PlayEvent,
    PlayType,
    Possession,
    ReportScope,
    ScopeKind,
    SpecialTeamsUnit,
    TierConfig,
)
from gfa.core import EventStoreError, make_id
from gfa.persistence.migrations import MigrationRunner

logger = logging.getLogger(__name__)

_PLAY_COLUMNS = (
    "play_id", "team_id", "game_id", "season", "down", "distance", "field_position", "quarter",
    "is_opponent_play", "play_type", "yards_gained", "is_turnover", "is_touchdown", "resulted_in_first_down",
    "drive_id", "special_teams_unit", "timestamp", "result", "turnover_type", "qb_id", "ball_carrier_id",
    "target_id", "has_motion", "is_play_action", "facing_blitz", "play_code",
)
_BOOL_COLUMNS = {"is_opponent_play", "is_turnover", "is_touchdown", "resulted_in_first_down"}
_TRISTATE_COLUMNS = {"has_motion", "is_play_action", "facing_blitz"}

# SQLite's default bound-parameter ceiling.
_IN_CHUNK = 900


class SqliteEventStore:
    """Reference event store backed by a local SQLite file.

    Every sqlite3 failure and every row that cannot be mapped onto the event
    model surfaces as EventStoreError.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize_schema(self) -> None:
        with self.connect() as conn:
            MigrationRunner(conn).apply()

    def _write(self, operation: str, sql: str, rows: Iterable[tuple[Any, ...]]) -> int:
        batch = list(rows)
        try:
            with self.connect() as conn:
                conn.executemany(sql, batch)
        except sqlite3.Error as exc:
            raise EventStoreError(operation, str(exc)) from exc
        logger.debug("%s wrote %d row(s)", operation, len(batch))
        return len(batch)

    def _read(self, operation: str, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        try:
            with self.connect() as conn:
                conn.row_factory = sqlite3.Row
                return conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as exc:
            raise EventStoreError(operation, str(exc)) from exc

    def save_tier_config(self, config: TierConfig) -> None:
        self._write(
            "save_tier_config",
            """
            INSERT OR REPLACE INTO team_analytics_config(
                team_id, tier, enable_drive_analytics, enable_player_attribution, enable_ol_tracking,
                enable_defensive_tracking, enable_situational_splits
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    config.team_id,
                    config.tier.value,
                    int(config.enable_drive_analytics),
                    int(config.enable_player_attribution),
                    int(config.enable_ol_tracking),
                    int(config.enable_defensive_tracking),
                    int(config.enable_situational_splits),
                )
            ],
        )

    def save_players(self, team_id: str, players: Iterable[Player]) -> int:
        return self._write(
            "save_players",
            """
            INSERT OR REPLACE INTO players(
                player_id, team_id, name, jersey_number, primary_position, position_depths_json
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    p.player_id,
                    team_id,
                    p.name,
                    p.jersey_number,
                    p.primary_position,
                    json.dumps(p.position_depths, sort_keys=True),
                )
                for p in players
            ],
        )

    def save_plays(self, plays: Iterable[PlayEvent]) -> int:
        placeholders = ", ".join("?" for _ in _PLAY_COLUMNS)
        return self._write(
            "save_plays",
            f"INSERT OR REPLACE INTO play_instances({', '.join(_PLAY_COLUMNS)}) VALUES ({placeholders})",
            [tuple(_to_column(getattr(p, c)) for c in _PLAY_COLUMNS) for p in plays],
        )

    def save_participations(self, participations: Iterable[ParticipationEvent]) -> int:
        return self._write(
            "save_participations",
            """
            INSERT INTO player_participation(
                participation_id, play_id, player_id, participation_type, result, yards, is_touchdown
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    make_id("part"),
                    p.play_id,
                    p.player_id,
                    p.participation_type.value,
                    p.result,
                    p.yards,
                    int(p.is_touchdown),
                )
                for p in participations
            ],
        )

    def save_drives(self, drives: Iterable[Drive], season: int) -> int:
        return self._write(
            "save_drives",
            """
            INSERT OR REPLACE INTO drives(
                drive_id, team_id, game_id, season, possession, drive_number, quarter, start_field_position,
                end_field_position, play_count, yards_gained, first_downs, points, result
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    d.drive_id,
                    d.team_id,
                    d.game_id,
                    season,
                    d.possession.value,
                    d.drive_number,
                    d.quarter,
                    d.start_field_position,
                    d.end_field_position,
                    d.play_count,
                    d.yards_gained,
                    d.first_downs,
                    d.points,
                    d.result.value,
                )
                for d in drives
            ],
        )

    def fetch_tier_config(self, team_id: str) -> TierConfig | None:
        rows = self._read(
            "fetch_tier_config",
            "SELECT * FROM team_analytics_config WHERE team_id = ?",
            (team_id,),
        )
        if not rows:
            return None
        row = rows[0]
        try:
            return TierConfig(
                team_id=row["team_id"],
                tier=AnalyticsTier(row["tier"]),
                enable_drive_analytics=bool(row["enable_drive_analytics"]),
                enable_player_attribution=bool(row["enable_player_attribution"]),
                enable_ol_tracking=bool(row["enable_ol_tracking"]),
                enable_defensive_tracking=bool(row["enable_defensive_tracking"]),
                enable_situational_splits=bool(row["enable_situational_splits"]),
            )
        except ValueError as exc:
            raise EventStoreError("fetch_tier_config", f"malformed config for {team_id}: {exc}") from exc

    def fetch_players(self, team_id: str) -> list[Player]:
        rows = self._read(
            "fetch_players",
            "SELECT * FROM players WHERE team_id = ? ORDER BY player_id",
            (team_id,),
        )
        players = []
        for row in rows:
            try:
                depths = {str(k): int(v) for k, v in json.loads(row["position_depths_json"]).items()}
            except (ValueError, TypeError, AttributeError) as exc:
                raise EventStoreError("fetch_players", f"malformed position depths for {row['player_id']}: {exc}") from exc
            players.append(
                Player(
                    player_id=row["player_id"],
                    name=row["name"],
                    jersey_number=row["jersey_number"],
                    position_depths=depths,
                    primary_position=row["primary_position"],
                )
            )
        return players

    def fetch_plays(self, team_id: str, scope: ReportScope) -> list[PlayEvent]:
        sql = f"SELECT {', '.join(_PLAY_COLUMNS)} FROM play_instances WHERE team_id = ?"
        params: list[Any] = [team_id]
        if scope.kind == ScopeKind.GAME:
            sql += " AND game_id = ?"
            params.append(scope.game_id)
        elif scope.season is not None:
            sql += " AND season = ?"
            params.append(scope.season)
        sql += " ORDER BY game_id, timestamp, play_id"
        return [_play_from_row(row) for row in self._read("fetch_plays", sql, params)]

    def fetch_participations(self, team_id: str, play_ids: Sequence[str]) -> list[ParticipationEvent]:
        events: list[ParticipationEvent] = []
        ids = list(play_ids)
        for start in range(0, len(ids), _IN_CHUNK):
            chunk = ids[start : start + _IN_CHUNK]
            marks = ", ".join("?" for _ in chunk)
            rows = self._read(
                "fetch_participations",
                f"""
                SELECT pp.play_id, pp.player_id, pp.participation_type, pp.result, pp.yards, pp.is_touchdown
                FROM player_participation pp
                JOIN play_instances pi ON pi.play_id = pp.play_id
                WHERE pi.team_id = ? AND pp.play_id IN ({marks})
                ORDER BY pp.play_id, pp.player_id, pp.participation_type
                """,
                [team_id, *chunk],
            )
            for row in rows:
                try:
                    kind = ParticipationType(row["participation_type"])
                except ValueError as exc:
                    raise EventStoreError("fetch_participations", f"unknown participation type on {row['play_id']}: {exc}") from exc
                events.append(
                    ParticipationEvent(
                        play_id=row["play_id"],
                        player_id=row["player_id"],
                        participation_type=kind,
                        result=row["result"],
                        yards=row["yards"],
                        is_touchdown=bool(row["is_touchdown"]),
                    )
                )
        return events

    def fetch_drives(self, team_id: str, scope: ReportScope) -> list[Drive]:
        sql = "SELECT * FROM drives WHERE team_id = ?"
        params: list[Any] = [team_id]
        if scope.kind == ScopeKind.GAME:
            sql += " AND game_id = ?"
            params.append(scope.game_id)
        elif scope.season is not None:
            sql += " AND season = ?"
            params.append(scope.season)
        sql += " ORDER BY game_id, possession, drive_number"
        drives = []
        for row in self._read("fetch_drives", sql, params):
            try:
                drives.append(
                    Drive(
                        drive_id=row["drive_id"],
                        game_id=row["game_id"],
                        team_id=row["team_id"],
                        possession=Possession(row["possession"]),
                        drive_number=row["drive_number"],
                        quarter=row["quarter"],
                        plays=[],
                        start_field_position=row["start_field_position"],
                        end_field_position=row["end_field_position"],
                        play_count=row["play_count"],
                        yards_gained=row["yards_gained"],
                        first_downs=row["first_downs"],
                        points=row["points"],
                        result=DriveResult(row["result"]),
                    )
                )
            except ValueError as exc:
                raise EventStoreError("fetch_drives", f"malformed drive {row['drive_id']}: {exc}") from exc
        return drives


def _to_column(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (PlayType, SpecialTeamsUnit)):
        return value.value
    return value


def _play_from_row(row: sqlite3.Row) -> PlayEvent:
    values = {name: row[name] for name in _PLAY_COLUMNS}
    try:
        for name in _BOOL_COLUMNS:
            values[name] = bool(values[name])
        for name in _TRISTATE_COLUMNS:
            if values[name] is not None:
                values[name] = bool(values[name])
        values["play_type"] = PlayType(values["play_type"])
        if values["special_teams_unit"] is not None:
            values["special_teams_unit"] = SpecialTeamsUnit(values["special_teams_unit"])
    except ValueError as exc:
        raise EventStoreError("fetch_plays", f"malformed play {values['play_id']}: {exc}") from exc
    return PlayEvent(**values)
