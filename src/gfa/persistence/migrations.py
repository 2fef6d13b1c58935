from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version INTEGER PRIMARY KEY,
            applied_at TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS team_analytics_config (
            team_id TEXT PRIMARY KEY,
            tier TEXT NOT NULL,
            enable_drive_analytics INTEGER NOT NULL DEFAULT 0,
            enable_player_attribution INTEGER NOT NULL DEFAULT 0,
            enable_ol_tracking INTEGER NOT NULL DEFAULT 0,
            enable_defensive_tracking INTEGER NOT NULL DEFAULT 0,
            enable_situational_splits INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS players (
            player_id TEXT PRIMARY KEY,
            team_id TEXT NOT NULL,
            name TEXT NOT NULL,
            jersey_number TEXT NOT NULL DEFAULT '',
            primary_position TEXT NOT NULL DEFAULT '',
            position_depths_json TEXT NOT NULL DEFAULT '{}'
        );

        CREATE TABLE IF NOT EXISTS play_instances (
            play_id TEXT PRIMARY KEY,
            team_id TEXT NOT NULL,
            game_id TEXT NOT NULL,
            season INTEGER NOT NULL,
            down INTEGER,
            distance INTEGER,
            field_position INTEGER,
            quarter INTEGER NOT NULL,
            is_opponent_play INTEGER NOT NULL,
            play_type TEXT NOT NULL,
            yards_gained INTEGER NOT NULL DEFAULT 0,
            is_turnover INTEGER NOT NULL DEFAULT 0,
            is_touchdown INTEGER NOT NULL DEFAULT 0,
            resulted_in_first_down INTEGER NOT NULL DEFAULT 0,
            drive_id TEXT,
            special_teams_unit TEXT,
            timestamp REAL,
            result TEXT,
            turnover_type TEXT,
            qb_id TEXT,
            ball_carrier_id TEXT,
            target_id TEXT
        );

        CREATE TABLE IF NOT EXISTS player_participation (
            participation_id TEXT PRIMARY KEY,
            play_id TEXT NOT NULL,
            player_id TEXT NOT NULL,
            participation_type TEXT NOT NULL,
            result TEXT,
            yards INTEGER,
            is_touchdown INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY (play_id) REFERENCES play_instances(play_id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS drives (
            drive_id TEXT PRIMARY KEY,
            team_id TEXT NOT NULL,
            game_id TEXT NOT NULL,
            season INTEGER NOT NULL,
            possession TEXT NOT NULL,
            drive_number INTEGER NOT NULL,
            quarter INTEGER NOT NULL,
            start_field_position INTEGER,
            end_field_position INTEGER,
            play_count INTEGER NOT NULL,
            yards_gained INTEGER NOT NULL,
            first_downs INTEGER NOT NULL,
            points INTEGER NOT NULL,
            result TEXT NOT NULL
        );
        """,
    ),
    (
        2,
        """
        ALTER TABLE play_instances ADD COLUMN has_motion INTEGER;
        ALTER TABLE play_instances ADD COLUMN is_play_action INTEGER;
        ALTER TABLE play_instances ADD COLUMN facing_blitz INTEGER;

        CREATE INDEX IF NOT EXISTS idx_play_instances_team_season ON play_instances(team_id, season);
        CREATE INDEX IF NOT EXISTS idx_play_instances_game ON play_instances(game_id);
        CREATE INDEX IF NOT EXISTS idx_player_participation_play ON player_participation(play_id);
        CREATE INDEX IF NOT EXISTS idx_drives_team_game ON drives(team_id, game_id);
        """,
    ),
    (
        3,
        """
        ALTER TABLE play_instances ADD COLUMN play_code TEXT;
        """,
    ),
]


class MigrationRunner:
    """Applies pending schema versions in order, one commit per version."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def applied_versions(self) -> set[int]:
        self.conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_migrations "
            "(version INTEGER PRIMARY KEY, applied_at TEXT DEFAULT CURRENT_TIMESTAMP)"
        )
        return {int(row[0]) for row in self.conn.execute("SELECT version FROM schema_migrations")}

    def apply(self) -> list[int]:
        done = self.applied_versions()
        pending = [(version, sql) for version, sql in MIGRATIONS if version not in done]
        for version, sql in pending:
            # executescript commits any open transaction before running
            self.conn.executescript(sql)
            self.conn.execute("INSERT INTO schema_migrations(version) VALUES (?)", (version,))
            self.conn.commit()
            logger.info("applied analytics schema migration %d", version)
        return [version for version, _ in pending]
