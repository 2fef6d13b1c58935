from __future__ import annotations

import json

import pytest

from gfa.analytics import ReportAssembler, aggregate, drives_for, resolve, tier_config_for
from gfa.analytics.reports import check_row
from gfa.contracts import AnalyticsTier, PayloadStatus, PlayType, ReportScope, SectionStatus, SpecialTeamsUnit
from gfa.core import EngineIntegrityError
from tests.helpers import ALL_FEATURES, PT, part, play, sample_game, sample_roster

SEASON = ReportScope.for_season(2025)


def _rollups(features=ALL_FEATURES, scope=SEASON, with_participations=True):
    plays, parts = sample_game()
    return aggregate(plays, parts if with_participations else None, scope, features)


def _ids(section):
    return [row["player_id"] for row in section.rows]


def test_multi_position_player_appears_in_every_bucket_report():
    assembler = ReportAssembler(sample_roster())
    rollups = _rollups()

    qb = assembler.build("qb", rollups, None, SEASON)
    passing = qb.section("passing")
    assert passing.status == SectionStatus.AVAILABLE
    assert _ids(passing) == ["Q1", "Q2"]
    assert passing.rows[0]["depth"] == 1 and passing.rows[1]["depth"] == 2
    assert passing.rows[0]["completion_pct"] == 33.33

    db = assembler.build("db", rollups, None, SEASON).section("defenders")
    assert set(_ids(db)) == {"Q2", "C1"}
    zero_filled = next(row for row in db.rows if row["player_id"] == "Q2")
    assert zero_filled["tackles"] == 0 and zero_filled["depth"] == 1


def test_unpositioned_defender_only_in_all_defenders():
    assembler = ReportAssembler(sample_roster())
    rollups = _rollups()
    dl = assembler.build("dl", rollups, None, SEASON).section("defenders")
    assert _ids(dl) == ["D1"]
    assert dl.rows[0]["havoc_plays"] == 2

    season = assembler.build("season", rollups, drives_for(rollups.plays), SEASON)
    all_defenders = season.section("all_defenders")
    assert "X1" in _ids(all_defenders)
    assert all_defenders.rows[_ids(all_defenders).index("X1")]["name"] == "Ike Nobody"


def test_ol_section_is_gated_by_tier():
    assembler = ReportAssembler(sample_roster())
    basic = resolve(tier_config_for("T1", AnalyticsTier.HS_BASIC))

    gated = assembler.build("ol", _rollups(features=basic), None, SEASON)
    assert gated.status == PayloadStatus.OK
    assert gated.section("blocking").status == SectionStatus.REQUIRES_TIER
    assert gated.section("blocking").rows == []

    blocking = assembler.build("ol", _rollups(), None, SEASON).section("blocking")
    assert _ids(blocking) == ["L1", "L2"]
    assert blocking.rows[0]["primary_slot"] == "LT"
    assert blocking.fields["block_win_rate"] == 33.33


def test_participation_fault_degrades_only_player_sections():
    payload = ReportAssembler(sample_roster()).build("qb", _rollups(with_participations=False), None, SEASON)
    assert payload.status == PayloadStatus.OK
    assert payload.section("passing").status == SectionStatus.UNAVAILABLE
    team = payload.section("team_passing")
    assert team.status == SectionStatus.AVAILABLE
    assert team.fields["pass_attempts"] == 4 and team.fields["completions"] == 2


def test_no_plays_makes_the_whole_payload_unavailable():
    empty = aggregate([], [], SEASON, ALL_FEATURES)
    payload = ReportAssembler().build("game", empty, None, SEASON)
    assert payload.status == PayloadStatus.UNAVAILABLE
    assert all(s.status == SectionStatus.UNAVAILABLE for s in payload.sections)

    assert ReportAssembler().build("qb", None, None, SEASON).status == PayloadStatus.UNAVAILABLE


def test_unknown_report_and_invalid_scope_are_rejected():
    with pytest.raises(ValueError):
        ReportAssembler().build("punt_team", _rollups(), None, SEASON)
    with pytest.raises(ValueError):
        ReportAssembler().build("qb", _rollups(), None, ReportScope.for_game(""))


def test_tackle_mismatch_is_isolated_and_recorded(tmp_path):
    rollups = _rollups()
    rollups.defenders["D1"].tackles = 99
    assembler = ReportAssembler(sample_roster(), forensic_dir=tmp_path)

    payload = assembler.build("dl", rollups, None, SEASON)
    section = payload.section("defenders")
    assert payload.status == PayloadStatus.OK
    assert section.status == SectionStatus.UNAVAILABLE
    assert "TACKLE_TOTAL_MISMATCH" in section.note

    artifacts = list(tmp_path.glob("forensic_*.json"))
    assert len(artifacts) == 1
    saved = json.loads(artifacts[0].read_text(encoding="utf-8"))
    assert saved["error_code"] == "TACKLE_TOTAL_MISMATCH"
    assert saved["identifiers"] == {"player_id": "D1"}


def test_rate_outside_percentage_range_is_an_integrity_failure():
    with pytest.raises(EngineIntegrityError) as info:
        check_row("offense", {"success_rate": 120.0, "plays": 4}, SEASON)
    assert info.value.artifact.error_code == "RATE_OUT_OF_RANGE"
    check_row("offense", {"success_rate": 100.0, "plays": 4, "label": "3rd & short"}, SEASON)


def test_failing_builder_only_takes_down_its_own_section():
    rollups = _rollups()
    rollups.special_teams = None
    payload = ReportAssembler(sample_roster()).build("game", rollups, drives_for(rollups.plays), SEASON)
    statuses = {s.key: s.status for s in payload.sections}
    assert statuses["special_teams"] == SectionStatus.UNAVAILABLE
    assert statuses["offense"] == SectionStatus.AVAILABLE
    assert statuses["drives"] == SectionStatus.AVAILABLE
    assert payload.status == PayloadStatus.OK


def test_game_report_without_drive_data():
    payload = ReportAssembler().build("game", _rollups(), None, SEASON)
    drives = payload.section("drives")
    assert drives.status == SectionStatus.UNAVAILABLE
    assert drives.note == "drive data unavailable"
    assert payload.section("disruption").fields["havoc_rate"] == 75.0


def test_returners_sorted_by_total_returns():
    plays, parts = sample_game()
    for n, yards in ((1, 20), (2, 15)):
        plays.append(
            play(
                f"k{n}", opponent=True, down=None, distance=None, play_type=PlayType.KICK,
                special_teams_unit=SpecialTeamsUnit.KICK_RETURN, yards=yards, timestamp=400.0 + n,
            )
        )
        parts.append(part(f"k{n}", "R1", PT.RETURNER, yards=yards))
    rollups = aggregate(plays, parts, SEASON, ALL_FEATURES)
    section = ReportAssembler(sample_roster()).build("returner", rollups, None, SEASON).section("returners")
    assert _ids(section) == ["R1", "W1"]
    assert section.rows[0]["kick_returns"] == 2
    assert section.rows[0]["kick_return_average"] == 17.5
    assert section.rows[1]["punt_returns"] == 1


def test_player_scope_keeps_only_that_player():
    scope = ReportScope.for_player("Q1", season=2025)
    plays, parts = sample_game()
    rollups = aggregate(plays, parts, scope, ALL_FEATURES)
    passing = ReportAssembler(sample_roster()).build("qb", rollups, None, scope).section("passing")
    assert _ids(passing) == ["Q1"]
    assert passing.rows[0]["attempts"] == 3


def test_drive_report_and_provenance():
    rollups = _rollups()
    payload = ReportAssembler().build("drive", rollups, drives_for(rollups.plays), SEASON)
    offense = payload.section("offense_drives").fields
    assert offense["drives"] == 2
    assert offense["points"] == 6
    assert offense["result_touchdown"] == 1 and offense["result_turnover"] == 1
    defense = payload.section("defense_drives").fields
    assert defense["three_and_out_rate"] == 50.0

    log = payload.section("drive_log").rows
    assert len(log) == 4
    assert log[0]["possession"] == "defense" and log[0]["result"] == "punt" and log[0]["three_and_out"] is True

    assert payload.generated_from["plays"] == 14
    assert payload.generated_from["drive_method"] == "synthesized"
    assert "ol_tracking" in payload.generated_from["features"]


def test_top_and_bottom_plays_by_play_code():
    plays = []
    for code, gains in (("Mesh", (12, 0, 9, 4)), ("Power", (5, 6, 1)), ("Sweep", (0, 1, 2)), ("Reverse", (30,))):
        for n, yards in enumerate(gains):
            plays.append(play(f"{code}{n}", down=1, distance=10, yards=yards, play_code=code, timestamp=float(len(plays))))
    rollups = aggregate(plays, [], SEASON, ALL_FEATURES)
    payload = ReportAssembler().build("offense", rollups, None, SEASON)

    top = payload.section("top_plays")
    assert [r["play_code"] for r in top.rows] == ["Mesh", "Power", "Sweep"]
    assert top.rows[1]["success_rate"] == 66.67 and top.rows[1]["avg_yards"] == 4.0
    assert top.fields["ranked_play_codes"] == 3
    assert [r["play_code"] for r in payload.section("bottom_plays").rows] == ["Sweep", "Power", "Mesh"]


def test_blocking_unit_fields_follow_player_scope():
    scope = ReportScope.for_player("L2", season=2025)
    plays, parts = sample_game()
    rollups = aggregate(plays, parts, scope, ALL_FEATURES)
    blocking = ReportAssembler(sample_roster()).build("ol", rollups, None, scope).section("blocking")
    assert _ids(blocking) == ["L2"]
    assert blocking.fields == {
        "assignments": 1, "wins": 0, "losses": 0, "neutrals": 1, "penalties": 0, "block_win_rate": 0.0,
    }
