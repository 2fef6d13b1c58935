from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest

from gfa.analytics import REPORT_NAMES, AnalyticsPaths, AnalyticsService, ReportAssembler, synthesize, tier_config_for
from gfa.cli import main
from gfa.contracts import AnalyticsTier, PayloadStatus, ReportScope, SectionStatus
from gfa.persistence import SqliteEventStore
from tests.helpers import MemoryEventStore, sample_game, sample_roster, store_down

SEASON = ReportScope.for_season(2025)


def _store(**overrides) -> MemoryEventStore:
    plays, parts = sample_game()
    kwargs = dict(
        config=tier_config_for("T1", AnalyticsTier.HS_ADVANCED),
        players=sample_roster(),
        plays=plays,
        participations=parts,
    )
    kwargs.update(overrides)
    return MemoryEventStore(**kwargs)


def test_tier_fetch_failure_falls_back_to_most_restrictive_tier():
    service = AnalyticsService(_store(failures=store_down("fetch_tier_config")))
    payload = service.build_report("T1", "qb", SEASON)
    assert payload.status == PayloadStatus.OK
    assert payload.section("passing").status == SectionStatus.REQUIRES_TIER
    assert payload.section("team_passing").status == SectionStatus.AVAILABLE


def test_play_fetch_failure_makes_payload_unavailable():
    service = AnalyticsService(_store(failures=store_down("fetch_plays")))
    payload = service.build_report("T1", "game", SEASON)
    assert payload.status == PayloadStatus.UNAVAILABLE
    assert {s.status for s in payload.sections} == {SectionStatus.UNAVAILABLE}


def test_participation_fetch_failure_degrades_player_sections_only():
    service = AnalyticsService(_store(failures=store_down("fetch_participations")))
    qb, game = service.build_reports("T1", ["qb", "game"], SEASON)
    assert qb.section("passing").status == SectionStatus.UNAVAILABLE
    assert qb.section("team_passing").status == SectionStatus.AVAILABLE
    assert game.section("disruption").status == SectionStatus.UNAVAILABLE
    assert game.section("offense").fields["plays"] == 7
    assert game.section("drives").status == SectionStatus.AVAILABLE


def test_drive_fetch_failure_still_synthesizes():
    service = AnalyticsService(_store(failures=store_down("fetch_drives")))
    payload = service.build_report("T1", "drive", SEASON)
    assert payload.section("offense_drives").status == SectionStatus.AVAILABLE
    assert payload.section("offense_drives").fields["method"] == "synthesized"
    assert payload.generated_from["drive_method"] == "synthesized"


def test_persisted_drives_are_preferred():
    plays, _ = sample_game()
    service = AnalyticsService(_store(drives=synthesize(plays)))
    payload = service.build_report("T1", "drive", SEASON)
    assert payload.section("offense_drives").fields["method"] == "persisted"
    assert payload.section("offense_drives").fields["points"] == 6


def test_roster_failure_leaves_team_sections_intact():
    service = AnalyticsService(_store(failures=store_down("fetch_players")))
    payload = service.build_report("T1", "season", SEASON)
    assert payload.section("offense").status == SectionStatus.AVAILABLE
    assert payload.section("all_defenders").rows


def test_concurrent_builds_match_sequential_builds():
    service = AnalyticsService(_store(), max_workers=4)
    names = list(REPORT_NAMES)
    together = service.build_reports("T1", names, SEASON)
    one_by_one = [service.build_report("T1", name, SEASON) for name in names]
    assert [p.report_name for p in together] == names
    assert [p.to_dict() for p in together] == [p.to_dict() for p in one_by_one]


def test_unknown_report_names_are_rejected_up_front():
    with pytest.raises(ValueError):
        AnalyticsService(_store()).build_reports("T1", ["qb", "nickel"], SEASON)


def test_normalization_issues_reach_the_payload():
    plays, _ = sample_game()
    service = AnalyticsService(_store(plays=plays + [plays[0]]))
    payload = service.build_report("T1", "game", SEASON)
    assert [i.code for i in payload.issues] == ["DUPLICATE_PLAY"]
    assert payload.section("offense").fields["plays"] == 7


def test_game_scope_only_sees_that_game():
    g1, p1 = sample_game("G1", prefix="a")
    g2, p2 = sample_game("G2", prefix="b")
    service = AnalyticsService(_store(plays=g1 + g2, participations=p1 + p2))
    game = service.build_report("T1", "game", ReportScope.for_game("G2"))
    season = service.build_report("T1", "game", SEASON)
    assert game.section("offense").fields["plays"] == 7
    assert season.section("offense").fields["plays"] == 14
    assert season.section("offense").fields["games"] == 2


def test_integrity_failures_are_written_under_the_forensic_dir(tmp_path: Path):
    paths = AnalyticsPaths(tmp_path)
    service = AnalyticsService(_store(), paths=paths)
    snapshot = service.load_snapshot("T1", SEASON)
    rollups = service.rollups_for(snapshot)
    rollups.defenders["D1"].assist_tackles = 5
    payload = ReportAssembler(snapshot.players, forensic_dir=paths.forensic_dir).build("dl", rollups, None, SEASON)
    assert payload.section("defenders").status == SectionStatus.UNAVAILABLE
    assert list(paths.forensic_dir.glob("forensic_*.json"))


def _seed(root: Path) -> None:
    store = SqliteEventStore(AnalyticsPaths(root).sqlite_path)
    store.initialize_schema()
    plays, parts = sample_game()
    store.save_tier_config(tier_config_for("T1", AnalyticsTier.HS_ADVANCED))
    store.save_players("T1", sample_roster())
    store.save_plays(plays)
    store.save_participations(parts)


def test_cli_prints_requested_reports(tmp_path: Path, capsys):
    _seed(tmp_path)
    code = main(["--root", str(tmp_path), "--team", "T1", "--season", "2025", "--report", "qb", "--report", "drive"])
    assert code == 0
    payloads = json.loads(capsys.readouterr().out)
    assert [p["report_name"] for p in payloads] == ["qb", "drive"]
    passing = next(s for s in payloads[0]["sections"] if s["key"] == "passing")
    assert passing["status"] == "available"
    assert [r["player_id"] for r in passing["rows"]] == ["Q1", "Q2"]
    offense_drives = next(s for s in payloads[1]["sections"] if s["key"] == "offense_drives")
    assert offense_drives["fields"]["drives"] == 2


def test_cli_export_writes_files(tmp_path: Path, capsys):
    _seed(tmp_path)
    main(["--root", str(tmp_path), "--team", "T1", "--game", "G1", "--report", "game", "--export"])
    listed = [line[2:] for line in capsys.readouterr().out.splitlines() if line.startswith("- ")]
    assert listed
    assert all(Path(p).exists() for p in listed)
    assert any(p.endswith("game_offense.parquet") for p in listed)


def test_cli_requires_a_scope(tmp_path: Path):
    with pytest.raises(SystemExit) as info:
        main(["--root", str(tmp_path), "--team", "T1"])
    assert info.value.code == 2


def test_malformed_persisted_drives_only_take_down_drive_sections():
    plays, _ = sample_game()
    good, bad = synthesize(plays)[:2]
    service = AnalyticsService(_store(drives=[good, replace(bad, drive_number=None)]))
    game, qb = service.build_reports("T1", ["game", "qb"], SEASON)
    assert game.status == PayloadStatus.OK
    assert game.section("drives").status == SectionStatus.UNAVAILABLE
    assert game.section("drives").note == "drive data unavailable"
    assert game.section("offense").status == SectionStatus.AVAILABLE
    assert qb.section("passing").status == SectionStatus.AVAILABLE


def test_composite_reports_are_served():
    service = AnalyticsService(_store())
    offense, defense, special = service.build_reports("T1", ["offense", "defense", "special_teams"], SEASON)
    assert [s.key for s in offense.sections][:4] == ["offense", "offense_downs", "top_plays", "bottom_plays"]
    assert offense.section("passing").status == SectionStatus.AVAILABLE
    assert defense.section("defense_drives").fields["three_and_out_rate"] == 50.0
    assert [r["player_id"] for r in defense.section("defensive_line").rows] == ["D1"]
    assert special.section("special_teams").fields["kickoff_touchbacks"] == 1
