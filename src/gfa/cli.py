from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Sequence

from gfa.analytics import REPORT_NAMES, AnalyticsPaths, AnalyticsService
from gfa.contracts import ReportScope
from gfa.export import ReportExportService
from gfa.persistence import SqliteEventStore


def _scope_from_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> ReportScope:
    if args.game:
        return ReportScope.for_game(args.game)
    if args.player:
        return ReportScope.for_player(args.player, season=args.season)
    if args.season is None:
        parser.error("one of --season, --game or --player is required")
    return ReportScope.for_season(args.season)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Gridiron film analytics: tiered report builder")
    parser.add_argument("--root", type=Path, default=Path.cwd(), help="analytics root directory")
    parser.add_argument("--team", required=True, help="team id to report on")
    parser.add_argument(
        "--report",
        action="append",
        choices=REPORT_NAMES,
        help="report to build; repeat for several (default: season)",
    )
    parser.add_argument("--season", type=int, default=None, help="season scope")
    parser.add_argument("--game", default=None, help="game scope")
    parser.add_argument("--player", default=None, help="player scope (combine with --season to narrow)")
    parser.add_argument("--export", action="store_true", help="write available sections to CSV and Parquet")
    parser.add_argument("--verbose", action="store_true", help="debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    scope = _scope_from_args(parser, args)
    paths = AnalyticsPaths(args.root)
    store = SqliteEventStore(paths.sqlite_path)
    store.initialize_schema()
    service = AnalyticsService(store, paths=paths)

    payloads = service.build_reports(args.team, args.report or ["season"], scope)
    print(json.dumps([p.to_dict() for p in payloads], indent=2))

    if args.export:
        exporter = ReportExportService(paths.export_dir)
        for payload in payloads:
            for path in exporter.export(payload):
                print(f"- {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
