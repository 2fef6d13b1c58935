from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import duckdb

from gfa.contracts import ReportPayload, SectionStatus

logger = logging.getLogger(__name__)


def _column_type(values: list[Any]) -> str:
    present = [v for v in values if v is not None]
    if not present:
        return "VARCHAR"
    if all(isinstance(v, bool) for v in present):
        return "BOOLEAN"
    if all(isinstance(v, int) and not isinstance(v, bool) for v in present):
        return "BIGINT"
    if all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in present):
        return "DOUBLE"
    return "VARCHAR"


def _cell(value: Any, column_type: str) -> Any:
    if value is None:
        return None
    if column_type == "VARCHAR" and not isinstance(value, str):
        return str(value)
    if column_type == "DOUBLE":
        return float(value)
    return value


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _literal_path(path: Path) -> str:
    return "'" + path.as_posix().replace("'", "''") + "'"


class ReportExportService:
    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir

    def export(self, payload: ReportPayload) -> list[Path]:
        """Write each available section to `<report>_<section>.csv` and `.parquet`.

        Sections with rows export their rows; field-only sections export a
        single row of their fields.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        outputs: list[Path] = []
        with duckdb.connect(":memory:") as conn:
            for section in payload.sections:
                if section.status != SectionStatus.AVAILABLE:
                    continue
                rows = section.rows or ([section.fields] if section.fields else [])
                if not rows:
                    continue
                stem = self.output_dir / f"{payload.report_name}_{section.key}"
                outputs.extend(self._export_rows(conn, rows, stem))
        logger.info("exported %d file(s) for report %s", len(outputs), payload.report_name)
        return outputs

    def _export_rows(self, conn: Any, rows: list[dict[str, Any]], stem: Path) -> list[Path]:
        columns: list[str] = []
        for row in rows:
            for name in row:
                if name not in columns:
                    columns.append(name)
        types = {name: _column_type([row.get(name) for row in rows]) for name in columns}

        conn.execute("DROP TABLE IF EXISTS section_rows")
        conn.execute(
            "CREATE TABLE section_rows ("
            + ", ".join(f"{_quote(name)} {types[name]}" for name in columns)
            + ")"
        )
        conn.executemany(
            f"INSERT INTO section_rows VALUES ({', '.join('?' for _ in columns)})",
            [[_cell(row.get(name), types[name]) for name in columns] for row in rows],
        )

        csv_path = stem.with_suffix(".csv")
        parquet_path = stem.with_suffix(".parquet")
        conn.execute(f"COPY (SELECT * FROM section_rows) TO {_literal_path(csv_path)} (HEADER, DELIMITER ',')")
        conn.execute(f"COPY (SELECT * FROM section_rows) TO {_literal_path(parquet_path)} (FORMAT PARQUET)")
        return [csv_path, parquet_path]
