"""SQLite storage for the party history."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import List, Optional

from .models import PartyReport, SavedMoment


class ReportStore:
    """Persistent storage of party reports built on SQLite."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path)

    def initialize(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS reports (
                    id TEXT PRIMARY KEY,
                    date REAL NOT NULL,
                    duration REAL NOT NULL,
                    moments TEXT NOT NULL
                )
                """
            )
            conn.commit()

    def save_report(self, report: PartyReport) -> None:
        moments = [moment.model_dump() for moment in report.moments]
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO reports (id, date, duration, moments)
                VALUES (?, ?, ?, ?)
                """,
                (report.id, report.date, report.duration, json.dumps(moments)),
            )
            conn.commit()

    def _row_to_report(self, row) -> PartyReport:
        moments = [SavedMoment(**moment) for moment in json.loads(row[3] or "[]")]
        return PartyReport(id=row[0], date=row[1], duration=row[2], moments=moments)

    def fetch_report(self, report_id: str) -> Optional[PartyReport]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, date, duration, moments FROM reports WHERE id = ?",
                (report_id,),
            ).fetchone()
        if not row:
            return None
        return self._row_to_report(row)

    def list_reports(self) -> List[PartyReport]:
        """Return every stored report, newest first."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, date, duration, moments FROM reports ORDER BY date DESC"
            ).fetchall()
        return [self._row_to_report(row) for row in rows]

    def delete_report(self, report_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM reports WHERE id = ?", (report_id,))
            conn.commit()
        return cursor.rowcount > 0


__all__ = ["ReportStore"]
