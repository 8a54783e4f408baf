"""Typed data access over the ``scan_history`` table."""

from __future__ import annotations

import sqlite3
from typing import Any, Mapping

from rummage.core.errors import InvalidTransitionError
from rummage.db.sqlite import StorageService
from rummage.models.entities import SCAN_STATUSES, TERMINAL_STATUSES, ScanHistoryEntry
from rummage.utils.time import now_ms

_COLUMNS = "id, directory, started_at, completed_at, files_scanned, status"

_UPDATABLE_FIELDS: Mapping[str, str] = {
    "completed_at": "completed_at",
    "files_scanned": "files_scanned",
    "status": "status",
}


class ScanHistoryRepository:
    """One row per scan attempt; statuses only ever leave ``running``."""

    def __init__(self, storage: StorageService) -> None:
        self.storage = storage

    def create(self, directory: str) -> int:
        cursor = self.storage.execute(
            "INSERT INTO scan_history (directory, started_at, files_scanned, status) VALUES (?, ?, 0, 'running')",
            [directory, now_ms()],
        )
        return int(cursor.lastrowid)

    def update(self, entry_id: int, changes: Mapping[str, Any]) -> None:
        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update scan history fields: {', '.join(sorted(unknown))}")
        if not changes:
            return
        status = changes.get("status")
        if status is not None and status not in SCAN_STATUSES:
            raise ValueError(f"Unknown scan status: {status}")

        assignments: list[str] = []
        params: list[Any] = []
        for field_name, value in changes.items():
            assignments.append(f"{_UPDATABLE_FIELDS[field_name]} = ?")
            params.append(value)
        sql = f"UPDATE scan_history SET {', '.join(assignments)} WHERE id = ?"
        params.append(entry_id)
        if "status" in changes:
            sql += " AND status = 'running'"

        with self.storage.transaction():
            cursor = self.storage.execute(sql, params)
            if cursor.rowcount == 0 and "status" in changes:
                current = self.find_by_id(entry_id)
                if current is not None and current.status in TERMINAL_STATUSES:
                    raise InvalidTransitionError(
                        f"Scan {entry_id} is already {current.status}; cannot move to {status}"
                    )

    def find_by_id(self, entry_id: int) -> ScanHistoryEntry | None:
        row = self.storage.query_one(f"SELECT {_COLUMNS} FROM scan_history WHERE id = ?", [entry_id])
        return _row_to_entry(row) if row else None

    def find_by_directory(self, directory: str) -> list[ScanHistoryEntry]:
        rows = self.storage.query(
            f"SELECT {_COLUMNS} FROM scan_history WHERE directory = ? ORDER BY started_at DESC, id DESC",
            [directory],
        )
        return [_row_to_entry(row) for row in rows]

    def get_recent(self, limit: int = 10) -> list[ScanHistoryEntry]:
        rows = self.storage.query(
            f"SELECT {_COLUMNS} FROM scan_history ORDER BY started_at DESC, id DESC LIMIT ?",
            [limit],
        )
        return [_row_to_entry(row) for row in rows]


def _row_to_entry(row: sqlite3.Row) -> ScanHistoryEntry:
    return ScanHistoryEntry(
        id=row["id"],
        directory=row["directory"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        files_scanned=row["files_scanned"] or 0,
        status=row["status"],
    )


__all__ = ["ScanHistoryRepository"]
