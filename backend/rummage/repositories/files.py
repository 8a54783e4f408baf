"""Typed data access over the ``files`` table."""

from __future__ import annotations

import sqlite3
from typing import Any, Iterable, Mapping, Sequence

import orjson

from rummage.db.sqlite import StorageService
from rummage.models.entities import FileDescriptor, FileRecord, SearchCriteria

_COLUMNS = (
    "id, path, name, size, mime_type, created_at, modified_at, "
    "hash_sha256, hash_blake2b, metadata"
)

# Re-scanning a path refreshes the row in place and keeps its id.
_UPSERT_SQL = """
INSERT INTO files (path, name, size, mime_type, created_at, modified_at, hash_sha256, hash_blake2b, metadata)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(path) DO UPDATE SET
  name = excluded.name,
  size = excluded.size,
  mime_type = excluded.mime_type,
  created_at = excluded.created_at,
  modified_at = excluded.modified_at,
  hash_sha256 = excluded.hash_sha256,
  hash_blake2b = excluded.hash_blake2b,
  metadata = excluded.metadata
RETURNING id
"""

# Partial-update field name -> column name.
_UPDATABLE_FIELDS: Mapping[str, str] = {
    "name": "name",
    "size": "size",
    "mime_type": "mime_type",
    "created_at": "created_at",
    "modified_at": "modified_at",
    "hash_sha256": "hash_sha256",
    "hash_blake2b": "hash_blake2b",
    "metadata": "metadata",
}


class FileRepository:
    """CRUD and structured search over scanned files."""

    def __init__(self, storage: StorageService) -> None:
        self.storage = storage

    def find_by_id(self, file_id: int) -> FileRecord | None:
        row = self.storage.query_one(f"SELECT {_COLUMNS} FROM files WHERE id = ?", [file_id])
        return _row_to_file(row) if row else None

    def find_by_path(self, path: str) -> FileRecord | None:
        row = self.storage.query_one(f"SELECT {_COLUMNS} FROM files WHERE path = ?", [path])
        return _row_to_file(row) if row else None

    def get_all(self) -> list[FileRecord]:
        rows = self.storage.query(f"SELECT {_COLUMNS} FROM files ORDER BY created_at DESC, id DESC")
        return [_row_to_file(row) for row in rows]

    def count(self) -> int:
        row = self.storage.query_one("SELECT COUNT(*) AS count FROM files")
        return int(row["count"]) if row else 0

    def search(self, criteria: SearchCriteria) -> list[FileRecord]:
        clauses: list[str] = []
        params: list[Any] = []
        if criteria.mime_types:
            placeholders = ",".join("?" for _ in criteria.mime_types)
            clauses.append(f"mime_type IN ({placeholders})")
            params.extend(criteria.mime_types)
        if criteria.size_min is not None:
            clauses.append("size >= ?")
            params.append(criteria.size_min)
        if criteria.size_max is not None:
            clauses.append("size <= ?")
            params.append(criteria.size_max)
        if criteria.created_from is not None:
            clauses.append("created_at >= ?")
            params.append(criteria.created_from)
        if criteria.created_to is not None:
            clauses.append("created_at <= ?")
            params.append(criteria.created_to)
        if criteria.text_query:
            clauses.append("(name LIKE ? ESCAPE '\\' OR path LIKE ? ESCAPE '\\')")
            pattern = f"%{_escape_like(criteria.text_query)}%"
            params.extend([pattern, pattern])

        sql = f"SELECT {_COLUMNS} FROM files"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC, id DESC"
        if criteria.limit is not None:
            sql += " LIMIT ?"
            params.append(criteria.limit)
        if criteria.offset:
            if criteria.limit is None:
                sql += " LIMIT -1"
            sql += " OFFSET ?"
            params.append(criteria.offset)
        return [_row_to_file(row) for row in self.storage.query(sql, params)]

    def insert(self, descriptor: FileDescriptor) -> int:
        with self.storage.transaction() as conn:
            return _upsert(conn, descriptor)

    def batch_insert(self, descriptors: Iterable[FileDescriptor]) -> list[int]:
        """Write every descriptor or none of them; ids come back in input order."""
        with self.storage.transaction() as conn:
            return [_upsert(conn, descriptor) for descriptor in descriptors]

    def update(self, file_id: int, changes: Mapping[str, Any]) -> None:
        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update file fields: {', '.join(sorted(unknown))}")
        if not changes:
            return
        assignments: list[str] = []
        params: list[Any] = []
        for field_name, value in changes.items():
            assignments.append(f"{_UPDATABLE_FIELDS[field_name]} = ?")
            params.append(_dump_metadata(value) if field_name == "metadata" else value)
        params.append(file_id)
        self.storage.execute(f"UPDATE files SET {', '.join(assignments)} WHERE id = ?", params)

    def delete(self, file_id: int) -> bool:
        cursor = self.storage.execute("DELETE FROM files WHERE id = ?", [file_id])
        return cursor.rowcount > 0


def _upsert(conn: sqlite3.Connection, descriptor: FileDescriptor) -> int:
    # fetchall() steps the RETURNING statement to completion before the commit.
    (row,) = conn.execute(
        _UPSERT_SQL,
        [
            descriptor.path,
            descriptor.name,
            descriptor.size,
            descriptor.mime_type,
            descriptor.created_at,
            descriptor.modified_at,
            descriptor.hash_sha256,
            descriptor.hash_blake2b,
            _dump_metadata(descriptor.metadata),
        ],
    ).fetchall()
    return int(row["id"])


def _row_to_file(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        id=row["id"],
        path=row["path"],
        name=row["name"],
        size=row["size"],
        mime_type=row["mime_type"],
        created_at=row["created_at"],
        modified_at=row["modified_at"],
        hash_sha256=row["hash_sha256"],
        hash_blake2b=row["hash_blake2b"],
        metadata=orjson.loads(row["metadata"]) if row["metadata"] else {},
    )


def _dump_metadata(metadata: Mapping[str, Any] | None) -> str:
    return orjson.dumps(dict(metadata or {})).decode("utf-8")


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


__all__ = ["FileRepository"]
