"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

ScanStatus = Literal["running", "completed", "failed", "cancelled"]
Modality = Literal["text", "image"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed", "cancelled"})
SCAN_STATUSES: frozenset[str] = TERMINAL_STATUSES | {"running"}


@dataclass(slots=True)
class FileDescriptor:
    """Pre-persistence record produced by the scanner."""

    path: str
    name: str
    size: int
    mime_type: str
    created_at: int
    modified_at: int
    hash_sha256: str | None = None
    hash_blake2b: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class FileRecord:
    id: int
    path: str
    name: str
    size: int
    mime_type: str
    created_at: int
    modified_at: int
    hash_sha256: str | None
    hash_blake2b: str | None
    metadata: dict[str, Any]


@dataclass(slots=True)
class ScanHistoryEntry:
    id: int
    directory: str
    started_at: int
    completed_at: int | None
    files_scanned: int
    status: ScanStatus


@dataclass(slots=True)
class SimilarityHit:
    file_id: int
    distance: float
    modality: Modality
    file: FileRecord | None = None


@dataclass(frozen=True, slots=True)
class SchemaMigration:
    version: int
    name: str
    sql: str


@dataclass(slots=True)
class SearchCriteria:
    """Structured filter for file search; ``None`` fields are not applied."""

    mime_types: list[str] | None = None
    size_min: int | None = None
    size_max: int | None = None
    created_from: int | None = None
    created_to: int | None = None
    text_query: str | None = None
    limit: int | None = None
    offset: int | None = None


__all__ = [
    "ScanStatus",
    "Modality",
    "TERMINAL_STATUSES",
    "SCAN_STATUSES",
    "FileDescriptor",
    "FileRecord",
    "ScanHistoryEntry",
    "SimilarityHit",
    "SchemaMigration",
    "SearchCriteria",
]
