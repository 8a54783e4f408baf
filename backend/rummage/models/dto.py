"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from rummage.models.entities import FileRecord, ScanHistoryEntry, SearchCriteria, SimilarityHit


class ScanRequest(BaseModel):
    path: str = Field(min_length=1)


class ScanResponse(BaseModel):
    success: bool
    scan_id: int
    files_found: int
    duration: int
    error: str | None = None


class SelectDirectoryResponse(BaseModel):
    path: str | None


class CancelRequest(BaseModel):
    scan_id: int | None = Field(default=None, description="Cancel every active scan when omitted")


class CancelResponse(BaseModel):
    cancelled: int


class DateRange(BaseModel):
    start: int
    end: int


class SearchRequest(BaseModel):
    mime_types: list[str] | None = None
    size_min: int | None = Field(default=None, ge=0)
    size_max: int | None = Field(default=None, ge=0)
    date_range: DateRange | None = None
    text_query: str | None = None
    limit: int | None = Field(default=None, ge=1, le=10_000)
    offset: int | None = Field(default=None, ge=0)

    def to_criteria(self) -> SearchCriteria:
        return SearchCriteria(
            mime_types=self.mime_types,
            size_min=self.size_min,
            size_max=self.size_max,
            created_from=self.date_range.start if self.date_range else None,
            created_to=self.date_range.end if self.date_range else None,
            text_query=self.text_query,
            limit=self.limit,
            offset=self.offset,
        )


class FileResponse(BaseModel):
    id: int
    path: str
    name: str
    size: int
    mime_type: str | None
    created_at: int | None
    modified_at: int | None
    hash_sha256: str | None
    hash_blake2b: str | None
    metadata: dict[str, Any]

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileResponse":
        return cls(
            id=record.id,
            path=record.path,
            name=record.name,
            size=record.size,
            mime_type=record.mime_type,
            created_at=record.created_at,
            modified_at=record.modified_at,
            hash_sha256=record.hash_sha256,
            hash_blake2b=record.hash_blake2b,
            metadata=record.metadata,
        )


class FileMetadataResponse(FileResponse):
    detailed_stats: dict[str, int] | None = None


class ScanHistoryResponse(BaseModel):
    id: int
    directory: str
    started_at: int
    completed_at: int | None
    files_scanned: int
    status: Literal["running", "completed", "failed", "cancelled"]

    @classmethod
    def from_entry(cls, entry: ScanHistoryEntry) -> "ScanHistoryResponse":
        return cls(
            id=entry.id,
            directory=entry.directory,
            started_at=entry.started_at,
            completed_at=entry.completed_at,
            files_scanned=entry.files_scanned,
            status=entry.status,
        )


class SimilarityRequest(BaseModel):
    vector: list[float]
    limit: int = Field(default=10, ge=1, le=200)


class SimilarityResponse(BaseModel):
    file_id: int
    distance: float
    modality: Literal["text", "image"]
    file: FileResponse | None = None

    @classmethod
    def from_hit(cls, hit: SimilarityHit) -> "SimilarityResponse":
        return cls(
            file_id=hit.file_id,
            distance=hit.distance,
            modality=hit.modality,
            file=FileResponse.from_record(hit.file) if hit.file else None,
        )


class EmbeddingRequest(BaseModel):
    file_id: int = Field(ge=1)
    vector: list[float]


class MetaRequest(BaseModel):
    value: str


class DeleteResponse(BaseModel):
    status: Literal["ok", "noop"]
    deleted: int


__all__ = [
    "ScanRequest",
    "ScanResponse",
    "SelectDirectoryResponse",
    "CancelRequest",
    "CancelResponse",
    "DateRange",
    "SearchRequest",
    "FileResponse",
    "FileMetadataResponse",
    "ScanHistoryResponse",
    "SimilarityRequest",
    "SimilarityResponse",
    "EmbeddingRequest",
    "MetaRequest",
    "DeleteResponse",
]
