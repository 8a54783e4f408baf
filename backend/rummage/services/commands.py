"""Command surface consumed by the presentation boundary."""

from __future__ import annotations

from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Callable, Sequence

from rummage.core.config import Settings
from rummage.core.errors import PathError, RecordNotFoundError
from rummage.core.logging import get_logger
from rummage.core.metrics import SIMILARITY_SEARCHES
from rummage.db.migrations import IMAGE_EMBEDDING_DIM, TEXT_EMBEDDING_DIM
from rummage.db.sqlite import SCHEMA_VERSION_KEY, StorageService
from rummage.models.entities import FileRecord, ScanHistoryEntry, SearchCriteria, SimilarityHit
from rummage.repositories.files import FileRepository
from rummage.repositories.scan_history import ScanHistoryRepository
from rummage.retrieval.vector_store import VectorStore
from rummage.scanning.orchestrator import EventSink, ScanOrchestrator, ScanResult
from rummage.scanning.scanner import FilesystemScanner, detailed_stats, validate_directory

logger = get_logger(__name__)

DirectoryChooser = Callable[[], "str | Path | None"]


@dataclass(slots=True)
class FileMetadata:
    file: FileRecord
    detailed_stats: dict[str, int] | None


def select_directory(chooser: DirectoryChooser) -> str | None:
    """Ask ``chooser`` for a directory; ``None`` means nothing was chosen."""
    chosen = chooser()
    if not chosen:
        return None
    path = validate_directory(Path(chosen).expanduser()).resolve()
    logger.info("Directory selected: %s", path)
    return str(path)


class CommandService:
    """One method per client command; wires storage, repositories and scans together."""

    def __init__(
        self,
        storage: StorageService,
        settings: Settings,
        event_sink: EventSink | None = None,
    ) -> None:
        self.storage = storage
        self.settings = settings
        self.files = FileRepository(storage)
        self.history = ScanHistoryRepository(storage)
        self.vectors = VectorStore(storage, merge_strategy=settings.vector_merge_strategy)
        self.orchestrator = ScanOrchestrator(
            storage=storage,
            files=self.files,
            history=self.history,
            scanner_factory=lambda: FilesystemScanner(hash_size_limit=settings.hash_size_limit),
            event_sink=event_sink,
            progress_interval=settings.progress_interval,
        )

    @classmethod
    def open(cls, settings: Settings, event_sink: EventSink | None = None) -> "CommandService":
        storage = StorageService.from_settings(settings)
        storage.initialize()
        return cls(storage, settings, event_sink=event_sink)

    def close(self) -> None:
        cancelled = self.orchestrator.cancel()
        if cancelled:
            logger.info("Cancelled %s active scans on shutdown", cancelled)
        self.storage.close()

    # Scanning ---------------------------------------------------------

    def select_directory(self, chooser: DirectoryChooser) -> str | None:
        return select_directory(chooser)

    async def scan_directory(self, path: str | Path) -> ScanResult:
        if not str(path).strip():
            raise PathError("Invalid directory path provided")
        return await self.orchestrator.scan_directory(str(Path(path).expanduser()))

    def cancel_scan(self, scan_id: int | None = None) -> int:
        return self.orchestrator.cancel(scan_id)

    def active_scans(self) -> list[int]:
        return self.orchestrator.active_scans()

    # Files ------------------------------------------------------------

    def search_files(self, criteria: SearchCriteria) -> list[FileRecord]:
        results = self.files.search(criteria)
        logger.debug("Search completed: %s results", len(results))
        return results

    def get_file_metadata(self, file_id: int) -> FileMetadata | None:
        if file_id <= 0:
            raise ValueError("Invalid file ID provided")
        record = self.files.find_by_id(file_id)
        if record is None:
            return None
        try:
            stats = detailed_stats(record.path)
        except OSError as exc:
            logger.warning("File %s is no longer readable: %s", record.path, exc)
            stats = None
        return FileMetadata(file=record, detailed_stats=stats)

    def delete_file(self, file_id: int) -> bool:
        deleted = self.files.delete(file_id)
        self.vectors.remove_embeddings(file_id)
        return deleted

    def get_scan_history(self, limit: int | None = None, directory: str | None = None) -> list[ScanHistoryEntry]:
        if directory:
            return self.history.find_by_directory(directory)
        return self.history.get_recent(limit or self.settings.history_limit)

    # Vectors ----------------------------------------------------------

    def add_text_embedding(self, file_id: int, vector: Sequence[float]) -> None:
        _check_dimensions(vector, TEXT_EMBEDDING_DIM, "text")
        self._require_file(file_id)
        self.vectors.add_text_embedding(file_id, vector)

    def add_image_embedding(self, file_id: int, vector: Sequence[float]) -> None:
        _check_dimensions(vector, IMAGE_EMBEDDING_DIM, "image")
        self._require_file(file_id)
        self.vectors.add_image_embedding(file_id, vector)

    def search_similar_images(self, vector: Sequence[float], limit: int = 10) -> list[SimilarityHit]:
        _check_dimensions(vector, IMAGE_EMBEDDING_DIM, "image")
        SIMILARITY_SEARCHES.labels(modality="image").inc()
        return self._hydrate(self.vectors.search_similar(vector, limit))

    def search_similar_text(self, vector: Sequence[float], limit: int = 10) -> list[SimilarityHit]:
        _check_dimensions(vector, TEXT_EMBEDDING_DIM, "text")
        SIMILARITY_SEARCHES.labels(modality="text").inc()
        return self._hydrate(self.vectors.search_similar(vector, limit))

    def has_vector_support(self) -> bool:
        return self.vectors.has_vector_support

    # Application ------------------------------------------------------

    def get_app_version(self) -> str:
        try:
            return version("rummage")
        except PackageNotFoundError:
            return "0.0.0"

    def get_schema_version(self) -> str | None:
        return self.storage.get_meta(SCHEMA_VERSION_KEY)

    def set_meta(self, key: str, value: str) -> None:
        if key == SCHEMA_VERSION_KEY:
            raise ValueError("schema_version is managed by migrations")
        self.storage.set_meta(key, value)

    def ping(self) -> str:
        return "pong"

    def _require_file(self, file_id: int) -> None:
        if self.files.find_by_id(file_id) is None:
            raise RecordNotFoundError(f"File {file_id} not found")

    def _hydrate(self, hits: list[SimilarityHit]) -> list[SimilarityHit]:
        for hit in hits:
            hit.file = self.files.find_by_id(hit.file_id)
        return hits


def _check_dimensions(vector: Sequence[float], expected: int, modality: str) -> None:
    if len(vector) != expected:
        raise ValueError(f"Invalid {modality} embedding dimension - expected {expected}")


__all__ = ["CommandService", "FileMetadata", "DirectoryChooser", "select_directory"]
