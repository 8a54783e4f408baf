"""Per-file embedding storage and cross-modal similarity search."""

from __future__ import annotations

import sqlite3
from typing import Protocol, Sequence

import sqlite_vec

from rummage.core.logging import get_logger
from rummage.db.sqlite import StorageService
from rummage.models.entities import Modality, SimilarityHit

logger = get_logger(__name__)

_TABLES: dict[str, str] = {
    "text": "text_embeddings",
    "image": "image_embeddings",
}

MERGE_STRATEGIES = ("text_first", "unified")


class VectorBackend(Protocol):
    """Capability selected once at startup; both variants share this surface."""

    available: bool

    def upsert(self, modality: Modality, file_id: int, vector: Sequence[float]) -> None: ...

    def search(self, modality: Modality, vector: Sequence[float], limit: int) -> list[SimilarityHit]: ...

    def remove(self, file_id: int) -> None: ...

    def exists(self, modality: Modality, file_id: int) -> bool: ...

    def count(self, modality: Modality) -> int: ...


class SqliteVecBackend:
    """Stores vectors in sqlite-vec ``vec0`` virtual tables."""

    available = True

    def __init__(self, storage: StorageService) -> None:
        self.storage = storage

    def upsert(self, modality: Modality, file_id: int, vector: Sequence[float]) -> None:
        table = _table_for(modality)
        blob = sqlite_vec.serialize_float32(list(vector))
        # vec0 tables reject INSERT OR REPLACE, so replace explicitly.
        with self.storage.transaction() as conn:
            conn.execute(f"DELETE FROM {table} WHERE file_id = ?", [file_id])
            conn.execute(f"INSERT INTO {table} (file_id, embedding) VALUES (?, ?)", [file_id, blob])

    def search(self, modality: Modality, vector: Sequence[float], limit: int) -> list[SimilarityHit]:
        if limit <= 0:
            return []
        table = _table_for(modality)
        try:
            rows = self.storage.query(
                f"""
                SELECT file_id, distance
                FROM {table}
                WHERE embedding MATCH ? AND k = ?
                ORDER BY distance
                """,
                [sqlite_vec.serialize_float32(list(vector)), limit],
            )
        except sqlite3.Error as exc:
            logger.warning("%s embedding search failed: %s", modality.capitalize(), exc)
            return []
        return [
            SimilarityHit(file_id=int(row["file_id"]), distance=float(row["distance"]), modality=modality)
            for row in rows
        ]

    def remove(self, file_id: int) -> None:
        with self.storage.transaction() as conn:
            for table in _TABLES.values():
                conn.execute(f"DELETE FROM {table} WHERE file_id = ?", [file_id])

    def exists(self, modality: Modality, file_id: int) -> bool:
        row = self.storage.query_one(f"SELECT 1 FROM {_table_for(modality)} WHERE file_id = ? LIMIT 1", [file_id])
        return row is not None

    def count(self, modality: Modality) -> int:
        row = self.storage.query_one(f"SELECT COUNT(*) AS count FROM {_table_for(modality)}")
        return int(row["count"]) if row else 0


class NullVectorBackend:
    """Stand-in used when sqlite-vec is unavailable: writes vanish, searches are empty."""

    available = False

    def upsert(self, modality: Modality, file_id: int, vector: Sequence[float]) -> None:
        logger.warning("Vector operations not supported - sqlite-vec extension not available")

    def search(self, modality: Modality, vector: Sequence[float], limit: int) -> list[SimilarityHit]:
        logger.warning("Vector search not supported - sqlite-vec extension not available")
        return []

    def remove(self, file_id: int) -> None:
        return None

    def exists(self, modality: Modality, file_id: int) -> bool:
        return False

    def count(self, modality: Modality) -> int:
        return 0


class VectorStore:
    """Embedding upserts and nearest-neighbour queries for text and image vectors."""

    def __init__(
        self,
        storage: StorageService,
        merge_strategy: str = "text_first",
        backend: VectorBackend | None = None,
    ) -> None:
        if merge_strategy not in MERGE_STRATEGIES:
            raise ValueError(f"Unknown merge strategy: {merge_strategy}")
        self.merge_strategy = merge_strategy
        if backend is None:
            backend = SqliteVecBackend(storage) if storage.has_vector_support else NullVectorBackend()
        self._backend = backend

    @property
    def has_vector_support(self) -> bool:
        return self._backend.available

    def add_text_embedding(self, file_id: int, vector: Sequence[float]) -> None:
        self._backend.upsert("text", file_id, vector)

    def add_image_embedding(self, file_id: int, vector: Sequence[float]) -> None:
        self._backend.upsert("image", file_id, vector)

    def search_text(self, vector: Sequence[float], limit: int = 10) -> list[SimilarityHit]:
        return self._backend.search("text", vector, limit)

    def search_image(self, vector: Sequence[float], limit: int = 10) -> list[SimilarityHit]:
        return self._backend.search("image", vector, limit)

    def search_similar(self, vector: Sequence[float], limit: int = 10) -> list[SimilarityHit]:
        """Rank hits across both modalities.

        ``text_first`` (default) prefers same-modality matches: the image table
        is consulted only to fill slots the text table left empty, then both
        sets are re-sorted by distance. ``unified`` queries both tables for the
        full limit and ranks purely by distance. Neither policy guarantees an
        optimal cross-modal ranking since the two spaces are not calibrated
        against each other.
        """
        if limit <= 0:
            return []
        text_hits = self._backend.search("text", vector, limit)
        if self.merge_strategy == "text_first":
            if len(text_hits) >= limit:
                return text_hits[:limit]
            image_hits = self._backend.search("image", vector, limit - len(text_hits))
        else:
            image_hits = self._backend.search("image", vector, limit)
        merged = sorted(text_hits + image_hits, key=lambda hit: hit.distance)
        return merged[:limit]

    def remove_embeddings(self, file_id: int) -> None:
        try:
            self._backend.remove(file_id)
        except sqlite3.Error as exc:
            logger.warning("Failed to remove embeddings for file %s: %s", file_id, exc)

    def has_embedding(self, file_id: int, modality: Modality = "text") -> bool:
        _table_for(modality)
        return self._backend.exists(modality, file_id)

    def embedding_counts(self) -> dict[str, int]:
        return {modality: self._backend.count(modality) for modality in _TABLES}


def _table_for(modality: str) -> str:
    try:
        return _TABLES[modality]
    except KeyError:
        raise ValueError(f"Unknown embedding modality: {modality}") from None


__all__ = ["VectorStore", "VectorBackend", "SqliteVecBackend", "NullVectorBackend", "MERGE_STRATEGIES"]
