"""Tests for embedding storage and similarity search."""

from __future__ import annotations

from pathlib import Path

import pytest

from rummage.db.migrations import IMAGE_EMBEDDING_DIM, TEXT_EMBEDDING_DIM
from rummage.db.sqlite import StorageService
from rummage.models.entities import SimilarityHit
from rummage.repositories.files import FileRepository
from rummage.retrieval.vector_store import NullVectorBackend, VectorStore


def _unit(dim: int, index: int) -> list[float]:
    vector = [0.0] * dim
    vector[index] = 1.0
    return vector


@pytest.fixture
def vectors(storage: StorageService) -> VectorStore:
    if not storage.has_vector_support:
        pytest.skip("sqlite-vec extension not loadable in this environment")
    return VectorStore(storage)


def test_text_search_orders_by_distance(vectors: VectorStore, files: FileRepository, make_descriptor) -> None:
    near = files.insert(make_descriptor("/data/near.txt"))
    far = files.insert(make_descriptor("/data/far.txt"))
    vectors.add_text_embedding(near, _unit(TEXT_EMBEDDING_DIM, 0))
    vectors.add_text_embedding(far, _unit(TEXT_EMBEDDING_DIM, 1))

    hits = vectors.search_text(_unit(TEXT_EMBEDDING_DIM, 0), limit=2)
    assert [hit.file_id for hit in hits] == [near, far]
    assert hits[0].distance == pytest.approx(0.0)
    assert all(hit.modality == "text" for hit in hits)


def test_upsert_replaces_embedding(vectors: VectorStore, files: FileRepository, make_descriptor) -> None:
    file_id = files.insert(make_descriptor("/data/a.txt"))
    vectors.add_text_embedding(file_id, _unit(TEXT_EMBEDDING_DIM, 0))
    vectors.add_text_embedding(file_id, _unit(TEXT_EMBEDDING_DIM, 5))
    assert vectors.embedding_counts()["text"] == 1
    hits = vectors.search_text(_unit(TEXT_EMBEDDING_DIM, 5), limit=1)
    assert hits[0].file_id == file_id
    assert hits[0].distance == pytest.approx(0.0)


def test_image_search_and_removal(vectors: VectorStore, files: FileRepository, make_descriptor) -> None:
    file_id = files.insert(make_descriptor("/pics/a.jpg", mime_type="image/jpeg"))
    vectors.add_image_embedding(file_id, _unit(IMAGE_EMBEDDING_DIM, 3))
    assert vectors.has_embedding(file_id, "image")
    assert not vectors.has_embedding(file_id, "text")
    assert vectors.search_similar(_unit(IMAGE_EMBEDDING_DIM, 3), limit=5)[0].modality == "image"

    vectors.remove_embeddings(file_id)
    assert vectors.embedding_counts() == {"text": 0, "image": 0}


def test_unified_merge_ranks_by_distance(storage: StorageService, files: FileRepository, make_descriptor) -> None:
    if not storage.has_vector_support:
        pytest.skip("sqlite-vec extension not loadable in this environment")
    store = VectorStore(storage, merge_strategy="unified")
    ids = [files.insert(make_descriptor(f"/data/{n}.txt")) for n in range(3)]
    for n, file_id in enumerate(ids):
        store.add_text_embedding(file_id, _unit(TEXT_EMBEDDING_DIM, n))
    hits = store.search_similar(_unit(TEXT_EMBEDDING_DIM, 2), limit=3)
    assert hits[0].file_id == ids[2]
    assert [hit.distance for hit in hits] == sorted(hit.distance for hit in hits)


def test_without_extension_everything_degrades(tmp_path: Path, make_descriptor) -> None:
    with StorageService(tmp_path / "novec.db", vector_extension_enabled=False) as storage:
        store = VectorStore(storage)
        assert store.has_vector_support is False
        file_id = FileRepository(storage).insert(make_descriptor("/data/a.txt"))
        store.add_text_embedding(file_id, _unit(TEXT_EMBEDDING_DIM, 0))
        assert store.search_similar(_unit(TEXT_EMBEDDING_DIM, 0)) == []
        assert store.has_embedding(file_id) is False
        store.remove_embeddings(file_id)


def test_unknown_merge_strategy(storage: StorageService) -> None:
    with pytest.raises(ValueError):
        VectorStore(storage, merge_strategy="best", backend=NullVectorBackend())


def test_zero_limit_returns_nothing(storage: StorageService) -> None:
    assert VectorStore(storage, backend=NullVectorBackend()).search_similar([0.1], limit=0) == []


class CannedBackend:
    """In-memory backend returning fixed hits and recording every query."""

    available = True

    def __init__(self, text: list[float], image: list[float]) -> None:
        self.hits = {
            "text": [SimilarityHit(file_id=n + 1, distance=d, modality="text") for n, d in enumerate(text)],
            "image": [SimilarityHit(file_id=n + 101, distance=d, modality="image") for n, d in enumerate(image)],
        }
        self.requests: list[tuple[str, int]] = []

    def upsert(self, modality, file_id, vector) -> None:
        raise NotImplementedError

    def search(self, modality, vector, limit):
        self.requests.append((modality, limit))
        return self.hits[modality][:limit]

    def remove(self, file_id) -> None:
        pass

    def exists(self, modality, file_id) -> bool:
        return False

    def count(self, modality) -> int:
        return len(self.hits[modality])


def test_text_first_skips_images_when_text_fills_limit(storage: StorageService) -> None:
    backend = CannedBackend(text=[0.2, 0.4, 0.6], image=[0.1])
    hits = VectorStore(storage, backend=backend).search_similar([0.0], limit=3)

    assert backend.requests == [("text", 3)]
    assert [hit.distance for hit in hits] == [0.2, 0.4, 0.6]
    assert {hit.modality for hit in hits} == {"text"}


def test_text_first_fills_remaining_slots_from_images(storage: StorageService) -> None:
    backend = CannedBackend(text=[0.5, 0.9], image=[0.1, 0.7, 0.8])
    hits = VectorStore(storage, backend=backend).search_similar([0.0], limit=4)

    assert backend.requests == [("text", 4), ("image", 2)]
    assert [hit.distance for hit in hits] == [0.1, 0.5, 0.7, 0.9]
    assert [hit.modality for hit in hits] == ["image", "text", "image", "text"]


def test_unified_queries_full_limit_and_truncates(storage: StorageService) -> None:
    backend = CannedBackend(text=[0.3, 0.6], image=[0.1, 0.4])
    hits = VectorStore(storage, merge_strategy="unified", backend=backend).search_similar([0.0], limit=2)

    assert backend.requests == [("text", 2), ("image", 2)]
    assert [(hit.modality, hit.distance) for hit in hits] == [("image", 0.1), ("text", 0.3)]
