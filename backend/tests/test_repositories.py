"""Tests for the file and scan history repositories."""

from __future__ import annotations

import sqlite3

import pytest

from rummage.core.errors import InvalidTransitionError
from rummage.models.entities import SearchCriteria
from rummage.repositories.files import FileRepository
from rummage.repositories.scan_history import ScanHistoryRepository

MB = 1024 * 1024


def test_insert_and_find(files: FileRepository, make_descriptor) -> None:
    file_id = files.insert(make_descriptor("/data/a.txt", metadata={"extension": ".txt"}))
    record = files.find_by_id(file_id)
    assert record is not None
    assert record.path == "/data/a.txt"
    assert record.metadata == {"extension": ".txt"}
    assert files.find_by_path("/data/a.txt").id == file_id
    assert files.find_by_id(file_id + 100) is None


def test_reinsert_same_path_keeps_id(files: FileRepository, make_descriptor) -> None:
    first = files.insert(make_descriptor("/data/a.txt", size=1))
    second = files.insert(make_descriptor("/data/a.txt", size=2))
    assert first == second
    assert files.count() == 1
    assert files.find_by_id(first).size == 2


def test_batch_insert_returns_ids_in_order(files: FileRepository, make_descriptor) -> None:
    ids = files.batch_insert([make_descriptor(f"/data/{n}.txt") for n in range(5)])
    assert len(ids) == 5
    assert [files.find_by_id(file_id).name for file_id in ids] == [f"{n}.txt" for n in range(5)]


def test_batch_insert_is_atomic(files: FileRepository, make_descriptor) -> None:
    batch = [make_descriptor("/data/good.txt"), make_descriptor("/data/bad.txt", name=None)]
    with pytest.raises(sqlite3.IntegrityError):
        files.batch_insert(batch)
    assert files.count() == 0


def test_partial_update_round_trip(files: FileRepository, make_descriptor) -> None:
    file_id = files.insert(make_descriptor("/data/a.txt", hash_sha256="abc"))
    files.update(file_id, {"size": 999, "metadata": {"tag": "x"}})
    record = files.find_by_id(file_id)
    assert record.size == 999
    assert record.metadata == {"tag": "x"}
    assert record.hash_sha256 == "abc"
    assert record.name == "a.txt"


def test_update_rejects_unknown_fields(files: FileRepository, make_descriptor) -> None:
    file_id = files.insert(make_descriptor("/data/a.txt"))
    with pytest.raises(ValueError):
        files.update(file_id, {"path": "/elsewhere"})
    files.update(file_id, {})
    assert files.find_by_id(file_id).path == "/data/a.txt"


def test_delete(files: FileRepository, make_descriptor) -> None:
    file_id = files.insert(make_descriptor("/data/a.txt"))
    assert files.delete(file_id) is True
    assert files.delete(file_id) is False
    assert files.get_all() == []


def test_search_filters_are_combined(files: FileRepository, make_descriptor) -> None:
    files.batch_insert(
        [
            make_descriptor("/pics/big.jpg", mime_type="image/jpeg", size=2 * MB, created_at=3),
            make_descriptor("/pics/small.png", mime_type="image/png", size=MB // 2, created_at=2),
            make_descriptor("/docs/big.pdf", mime_type="application/pdf", size=3 * MB, created_at=1),
        ]
    )
    results = files.search(SearchCriteria(mime_types=["image/jpeg", "image/png"], size_min=MB))
    assert [record.name for record in results] == ["big.jpg"]

    by_date = files.search(SearchCriteria(created_from=1, created_to=2))
    assert [record.name for record in by_date] == ["small.png", "big.pdf"]


def test_search_text_and_paging(files: FileRepository, make_descriptor) -> None:
    files.batch_insert(
        [make_descriptor(f"/notes/report_{n}.txt", created_at=n) for n in range(4)]
        + [make_descriptor("/notes/100%.txt", created_at=10)]
    )
    assert len(files.search(SearchCriteria(text_query="report"))) == 4
    assert [r.name for r in files.search(SearchCriteria(text_query="100%"))] == ["100%.txt"]
    page = files.search(SearchCriteria(text_query="report", limit=2, offset=1))
    assert [record.name for record in page] == ["report_2.txt", "report_1.txt"]
    tail = files.search(SearchCriteria(text_query="report", offset=3))
    assert [record.name for record in tail] == ["report_0.txt"]


def test_history_lifecycle(history: ScanHistoryRepository) -> None:
    entry_id = history.create("/data")
    entry = history.find_by_id(entry_id)
    assert entry.status == "running"
    assert entry.files_scanned == 0
    assert entry.completed_at is None

    history.update(entry_id, {"status": "completed", "files_scanned": 7, "completed_at": 123})
    entry = history.find_by_id(entry_id)
    assert (entry.status, entry.files_scanned, entry.completed_at) == ("completed", 7, 123)


def test_history_terminal_status_is_final(history: ScanHistoryRepository) -> None:
    entry_id = history.create("/data")
    history.update(entry_id, {"status": "cancelled"})
    with pytest.raises(InvalidTransitionError):
        history.update(entry_id, {"status": "completed"})
    assert history.find_by_id(entry_id).status == "cancelled"


def test_history_rejects_unknown_status(history: ScanHistoryRepository) -> None:
    entry_id = history.create("/data")
    with pytest.raises(ValueError):
        history.update(entry_id, {"status": "paused"})


def test_history_queries(history: ScanHistoryRepository) -> None:
    ids = [history.create("/a"), history.create("/b"), history.create("/a")]
    assert [entry.id for entry in history.find_by_directory("/a")] == [ids[2], ids[0]]
    recent = history.get_recent(limit=2)
    assert [entry.id for entry in recent] == [ids[2], ids[1]]


def test_search_png_at_least_1kb_newest_first(files: FileRepository, make_descriptor) -> None:
    files.batch_insert(
        [
            make_descriptor("/pics/old.png", mime_type="image/png", size=4096, created_at=100),
            make_descriptor("/pics/tiny.png", mime_type="image/png", size=512, created_at=300),
            make_descriptor("/pics/new.png", mime_type="image/png", size=1024, created_at=200),
            make_descriptor("/pics/photo.jpg", mime_type="image/jpeg", size=8192, created_at=400),
        ]
    )
    results = files.search(SearchCriteria(mime_types=["image/png"], size_min=1024))
    assert [record.name for record in results] == ["new.png", "old.png"]
