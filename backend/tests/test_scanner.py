"""Tests for the filesystem scanner."""

from __future__ import annotations

import inspect
import sys
from pathlib import Path

import pytest

from rummage.core.errors import CancelledError, PathError
from rummage.scanning.cancellation import CancellationToken
from rummage.scanning.scanner import FilesystemScanner, detailed_stats, mime_type_for, validate_directory
from rummage.utils.hashing import blake2b_bytes, sha256_bytes


def test_scan_skips_hidden_and_ignored_directories(sample_tree: Path) -> None:
    descriptors = FilesystemScanner().scan(sample_tree)
    relative = [Path(d.path).relative_to(sample_tree).as_posix() for d in descriptors]
    assert relative == ["a.txt", "docs/notes.md", "docs/report.pdf", "images/photo.jpg"]


def test_descriptor_fields(sample_tree: Path) -> None:
    descriptor = FilesystemScanner().describe(sample_tree / "a.txt")
    assert descriptor.name == "a.txt"
    assert descriptor.size == 5
    assert descriptor.mime_type == "text/plain"
    assert descriptor.hash_sha256 == sha256_bytes(b"alpha")
    assert descriptor.hash_blake2b == blake2b_bytes(b"alpha")
    assert descriptor.modified_at > 0
    assert descriptor.metadata["extension"] == ".txt"
    assert descriptor.metadata["is_document"] is True
    assert descriptor.metadata["is_image"] is False
    assert "hash_skipped" not in descriptor.metadata


def test_large_file_is_not_hashed(tmp_path: Path) -> None:
    big = tmp_path / "movie.bin"
    big.write_bytes(b"x" * 2048)
    descriptor = FilesystemScanner(hash_size_limit=1024).describe(big)
    assert descriptor.hash_sha256 is None
    assert descriptor.hash_blake2b is None
    assert descriptor.metadata["hash_skipped"] is True
    assert descriptor.size == 2048
    assert descriptor.mime_type == "application/octet-stream"


def test_progress_reported_for_every_file(sample_tree: Path) -> None:
    calls: list[tuple[int, int, str]] = []
    FilesystemScanner().scan(sample_tree, progress=lambda *args: calls.append(args))
    assert [call[0] for call in calls] == [1, 2, 3, 4]
    assert all(call[1] == 4 for call in calls)
    assert calls[-1][2] == "photo.jpg"


def test_cancelled_token_stops_scan(sample_tree: Path) -> None:
    token = CancellationToken()
    token.cancel()
    with pytest.raises(CancelledError):
        FilesystemScanner().scan(sample_tree, token=token)


def test_deep_tree_walk_is_not_bounded_by_recursion_limit(tmp_path: Path) -> None:
    depth = 150
    current = tmp_path / "deep"
    current.mkdir()
    levels: list[Path] = []
    for _ in range(depth):
        (current / "a.txt").write_text("a")
        (current / "z.txt").write_text("z")
        levels.append(current)
        current = current / "d"
        current.mkdir()

    limit = sys.getrecursionlimit()
    sys.setrecursionlimit(len(inspect.stack()) + 60)
    try:
        paths = FilesystemScanner().collect_paths(tmp_path / "deep")
    finally:
        sys.setrecursionlimit(limit)

    expected = [level / "a.txt" for level in levels] + [level / "z.txt" for level in reversed(levels)]
    assert paths == expected


def test_cancel_between_files(sample_tree: Path) -> None:
    token = CancellationToken()
    seen: list[str] = []

    def progress(current: int, total: int, name: str) -> None:
        seen.append(name)
        if current == 2:
            token.cancel("stop")

    with pytest.raises(CancelledError, match="stop"):
        FilesystemScanner().scan(sample_tree, progress=progress, token=token)
    assert len(seen) == 2


@pytest.mark.parametrize("bad", ["relative/path", "/definitely/not/here"])
def test_invalid_directory_rejected(bad: str) -> None:
    with pytest.raises(PathError):
        validate_directory(bad)


def test_file_is_not_a_directory(sample_tree: Path) -> None:
    with pytest.raises(PathError, match="not a directory"):
        FilesystemScanner().scan(sample_tree / "a.txt")


def test_mime_lookup_is_case_insensitive() -> None:
    assert mime_type_for("IMG_0001.JPG") == "image/jpeg"
    assert mime_type_for("archive.unknown") == "application/octet-stream"


def test_detailed_stats(sample_tree: Path) -> None:
    stats = detailed_stats(sample_tree / "a.txt")
    assert stats["nlink"] >= 1
    assert {"mode", "uid", "gid", "ino", "dev", "blksize", "blocks"} <= set(stats)
