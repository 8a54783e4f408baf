"""Directory scanner producing file descriptors."""

from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import Any, Callable, Iterator

from rummage.core.config import DEFAULT_HASH_SIZE_LIMIT
from rummage.core.errors import PathError
from rummage.core.logging import get_logger
from rummage.models.entities import FileDescriptor
from rummage.scanning.cancellation import CancellationToken
from rummage.utils.hashing import content_hashes
from rummage.utils.time import to_ms

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int, str], None]

IGNORED_DIRECTORIES = frozenset({"node_modules", "__pycache__", ".git", ".hg", ".svn"})
DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".ico": "image/x-icon",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".json": "application/json",
    ".xml": "application/xml",
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".ts": "application/typescript",
    ".py": "text/x-python",
    ".rtf": "application/rtf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".odt": "application/vnd.oasis.opendocument.text",
}

IMAGE_EXTENSIONS = frozenset(
    {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".svg", ".tiff", ".tif", ".ico", ".heic", ".heif"}
)
DOCUMENT_EXTENSIONS = frozenset(
    {".txt", ".md", ".pdf", ".doc", ".docx", ".rtf", ".odt", ".pages", ".csv", ".json", ".xml", ".html"}
)


def mime_type_for(path: Path | str) -> str:
    """Classify by extension using the fixed table."""
    return MIME_TYPES.get(Path(path).suffix.lower(), DEFAULT_MIME_TYPE)


class FilesystemScanner:
    """Stateless per-scan primitive: enumerate, classify, hash.

    Traversal is depth-first in name order. Hidden directories and the
    entries of ``IGNORED_DIRECTORIES`` are pruned while listing, so their
    contents are never visited. A file that cannot be read is logged and
    left out; it never aborts the scan. The token is checked between files,
    so cancellation latency is bounded by the time to process one file.
    """

    def __init__(self, hash_size_limit: int = DEFAULT_HASH_SIZE_LIMIT) -> None:
        self.hash_size_limit = hash_size_limit

    def scan(
        self,
        directory: Path | str,
        progress: ProgressCallback | None = None,
        token: CancellationToken | None = None,
    ) -> list[FileDescriptor]:
        return list(self.iter_descriptors(directory, progress=progress, token=token))

    def iter_descriptors(
        self,
        directory: Path | str,
        progress: ProgressCallback | None = None,
        token: CancellationToken | None = None,
    ) -> Iterator[FileDescriptor]:
        root = validate_directory(directory)
        paths = self.collect_paths(root, token)
        total = len(paths)
        for current, path in enumerate(paths, start=1):
            if token is not None:
                token.raise_if_cancelled()
            try:
                descriptor = self.describe(path)
            except OSError as exc:
                logger.warning("Failed to process file %s: %s", path, exc)
                descriptor = None
            if progress is not None:
                progress(current, total, path.name)
            if descriptor is not None:
                yield descriptor

    def collect_paths(self, root: Path, token: CancellationToken | None = None) -> list[Path]:
        """Depth-first, name-ordered list of regular files under ``root``."""
        paths: list[Path] = []
        stack = [iter(self._list_entries(root, token))]
        while stack:
            entry = next(stack[-1], None)
            if entry is None:
                stack.pop()
                continue
            try:
                if entry.is_dir(follow_symlinks=False):
                    if not _is_ignored_directory(entry.name):
                        stack.append(iter(self._list_entries(Path(entry.path), token)))
                elif entry.is_file():
                    paths.append(Path(entry.path))
            except OSError as exc:
                logger.warning("Cannot inspect %s: %s", entry.path, exc)
        return paths

    def describe(self, path: Path) -> FileDescriptor:
        st = path.stat()
        extension = path.suffix.lower()
        metadata: dict[str, Any] = {
            "extension": extension,
            "is_image": extension in IMAGE_EXTENSIONS,
            "is_document": extension in DOCUMENT_EXTENSIONS,
            "permissions": stat.S_IMODE(st.st_mode),
        }
        hashes: dict[str, str] = {}
        if st.st_size > self.hash_size_limit:
            metadata["hash_skipped"] = True
        else:
            hashes = content_hashes(path.read_bytes())
        return FileDescriptor(
            path=str(path),
            name=path.name,
            size=st.st_size,
            mime_type=mime_type_for(path),
            created_at=to_ms(_creation_time(st)),
            modified_at=to_ms(st.st_mtime),
            hash_sha256=hashes.get("sha256"),
            hash_blake2b=hashes.get("blake2b"),
            metadata=metadata,
        )

    def _list_entries(self, directory: Path, token: CancellationToken | None) -> list[os.DirEntry[str]]:
        if token is not None:
            token.raise_if_cancelled()
        try:
            with os.scandir(directory) as it:
                return sorted(it, key=lambda entry: entry.name)
        except OSError as exc:
            logger.warning("Cannot read directory %s: %s", directory, exc)
            return []


def validate_directory(directory: Path | str) -> Path:
    """Fail fast unless ``directory`` is an absolute, readable directory."""
    path = Path(directory)
    if not path.is_absolute():
        raise PathError("Directory path must be absolute")
    try:
        st = path.stat()
    except OSError as exc:
        raise PathError(f"Cannot access directory: {exc.strerror or exc}") from exc
    if not stat.S_ISDIR(st.st_mode):
        raise PathError("Path is not a directory")
    if not os.access(path, os.R_OK | os.X_OK):
        raise PathError("Directory is not readable")
    return path


def detailed_stats(path: Path | str) -> dict[str, int]:
    """Low-level stat fields surfaced by the file metadata command."""
    st = Path(path).stat()
    return {
        "mode": st.st_mode,
        "nlink": st.st_nlink,
        "uid": st.st_uid,
        "gid": st.st_gid,
        "ino": st.st_ino,
        "dev": st.st_dev,
        "blksize": getattr(st, "st_blksize", 0),
        "blocks": getattr(st, "st_blocks", 0),
    }


def _is_ignored_directory(name: str) -> bool:
    return name.startswith(".") or name in IGNORED_DIRECTORIES


def _creation_time(st: os.stat_result) -> float:
    return getattr(st, "st_birthtime", None) or st.st_ctime


__all__ = [
    "FilesystemScanner",
    "ProgressCallback",
    "IGNORED_DIRECTORIES",
    "MIME_TYPES",
    "DEFAULT_MIME_TYPE",
    "mime_type_for",
    "validate_directory",
    "detailed_stats",
]
