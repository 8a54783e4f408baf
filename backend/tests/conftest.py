"""Test fixtures for Rummage."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from rummage.db.sqlite import StorageService  # noqa: E402
from rummage.models.entities import FileDescriptor  # noqa: E402
from rummage.repositories.files import FileRepository  # noqa: E402
from rummage.repositories.scan_history import ScanHistoryRepository  # noqa: E402


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("RUMMAGE_DB_PATH", str(tmp_path / "rummage.db"))
    for name in ("RUMMAGE_CONFIG", "DISABLE_VECTOR_EXTENSION", "SQLITE_VEC_PATH"):
        monkeypatch.delenv(name, raising=False)

    from rummage.api import dependencies as deps
    from rummage.core.config import get_settings

    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    deps.shutdown_services()
    deps._BROKER = None
    yield
    deps.shutdown_services()
    deps._BROKER = None
    deps.get_app_settings.cache_clear()
    get_settings.cache_clear()


@pytest.fixture
def storage(tmp_path: Path) -> StorageService:
    service = StorageService(tmp_path / "store.db")
    service.initialize()
    yield service
    service.close()


@pytest.fixture
def files(storage: StorageService) -> FileRepository:
    return FileRepository(storage)


@pytest.fixture
def history(storage: StorageService) -> ScanHistoryRepository:
    return ScanHistoryRepository(storage)


@pytest.fixture
def make_descriptor():
    def factory(path: str, **overrides) -> FileDescriptor:
        values = {
            "path": path,
            "name": Path(path).name,
            "size": 100,
            "mime_type": "text/plain",
            "created_at": 1_700_000_000_000,
            "modified_at": 1_700_000_000_000,
            "hash_sha256": None,
            "hash_blake2b": None,
            "metadata": {},
        }
        values.update(overrides)
        return FileDescriptor(**values)

    return factory


@pytest.fixture
def sample_tree(tmp_path: Path) -> Path:
    """Small directory tree with hidden and ignored folders mixed in."""
    root = tmp_path / "tree"
    (root / "docs").mkdir(parents=True)
    (root / "images").mkdir()
    (root / ".hidden").mkdir()
    (root / "node_modules" / "pkg").mkdir(parents=True)
    (root / "a.txt").write_text("alpha")
    (root / "docs" / "notes.md").write_text("# notes")
    (root / "docs" / "report.pdf").write_bytes(b"%PDF-1.4 fake")
    (root / "images" / "photo.jpg").write_bytes(b"\xff\xd8\xff fake jpeg")
    (root / ".hidden" / "secret.txt").write_text("hidden")
    (root / "node_modules" / "pkg" / "index.js").write_text("module.exports = 1;")
    return root
