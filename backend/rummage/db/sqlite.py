"""SQLite storage service: connection, pragmas, migrations and transactions."""

from __future__ import annotations

import re
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Sequence, TypeVar

import sqlite_vec

from rummage.core.config import Settings
from rummage.core.errors import ConfigurationError, NotInitializedError, StorageError
from rummage.core.logging import get_logger
from rummage.db.migrations import build_migrations
from rummage.models.entities import SchemaMigration

logger = get_logger(__name__)

T = TypeVar("T")

# Applied in this order; journal_mode must come first so the others run against the WAL.
DEFAULT_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA foreign_keys=ON;",
    "PRAGMA busy_timeout=5000;",
)

SCHEMA_VERSION_KEY = "schema_version"

_META_TABLE_SQL = "CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT)"
_UPSERT_META_SQL = (
    "INSERT INTO meta(key, value) VALUES(?, ?) "
    "ON CONFLICT(key) DO UPDATE SET value = excluded.value"
)
_EXTENSION_PATH_RE = re.compile(r"^[A-Za-z0-9_\-./\\:]+\.(so|dylib|dll)$")


def is_allowed_extension_path(location: str) -> bool:
    """Return True when ``location`` looks like a loadable library and nothing else."""
    return bool(_EXTENSION_PATH_RE.match(location)) and ".." not in Path(location).parts


class StorageService:
    """Owns the single SQLite connection and its transaction boundary."""

    def __init__(
        self,
        db_path: Path | str | None = None,
        vector_extension_enabled: bool = True,
        vector_extension_path: str | None = None,
    ) -> None:
        self.db_path = Path(db_path).expanduser() if db_path else None
        self.vector_extension_enabled = vector_extension_enabled
        self.vector_extension_path = vector_extension_path
        self._connection: sqlite3.Connection | None = None
        self._vector_support = False
        self._lock = threading.RLock()
        self._tx_depth = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "StorageService":
        return cls(
            db_path=settings.db_path,
            vector_extension_enabled=settings.vector_extension_enabled,
            vector_extension_path=settings.vector_extension_path,
        )

    # Lifecycle --------------------------------------------------------

    def initialize(self, db_path: Path | str | None = None) -> None:
        if db_path:
            self.db_path = Path(db_path).expanduser()
        if self.db_path is None:
            raise ConfigurationError(
                "Database path must be provided either in configuration or to initialize()"
            )
        if self._connection is not None:
            return

        target = str(self.db_path)
        if target != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        connection = sqlite3.connect(target, check_same_thread=False, isolation_level=None)
        connection.row_factory = sqlite3.Row
        try:
            for pragma in DEFAULT_PRAGMAS:
                connection.execute(pragma)
        except sqlite3.Error:
            connection.close()
            raise

        with self._lock:
            self._connection = connection
            self._vector_support = self._load_vector_extension(connection)
            try:
                self._run_migrations()
            except Exception:
                self._connection = None
                connection.close()
                raise
        logger.info(
            "Storage initialized at %s (schema v%s, vector support: %s)",
            target,
            self.schema_version,
            self._vector_support,
        )

    def close(self) -> None:
        with self._lock:
            if self._connection is None:
                return
            try:
                self._connection.execute("PRAGMA wal_checkpoint(TRUNCATE);")
            finally:
                self._connection.close()
                self._connection = None
                self._vector_support = False

    def __enter__(self) -> "StorageService":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_initialized(self) -> bool:
        return self._connection is not None

    @property
    def has_vector_support(self) -> bool:
        return self._vector_support

    # Queries ----------------------------------------------------------

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
        conn = self._require_connection()
        with self._lock:
            return conn.execute(sql, params or [])

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        conn = self._require_connection()
        with self._lock:
            return conn.execute(sql, params or []).fetchall()

    def query_one(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Row | None:
        conn = self._require_connection()
        with self._lock:
            return conn.execute(sql, params or []).fetchone()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """All-or-nothing scope; nested scopes become savepoints of the outer one."""
        conn = self._require_connection()
        with self._lock:
            depth = self._tx_depth
            savepoint = f"sp_{depth}"
            conn.execute(f"SAVEPOINT {savepoint}" if depth else "BEGIN")
            self._tx_depth += 1
            try:
                yield conn
            except BaseException:
                if depth:
                    conn.execute(f"ROLLBACK TO {savepoint}")
                    conn.execute(f"RELEASE {savepoint}")
                elif conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            else:
                conn.execute(f"RELEASE {savepoint}" if depth else "COMMIT")
            finally:
                self._tx_depth -= 1

    def with_transaction(self, operation: Callable[[sqlite3.Connection], T]) -> T:
        with self.transaction() as conn:
            return operation(conn)

    # Meta -------------------------------------------------------------

    def get_meta(self, key: str) -> str | None:
        row = self.query_one("SELECT value FROM meta WHERE key = ?", [key])
        return row["value"] if row else None

    def set_meta(self, key: str, value: str) -> None:
        self.execute(_UPSERT_META_SQL, [key, value])

    @property
    def schema_version(self) -> int:
        value = self.get_meta(SCHEMA_VERSION_KEY)
        return int(value) if value else 0

    # Internal helpers -------------------------------------------------

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise NotInitializedError("Database has not been initialized")
        return self._connection

    def _load_vector_extension(self, conn: sqlite3.Connection) -> bool:
        if not self.vector_extension_enabled:
            logger.info("Vector extension disabled by configuration")
            return False

        requested = self.vector_extension_path
        location: str | None = None
        if requested:
            if is_allowed_extension_path(requested):
                location = requested
            else:
                logger.warning("Invalid vector extension path %r, using bundled sqlite-vec", requested)

        try:
            conn.enable_load_extension(True)
            try:
                if location:
                    conn.load_extension(location)
                else:
                    sqlite_vec.load(conn)
            finally:
                conn.enable_load_extension(False)
        except (AttributeError, sqlite3.Error) as exc:
            if requested:
                logger.warning("sqlite-vec extension not available: %s", exc)
            else:
                logger.info("Vector search disabled, sqlite-vec could not be loaded: %s", exc)
            return False

        logger.info("sqlite-vec extension loaded from %s", location or "bundled package")
        return True

    def _run_migrations(self) -> None:
        conn = self._require_connection()
        conn.execute(_META_TABLE_SQL)
        current = self.schema_version
        for migration in build_migrations(self._vector_support):
            if migration.version <= current:
                continue
            logger.info("Running migration %s: %s", migration.version, migration.name)
            self._apply_migration(conn, migration)

    def _apply_migration(self, conn: sqlite3.Connection, migration: SchemaMigration) -> None:
        try:
            # The whole script and its version bump share one transaction.
            conn.executescript(f"BEGIN;\n{migration.sql}")
            conn.execute(_UPSERT_META_SQL, [SCHEMA_VERSION_KEY, str(migration.version)])
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.error("Failed to execute migration %s: %s", migration.version, exc)
            raise StorageError(f"Migration {migration.version} ({migration.name}) failed") from exc


__all__ = ["StorageService", "DEFAULT_PRAGMAS", "SCHEMA_VERSION_KEY", "is_allowed_extension_path"]
