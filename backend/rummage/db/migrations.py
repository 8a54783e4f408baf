"""Forward-only schema migrations."""

from __future__ import annotations

from rummage.models.entities import SchemaMigration

TEXT_EMBEDDING_DIM = 384
IMAGE_EMBEDDING_DIM = 512

DEFAULT_MIGRATIONS: tuple[SchemaMigration, ...] = (
    SchemaMigration(
        version=1,
        name="Initial schema",
        sql="""
        CREATE TABLE IF NOT EXISTS meta (
          key TEXT PRIMARY KEY,
          value TEXT
        );
        """,
    ),
    SchemaMigration(
        version=2,
        name="Create files table",
        sql="""
        CREATE TABLE files (
          id INTEGER PRIMARY KEY,
          path TEXT UNIQUE NOT NULL,
          name TEXT NOT NULL,
          size INTEGER NOT NULL DEFAULT 0,
          mime_type TEXT,
          created_at INTEGER,
          modified_at INTEGER,
          hash_sha256 TEXT,
          hash_blake2b TEXT,
          metadata TEXT
        );
        CREATE INDEX idx_files_mime_type ON files(mime_type);
        CREATE INDEX idx_files_size ON files(size);
        CREATE INDEX idx_files_created_at ON files(created_at);
        """,
    ),
    SchemaMigration(
        version=3,
        name="Create scan_history table",
        sql="""
        CREATE TABLE scan_history (
          id INTEGER PRIMARY KEY,
          directory TEXT NOT NULL,
          started_at INTEGER NOT NULL,
          completed_at INTEGER,
          files_scanned INTEGER NOT NULL DEFAULT 0,
          status TEXT NOT NULL DEFAULT 'running'
            CHECK (status IN ('running', 'completed', 'failed', 'cancelled'))
        );
        CREATE INDEX idx_scan_history_directory ON scan_history(directory);
        CREATE INDEX idx_scan_history_status ON scan_history(status);
        """,
    ),
)

VECTOR_MIGRATION = SchemaMigration(
    version=4,
    name="Create vector tables",
    sql=f"""
    CREATE VIRTUAL TABLE IF NOT EXISTS text_embeddings USING vec0(
      file_id INTEGER PRIMARY KEY,
      embedding FLOAT[{TEXT_EMBEDDING_DIM}]
    );
    CREATE VIRTUAL TABLE IF NOT EXISTS image_embeddings USING vec0(
      file_id INTEGER PRIMARY KEY,
      embedding FLOAT[{IMAGE_EMBEDDING_DIM}]
    );
    """,
)


def build_migrations(vector_support: bool) -> list[SchemaMigration]:
    """Return the ordered migration list for a connection's capabilities."""
    migrations = list(DEFAULT_MIGRATIONS)
    if vector_support:
        migrations.append(VECTOR_MIGRATION)
    return sorted(migrations, key=lambda migration: migration.version)


__all__ = [
    "DEFAULT_MIGRATIONS",
    "VECTOR_MIGRATION",
    "TEXT_EMBEDDING_DIM",
    "IMAGE_EMBEDDING_DIM",
    "build_migrations",
]
