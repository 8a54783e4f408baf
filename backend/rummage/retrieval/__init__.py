"""Similarity search over caller-supplied embeddings."""

from .vector_store import NullVectorBackend, SqliteVecBackend, VectorBackend, VectorStore

__all__ = ["VectorStore", "VectorBackend", "SqliteVecBackend", "NullVectorBackend"]
