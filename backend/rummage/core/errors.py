"""Error taxonomy shared across the storage, scanning and command layers."""

from __future__ import annotations


class RummageError(Exception):
    """Base class for all domain errors."""


class ConfigurationError(RummageError):
    """Missing or invalid setup detected at startup."""


class PathError(RummageError):
    """Scan target is invalid or inaccessible."""


class NotInitializedError(RummageError):
    """Storage used before ``initialize`` was called."""


class CancelledError(RummageError):
    """A scan observed its cancellation token and stopped.

    Deliberately unrelated to ``asyncio.CancelledError`` so that scan
    cancellation never tears down the surrounding task.
    """


class StorageError(RummageError):
    """A repository or query operation failed."""


class InvalidTransitionError(StorageError):
    """Attempted to move a scan history entry out of a terminal status."""


class RecordNotFoundError(StorageError):
    """A command referenced a file id that is not indexed."""


__all__ = [
    "RummageError",
    "ConfigurationError",
    "PathError",
    "NotInitializedError",
    "CancelledError",
    "StorageError",
    "InvalidTransitionError",
    "RecordNotFoundError",
]
