"""Scan orchestration: identities, cancellation, persistence and events."""

from __future__ import annotations

import asyncio
import inspect
import sqlite3
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from rummage.core.errors import CancelledError, RummageError
from rummage.core.logging import get_logger
from rummage.core.metrics import ACTIVE_SCANS, FILES_INDEXED, SCAN_DURATION, SCANS_TOTAL
from rummage.db.sqlite import StorageService
from rummage.models.entities import FileDescriptor, ScanStatus
from rummage.repositories.files import FileRepository
from rummage.repositories.scan_history import ScanHistoryRepository
from rummage.scanning.cancellation import CancellationToken
from rummage.scanning.scanner import FilesystemScanner, ProgressCallback
from rummage.utils.time import now_ms

logger = get_logger(__name__)

SCAN_STARTED = "scan:started"
SCAN_PROGRESS = "scan:progress"
SCAN_COMPLETED = "scan:completed"
SCAN_CANCELLED = "scan:cancelled"
SCAN_ERROR = "scan:error"
APP_ERROR = "app:error"

CANCELLED_MESSAGE = "Scan cancelled by user"

EventSink = Callable[[str, dict[str, Any]], Any]
ScannerFactory = Callable[[], FilesystemScanner]


@dataclass(slots=True)
class ScanResult:
    success: bool
    scan_id: int
    files_found: int
    duration: int
    error: str | None = None


@dataclass(slots=True)
class ActiveScan:
    scan_id: int
    directory: str
    token: CancellationToken = field(default_factory=CancellationToken)
    history_id: int | None = None
    processed: int = 0


class ScanRegistry:
    """In-memory map of in-flight scans keyed by a monotonically increasing id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._scans: dict[int, ActiveScan] = {}
        self._last_id = 0

    def open(self, directory: str) -> ActiveScan:
        with self._lock:
            self._last_id += 1
            scan = ActiveScan(scan_id=self._last_id, directory=directory)
            self._scans[scan.scan_id] = scan
            return scan

    def close(self, scan_id: int) -> ActiveScan | None:
        with self._lock:
            return self._scans.pop(scan_id, None)

    def get(self, scan_id: int) -> ActiveScan | None:
        with self._lock:
            return self._scans.get(scan_id)

    def cancel(self, scan_id: int | None = None) -> list[int]:
        with self._lock:
            if scan_id is None:
                targets = list(self._scans.values())
            else:
                target = self._scans.get(scan_id)
                targets = [target] if target is not None else []
        for scan in targets:
            scan.token.cancel(CANCELLED_MESSAGE)
        return [scan.scan_id for scan in targets]

    def active_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._scans)

    def __len__(self) -> int:
        with self._lock:
            return len(self._scans)


class ScanOrchestrator:
    """Runs scans as asyncio tasks and is the only owner of their cancellation tokens.

    Each scan moves ``running`` -> ``completed | cancelled | failed`` exactly
    once. Blocking work (traversal, hashing, database writes) runs in worker
    threads; progress events are posted back to the event loop so a slow
    sink can never stall traversal. A cancelled or failed scan persists no
    file records.
    """

    def __init__(
        self,
        storage: StorageService,
        files: FileRepository,
        history: ScanHistoryRepository,
        scanner_factory: ScannerFactory | None = None,
        event_sink: EventSink | None = None,
        progress_interval: int = 10,
    ) -> None:
        self.storage = storage
        self.files = files
        self.history = history
        self.scanner_factory = scanner_factory or FilesystemScanner
        self.event_sink = event_sink
        self.progress_interval = max(1, progress_interval)
        self.registry = ScanRegistry()
        self._pending_events: set[asyncio.Future[Any]] = set()

    async def scan_directory(self, directory: str) -> ScanResult:
        directory = str(directory)
        scan = self.registry.open(directory)
        ACTIVE_SCANS.inc()
        started = time.perf_counter()
        descriptors: list[FileDescriptor] = []
        persist: asyncio.Future[None] | None = None
        logger.info("Starting scan %s for %s", scan.scan_id, directory)
        try:
            scan.history_id = await asyncio.to_thread(self.history.create, directory)
            self._emit(SCAN_STARTED, {"directory": directory, "scanId": scan.scan_id})

            scanner = self.scanner_factory()
            relay = self._progress_relay(scan, asyncio.get_running_loop())
            descriptors = await asyncio.to_thread(scanner.scan, directory, relay, scan.token)
            # Cancellation that lands after traversal still discards the batch.
            scan.token.raise_if_cancelled()
            # Once handed to the worker thread the batch commits even if this task is cancelled.
            persist = asyncio.ensure_future(asyncio.to_thread(self._persist, scan, descriptors))
            await asyncio.shield(persist)
        except CancelledError:
            logger.info("Scan %s cancelled after %s files", scan.scan_id, scan.processed)
            await self._finish_history(scan, "cancelled")
            self._emit(SCAN_CANCELLED, {"scanId": scan.scan_id})
            return ScanResult(False, scan.scan_id, 0, _elapsed_ms(started), error=CANCELLED_MESSAGE)
        except asyncio.CancelledError:
            scan.token.cancel("Scan task cancelled")
            if persist is not None and await self._persisted(scan, persist):
                self._complete(scan, len(descriptors), started)
            else:
                await asyncio.shield(self._finish_history(scan, "cancelled"))
                self._emit(SCAN_CANCELLED, {"scanId": scan.scan_id})
            raise
        except Exception as exc:
            logger.exception("Scan %s failed", scan.scan_id)
            message = sanitize_error(exc)
            await self._finish_history(scan, "failed")
            self._emit(SCAN_ERROR, {"scanId": scan.scan_id, "error": message})
            return ScanResult(False, scan.scan_id, 0, _elapsed_ms(started), error=message)
        finally:
            self.registry.close(scan.scan_id)
            ACTIVE_SCANS.dec()

        return self._complete(scan, len(descriptors), started)

    def cancel(self, scan_id: int | None = None) -> int:
        """Signal one scan, or every active scan when ``scan_id`` is None."""
        cancelled = self.registry.cancel(scan_id)
        if cancelled:
            logger.info("Cancelling scans %s", cancelled)
        return len(cancelled)

    def active_scans(self) -> list[int]:
        return self.registry.active_ids()

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        self._emit(event, payload)

    # Internal helpers -------------------------------------------------

    def _persist(self, scan: ActiveScan, descriptors: Sequence[FileDescriptor]) -> None:
        with self.storage.transaction():
            self.files.batch_insert(descriptors)
            self.history.update(
                scan.history_id,
                {"status": "completed", "completed_at": now_ms(), "files_scanned": len(descriptors)},
            )

    async def _persisted(self, scan: ActiveScan, persist: asyncio.Future[None]) -> bool:
        try:
            await asyncio.shield(persist)
        except Exception:
            logger.exception("Scan %s failed while persisting", scan.scan_id)
            return False
        return True

    def _complete(self, scan: ActiveScan, count: int, started: float) -> ScanResult:
        duration = _elapsed_ms(started)
        SCANS_TOTAL.labels(status="completed").inc()
        SCAN_DURATION.observe(duration / 1000)
        FILES_INDEXED.inc(count)
        logger.info("Scan %s completed: %s files in %sms", scan.scan_id, count, duration)
        self._emit(SCAN_COMPLETED, {"scanId": scan.scan_id, "filesFound": count, "duration": duration})
        return ScanResult(True, scan.scan_id, count, duration)

    async def _finish_history(self, scan: ActiveScan, status: ScanStatus) -> None:
        SCANS_TOTAL.labels(status=status).inc()
        if scan.history_id is None:
            return
        changes = {"status": status, "completed_at": now_ms(), "files_scanned": scan.processed}
        try:
            await asyncio.to_thread(self.history.update, scan.history_id, changes)
        except (RummageError, sqlite3.Error) as exc:
            logger.error("Could not mark scan %s as %s: %s", scan.scan_id, status, exc)

    def _progress_relay(self, scan: ActiveScan, loop: asyncio.AbstractEventLoop) -> ProgressCallback:
        interval = self.progress_interval

        def relay(current: int, total: int, current_file: str) -> None:
            scan.processed = current
            if current % interval and current != total:
                return
            payload = {"scanId": scan.scan_id, "current": current, "total": total, "currentFile": current_file}
            try:
                loop.call_soon_threadsafe(self._emit, SCAN_PROGRESS, payload)
            except RuntimeError:
                logger.debug("Event loop closed; dropping progress for scan %s", scan.scan_id)

        return relay

    def _emit(self, event: str, payload: dict[str, Any]) -> None:
        sink = self.event_sink
        if sink is None:
            return
        try:
            outcome = sink(event, payload)
            if inspect.isawaitable(outcome):
                future = asyncio.ensure_future(outcome)
                self._pending_events.add(future)
                future.add_done_callback(self._event_delivered)
        except Exception:
            logger.exception("Failed to send event %s", event)

    def _event_delivered(self, future: asyncio.Future[Any]) -> None:
        self._pending_events.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error("Event sink failed: %s", future.exception())


def sanitize_error(exc: BaseException) -> str:
    """Reduce an exception to a message that is safe to hand to a client."""
    if isinstance(exc, RummageError):
        return str(exc) or exc.__class__.__name__
    if isinstance(exc, sqlite3.Error):
        return "Storage operation failed"
    if isinstance(exc, OSError):
        return "Filesystem operation failed"
    return "Unexpected error during scan"


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


__all__ = [
    "ScanOrchestrator",
    "ScanRegistry",
    "ScanResult",
    "ActiveScan",
    "EventSink",
    "sanitize_error",
    "SCAN_STARTED",
    "SCAN_PROGRESS",
    "SCAN_COMPLETED",
    "SCAN_CANCELLED",
    "SCAN_ERROR",
    "APP_ERROR",
]
