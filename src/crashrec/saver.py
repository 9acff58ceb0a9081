"""Background record saving for crashrec."""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from queue import Queue

from crashrec.models import utc_now
from crashrec.store import RecordStore, SaveError

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SaveResult:
    """Outcome of one write of the records file."""

    ok: bool
    record_count: int
    finished_at: datetime
    error: SaveError | None = None


class SaveWorker:
    """
    Saver that writes record stores to disk on a background thread.

    Holds a single pending slot: a store submitted while another is waiting
    replaces it, so only the latest state is written. Writes run one at a
    time and never closer together than ``min_interval`` seconds. Each write
    pushes a SaveResult to a thread-safe Queue.
    """

    def __init__(
        self,
        path: Path,
        result_queue: Queue[SaveResult],
        min_interval: float = 2.0,
    ) -> None:
        """
        Initialize the SaveWorker.

        Args:
            path: Records file to overwrite.
            result_queue: Thread-safe queue to push save results to.
            min_interval: Minimum seconds between two writes. Default 2.0s.
        """
        self._path = path
        self._queue = result_queue
        self._min_interval = max(0.0, min_interval)
        self._cond = threading.Condition()
        self._pending: RecordStore | None = None
        self._writing = False
        self._stopping = False
        self._last_write: float | None = None
        self._thread: threading.Thread | None = None

    @property
    def path(self) -> Path:
        """Get the records file path."""
        return self._path

    @property
    def min_interval(self) -> float:
        """Get the minimum interval between writes."""
        return self._min_interval

    @property
    def is_running(self) -> bool:
        """Check if the saver thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def has_pending(self) -> bool:
        """Check if a submitted store is waiting to be written."""
        with self._cond:
            return self._pending is not None

    def start(self) -> None:
        """Start the saver thread."""
        if self.is_running:
            return

        with self._cond:
            self._stopping = False
        self._thread = threading.Thread(
            target=self._save_loop,
            daemon=True,
            name="SaveWorker",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0, flush: bool = True) -> None:
        """
        Stop the saver thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
            flush: Write a pending store before stopping instead of dropping it.
        """
        with self._cond:
            self._stopping = True
            if not flush:
                self._pending = None
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def submit(self, store: RecordStore) -> None:
        """Queue a copy of the store for writing, replacing any pending one."""
        with self._cond:
            if self._pending is not None:
                logger.debug("Coalescing pending save of %d records", len(self._pending))
            self._pending = store.snapshot()
            self._cond.notify_all()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """
        Wait until nothing is pending or being written.

        Returns:
            True if the saver went idle, False on timeout.
        """
        with self._cond:
            return self._cond.wait_for(
                lambda: self._pending is None and not self._writing,
                timeout=timeout,
            )

    def _save_loop(self) -> None:
        """Main saving loop running in the background thread."""
        while True:
            with self._cond:
                while self._pending is None and not self._stopping:
                    self._cond.wait()

                if self._pending is None:
                    break

                # Pending writes are flushed right away on shutdown
                delay = self._remaining_interval()
                if delay > 0 and not self._stopping:
                    self._cond.wait(timeout=delay)
                    continue

                store = self._pending
                self._pending = None
                self._writing = True

            try:
                result = self._write(store)
                self._queue.put(result)
            finally:
                with self._cond:
                    self._writing = False
                    self._last_write = time.monotonic()
                    self._cond.notify_all()

    def _remaining_interval(self) -> float:
        """Seconds left before the next write is allowed."""
        if self._last_write is None:
            return 0.0
        return self._min_interval - (time.monotonic() - self._last_write)

    def _write(self, store: RecordStore) -> SaveResult:
        """Write one store and describe the outcome."""
        try:
            store.save(self._path)
        except SaveError as exc:
            logger.warning("Saving %d records to %s failed: %s", len(store), self._path, exc)
            return SaveResult(ok=False, record_count=len(store), finished_at=utc_now(), error=exc)

        logger.info("Saved %d records to %s", len(store), self._path)
        return SaveResult(ok=True, record_count=len(store), finished_at=utc_now())
