"""
Bulk Index Synchronizer.

Responsibilities:
- Drain a bounded queue of index/delete actions with a fixed pool of
  worker threads, one _bulk request in flight per worker.
- Record an outcome for every enqueued action: indexed, failed (with the
  job id and error) or not attempted (cancelled before dispatch).
- Provide a flush barrier after which the statistics are final.

Non-Responsibilities:
- No projection and no relational reads.
- No retry of failed items; callers re-run with BulkStats.failed_ids.

Invariant:
Actions are keyed by job id, so replaying any of them is idempotent and
the last write for a job id wins regardless of which worker sent it.
"""

import queue
import threading
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional

from ..errors import IndexingSessionError, SearchIndexError
from ..logger import get_logger
from ..projection import Document
from .client import BulkAction, SearchIndexClient

logger = get_logger()

_STOP = object()
_POLL_INTERVAL = 0.1


@dataclass(frozen=True)
class ItemFailure:
    job_id: int
    error: str
    status: Optional[int] = None
    retryable: bool = True


@dataclass
class BulkStats:
    num_added: int = 0
    num_indexed: int = 0
    num_failed: int = 0
    failures: List[ItemFailure] = field(default_factory=list)
    not_attempted: List[int] = field(default_factory=list)
    cancelled: bool = False

    @property
    def num_not_attempted(self) -> int:
        return len(self.not_attempted)

    @property
    def failed_ids(self) -> List[int]:
        return sorted({f.job_id for f in self.failures})

    @property
    def complete(self) -> bool:
        """True when every added action reached the index and none were discarded."""
        return not self.cancelled and self.num_indexed + self.num_failed == self.num_added


class BulkIndexer:
    def __init__(
        self,
        client: SearchIndexClient,
        index: str,
        num_workers: int = 5,
        batch_size: int = 50,
        queue_size: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        if num_workers < 1:
            raise ValueError("num_workers must be at least 1")
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.client = client
        self.index = index
        self.num_workers = num_workers
        self.batch_size = batch_size
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size or num_workers * batch_size)
        self._cancel = cancel_event or threading.Event()
        self._lock = threading.Lock()
        self._done = threading.Condition(self._lock)
        self._pending = 0
        self._stats = BulkStats()
        self._workers: List[threading.Thread] = []
        self._started = False
        self._closed = False

    def __enter__(self) -> "BulkIndexer":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.cancel()
        if not self._closed:
            self.close()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def stats(self) -> BulkStats:
        """Snapshot of the statistics so far; final only after flush() or close()."""
        with self._lock:
            return replace(
                self._stats,
                failures=list(self._stats.failures),
                not_attempted=list(self._stats.not_attempted),
                cancelled=self._cancel.is_set(),
            )

    def start(self) -> "BulkIndexer":
        """
        Open the indexing session and spawn the workers.

        Raises:
            IndexingSessionError: the index cannot be reached or created
        """
        if self._started:
            raise RuntimeError("BulkIndexer already started")
        try:
            self.client.ensure_index(self.index)
        except SearchIndexError as e:
            logger.error("Cannot open indexing session", index=self.index, error=str(e))
            raise IndexingSessionError(f"Cannot open indexing session on '{self.index}': {e}") from e

        for i in range(self.num_workers):
            worker = threading.Thread(target=self._work, name=f"bulk-worker-{i}", daemon=True)
            worker.start()
            self._workers.append(worker)
        self._started = True
        logger.debug("Bulk indexer started", index=self.index, workers=self.num_workers, batch_size=self.batch_size)
        return self

    def cancel(self) -> None:
        self._cancel.set()

    def add(self, document: Document) -> bool:
        """
        Queue an index (upsert) action for a document.

        Blocks while the queue is full. Returns False once cancelled; the
        job id is then reported as not attempted.
        """
        return self._enqueue(BulkAction("index", document.document_id, document.to_source()))

    def delete(self, job_id: int) -> bool:
        return self._enqueue(BulkAction("delete", str(job_id)))

    def _enqueue(self, action: BulkAction) -> bool:
        if not self._started or self._closed:
            raise RuntimeError("BulkIndexer is not running")

        with self._lock:
            self._stats.num_added += 1
            self._pending += 1

        while not self._cancel.is_set():
            try:
                self._queue.put(action, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue

        self._record_not_attempted([action])
        return False

    def flush(self, timeout: Optional[float] = None) -> BulkStats:
        """
        Wait until every queued action has an outcome.

        If the timeout elapses first, cancellation is signalled: in-flight
        requests finish, queued actions are reported as not attempted.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._done:
            while self._pending > 0:
                wait_for = _POLL_INTERVAL
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        if not self._cancel.is_set():
                            logger.warning("Flush timed out, cancelling queued work", pending=self._pending)
                            self._cancel.set()
                        deadline = None
                    else:
                        wait_for = min(wait_for, remaining)
                self._done.wait(wait_for)
        return self.stats

    def close(self, timeout: Optional[float] = None) -> BulkStats:
        """Flush, stop the workers and return the final statistics."""
        if not self._started:
            raise RuntimeError("BulkIndexer was never started")
        if self._closed:
            return self.stats

        self.flush(timeout)
        self._closed = True
        for _ in self._workers:
            self._queue.put(_STOP)
        for worker in self._workers:
            worker.join()

        stats = self.stats
        logger.info(
            "Bulk indexing finished",
            index=self.index,
            added=stats.num_added,
            indexed=stats.num_indexed,
            failed=stats.num_failed,
            not_attempted=stats.num_not_attempted,
            cancelled=stats.cancelled,
        )
        return stats

    def _work(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return

            batch = [item]
            stop = False
            while len(batch) < self.batch_size:
                try:
                    nxt = self._queue.get_nowait()
                except queue.Empty:
                    break
                if nxt is _STOP:
                    stop = True
                    break
                batch.append(nxt)

            if self._cancel.is_set():
                self._record_not_attempted(batch)
            else:
                try:
                    self._dispatch(batch)
                except Exception as e:
                    # Every action still needs an outcome or flush() never returns.
                    logger.error("Unexpected bulk request error", error=repr(e), size=len(batch))
                    self._record_batch_failure(batch, repr(e), None, False)

            if stop:
                return

    def _dispatch(self, batch: List[BulkAction]) -> None:
        logger.record_bulk_request()
        try:
            results = self.client.bulk(self.index, batch)
        except SearchIndexError as e:
            self._record_batch_failure(batch, str(e), e.status_code, e.retryable)
            return

        if len(results) != len(batch):
            self._record_batch_failure(
                batch, f"Bulk response has {len(results)} items for {len(batch)} actions", None, True
            )
            return

        indexed = 0
        failures: List[ItemFailure] = []
        for action, result in zip(batch, results):
            if result.ok:
                indexed += 1
                continue
            error = result.error or f"HTTP {result.status}"
            failures.append(ItemFailure(action.job_id, error, result.status, result.retryable))
            logger.warning("Document indexing failed", job_id=action.job_id, status=result.status, error=error)

        self._record(indexed=indexed, failures=failures)

    def _record_batch_failure(
        self, batch: List[BulkAction], error: str, status: Optional[int], retryable: bool
    ) -> None:
        logger.warning("Bulk request failed", size=len(batch), status=status, error=error)
        failures = [ItemFailure(action.job_id, error, status, retryable) for action in batch]
        self._record(indexed=0, failures=failures)

    def _record_not_attempted(self, batch: List[BulkAction]) -> None:
        logger.record_not_attempted(len(batch))
        with self._done:
            self._stats.not_attempted.extend(action.job_id for action in batch)
            self._pending -= len(batch)
            self._done.notify_all()

    def _record(self, indexed: int, failures: List[ItemFailure]) -> None:
        if indexed:
            logger.record_indexed(indexed)
        for failure in failures:
            logger.record_failed(f"HTTP_{failure.status}" if failure.status else "RequestError")
        with self._done:
            self._stats.num_indexed += indexed
            self._stats.num_failed += len(failures)
            self._stats.failures.extend(failures)
            self._pending -= indexed + len(failures)
            self._done.notify_all()
