"""Background bulk reindexing on a worker pool."""

import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime

import structlog

from entity_search.search.index import SearchIndex
from entity_search.search.schemas import ReindexStatus, ReindexTaskInfo
from entity_search.search.types import Repository

logger = structlog.get_logger()

_FINAL_STATES: frozenset[ReindexStatus] = frozenset(
    {
        ReindexStatus.COMPLETED,
        ReindexStatus.FAILED,
        ReindexStatus.CANCELLED,
    }
)


class ReindexTask:
    """Handle on one submitted reindex run.

    Failures never propagate out of the worker. They are logged and kept on
    the task as ``status`` and ``error``.

    Attributes:
        id: Unique task identifier (UUID).
        entity_name: Entity type being reindexed.
        status: Current task state.
        indexed: Entities written so far.
        skipped: Entities gone from storage by the time they were reached.
        error: Failure description, if any.
    """

    def __init__(self, entity_name: str) -> None:
        """Initialize a pending task.

        Args:
            entity_name: Entity type to reindex.
        """
        self.id = str(uuid.uuid4())
        self.entity_name = entity_name
        self.status = ReindexStatus.PENDING
        self.indexed = 0
        self.skipped = 0
        self.error: str | None = None
        self.started_at: datetime | None = None
        self.finished_at: datetime | None = None
        self._future: Future[None] | None = None
        self._cancel = threading.Event()
        self._done = threading.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def cancel(self) -> None:
        """Request cancellation; a running task stops before its next entity."""
        self._cancel.set()
        if self._future is not None and self._future.cancel():
            self._finish(ReindexStatus.CANCELLED)
            logger.info("reindex_cancelled", task_id=self.id, entity=self.entity_name)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the task reaches a final state.

        Args:
            timeout: Seconds to wait, forever if None.

        Returns:
            True if the task finished within the timeout.
        """
        return self._done.wait(timeout)

    def info(self) -> ReindexTaskInfo:
        """Snapshot the task state."""
        return ReindexTaskInfo(
            id=self.id,
            entity_name=self.entity_name,
            status=self.status,
            indexed=self.indexed,
            skipped=self.skipped,
            error=self.error,
            started_at=self.started_at,
            finished_at=self.finished_at,
        )

    def _finish(self, status: ReindexStatus) -> None:
        self.status = status
        self.finished_at = datetime.now(UTC)
        self._done.set()

    def run(self, index: SearchIndex, repository: Repository) -> None:
        """Stream every stored entity of the type into the index.

        Args:
            index: Freshly created index to fill.
            repository: Storage repository to enumerate.
        """
        self.status = ReindexStatus.RUNNING
        self.started_at = datetime.now(UTC)
        logger.info("reindex_started", task_id=self.id, entity=self.entity_name)

        try:
            for entity in repository.find_all(self.entity_name):
                if self._cancel.is_set():
                    self._finish(ReindexStatus.CANCELLED)
                    logger.info(
                        "reindex_cancelled",
                        task_id=self.id,
                        entity=self.entity_name,
                        indexed=self.indexed,
                    )
                    return

                if index.refresh(entity.item_id()):
                    self.indexed += 1
                else:
                    self.skipped += 1
        except Exception as e:
            self.error = str(e)
            self._finish(ReindexStatus.FAILED)
            logger.exception(
                "reindex_failed",
                task_id=self.id,
                entity=self.entity_name,
                indexed=self.indexed,
                error=str(e),
            )
            return

        self._finish(ReindexStatus.COMPLETED)
        logger.info(
            "reindex_completed",
            task_id=self.id,
            entity=self.entity_name,
            indexed=self.indexed,
            skipped=self.skipped,
        )


class ReindexCoordinator:
    """Runs reindex tasks on a thread pool and keeps their status.

    Attributes:
        max_history: Finished tasks retained for status lookups.
    """

    def __init__(self, max_workers: int = 2, max_history: int = 100) -> None:
        """Initialize coordinator.

        Args:
            max_workers: Concurrent reindex tasks.
            max_history: Finished tasks retained for status lookups.
        """
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="reindex"
        )
        self._tasks: dict[str, ReindexTask] = {}
        self._lock = threading.Lock()
        self.max_history = max_history

    def submit(self, index: SearchIndex, repository: Repository) -> ReindexTask:
        """Schedule a reindex of one entity type.

        Args:
            index: Index to fill.
            repository: Storage repository backing the type.

        Returns:
            Task handle; returns immediately without waiting for the run.
        """
        task = ReindexTask(index.name)
        with self._lock:
            self._prune()
            self._tasks[task.id] = task
            task._future = self._executor.submit(task.run, index, repository)

        logger.info("reindex_submitted", task_id=task.id, entity=index.name)
        return task

    def get(self, task_id: str) -> ReindexTask | None:
        with self._lock:
            return self._tasks.get(task_id)

    def tasks(self) -> list[ReindexTask]:
        with self._lock:
            return list(self._tasks.values())

    def _prune(self) -> None:
        finished = [t for t in self._tasks.values() if t.status in _FINAL_STATES]
        for task in finished[: max(0, len(finished) - self.max_history + 1)]:
            del self._tasks[task.id]

    def shutdown(self, wait: bool = True) -> None:
        """Cancel outstanding tasks and stop the worker pool.

        Args:
            wait: Block until running tasks have stopped.
        """
        for task in self.tasks():
            if not task.done:
                task.cancel()
        self._executor.shutdown(wait=wait)
        logger.info("reindex_coordinator_stopped")
