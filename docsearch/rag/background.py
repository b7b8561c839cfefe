"""Background vector upserts that do not block the upload response.

Each upsert runs as an ``asyncio.Task`` held until it finishes, so it is not
garbage-collected mid-flight and its failure is always logged.
"""
import asyncio
from typing import Awaitable, Set

import structlog

logger = structlog.get_logger()


class IndexingTasks:
    """Tracks in-flight upsert tasks and reports how they finish."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self.completed = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, upsert: Awaitable[int], document_id: str) -> asyncio.Task:
        """Start ``upsert`` in the background and return its task.

        Must be called from a running event loop.
        """
        task = asyncio.ensure_future(upsert)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(t, document_id))

        logger.debug("vector_upsert_dispatched", document_id=document_id)
        return task

    def _on_done(self, task: asyncio.Task, document_id: str) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            self.failed += 1
            logger.warning("vector_upsert_cancelled", document_id=document_id)
            return

        error = task.exception()
        if error is not None:
            self.failed += 1
            logger.error(
                "vector_upsert_failed",
                document_id=document_id,
                error=str(error),
                error_type=type(error).__name__,
            )
            return

        self.completed += 1
        logger.info(
            "vector_upsert_succeeded",
            document_id=document_id,
            record_count=task.result(),
        )

    async def drain(self) -> None:
        """Wait for every dispatched upsert to finish, failures included."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        logger.debug("indexing_tasks_drained", completed=self.completed, failed=self.failed)
