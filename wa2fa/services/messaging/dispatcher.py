"""Bounded background pool for outbound sends.

Webhook and login-flow handlers never await network calls on the request
path. They submit a job here and return; a fixed set of worker tasks drains
the queue. A full queue drops the job, and a failing job is logged and never
retried.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

from loguru import logger

from ...constants import Dispatcher

Job = Callable[[], Awaitable[object]]


class BackgroundDispatcher:
    """Fixed pool of asyncio workers draining a bounded job queue."""

    def __init__(
        self,
        pool_size: int = Dispatcher.POOL_SIZE,
        max_queue_size: int = Dispatcher.MAX_QUEUE_SIZE,
    ):
        self.pool_size = pool_size
        self.max_queue_size = max_queue_size
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self.processed = 0
        self.failed = 0
        self.dropped = 0

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def start(self) -> None:
        """Start the worker tasks (idempotent)."""
        if self._workers:
            return
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._queue = queue
        self._workers = [
            asyncio.create_task(self._worker(i, queue), name=f"wa2fa-dispatch-{i}")
            for i in range(self.pool_size)
        ]
        logger.info(
            f"Background dispatcher started ({self.pool_size} workers, "
            f"queue size {self.max_queue_size})"
        )

    async def stop(self) -> None:
        """Cancel the workers; queued jobs that have not started are discarded."""
        if not self._workers:
            return
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        logger.info("Background dispatcher stopped")

    def submit(self, job: Job, description: str = "job") -> bool:
        """
        Queue a job without blocking.

        Args:
            job: Zero-argument coroutine function
            description: Label used in logs

        Returns:
            True if queued, False if dropped
        """
        if self._queue is None:
            logger.warning(f"Background dispatcher not running, dropping {description}")
            self.dropped += 1
            return False
        try:
            self._queue.put_nowait((job, description))
        except asyncio.QueueFull:
            logger.warning(f"Background queue full ({self.max_queue_size}), dropping {description}")
            self.dropped += 1
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def _worker(self, index: int, queue: asyncio.Queue) -> None:
        while True:
            job, description = await queue.get()
            try:
                await job()
                self.processed += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failed += 1
                logger.error(f"Background {description} failed in worker {index}: {e}")
            finally:
                queue.task_done()
