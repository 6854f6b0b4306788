"""
Bounded background queue for interest-score updates.

Behavior ingestion must not wait for the interest read-modify-write, so jobs
are handed to a small pool of asyncio workers that live for the application
lifetime (not the request). Failed jobs are retried with exponential backoff
and end up in a dead-letter buffer once retries are exhausted.
"""
import asyncio
import logging
from collections import deque
from datetime import datetime
from typing import Awaitable, Callable, Deque, List, Optional

from pydantic import BaseModel, Field

from feedrec.core.telemetry import INTEREST_DEAD_LETTERS
from feedrec.models.schemas import BehaviorEvent, utc_now

logger = logging.getLogger(__name__)

InterestHandler = Callable[[BehaviorEvent], Awaitable[None]]


class DeadLetter(BaseModel):
    event: BehaviorEvent
    reason: str
    attempts: int
    failed_at: datetime = Field(default_factory=utc_now)


class InterestUpdateQueue:
    """
    Worker pool draining interest update jobs.

    Usage:
        queue = InterestUpdateQueue(max_size=1000, workers=2)
        queue.set_handler(engineer.apply_interest_update)
        await queue.start()
        queue.submit(event)
    """

    def __init__(
        self,
        max_size: int = 1000,
        workers: int = 2,
        max_retries: int = 3,
        backoff_seconds: float = 0.2,
        dead_letter_limit: int = 1000,
    ) -> None:
        self._max_size = max_size
        self._worker_count = workers
        self._max_retries = max_retries
        self._backoff = backoff_seconds
        self._handler: Optional[InterestHandler] = None
        # Created lazily so the queue binds to the loop that actually runs it
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self._dead_letters: Deque[DeadLetter] = deque(maxlen=dead_letter_limit)

    def set_handler(self, handler: InterestHandler) -> None:
        self._handler = handler

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def dead_letters(self) -> List[DeadLetter]:
        return list(self._dead_letters)

    def _ensure_queue(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._max_size)
        return self._queue

    async def start(self) -> None:
        """Spawn the worker tasks."""
        if self._handler is None:
            raise RuntimeError("InterestUpdateQueue has no handler")
        if self._workers:
            return
        queue = self._ensure_queue()
        self._workers = [
            asyncio.create_task(self._worker(queue, i), name=f"interest-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info(f"Interest update queue started with {self._worker_count} workers")

    async def stop(self, drain: bool = True) -> None:
        """Stop the workers, optionally waiting for queued jobs first."""
        if drain and self._queue is not None and self._workers:
            await self._queue.join()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        logger.info("Interest update queue stopped")

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    def submit(self, event: BehaviorEvent) -> bool:
        """
        Enqueue an event without waiting.

        Returns:
            False if the queue is full (the job is dead-lettered instead)
        """
        if not self.is_running:
            logger.warning(
                f"Interest queue not started, event {event.id} waits until start()",
                extra={"event_id": event.id},
            )
        try:
            self._ensure_queue().put_nowait(event)
            return True
        except asyncio.QueueFull:
            logger.error(
                f"Interest queue full, dropping event {event.id}",
                extra={"event_id": event.id},
            )
            self._dead_letters.append(DeadLetter(event=event, reason="queue full", attempts=0))
            INTEREST_DEAD_LETTERS.labels(reason="queue_full").inc()
            return False

    async def _worker(self, queue: asyncio.Queue, index: int) -> None:
        while True:
            event = await queue.get()
            try:
                await self._process(event)
            finally:
                queue.task_done()

    async def _process(self, event: BehaviorEvent) -> None:
        attempts = 0
        while True:
            attempts += 1
            try:
                await self._handler(event)
                return
            except Exception as e:
                if attempts > self._max_retries:
                    logger.error(
                        f"Interest update for event {event.id} failed after "
                        f"{attempts} attempts: {e}",
                        extra={"event_id": event.id},
                    )
                    self._dead_letters.append(
                        DeadLetter(event=event, reason=str(e), attempts=attempts)
                    )
                    INTEREST_DEAD_LETTERS.labels(reason="retries_exhausted").inc()
                    return
                delay = self._backoff * (2 ** (attempts - 1))
                logger.warning(
                    f"Interest update for event {event.id} failed, retrying in "
                    f"{delay:.2f}s: {e}"
                )
                await asyncio.sleep(delay)
