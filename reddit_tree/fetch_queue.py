from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Optional

from reddit_tree.constants import QUEUE_CONCURRENCY
from reddit_tree.errors import MalformedFragment, TransportError
from reddit_tree.models import ContinuationBatch

logger = logging.getLogger(__name__)

ProcessFn = Callable[[ContinuationBatch], Awaitable[None]]
IdleCallback = Callable[[], None]


class FetchQueue:
    """
    Backlog of continuation batches drained by at most `concurrency` workers.

    process_fn may push more batches while it runs; they are picked up by the
    same drain loop once the current batch is done. Recoverable errors drop
    the batch, anything else aborts the queue and is kept on `exception`.
    """

    def __init__(
        self,
        concurrency: int = QUEUE_CONCURRENCY,
        recoverable: tuple[type[BaseException], ...] = (
            TransportError,
            MalformedFragment,
        ),
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.concurrency = concurrency
        self.recoverable = recoverable
        self._backlog: deque[ContinuationBatch] = deque()
        self._process_fn: Optional[ProcessFn] = None
        self._workers = 0
        self._in_flight = 0
        self._idle_callbacks: list[IdleCallback] = []
        self._tasks: set[asyncio.Task[None]] = set()

        self.peak_in_flight = 0
        self.processed = 0
        self.failed = 0
        self.exception: Optional[BaseException] = None

    def __len__(self) -> int:
        return len(self._backlog)

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def push(self, batch: ContinuationBatch) -> None:
        if self.exception is not None:
            logger.debug(f"Queue aborted, dropping batch of {len(batch)} refs")
            return
        self._backlog.append(batch)
        self._spawn_workers()

    def start(self, process_fn: ProcessFn) -> None:
        if self._process_fn is not None:
            raise RuntimeError("FetchQueue already started")
        self._process_fn = process_fn
        self._spawn_workers()

    def is_idle(self) -> bool:
        return not self._backlog and self._workers == 0

    def on_idle(self, callback: IdleCallback) -> None:
        """Call `callback` once the queue is idle; right away if it already is."""
        if self.is_idle():
            callback()
            return
        self._idle_callbacks.append(callback)

    def _spawn_workers(self) -> None:
        if self._process_fn is None:
            return
        loop = asyncio.get_running_loop()
        while self._backlog and self._workers < self.concurrency:
            self._workers += 1
            task = loop.create_task(self._drain())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _drain(self) -> None:
        assert self._process_fn is not None
        try:
            while self._backlog:
                batch = self._backlog.popleft()
                self._in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
                try:
                    await self._process_fn(batch)
                    self.processed += 1
                except self.recoverable as e:
                    self.failed += 1
                    logger.error(
                        f"Dropping batch of {len(batch)} refs for thread {batch.thread_id}: {e}"
                    )
                except Exception as e:
                    logger.error(f"Aborting fetch queue for thread {batch.thread_id}: {e}")
                    self._abort(e)
                finally:
                    self._in_flight -= 1
        finally:
            self._workers -= 1
            self._fire_idle()

    def _abort(self, exc: BaseException) -> None:
        if self.exception is None:
            self.exception = exc
        self._backlog.clear()

    def _fire_idle(self) -> None:
        if not self.is_idle():
            return
        callbacks, self._idle_callbacks = self._idle_callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Idle callback failed")
