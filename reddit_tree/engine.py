"""Coordinates fetching one thread's full comment tree."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from reddit_tree.client import Transport
from reddit_tree.constants import MAX_BATCH, QUEUE_CONCURRENCY
from reddit_tree.errors import FatalRootFetch, MalformedFragment, TransportError
from reddit_tree.fetch_queue import FetchQueue
from reddit_tree.fragments import split_batch
from reddit_tree.models import ContinuationBatch, EngineState, FetchSummary, NodeSink
from reddit_tree.path_index import PathIndex
from reddit_tree.walker import TreeWalker

logger = logging.getLogger(__name__)


class CommentTreeFetchEngine:
    """
    Loads an article and its entire comment tree, emitting every node once.

    FETCHING_ROOT -> DRAINING_CONTINUATIONS -> DONE. Only a failed root fetch
    (or a broken tree) fails the run; failed continuation batches are dropped.
    """

    def __init__(
        self,
        transport: Transport,
        thread_id: str,
        sink: NodeSink,
        *,
        max_batch: int = MAX_BATCH,
        concurrency: int = QUEUE_CONCURRENCY,
    ) -> None:
        if not 1 <= max_batch <= MAX_BATCH:
            raise ValueError(f"max_batch must be between 1 and {MAX_BATCH}")
        self.transport = transport
        self.thread_id = thread_id
        self.sink = sink
        self.max_batch = max_batch
        self.concurrency = concurrency
        self.state: Optional[EngineState] = None
        self._queue: Optional[FetchQueue] = None
        self._walker: Optional[TreeWalker] = None

    async def run(self) -> FetchSummary:
        if self.state is not None:
            raise RuntimeError(f"Engine for thread {self.thread_id} already ran")
        logger.info(f"Fetching comments for thread {self.thread_id} from Reddit.")

        index = PathIndex()
        self._queue = FetchQueue(concurrency=self.concurrency)
        self._walker = TreeWalker(
            self.thread_id, index, self._queue, self.sink, self.max_batch
        )

        self.state = EngineState.FETCHING_ROOT
        try:
            payload = await self.transport.get_thread(self.thread_id)
        except (TransportError, MalformedFragment) as e:
            self.state = EngineState.DONE
            logger.error(f"Error fetching thread {self.thread_id} from Reddit: {e}")
            raise FatalRootFetch(self.thread_id, str(e)) from e

        try:
            self._walker.walk_thread(payload)
        except Exception:
            self.state = EngineState.DONE
            raise

        self.state = EngineState.DRAINING_CONTINUATIONS
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def _resolve() -> None:
            if not done.done():
                done.set_result(None)

        self._queue.start(self._process_batch)
        # Registering after start: if nothing was queued this fires right away
        self._queue.on_idle(_resolve)
        await done
        self.state = EngineState.DONE

        if self._queue.exception is not None:
            raise self._queue.exception

        summary = FetchSummary(
            thread_id=self.thread_id,
            nodes_emitted=self._walker.emitted,
            batches_processed=self._queue.processed,
            batches_failed=self._queue.failed,
            malformed_entries=self._walker.malformed,
            nodes_skipped=self._walker.orphaned,
        )
        logger.info(
            f"Thread {self.thread_id} done: {summary.nodes_emitted} node(s), "
            f"{summary.batches_processed} batch(es), {summary.batches_failed} failed"
        )
        return summary

    async def _process_batch(self, batch: ContinuationBatch) -> None:
        assert self._queue is not None and self._walker is not None
        ready, remainder = split_batch(batch, self.max_batch)
        if remainder is not None:
            self._queue.push(remainder)
        if not ready.child_refs:
            return
        logger.info(
            f"Loading more comments from Reddit with children {','.join(ready.child_refs)}"
        )
        try:
            things = await self.transport.get_more_children(
                self.thread_id, list(ready.child_refs)
            )
        except (TransportError, MalformedFragment):
            # Replies to these may still arrive in later batches
            self._walker.mark_lost(ready.child_refs)
            raise
        self._walker.walk_things(things)
