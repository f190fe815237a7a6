from __future__ import annotations

import logging
from typing import Any, Sequence, cast

from reddit_tree.constants import (
    KIND_ARTICLE,
    KIND_COMMENT,
    KIND_LISTING,
    KIND_MORE,
    MAX_BATCH,
)
from reddit_tree.errors import MalformedFragment
from reddit_tree.fetch_queue import FetchQueue
from reddit_tree.fragments import (
    classify_entry,
    classify_fragment,
    listing_children,
    node_body,
    split_batch,
)
from reddit_tree.models import (
    ClassifiedEntry,
    ContinuationBatch,
    EntryKind,
    Node,
    NodeSink,
)
from reddit_tree.path_index import PathIndex

logger = logging.getLogger(__name__)


class TreeWalker:
    """
    Walks fetched fragments depth-first, indexing and emitting every comment.

    "more" stubs are never expanded inline: they are split into API sized
    batches and pushed to the fetch queue.
    """

    def __init__(
        self,
        thread_id: str,
        index: PathIndex,
        queue: FetchQueue,
        sink: NodeSink,
        max_batch: int = MAX_BATCH,
    ) -> None:
        self.thread_id = thread_id
        self.index = index
        self.queue = queue
        self.sink = sink
        self.max_batch = max_batch
        self.emitted = 0
        self.malformed = 0
        self.orphaned = 0
        # Comments that will never be indexed because their batch failed
        self.lost: set[str] = set()

    def mark_lost(self, child_refs: Sequence[str]) -> None:
        """Record the comments of a failed batch so their replies are skipped."""
        for ref in child_refs:
            self.lost.add(ref if ref.startswith(f"{KIND_COMMENT}_") else f"{KIND_COMMENT}_{ref}")

    def walk_thread(self, payload: object) -> None:
        """
        Walk the response of GET /r/{subreddit}/comments/{thread}.

        The first listing holds the article, the second one the top level
        comments and much of the comment tree.
        """
        things: list[object] = (
            cast(list[object], payload) if isinstance(payload, list) else []
        )
        articles = listing_children(things[0]) if things else []
        if not articles:
            logger.info(f"No article retrieved for thread {self.thread_id}.")
            return

        logger.info(
            f"Article {self.thread_id} retrieved from Reddit with {len(things)} thing(s)."
        )
        try:
            article = classify_entry(articles[0], self.thread_id)
        except MalformedFragment as e:
            self.malformed += 1
            logger.warning(f"Skipping malformed article in thread {self.thread_id}: {e}")
            return
        if article.thing_kind != KIND_ARTICLE:
            self.malformed += 1
            logger.warning(
                f"First thing of thread {self.thread_id} is a {article.thing_kind}, not an article"
            )
            return
        self._visit_article(cast(dict[str, Any], article.payload))

        comments = listing_children(things[1]) if len(things) > 1 else []
        if comments:
            logger.info(f"{len(comments)} top level comment(s) retrieved from Reddit.")
            self.walk_listing(comments)
        else:
            logger.info("No top level comments retrieved from Reddit.")

    def walk_things(self, things: Sequence[object]) -> None:
        """Walk the flat thing list returned by /api/morechildren."""
        if things:
            logger.info(f"{len(things)} more thing(s) retrieved from Reddit.")
        else:
            logger.info("No more comments retrieved from Reddit.")
        self.walk_listing(things)

    def walk_listing(self, entries: Sequence[object]) -> None:
        classified, skipped = classify_fragment(entries, self.thread_id)
        self.malformed += skipped
        for entry in classified:
            self._visit(entry)

    def _visit(self, entry: ClassifiedEntry) -> None:
        if entry.kind is EntryKind.CONTINUATION:
            self._enqueue(cast(ContinuationBatch, entry.payload))
        elif entry.thing_kind == KIND_ARTICLE:
            self._visit_article(cast(dict[str, Any], entry.payload))
        else:
            self._visit_comment(cast(dict[str, Any], entry.payload))

    def _visit_article(self, data: dict[str, Any]) -> None:
        record = {k: v for k, v in data.items() if k != "replies"}
        node = self.index.insert_root(data["name"], node_body(data), record)
        logger.info(f"Processing Reddit article {node.id}")
        self._emit(node)

    def _visit_comment(self, data: dict[str, Any]) -> None:
        parent_id = data.get("parent_id")
        if not isinstance(parent_id, str):
            self.malformed += 1
            logger.warning(f"Skipping comment {data['name']} without parent_id")
            return
        if parent_id in self.lost:
            self.lost.add(data["name"])
            self.orphaned += 1
            logger.warning(
                f"Skipping comment {data['name']}: parent {parent_id} was in a failed batch"
            )
            return
        record = {k: v for k, v in data.items() if k != "replies"}
        node = self.index.insert_child(data["name"], parent_id, node_body(data), record)
        logger.info(f"Processing Reddit comment {node.id} with path {list(node.path)}")
        self._emit(node)
        self._walk_replies(data.get("replies"))

    def _walk_replies(self, replies: object) -> None:
        # reddit sends "" for comments without replies
        if not replies:
            return
        if not isinstance(replies, dict):
            self.malformed += 1
            logger.warning(f"Unexpected replies value in thread {self.thread_id}: {replies!r}")
            return
        kind = cast(dict[str, Any], replies).get("kind")
        if kind == KIND_LISTING:
            self.walk_listing(listing_children(replies))
        elif kind == KIND_MORE:
            self.walk_listing([replies])
        else:
            self.malformed += 1
            logger.warning(f"Unexpected replies kind {kind!r} in thread {self.thread_id}")

    def _enqueue(self, batch: ContinuationBatch) -> None:
        if not batch.child_refs:
            # "continue this thread" stubs carry no child ids
            logger.debug(f"Skipping empty continuation under {batch.parent_id}")
            return
        ready, remainder = split_batch(batch, self.max_batch)
        # reddit API does not allow multiple calls to execute concurrently
        self.queue.push(ready)
        if remainder is not None:
            self.queue.push(remainder)

    def _emit(self, node: Node) -> None:
        self.emitted += 1
        self.sink(node)
