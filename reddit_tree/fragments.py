from __future__ import annotations

import logging
from typing import Any, Optional, Sequence, cast

from reddit_tree.constants import KIND_ARTICLE, KIND_COMMENT, KIND_MORE, MAX_BATCH
from reddit_tree.errors import MalformedFragment
from reddit_tree.models import ClassifiedEntry, ContinuationBatch, EntryKind

logger = logging.getLogger(__name__)

CONTENT_KINDS = (KIND_COMMENT, KIND_ARTICLE)


def classify_entry(entry: object, thread_id: str) -> ClassifiedEntry:
    """
    Classify one listing entry as content (t1/t3) or a continuation (more).

    Raises MalformedFragment if the entry does not look like a reddit thing.
    """
    if not isinstance(entry, dict):
        raise MalformedFragment(f"Listing entry is not an object: {entry!r}")
    entry_dict = cast(dict[str, Any], entry)
    kind = entry_dict.get("kind")
    data = entry_dict.get("data")
    if not isinstance(data, dict):
        raise MalformedFragment(f"Listing entry of kind {kind!r} has no data")

    if kind in CONTENT_KINDS:
        if not isinstance(data.get("name"), str):
            raise MalformedFragment(f"{kind} entry without a name")
        return ClassifiedEntry(EntryKind.CONTENT, kind, data)

    if kind == KIND_MORE:
        children = data.get("children", [])
        if not isinstance(children, list) or not all(
            isinstance(c, str) for c in children
        ):
            raise MalformedFragment(f"more entry {data.get('name')!r} has bad children")
        batch = ContinuationBatch(
            thread_id=thread_id,
            child_refs=tuple(children),
            parent_id=data.get("parent_id"),
        )
        return ClassifiedEntry(EntryKind.CONTINUATION, kind, batch)

    raise MalformedFragment(f"Unexpected entry kind {kind!r}")


def classify_fragment(
    entries: Sequence[object], thread_id: str
) -> tuple[list[ClassifiedEntry], int]:
    """
    Classify a listing fragment, preserving order.

    Malformed entries are logged and skipped. Returns the classified entries
    and the number of skipped ones.
    """
    classified: list[ClassifiedEntry] = []
    skipped = 0
    for entry in entries:
        try:
            classified.append(classify_entry(entry, thread_id))
        except MalformedFragment as e:
            skipped += 1
            logger.warning(f"Skipping malformed entry in thread {thread_id}: {e}")
    return classified, skipped


def split_batch(
    batch: ContinuationBatch, max_batch: int = MAX_BATCH
) -> tuple[ContinuationBatch, Optional[ContinuationBatch]]:
    """Split off the first max_batch refs; the rest become a new batch."""
    if max_batch < 1:
        raise ValueError(f"max_batch must be >= 1, got {max_batch}")
    if len(batch.child_refs) <= max_batch:
        return batch, None
    ready = ContinuationBatch(
        batch.thread_id, batch.child_refs[:max_batch], batch.parent_id
    )
    remainder = ContinuationBatch(
        batch.thread_id, batch.child_refs[max_batch:], batch.parent_id
    )
    return ready, remainder


def node_body(data: dict[str, Any]) -> str:
    """Text of a comment or article: body, selftext, then title."""
    for key in ("body", "selftext", "title"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def listing_children(listing: object) -> list[object]:
    """Children of a Listing object; empty if the shape is off."""
    if not isinstance(listing, dict):
        return []
    data = cast(dict[str, Any], listing).get("data")
    if not isinstance(data, dict):
        return []
    children = data.get("children")
    return children if isinstance(children, list) else []


def more_children_things(payload: object) -> list[object]:
    """
    Extract things from a /api/morechildren response.

    Structure: {"json": {"errors": [], "data": {"things": [...]}}}
    """
    if not isinstance(payload, dict):
        raise MalformedFragment("morechildren response is not an object")
    body = cast(dict[str, Any], payload).get("json")
    if not isinstance(body, dict):
        raise MalformedFragment("morechildren response has no json member")
    errors = body.get("errors")
    if errors:
        raise MalformedFragment(f"morechildren returned errors: {errors}")
    data = body.get("data") or {}
    things = data.get("things", []) if isinstance(data, dict) else []
    if not isinstance(things, list):
        raise MalformedFragment("morechildren things is not a list")
    return things
