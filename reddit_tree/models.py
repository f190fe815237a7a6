"""Typed data models for reddit comment trees."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypedDict, Union


class ThingDict(TypedDict, total=False):
    """A reddit "thing" as it appears inside a listing."""

    kind: str
    data: dict[str, Any]


class ListingData(TypedDict, total=False):
    children: list[ThingDict]
    after: Optional[str]
    before: Optional[str]


class ListingDict(TypedDict, total=False):
    kind: str
    data: ListingData


class NodeRecord(TypedDict, total=False):
    """Serialized node pushed to the record sink."""

    name: str
    parent_id: Optional[str]
    body: str
    pt_path: list[str]
    pt_level: int


@dataclass
class Node:
    """An article or comment placed in the thread's tree."""

    id: str
    parent_id: Optional[str]
    body: str
    path: tuple[str, ...] = ()
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def level(self) -> int:
        return len(self.path)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass(frozen=True)
class ContinuationBatch:
    """Child references still to be loaded through /api/morechildren."""

    thread_id: str
    child_refs: tuple[str, ...]
    parent_id: Optional[str] = None  # Comment the "more" stub hangs off

    def __len__(self) -> int:
        return len(self.child_refs)


class EntryKind(enum.Enum):
    CONTENT = "content"
    CONTINUATION = "continuation"


@dataclass
class ClassifiedEntry:
    kind: EntryKind
    thing_kind: str  # t1, t3 or more
    payload: Union[dict[str, Any], ContinuationBatch]


@dataclass
class ThreadChoice:
    """A thread the user can pick for loading."""

    name: str
    label: str


class EngineState(enum.Enum):
    FETCHING_ROOT = "fetching-root"
    DRAINING_CONTINUATIONS = "draining-continuations"
    DONE = "done"


@dataclass
class FetchSummary:
    """Outcome of one thread fetch."""

    thread_id: str
    nodes_emitted: int = 0
    batches_processed: int = 0
    batches_failed: int = 0
    malformed_entries: int = 0
    nodes_skipped: int = 0  # Replies to comments lost with a failed batch


NodeSink = Callable[[Node], None]
