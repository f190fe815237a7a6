"""Append-only index of a thread's nodes and their ancestor paths."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from reddit_tree.errors import DuplicateNode, UnknownParent
from reddit_tree.models import Node


@dataclass
class _IndexEntry:
    node: Node
    children: list[str] = field(default_factory=list)


class PathIndex:
    """
    Maps a node id to its ancestor path and ordered child ids.

    Entries are write-once. A comment can only be inserted after its parent,
    so every path is the parent id followed by the parent's own path.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _IndexEntry] = {}
        self.root_id: Optional[str] = None

    def insert_root(
        self, node_id: str, body: str, data: Optional[dict[str, Any]] = None
    ) -> Node:
        if node_id in self._entries:
            raise DuplicateNode(node_id)
        node = Node(id=node_id, parent_id=None, body=body, path=(), data=data or {})
        self._entries[node_id] = _IndexEntry(node)
        if self.root_id is None:
            self.root_id = node_id
        return node

    def insert_child(
        self,
        node_id: str,
        parent_id: str,
        body: str,
        data: Optional[dict[str, Any]] = None,
    ) -> Node:
        parent = self._entries.get(parent_id)
        if parent is None:
            raise UnknownParent(node_id, parent_id)
        if node_id in self._entries:
            raise DuplicateNode(node_id)

        path = (parent_id,) + parent.node.path
        node = Node(
            id=node_id, parent_id=parent_id, body=body, path=path, data=data or {}
        )
        self._entries[node_id] = _IndexEntry(node)
        parent.children.append(node_id)
        return node

    def get(self, node_id: str) -> Optional[Node]:
        entry = self._entries.get(node_id)
        return entry.node if entry else None

    def path_of(self, node_id: str) -> tuple[str, ...]:
        return self._entries[node_id].node.path

    def children_of(self, node_id: str) -> list[str]:
        return list(self._entries[node_id].children)

    def walk(self) -> Iterator[Node]:
        """Yield nodes depth-first in tree order, starting at the root."""
        if self.root_id is None:
            return
        stack = [self.root_id]
        while stack:
            entry = self._entries[stack.pop()]
            yield entry.node
            stack.extend(reversed(entry.children))

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
