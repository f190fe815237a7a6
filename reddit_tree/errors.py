"""Error taxonomy for comment tree fetching."""

from __future__ import annotations

from typing import Optional


class CommentTreeError(Exception):
    """Base class for all comment tree errors."""


class TransportError(CommentTreeError):
    """Network failure, timeout or non-2xx response from reddit."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedFragment(CommentTreeError):
    """A response (or one entry of it) does not have the expected shape."""


class TreeInvariantError(CommentTreeError):
    """The path index was asked to do something that breaks the tree."""


class UnknownParent(TreeInvariantError):
    def __init__(self, node_id: str, parent_id: str) -> None:
        super().__init__(f"Parent {parent_id} of {node_id} is not indexed")
        self.node_id = node_id
        self.parent_id = parent_id


class DuplicateNode(TreeInvariantError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node {node_id} is already indexed")
        self.node_id = node_id


class FatalRootFetch(CommentTreeError):
    """The initial thread request failed; nothing was fetched."""

    def __init__(self, thread_id: str, reason: str) -> None:
        super().__init__(f"Fetching thread {thread_id} failed: {reason}")
        self.thread_id = thread_id
