from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import cast

from reddit_tree.models import Node, NodeRecord


def node_to_record(node: Node) -> NodeRecord:
    """Raw reddit data of the node, plus its path and level."""
    record = cast(NodeRecord, dict(node.data))
    record.setdefault("name", node.id)
    record.setdefault("parent_id", node.parent_id)
    record["pt_path"] = list(node.path)
    record["pt_level"] = node.level
    return record


def atomic_write_jsonl(path: Path, records: list[NodeRecord]) -> None:
    """Write JSON lines atomically using a temp file + rename."""
    tmp_fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(tmp_fd, "w") as f:
            for record in records:
                f.write(json.dumps(record) + "\n")
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class JsonlSink:
    """Collects emitted nodes; `write` stores them as JSON lines."""

    def __init__(self) -> None:
        self.nodes: list[Node] = []

    def __call__(self, node: Node) -> None:
        self.nodes.append(node)

    def records(self) -> list[NodeRecord]:
        return [node_to_record(n) for n in self.nodes]

    def write(self, path: Path) -> None:
        atomic_write_jsonl(path, self.records())
