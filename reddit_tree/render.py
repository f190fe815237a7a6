from __future__ import annotations

from typing import Sequence

from rich.markup import escape
from rich.tree import Tree

from reddit_tree.constants import RENDER_BODY_MAX_CHARS
from reddit_tree.models import Node


def node_label(node: Node) -> str:
    body = node.body[:RENDER_BODY_MAX_CHARS].replace("\n", " ")
    return f"[bold]{escape(node.id)}[/] {escape(body)}"


def render_tree(nodes: Sequence[Node]) -> Tree:
    """
    Build a rich Tree from nodes in discovery order.

    Parents are always emitted before their children, so one pass is enough.
    Nodes whose parent was never seen hang off the root.
    """
    if not nodes:
        return Tree("[dim](empty thread)[/]")
    root = nodes[0]
    tree = Tree(node_label(root))
    branches: dict[str, Tree] = {root.id: tree}
    for node in nodes[1:]:
        parent = branches.get(node.parent_id or "", tree)
        branches[node.id] = parent.add(node_label(node))
    return tree
