# SPDX-License-Identifier: AGPL-3.0-or-later
"""Arena-backed syntax tree and a fault-tolerant visitor-driven traversal.

Nodes live in a flat list and refer to their children by index, so a node can
be swapped for another at the same position in its parent without touching
any other reference to it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple

logger = logging.getLogger(__name__)

NodeKind = Literal[
    "root",
    "text",
    "element",
    "expression",
    "component_reference",
    "import_statement",
    "raw_markup",
]

ROOT = "root"
TEXT = "text"
ELEMENT = "element"
EXPRESSION = "expression"
COMPONENT_REFERENCE = "component_reference"
IMPORT_STATEMENT = "import_statement"
RAW_MARKUP = "raw_markup"

LEAF_KINDS = frozenset({TEXT, EXPRESSION, IMPORT_STATEMENT, RAW_MARKUP})


@dataclass
class Node:
    """Tagged tree node. ``children`` holds arena indices."""

    kind: str
    value: Optional[str] = None
    tag: Optional[str] = None
    name: Optional[str] = None
    attrs: Dict[str, str] = field(default_factory=dict)
    children: Any = field(default_factory=list)


class SyntaxTree:
    """One parse attempt's tree; discarded after stringification."""

    def __init__(self) -> None:
        self.nodes: List[Node] = []
        self.root = self.add(Node(ROOT))

    def add(self, node: Node) -> int:
        self.nodes.append(node)
        return len(self.nodes) - 1

    def get(self, node_id: int) -> Optional[Node]:
        if isinstance(node_id, int) and 0 <= node_id < len(self.nodes):
            return self.nodes[node_id]
        return None

    def append_child(self, parent_id: int, child_id: int) -> None:
        parent = self.nodes[parent_id]
        if not isinstance(parent.children, list):
            parent.children = []
        parent.children.append(child_id)

    def add_child(self, parent_id: int, node: Node) -> int:
        child_id = self.add(node)
        self.append_child(parent_id, child_id)
        return child_id

    def replace_child(self, parent_id: int, index: int, node: Node) -> int:
        """Store *node* and put it at ``children[index]`` of the parent."""

        new_id = self.add(node)
        self.nodes[parent_id].children[index] = new_id
        return new_id

    def children_of(self, node_id: int) -> List[int]:
        node = self.get(node_id)
        if node is None or not isinstance(node.children, list):
            return []
        return [child for child in node.children if self.get(child) is not None]

    def __len__(self) -> int:
        return len(self.nodes)


class NodeVisitor:
    """Dispatch on ``node.kind`` to ``visit_<kind>`` methods.

    A visit method returns a replacement :class:`Node` (stored in the arena and
    put at the same index in the parent) or ``None`` to keep the node.
    """

    def visit(self, tree: SyntaxTree, node_id: int, node: Node) -> Optional[Node]:
        kind = node.kind if isinstance(node.kind, str) else ""
        method = getattr(self, f"visit_{kind}", None)
        if method is None:
            return self.generic_visit(tree, node_id, node)
        return method(tree, node_id, node)

    def generic_visit(self, tree: SyntaxTree, node_id: int, node: Node) -> Optional[Node]:
        return None


@dataclass
class TraversalResult:
    visited: int = 0
    replaced: int = 0
    issues: List[str] = field(default_factory=list)

    def note(self, message: str) -> None:
        logger.debug("traversal: %s", message)
        self.issues.append(message)


def _child_ids(node: Node, node_id: int, result: TraversalResult) -> List[int]:
    children = node.children
    if children is None:
        if node.kind not in LEAF_KINDS:
            result.note(f"node {node_id} ({node.kind}) has no children list; not descending")
        return []
    if not isinstance(children, list):
        result.note(
            f"node {node_id} ({node.kind}) has non-list children "
            f"({type(children).__name__}); not descending"
        )
        return []
    return children


def traverse(tree: SyntaxTree, visitor: NodeVisitor) -> TraversalResult:
    """Pre-order walk applying *visitor*, replacing nodes in place.

    Malformed nodes (unknown ids, missing or non-list ``children``) are skipped
    and reported in the result instead of raising. Exceptions raised by the
    visitor itself propagate to the caller.
    """

    result = TraversalResult()
    pending: List[Tuple[int, Optional[int], Optional[int]]] = [(tree.root, None, None)]
    seen = set()
    while pending:
        node_id, parent_id, index = pending.pop()
        node = tree.get(node_id)
        if not isinstance(node, Node):
            result.note(f"child {node_id!r} of node {parent_id} does not exist; skipped")
            continue
        if node_id in seen:
            result.note(f"node {node_id} is reachable twice; skipped")
            continue
        seen.add(node_id)
        result.visited += 1

        replacement = visitor.visit(tree, node_id, node)
        if replacement is not None:
            if parent_id is None or index is None:
                result.note("the root node cannot be replaced")
            else:
                node_id = tree.replace_child(parent_id, index, replacement)
                seen.add(node_id)
                node = replacement
                result.replaced += 1

        children = _child_ids(node, node_id, result)
        for child_index in range(len(children) - 1, -1, -1):
            pending.append((children[child_index], node_id, child_index))
    return result


def iter_preorder(tree: SyntaxTree) -> Iterable[Tuple[int, Node]]:
    """Yield ``(id, node)`` pairs depth-first, skipping malformed branches."""

    pending = [tree.root]
    seen = set()
    while pending:
        node_id = pending.pop()
        node = tree.get(node_id)
        if node is None or node_id in seen:
            continue
        seen.add(node_id)
        yield node_id, node
        if isinstance(node.children, list):
            pending.extend(reversed(node.children))


__all__ = [
    "COMPONENT_REFERENCE",
    "ELEMENT",
    "EXPRESSION",
    "IMPORT_STATEMENT",
    "LEAF_KINDS",
    "Node",
    "NodeKind",
    "NodeVisitor",
    "RAW_MARKUP",
    "ROOT",
    "SyntaxTree",
    "TEXT",
    "iter_preorder",
    "traverse",
]
