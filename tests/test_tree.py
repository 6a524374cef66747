from __future__ import annotations

from typing import Optional

import pytest

from mdx_kb.tree import ELEMENT, TEXT, Node, NodeVisitor, SyntaxTree, iter_preorder, traverse


def _paragraph_tree() -> SyntaxTree:
    tree = SyntaxTree()
    para = tree.add_child(tree.root, Node(ELEMENT, tag="p"))
    for word in ("one", "two", "three"):
        tree.add_child(para, Node(TEXT, value=word, children=None))
    return tree


class _Upper(NodeVisitor):
    def visit_text(self, tree: SyntaxTree, node_id: int, node: Node) -> Optional[Node]:
        if node.value == "two":
            return Node(TEXT, value="TWO", children=None)
        return None


def test_replacement_keeps_sibling_order() -> None:
    tree = _paragraph_tree()
    result = traverse(tree, _Upper())

    assert result.replaced == 1
    assert not result.issues
    values = [node.value for _, node in iter_preorder(tree) if node.kind == TEXT]
    assert values == ["one", "TWO", "three"]


def test_malformed_children_are_skipped_and_reported() -> None:
    tree = _paragraph_tree()
    tree.add_child(tree.root, Node(ELEMENT, tag="div", children="oops"))
    tree.add_child(tree.root, Node(ELEMENT, tag="span", children=None))
    tree.nodes[tree.root].children.append(99)

    result = traverse(tree, NodeVisitor())

    assert result.visited == 7
    assert len(result.issues) == 3
    assert any("non-list" in issue for issue in result.issues)
    assert any("99" in issue for issue in result.issues)


def test_visitor_errors_propagate() -> None:
    class _Broken(NodeVisitor):
        def visit_element(self, tree: SyntaxTree, node_id: int, node: Node) -> Optional[Node]:
            raise RuntimeError("broken rule")

    with pytest.raises(RuntimeError):
        traverse(_paragraph_tree(), _Broken())


def test_root_cannot_be_replaced() -> None:
    class _ReplaceRoot(NodeVisitor):
        def visit_root(self, tree: SyntaxTree, node_id: int, node: Node) -> Optional[Node]:
            return Node(ELEMENT, tag="div")

    tree = _paragraph_tree()
    result = traverse(tree, _ReplaceRoot())
    assert result.replaced == 0
    assert tree.nodes[tree.root].kind == "root"
    assert result.issues == ["the root node cannot be replaced"]
