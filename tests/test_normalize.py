# SPDX-License-Identifier: AGPL-3.0-or-later
from __future__ import annotations

from typing import List

from mdx_kb.diagnostics import Diagnostics
from mdx_kb.normalize import (
    inert_comment,
    lazy_load_images,
    normalize_tree,
    rewrite_embedded_comment,
    scrub_attributes,
)
from mdx_kb.parsers import parse_markup
from mdx_kb.settings import PipelineSettings
from mdx_kb.stringify import serialize
from mdx_kb.tree import (
    COMPONENT_REFERENCE,
    ELEMENT,
    EXPRESSION,
    IMPORT_STATEMENT,
    RAW_MARKUP,
    TEXT,
    Node,
    SyntaxTree,
    iter_preorder,
)


def _nodes(tree: SyntaxTree, kind: str) -> List[Node]:
    return [node for _, node in iter_preorder(tree) if node.kind == kind]


def _normalized(text: str) -> SyntaxTree:
    tree = parse_markup(text)
    normalize_tree(tree, PipelineSettings())
    return tree


def test_unsupported_nodes_become_markers_in_place() -> None:
    tree = _normalized("import X from './x'\n\nHello {name} world")

    assert not _nodes(tree, IMPORT_STATEMENT)
    assert not _nodes(tree, EXPRESSION)
    markers = [node.value for node in _nodes(tree, RAW_MARKUP)]
    assert markers == [
        "<!-- Unsupported node type: import_statement -->",
        "<!-- Unsupported node type: expression -->",
    ]
    para = next(node for node in _nodes(tree, ELEMENT) if node.tag == "p")
    kinds = [tree.nodes[child].kind for child in para.children]
    assert kinds == [TEXT, RAW_MARKUP, TEXT]


def test_unknown_component_is_replaced_but_keeps_its_text() -> None:
    tree = _normalized("<Tabs>\n\nInside tabs\n\n</Tabs>")

    assert not _nodes(tree, COMPONENT_REFERENCE)
    (marker,) = _nodes(tree, RAW_MARKUP)
    assert marker.value == "<!-- Unsupported node type: component_reference (Tabs) -->"
    assert "Inside tabs" in serialize(tree)


def test_known_component_maps_to_element() -> None:
    tree = _normalized('<Note title="Heads up" data={x}>\n\nCareful\n\n</Note>')

    (aside,) = [node for node in _nodes(tree, ELEMENT) if node.tag == "aside"]
    assert aside.attrs == {"title": "Heads up", "data-component": "Note"}


def test_component_map_comes_from_settings() -> None:
    tree = parse_markup("<Tabs>\n\nx\n\n</Tabs>")
    normalize_tree(tree, PipelineSettings(component_map={"tabs": "section"}))
    assert [node.tag for node in _nodes(tree, ELEMENT) if node.tag == "section"] == ["section"]


def test_script_and_style_elements_hold_only_markers() -> None:
    tree = SyntaxTree()
    script = tree.add_child(tree.root, Node(ELEMENT, tag="script", attrs={"src": "x.js"}))
    tree.add_child(script, Node(TEXT, value="alert(1)", children=None))
    style = tree.add_child(tree.root, Node(ELEMENT, tag="style"))
    tree.add_child(style, Node(TEXT, value="body{}", children=None))

    normalize_tree(tree, PipelineSettings())

    rendered = serialize(tree)
    assert "alert(1)" not in rendered and "body{}" not in rendered
    assert "<div>[Script removed]</div>" in rendered
    assert "<div>[Style removed]</div>" in rendered


def test_images_are_lazy_loaded_without_touching_other_attributes() -> None:
    tree = _normalized("![Alt text](pic.png)")
    (image,) = [node for node in _nodes(tree, ELEMENT) if node.tag == "img"]
    assert image.attrs == {"src": "pic.png", "alt": "Alt text", "loading": "lazy"}
    assert lazy_load_images(image) is None


def test_embedded_comment_becomes_html_comment() -> None:
    tree = _normalized("Text {/* keep -- me */} more")
    (marker,) = _nodes(tree, RAW_MARKUP)
    assert marker.value == "<!-- keep - - me -->"
    assert rewrite_embedded_comment(Node(RAW_MARKUP, value="<!-- x -->")) is None


def test_video_elements_become_containers() -> None:
    tree = SyntaxTree()
    tree.add_child(tree.root, Node(ELEMENT, tag="video", attrs={"src": "a.mp4"}))
    normalize_tree(tree, PipelineSettings())
    (container,) = _nodes(tree, ELEMENT)
    assert container.tag == "div"
    assert container.attrs == {"class": "video-container"}


def test_event_handlers_and_script_urls_are_scrubbed() -> None:
    tree = _normalized('Go <a href="javascript:alert(1)" onclick="x()" title="t">there</a>')
    (link,) = [node for node in _nodes(tree, ELEMENT) if node.tag == "a"]
    assert link.attrs == {"title": "t"}
    assert scrub_attributes(Node(ELEMENT, tag="a", attrs={"href": "/ok"})) is None


def test_malformed_tree_is_reported_not_raised() -> None:
    tree = SyntaxTree()
    tree.add_child(tree.root, Node(ELEMENT, tag="p", children="broken"))
    tree.add_child(tree.root, Node(EXPRESSION, value="x", children=None))
    diagnostics = Diagnostics("doc.mdx")

    report = normalize_tree(tree, PipelineSettings(), diagnostics)

    assert len(report.issues) == 1
    assert [event.stage for event in diagnostics.by_level("warning")] == ["normalize"]
    assert _nodes(tree, RAW_MARKUP)


def test_inert_comment_cannot_close_early() -> None:
    assert inert_comment("a --> b") == "<!-- a - -&gt; b -->"
