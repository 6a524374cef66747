from __future__ import annotations

import re

from mdx_kb.parsers import parse_markup
from mdx_kb.stringify import reduce_to_plain_text, serialize, stringify
from mdx_kb.tree import ELEMENT, RAW_MARKUP, TEXT, Node, SyntaxTree


def test_serialize_escapes_text_and_attributes() -> None:
    tree = SyntaxTree()
    para = tree.add_child(tree.root, Node(ELEMENT, tag="p", attrs={"title": 'say "hi"'}))
    tree.add_child(para, Node(TEXT, value="a < b", children=None))
    tree.add_child(para, Node(ELEMENT, tag="br"))
    tree.add_child(tree.root, Node(RAW_MARKUP, value="<!-- kept -->", children=None))

    assert serialize(tree) == '<p title="say &quot;hi&quot;">a &lt; b<br>\n</p>\n\n<!-- kept -->'


def test_reducer_strips_markup_and_comments() -> None:
    assert reduce_to_plain_text("<p>Hello <b>world</b></p><!-- gone -->") == "Hello world"
    assert reduce_to_plain_text("<script>alert(1)</script>ok") == "ok"
    assert reduce_to_plain_text("&lt;b&gt;x") == "x"


def test_reducer_keeps_comparison_operators() -> None:
    assert reduce_to_plain_text("x < y and y > z") == "x < y and y > z"
    assert reduce_to_plain_text("a &lt; b &gt; c <i>d</i>") == "a < b > c d"


def test_reducer_normalises_escapes_and_whitespace() -> None:
    assert reduce_to_plain_text("line1\\nline2") == "line1\nline2"
    assert reduce_to_plain_text("  a  \r\n\r\n\r\n\r\nb  ") == "a\n\nb"


def test_stringify_keeps_words_and_block_breaks() -> None:
    tree = parse_markup("# Title\n\nFirst *para*.\n\n- one\n- two\n\n| a | b |\n|---|---|\n| 1 | 2 |")
    text = stringify(tree)

    assert text.startswith("Title\n\nFirst para.")
    assert "one\ntwo" in text
    assert "1 2" in text
    assert not re.search(r"<[^<>]*>", text)
