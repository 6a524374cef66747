# SPDX-License-Identifier: AGPL-3.0-or-later
"""Serialise a syntax tree and reduce the result to plain text."""

from __future__ import annotations

import html
import re
from typing import List, Tuple, Union

from bs4 import BeautifulSoup

from .repair import VOID_ELEMENTS
from .tree import ELEMENT, EXPRESSION, IMPORT_STATEMENT, RAW_MARKUP, TEXT, SyntaxTree

_PARAGRAPH_BREAK = frozenset(
    {"p", "h1", "h2", "h3", "h4", "h5", "h6", "pre", "blockquote", "table"}
    | {"ul", "ol", "dl", "aside", "details"}
)
_LINE_BREAK = frozenset(
    {"li", "tr", "div", "dt", "dd", "br", "hr", "summary", "section", "figure", "thead", "tbody"}
)
_CELL_BREAK = frozenset({"td", "th"})

_HTML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_LEFTOVER_TAG = re.compile(r"<[A-Za-z/!?][^<>]*>")
_TRAILING_SPACE = re.compile(r"[ \t]+\n")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")

_Frame = Tuple[str, Union[int, str]]


def _open_tag(tag: str, attrs: dict) -> str:
    rendered = "".join(
        f' {key}="{html.escape(str(value), quote=True)}"' for key, value in attrs.items()
    )
    return f"<{tag}{rendered}>"


def _suffix(tag: str) -> str:
    if tag in _PARAGRAPH_BREAK:
        return "\n\n"
    if tag in _LINE_BREAK:
        return "\n"
    if tag in _CELL_BREAK:
        return " "
    return ""


def serialize(tree: SyntaxTree) -> str:
    """Render *tree* depth-first back to markup, preserving child order."""

    out: List[str] = []
    pending: List[_Frame] = [("node", tree.root)]
    while pending:
        action, payload = pending.pop()
        if action == "emit":
            out.append(str(payload))
            continue
        node = tree.get(payload)  # type: ignore[arg-type]
        if node is None:
            continue
        children = node.children if isinstance(node.children, list) else []
        frames: List[_Frame] = []
        if node.kind == TEXT:
            out.append(html.escape(node.value or "", quote=False))
        elif node.kind in {EXPRESSION, IMPORT_STATEMENT}:
            out.append(html.escape(node.value or "", quote=False))
        elif node.kind == RAW_MARKUP:
            out.append(node.value or "")
        elif node.kind == ELEMENT and node.tag:
            tag = node.tag.lower()
            out.append(_open_tag(tag, node.attrs or {}))
            if tag not in VOID_ELEMENTS:
                frames.append(("emit", f"</{tag}>"))
            suffix = _suffix(tag)
            if suffix:
                frames.append(("emit", suffix))
        # root, component references and unknown kinds render only their children
        frames_children: List[_Frame] = [("node", child) for child in children]
        pending.extend(reversed(frames_children + frames))
    return "".join(out)


def reduce_to_plain_text(markup: str) -> str:
    """Strip markup from *markup* and normalise whitespace and escapes."""

    text = _HTML_COMMENT.sub("", markup).replace("<!--", "")
    soup = BeautifulSoup(text, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()
    text = soup.get_text()
    while True:
        stripped = _LEFTOVER_TAG.sub("", text)
        if stripped == text:
            break
        text = stripped
    text = text.replace("\\r\\n", "\n").replace("\\n", "\n")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _TRAILING_SPACE.sub("\n", text)
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    return text.strip()


def stringify(tree: SyntaxTree) -> str:
    return reduce_to_plain_text(serialize(tree))


__all__ = ["reduce_to_plain_text", "serialize", "stringify"]
