# SPDX-License-Identifier: AGPL-3.0-or-later
"""Structural parser turning a repaired body into a :class:`SyntaxTree`.

Prose markup is tokenised by ``markdown-it-py``. Two small plugins teach it
the embedded syntax: top-level ``import``/``export`` statements and inline
``{expression}`` spans. Raw HTML fragments are split into elements, component
references and comments by a tolerant tag scanner.
"""

from __future__ import annotations

import html
import re
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Tuple

from markdown_it import MarkdownIt
from markdown_it.rules_block import StateBlock
from markdown_it.rules_inline import StateInline
from markdown_it.token import Token
from mdit_py_plugins.deflist import deflist_plugin

from .repair import RAW_TEXT_ELEMENTS, VOID_ELEMENTS
from .tree import (
    COMPONENT_REFERENCE,
    ELEMENT,
    EXPRESSION,
    IMPORT_STATEMENT,
    RAW_MARKUP,
    TEXT,
    Node,
    SyntaxTree,
)

_ESM_START = re.compile(
    r"(?:import\s*(?:[\w$*{},\s]+?\s*from\s*)?['\"]"
    r"|import\s*\{"
    r"|export\s+(?:const|let|var|function|default|class|async|\{|\*))"
)
_EXPRESSION_COMMENT = re.compile(r"\A\s*/\*.*\*/\s*\Z", re.DOTALL)
_HTML_TOKEN = re.compile(
    r"(?P<comment><!--.*?(?:-->|\Z))"
    r"|<(?P<close>/)?(?P<name>[A-Za-z][\w.:-]*)"
    r"(?P<attrs>(?:\"[^\"]*\"|'[^']*'|\{[^{}]*\}|[^'\"<>{}])*)>"
    r"|(?P<decl><![^>]*>|<\?.*?\?>)",
    re.DOTALL,
)
_ATTRIBUTE = re.compile(
    r"(?P<key>[^\s\"'=<>/{}]+)"
    r"(?:\s*=\s*(?:\"(?P<dq>[^\"]*)\"|'(?P<sq>[^']*)'|\{(?P<expr>[^{}]*)\}"
    r"|(?P<bare>[^\s\"'=<>`]+)))?"
)

_MD = "markdown"
_HTML = "html"


def find_closing_brace(src: str, start: int, end: Optional[int] = None) -> int:
    """Return the index of the ``}`` matching ``src[start] == "{"`` or ``-1``."""

    limit = len(src) if end is None else end
    depth = 0
    quote: Optional[str] = None
    pos = start
    while pos < limit:
        ch = src[pos]
        if quote:
            if ch == "\\":
                pos += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'`":
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return pos
        pos += 1
    return -1


def parse_attributes(raw: str) -> Dict[str, str]:
    attrs: Dict[str, str] = {}
    for match in _ATTRIBUTE.finditer(raw.strip().rstrip("/")):
        key = match.group("key")
        if match.group("expr") is not None:
            value = "{" + match.group("expr") + "}"
        else:
            value = next(
                (match.group(group) for group in ("dq", "sq", "bare") if match.group(group) is not None),
                "",
            )
            value = html.unescape(value)
        attrs.setdefault(key, value)
    return attrs


def is_component_name(name: str) -> bool:
    return name[:1].isupper() or "." in name


# ---- markdown-it plugins -----------------------------------------------------


def _esm_block(state: StateBlock, startLine: int, endLine: int, silent: bool) -> bool:
    if state.parentType != "root" or state.blkIndent != 0 or state.sCount[startLine] != 0:
        return False
    start = state.bMarks[startLine] + state.tShift[startLine]
    if not _ESM_START.match(state.src, start, state.eMarks[startLine]):
        return False
    if silent:
        return True
    next_line = startLine + 1
    while next_line < endLine and not state.isEmpty(next_line):
        next_line += 1
    token = state.push("mdx_esm", "", 0)
    token.content = state.getLines(startLine, next_line, 0, False)
    token.map = [startLine, next_line]
    state.line = next_line
    return True


def _expression_inline(state: StateInline, silent: bool) -> bool:
    if state.src[state.pos] != "{":
        return False
    close = find_closing_brace(state.src, state.pos, state.posMax)
    if close < 0:
        return False
    if not silent:
        token = state.push("mdx_expression", "", 0)
        token.content = state.src[state.pos + 1 : close]
    state.pos = close + 1
    return True


def embedded_syntax_plugin(md: MarkdownIt) -> None:
    md.block.ruler.before("paragraph", "mdx_esm", _esm_block)
    md.inline.ruler.after("text", "mdx_expression", _expression_inline)


@lru_cache(maxsize=2)
def build_markdown(embedded: bool = True) -> MarkdownIt:
    """Return a configured parser; ``embedded=False`` skips the embedded syntax."""

    md = MarkdownIt("commonmark", {"html": True, "breaks": False, "typographer": False})
    md.enable(["table", "strikethrough"])
    md.use(deflist_plugin)
    if embedded:
        md.use(embedded_syntax_plugin)
    return md


# ---- tree construction -------------------------------------------------------


class _TreeBuilder:
    """Fold a markdown-it token stream into a :class:`SyntaxTree`.

    Markdown containers and HTML elements share one stack of open nodes. An
    HTML close tag only pairs with an HTML-opened node above the innermost
    markdown container, and a markdown close pops any HTML left open inside.
    """

    def __init__(self, embedded: bool) -> None:
        self.embedded = embedded
        self.tree = SyntaxTree()
        self._stack: List[Tuple[Optional[int], str, str]] = [(self.tree.root, _MD, "")]

    # stack ---------------------------------------------------------------
    def _parent(self) -> int:
        for node_id, _, _ in reversed(self._stack):
            if node_id is not None:
                return node_id
        return self.tree.root

    def _add(self, node: Node) -> int:
        return self.tree.add_child(self._parent(), node)

    def _open_markdown(self, token: Token) -> None:
        if token.hidden or not token.tag:
            self._stack.append((None, _MD, ""))
            return
        attrs = {str(key): str(value) for key, value in (token.attrs or {}).items()}
        node_id = self._add(Node(ELEMENT, tag=token.tag, attrs=attrs))
        self._stack.append((node_id, _MD, token.tag))

    def _close_markdown(self) -> None:
        while len(self._stack) > 1:
            _, owner, _ = self._stack.pop()
            if owner == _MD:
                return

    def _close_html(self, key: str) -> None:
        for depth in range(len(self._stack) - 1, 0, -1):
            _, owner, name = self._stack[depth]
            if owner == _MD:
                return
            if name == key:
                del self._stack[depth:]
                return

    # leaves --------------------------------------------------------------
    def _add_text(self, value: str) -> None:
        if value:
            self._add(Node(TEXT, value=value, children=None))

    def _add_expression(self, inner: str) -> None:
        if _EXPRESSION_COMMENT.match(inner):
            self._add(Node(RAW_MARKUP, value="{" + inner + "}", children=None))
        else:
            self._add(Node(EXPRESSION, value=inner, children=None))

    def _add_html_text(self, text: str) -> None:
        text = html.unescape(text)
        if not self.embedded:
            self._add_text(text)
            return
        pos = 0
        while True:
            start = text.find("{", pos)
            close = find_closing_brace(text, start) if start >= 0 else -1
            if close < 0:
                self._add_text(text[pos:])
                return
            self._add_text(text[pos:start])
            self._add_expression(text[start + 1 : close])
            pos = close + 1

    def _add_code(self, content: str, info: str = "") -> None:
        attrs = {}
        language = info.strip().split(maxsplit=1)[0] if info.strip() else ""
        if language:
            attrs["class"] = f"language-{language}"
        pre_id = self._add(Node(ELEMENT, tag="pre"))
        code_id = self.tree.add_child(pre_id, Node(ELEMENT, tag="code", attrs=attrs))
        if content:
            self.tree.add_child(code_id, Node(TEXT, value=content, children=None))

    # html ----------------------------------------------------------------
    def _add_html(self, fragment: str) -> None:
        if not self.embedded:
            self._add(Node(RAW_MARKUP, value=fragment, children=None))
            return
        pos = 0
        while pos < len(fragment):
            match = _HTML_TOKEN.search(fragment, pos)
            if match is None:
                self._add_html_text(fragment[pos:])
                return
            self._add_html_text(fragment[pos : match.start()])
            pos = match.end()
            if match.group("comment") or match.group("decl"):
                self._add(Node(RAW_MARKUP, value=match.group(0), children=None))
                continue
            pos = self._add_tag(match, fragment, pos)

    def _add_tag(self, match: "re.Match[str]", fragment: str, pos: int) -> int:
        name = match.group("name")
        raw_attrs = match.group("attrs")
        component = is_component_name(name)
        key = name if component else name.lower()
        if match.group("close"):
            self._close_html(key)
            return pos
        attrs = parse_attributes(raw_attrs)
        if component:
            node = Node(COMPONENT_REFERENCE, name=name, attrs=attrs)
        else:
            node = Node(ELEMENT, tag=key, attrs=attrs)
        node_id = self._add(node)
        if raw_attrs.rstrip().endswith("/") or (not component and key in VOID_ELEMENTS):
            return pos
        if not component and key in RAW_TEXT_ELEMENTS:
            closer = re.compile(rf"</{key}\s*>", re.IGNORECASE).search(fragment, pos)
            end = closer.start() if closer else len(fragment)
            if end > pos:
                self.tree.add_child(node_id, Node(TEXT, value=fragment[pos:end], children=None))
            if closer:
                return closer.end()
            self._stack.append((node_id, _HTML, key))
            return len(fragment)
        self._stack.append((node_id, _HTML, key))
        return pos

    # driver --------------------------------------------------------------
    def feed(self, tokens: Iterable[Token]) -> None:
        for token in tokens:
            if token.nesting == 1:
                self._open_markdown(token)
            elif token.nesting == -1:
                self._close_markdown()
            else:
                self._leaf(token)

    def _leaf(self, token: Token) -> None:
        kind = token.type
        if kind == "inline":
            self.feed(token.children or [])
        elif kind == "text":
            self._add_text(token.content)
        elif kind == "mdx_expression":
            self._add_expression(token.content)
        elif kind == "mdx_esm":
            self._add(Node(IMPORT_STATEMENT, value=token.content.strip(), children=None))
        elif kind in {"html_block", "html_inline"}:
            self._add_html(token.content)
        elif kind == "code_inline":
            code_id = self._add(Node(ELEMENT, tag="code"))
            self.tree.add_child(code_id, Node(TEXT, value=token.content, children=None))
        elif kind in {"fence", "code_block"}:
            self._add_code(token.content, token.info or "")
        elif kind == "softbreak":
            self._add_text("\n")
        elif kind == "hardbreak":
            self._add(Node(ELEMENT, tag="br"))
        elif kind == "image":
            attrs = {"src": str(token.attrGet("src") or ""), "alt": token.content or ""}
            title = token.attrGet("title")
            if title:
                attrs["title"] = str(title)
            self._add(Node(ELEMENT, tag="img", attrs=attrs))
        elif kind == "hr":
            self._add(Node(ELEMENT, tag="hr"))
        elif token.content:
            self._add_text(token.content)


def parse_markup(body: str, *, embedded: bool = True) -> SyntaxTree:
    """Parse *body* into a fresh tree.

    With ``embedded=False`` expressions and import statements stay ordinary
    text and HTML fragments are kept verbatim as ``raw_markup`` nodes.
    """

    builder = _TreeBuilder(embedded)
    builder.feed(build_markdown(embedded).parse(body))
    return builder.tree


__all__ = [
    "build_markdown",
    "embedded_syntax_plugin",
    "find_closing_brace",
    "is_component_name",
    "parse_attributes",
    "parse_markup",
]
