# SPDX-License-Identifier: AGPL-3.0-or-later
"""Tree rewrite rules applied during a single normalising traversal."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional

from .diagnostics import Diagnostics
from .settings import PipelineSettings
from .tree import (
    COMPONENT_REFERENCE,
    ELEMENT,
    EXPRESSION,
    IMPORT_STATEMENT,
    RAW_MARKUP,
    TEXT,
    Node,
    NodeVisitor,
    SyntaxTree,
    TraversalResult,
    traverse,
)

logger = logging.getLogger(__name__)

_EMBEDDED_COMMENT = re.compile(r"\A\{\s*/\*(?P<inner>.*?)\*/\s*\}\Z", re.DOTALL)
_URL_ATTRIBUTES = frozenset({"href", "src", "action", "formaction", "xlink:href"})
_SCRIPT_URL = re.compile(r"^\s*(?:javascript|vbscript)\s*:", re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\x00-\x20]+")

ComponentResolver = Callable[[str], Optional[str]]


def inert_comment(text: str) -> str:
    """Wrap *text* in an HTML comment that cannot terminate early."""

    body = text.replace("--", "- -").replace(">", "&gt;").strip()
    return f"<!-- {body} -->"


def unsupported_marker(node: Node) -> str:
    label = node.kind
    if node.kind == COMPONENT_REFERENCE and node.name:
        label = f"{node.kind} ({node.name})"
    return inert_comment(f"Unsupported node type: {label}")


# ---- node rules --------------------------------------------------------------


def neutralize_unsupported(node: Node, resolve: ComponentResolver) -> Optional[Node]:
    """Replace imports, expressions and unknown components with a marker.

    Recognised components become the mapped element and keep their children.
    An unknown component keeps its children under the marker so that the prose
    it wraps is not lost.
    """

    if node.kind in {IMPORT_STATEMENT, EXPRESSION}:
        return Node(RAW_MARKUP, value=unsupported_marker(node), children=None)
    if node.kind != COMPONENT_REFERENCE:
        return None
    children = node.children if isinstance(node.children, list) else None
    tag = resolve(node.name or "")
    if tag is None:
        return Node(RAW_MARKUP, value=unsupported_marker(node), children=children)
    attrs = {key: value for key, value in node.attrs.items() if not value.startswith("{")}
    attrs["data-component"] = node.name or ""
    return Node(ELEMENT, tag=tag, attrs=attrs, children=children)


def strip_executable(
    tree: SyntaxTree, node: Node, *, script_marker: str, style_marker: str
) -> Optional[Node]:
    """Turn ``script``/``style`` elements into a container holding only a marker."""

    if node.kind != ELEMENT or node.tag not in {"script", "style"}:
        return None
    marker = script_marker if node.tag == "script" else style_marker
    marker_id = tree.add(Node(TEXT, value=marker, children=None))
    return Node(ELEMENT, tag="div", children=[marker_id])


def lazy_load_images(node: Node) -> Optional[Node]:
    if node.kind != ELEMENT or node.tag != "img" or node.attrs.get("loading") == "lazy":
        return None
    return replace(node, attrs={**node.attrs, "loading": "lazy"})


def wrap_video(node: Node) -> Optional[Node]:
    if node.kind != ELEMENT or node.tag != "video":
        return None
    return replace(node, tag="div", attrs={"class": "video-container"})


def scrub_attributes(node: Node) -> Optional[Node]:
    """Drop event-handler attributes and script URLs."""

    if node.kind != ELEMENT or not node.attrs:
        return None
    kept: Dict[str, str] = {}
    for key, value in node.attrs.items():
        lowered = key.lower()
        if lowered.startswith("on"):
            continue
        if lowered in _URL_ATTRIBUTES and _SCRIPT_URL.match(_CONTROL_CHARS.sub("", value)):
            continue
        kept[key] = value
    if len(kept) == len(node.attrs):
        return None
    return replace(node, attrs=kept)


def rewrite_embedded_comment(node: Node) -> Optional[Node]:
    """``{/* note */}`` becomes ``<!-- note -->``."""

    if node.kind != RAW_MARKUP or not isinstance(node.value, str):
        return None
    match = _EMBEDDED_COMMENT.match(node.value.strip())
    if not match:
        return None
    return replace(node, value=inert_comment(match.group("inner")))


# ---- traversal ---------------------------------------------------------------


@dataclass
class NormalizationReport:
    actions: List[str] = field(default_factory=list)
    traversal: TraversalResult = field(default_factory=TraversalResult)

    @property
    def issues(self) -> List[str]:
        return self.traversal.issues


class TreeNormalizer(NodeVisitor):
    """Visitor applying the node rules in a fixed order per node kind."""

    def __init__(self, settings: Optional[PipelineSettings] = None) -> None:
        self.settings = settings or PipelineSettings()
        self.actions: List[str] = []

    def _apply(
        self, node: Node, rules: List[Callable[[Node], Optional[Node]]]
    ) -> Optional[Node]:
        current = node
        changed = False
        for rule in rules:
            updated = rule(current)
            if updated is not None:
                label = current.tag or current.name or ""
                self.actions.append(f"{rule.__name__}: {current.kind} {label}".rstrip())
                current = updated
                changed = True
                if current.kind != node.kind:
                    break
        return current if changed else None

    def _unsupported(self, tree: SyntaxTree, node_id: int, node: Node) -> Optional[Node]:
        replacement = neutralize_unsupported(node, self.settings.resolve_component)
        if replacement is None:
            return None
        self.actions.append(f"neutralize_unsupported: {node.kind} {node.name or ''}".rstrip())
        if replacement.kind == ELEMENT:
            return self.visit_element(tree, node_id, replacement) or replacement
        return replacement

    visit_import_statement = _unsupported
    visit_expression = _unsupported
    visit_component_reference = _unsupported

    def visit_element(self, tree: SyntaxTree, node_id: int, node: Node) -> Optional[Node]:
        def strip_executable_rule(current: Node) -> Optional[Node]:
            return strip_executable(
                tree,
                current,
                script_marker=self.settings.script_marker,
                style_marker=self.settings.style_marker,
            )

        strip_executable_rule.__name__ = "strip_executable"
        return self._apply(
            node,
            [strip_executable_rule, lazy_load_images, wrap_video, scrub_attributes],
        )

    def visit_raw_markup(self, tree: SyntaxTree, node_id: int, node: Node) -> Optional[Node]:
        return self._apply(node, [rewrite_embedded_comment])


def normalize_tree(
    tree: SyntaxTree,
    settings: Optional[PipelineSettings] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> NormalizationReport:
    """Normalise *tree* in place.

    Malformed branches are skipped and reported as warnings. Errors raised by
    a rule propagate so the caller can switch to the fallback path.
    """

    visitor = TreeNormalizer(settings)
    result = traverse(tree, visitor)
    report = NormalizationReport(actions=visitor.actions, traversal=result)
    if diagnostics is not None:
        for issue in result.issues:
            diagnostics.warning("normalize", issue)
        if report.actions:
            diagnostics.info("normalize", f"applied {len(report.actions)} tree rewrite(s)")
    logger.debug("normalised tree: visited=%d replaced=%d", result.visited, result.replaced)
    return report


__all__ = [
    "NormalizationReport",
    "TreeNormalizer",
    "inert_comment",
    "lazy_load_images",
    "neutralize_unsupported",
    "normalize_tree",
    "rewrite_embedded_comment",
    "scrub_attributes",
    "strip_executable",
    "unsupported_marker",
    "wrap_video",
]
