# SPDX-License-Identifier: AGPL-3.0-or-later
"""Cheap well-formedness heuristics deciding between primary and fallback parsing."""

from __future__ import annotations

import re
from typing import List, Optional

from .diagnostics import Diagnostics
from .repair import VOID_ELEMENTS, blank_code

_TRAILING_OPEN_TAG = re.compile(
    r"<(?P<name>[A-Za-z][\w.-]*)(?P<attrs>(?:\s[^<>]*)?)>[^<]*\Z"
)
_DANGLING_TAG = re.compile(r"<[A-Za-z][\w.-]*(?:\s[^<>]*)?\Z")
_INVALID_CLOSING_SLASH = re.compile(r"</\s*[A-Za-z][\w.-]*\s*/>")


def _has_trailing_open_tag(text: str) -> bool:
    if _DANGLING_TAG.search(text):
        return True
    match = _TRAILING_OPEN_TAG.search(text)
    if not match:
        return False
    if match.group("name").lower() in VOID_ELEMENTS:
        return False
    return not match.group("attrs").rstrip().endswith("/")


def syntax_issues(text: str) -> List[str]:
    """Return the names of the heuristics *text* fails (empty when valid)."""

    visible = blank_code(text)
    issues: List[str] = []
    if _has_trailing_open_tag(visible):
        issues.append("unterminated-tag")
    if visible.count("{") != visible.count("}"):
        issues.append("unbalanced-braces")
    if _INVALID_CLOSING_SLASH.search(visible):
        issues.append("closing-tag-with-slash")
    return issues


def check_syntax(text: str, diagnostics: Optional[Diagnostics] = None) -> bool:
    """True when *text* looks well-formed enough for the primary parser."""

    try:
        issues = syntax_issues(text)
    except Exception as exc:  # pragma: no cover - regex engine failures only
        if diagnostics is not None:
            diagnostics.warning("validity", f"syntax check failed: {exc}")
        return False
    if issues and diagnostics is not None:
        diagnostics.warning("validity", "syntax issues detected: " + ", ".join(issues))
    return not issues


__all__ = ["check_syntax", "syntax_issues"]
