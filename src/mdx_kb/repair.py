# SPDX-License-Identifier: AGPL-3.0-or-later
"""Text-level repair rules applied to a document body before parsing.

Each rule is a pure ``str -> str`` function and is idempotent on its own
output. :func:`repair_syntax` runs them in a fixed order: later rules assume
the tag balance established by the earlier ones.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from .diagnostics import Diagnostics

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)
RAW_TEXT_ELEMENTS = frozenset({"script", "style"})

_FENCE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_BACKTICK_RUN = re.compile(r"`+")

# attribute region: quoted strings, {expressions} or anything but delimiters
_ATTRS = r"(?P<attrs>(?:\"[^\"]*\"|'[^']*'|\{[^{}]*\}|[^'\"<>{}])*)"
_TAG = re.compile(r"<(?P<name>[A-Za-z][\w.-]*)(?=[\s/>])" + _ATTRS + r">")
_ANY_TAG = re.compile(
    r"<!--.*?-->|<(?P<close>/)?(?P<name>[A-Za-z][\w.-]*)(?=[\s/>])" + _ATTRS + r">",
    re.DOTALL,
)
_CLOSING_WITH_SLASH = re.compile(r"</\s*(?P<name>[A-Za-z][\w.-]*)\s*/>")
_LINK_WITH_PARENS = re.compile(
    r"(?P<head>\[[^\]\n]*\]\()(?P<target>[^\s()]*\([^\s]*?)\)(?=[\s.,;:!?*_]|$)",
    re.MULTILINE,
)
_UNESCAPED_PAREN = re.compile(r"(?<!\\)([()])")
_EMPTY_EXPRESSION = re.compile(r"\{\s*\}")

_VIDEO_OPEN = re.compile(r"<video(?=[\s/>])[^>]*>", re.IGNORECASE)
_VIDEO_CLOSE = re.compile(r"</video\s*>", re.IGNORECASE)
_SCRIPT_BLOCK = re.compile(r"<script(?=[\s/>])[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_STYLE_BLOCK = re.compile(r"<style(?=[\s/>])[^>]*>.*?</style\s*>", re.IGNORECASE | re.DOTALL)
_SCRIPT_OPEN = re.compile(r"<script(?=[\s/>])[^>]*>", re.IGNORECASE)
_STYLE_OPEN = re.compile(r"<style(?=[\s/>])[^>]*>", re.IGNORECASE)
# an unclosed block runs to the end of its fenced region or of the text
_FENCE_AHEAD = re.compile(r"\n {0,3}(?:`{3,}|~{3,})")
VIDEO_CONTAINER = '<div class="video-container">'
MAX_REPAIR_ROUNDS = 8


# ---- code regions ------------------------------------------------------------


def _fence_layout(lines: Sequence[str]) -> Tuple[List[bool], Optional[str]]:
    """Flag lines that belong to fenced code; also return a dangling opener."""

    inside: List[bool] = []
    opener: Optional[str] = None
    for line in lines:
        match = _FENCE.match(line)
        if opener is None:
            if match:
                fence = match.group("fence")
                if not (fence[0] == "`" and "`" in match.group("info")):
                    opener = fence
                    inside.append(True)
                    continue
            inside.append(False)
            continue
        inside.append(True)
        if match:
            fence = match.group("fence")
            if fence[0] == opener[0] and len(fence) >= len(opener) and not match.group("info").strip():
                opener = None
    return inside, opener


def _inline_code_spans(line: str, offset: int) -> List[Tuple[int, int]]:
    runs = list(_BACKTICK_RUN.finditer(line))
    spans: List[Tuple[int, int]] = []
    idx = 0
    while idx < len(runs):
        opener = runs[idx]
        width = len(opener.group(0))
        closer = next(
            (j for j in range(idx + 1, len(runs)) if len(runs[j].group(0)) == width),
            None,
        )
        if closer is None:
            idx += 1
            continue
        spans.append((offset + opener.start(), offset + runs[closer].end()))
        idx = closer + 1
    return spans


def code_ranges(text: str, *, fenced_blocks: bool = True) -> List[Tuple[int, int]]:
    """Return sorted ``(start, end)`` offsets of fenced blocks and code spans.

    With ``fenced_blocks=False`` only inline code spans are returned.
    """

    lines = text.split("\n")
    inside, _ = _fence_layout(lines)
    ranges: List[Tuple[int, int]] = []
    offset = 0
    for line, fenced in zip(lines, inside):
        end = offset + len(line)
        if not fenced:
            ranges.extend(_inline_code_spans(line, offset))
        elif fenced_blocks:
            if ranges and ranges[-1][1] >= offset - 1:
                ranges[-1] = (ranges[-1][0], end)
            else:
                ranges.append((offset, end))
        offset = end + 1
    return ranges


def blank_code(text: str) -> str:
    """Replace code regions with spaces, keeping offsets and line breaks."""

    ranges = code_ranges(text)
    if not ranges:
        return text
    chars = list(text)
    for start, end in ranges:
        for pos in range(start, end):
            if chars[pos] != "\n":
                chars[pos] = " "
    return "".join(chars)


def _in_ranges(position: int, ranges: Sequence[Tuple[int, int]], starts: Sequence[int]) -> bool:
    idx = bisect_right(starts, position) - 1
    return idx >= 0 and position < ranges[idx][1]


def _sub_outside_code(
    pattern: re.Pattern[str], repl: Callable[[re.Match[str]], str], text: str
) -> str:
    ranges = code_ranges(text)
    if not ranges:
        return pattern.sub(repl, text)
    starts = [start for start, _ in ranges]

    def _guarded(match: re.Match[str]) -> str:
        if _in_ranges(match.start(), ranges, starts):
            return match.group(0)
        return repl(match)

    return pattern.sub(_guarded, text)


# ---- rule 1: code fences -----------------------------------------------------


def _balance_inline_code(line: str) -> str:
    body = line.rstrip("\r")
    eol = line[len(body):]
    singles = sum(1 for run in _BACKTICK_RUN.finditer(body) if len(run.group(0)) == 1)
    if singles % 2 == 0:
        return line
    joiner = " " if body.endswith("`") else ""
    return f"{body}{joiner}`{eol}"


def balance_code_fences(text: str) -> str:
    """Close a dangling fenced block and odd single-backtick code spans."""

    lines = text.split("\n")
    inside, opener = _fence_layout(lines)
    for idx, fenced in enumerate(inside):
        if not fenced:
            lines[idx] = _balance_inline_code(lines[idx])
    result = "\n".join(lines)
    if opener is not None:
        if not result.endswith("\n"):
            result += "\n"
        result += opener
    return result


# ---- rule 2: link targets ----------------------------------------------------


def escape_link_targets(text: str) -> str:
    """Backslash-escape parentheses inside link destinations."""

    def _escape(match: re.Match[str]) -> str:
        target = _UNESCAPED_PAREN.sub(r"\\\1", match.group("target"))
        return f"{match.group('head')}{target})"

    return _sub_outside_code(_LINK_WITH_PARENS, _escape, text)


# ---- rule 3: comments inside tags --------------------------------------------


def _strip_attr_comments(attrs: str) -> Tuple[str, bool]:
    out: List[str] = []
    removed = False
    quote: Optional[str] = None
    idx = 0
    size = len(attrs)
    while idx < size:
        ch = attrs[idx]
        if quote:
            out.append(ch)
            if ch == quote:
                quote = None
            idx += 1
            continue
        if ch in "\"'":
            quote = ch
            out.append(ch)
            idx += 1
            continue
        if attrs.startswith("/*", idx):
            end = attrs.find("*/", idx + 2)
            idx = size if end == -1 else end + 2
            removed = True
            continue
        if attrs.startswith("//", idx) and (idx == 0 or attrs[idx - 1].isspace()):
            end = attrs.find("\n", idx)
            idx = size if end == -1 else end
            removed = True
            continue
        out.append(ch)
        idx += 1
    return "".join(out), removed


def strip_tag_comments(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments from tag attribute regions."""

    def _clean(match: re.Match[str]) -> str:
        attrs = match.group("attrs")
        trimmed = attrs.rstrip()
        self_closing = trimmed.endswith("/")
        if self_closing:
            trimmed = trimmed[:-1]
        cleaned, removed = _strip_attr_comments(trimmed)
        if not removed:
            return match.group(0)
        cleaned = _EMPTY_EXPRESSION.sub("", cleaned).strip()
        rebuilt = f"<{match.group('name')}"
        if cleaned:
            rebuilt += f" {cleaned}"
        if self_closing:
            rebuilt += " /"
        return rebuilt + ">"

    return _sub_outside_code(_TAG, _clean, text)


# ---- rule 4: self-closing forms and tag balance ------------------------------


def _expand_self_closing(match: re.Match[str]) -> str:
    name = match.group("name")
    attrs = match.group("attrs").rstrip()
    if not attrs.endswith("/") or name.lower() in VOID_ELEMENTS:
        return match.group(0)
    attrs = attrs[:-1].rstrip()
    return f"<{name}{attrs}></{name}>"


def _close_open_tags(text: str) -> str:
    ranges = code_ranges(text)
    starts = [start for start, _ in ranges]
    stack: List[Tuple[str, str]] = []
    insertions: List[Tuple[int, str]] = []
    raw_text: Optional[str] = None

    for match in _ANY_TAG.finditer(text):
        name = match.group("name")
        if name is None or _in_ranges(match.start(), ranges, starts):
            continue
        key = name.lower()
        closing = bool(match.group("close"))
        if raw_text is not None:
            if closing and key == raw_text:
                raw_text = None
                if stack and stack[-1][1] == key:
                    stack.pop()
            continue
        if not closing:
            if key in VOID_ELEMENTS or match.group("attrs").rstrip().endswith("/"):
                continue
            stack.append((name, key))
            if key in RAW_TEXT_ELEMENTS:
                raw_text = key
            continue
        depth = next((i for i in range(len(stack) - 1, -1, -1) if stack[i][1] == key), None)
        if depth is None:
            continue  # stray close, nothing to pair with
        while len(stack) - 1 > depth:
            inner, _ = stack.pop()
            insertions.append((match.start(), f"</{inner}>"))
        stack.pop()

    if not insertions and not stack:
        return text
    pieces: List[str] = []
    last = 0
    for position, closing_tag in insertions:
        pieces.append(text[last:position])
        pieces.append(closing_tag)
        last = position
    pieces.append(text[last:])
    body = "".join(pieces)
    closers = "".join(f"</{name}>" for name, _ in reversed(stack))
    if closers and _FENCE.match(body.rsplit("\n", 1)[-1]):
        # closers on a fence line would turn it into an opener
        body += "\n"
    return body + closers


def balance_tags(text: str) -> str:
    """Fix ``</x/>`` and ``<x/>`` forms, then close every tag left open."""

    text = _sub_outside_code(_CLOSING_WITH_SLASH, lambda m: f"</{m.group('name')}>", text)
    text = _sub_outside_code(_TAG, _expand_self_closing, text)
    return _close_open_tags(text)


# ---- rule 5: embeds and executable blocks ------------------------------------


def neutralize_embeds(
    text: str,
    *,
    script_marker: str = "[Script removed]",
    style_marker: str = "[Style removed]",
) -> str:
    """Swap video wrappers for a container and drop script/style blocks.

    Complete blocks are replaced wherever they occur. An opener without a
    closer swallows the rest of its fenced region (or of the text) unless it
    sits inside an inline code span, where it is literal code.
    """

    text = _VIDEO_OPEN.sub(VIDEO_CONTAINER, text)
    text = _VIDEO_CLOSE.sub("</div>", text)
    for closed, opener, marker in (
        (_SCRIPT_BLOCK, _SCRIPT_OPEN, script_marker),
        (_STYLE_BLOCK, _STYLE_OPEN, style_marker),
    ):
        text = closed.sub(lambda _: marker, text)
        text = _drop_unclosed(opener, marker, text)
    return text


def _drop_unclosed(opener: re.Pattern[str], marker: str, text: str) -> str:
    pos = 0
    while True:
        spans = code_ranges(text, fenced_blocks=False)
        starts = [start for start, _ in spans]
        match = next(
            (
                found
                for found in opener.finditer(text, pos)
                if not _in_ranges(found.start(), spans, starts)
            ),
            None,
        )
        if match is None:
            return text
        fence = _FENCE_AHEAD.search(text, match.end())
        end = fence.start() if fence else len(text)
        text = text[: match.start()] + marker + text[end:]
        pos = match.start() + len(marker)


# ---- pass --------------------------------------------------------------------


@dataclass(frozen=True)
class RepairRule:
    name: str
    apply: Callable[[str], str]


def default_rules(
    *,
    script_marker: str = "[Script removed]",
    style_marker: str = "[Style removed]",
) -> List[RepairRule]:
    return [
        RepairRule("code-fences", balance_code_fences),
        RepairRule("link-targets", escape_link_targets),
        RepairRule("tag-comments", strip_tag_comments),
        RepairRule("tag-balance", balance_tags),
        RepairRule(
            "embeds",
            lambda text: neutralize_embeds(
                text, script_marker=script_marker, style_marker=style_marker
            ),
        ),
    ]


def repair_syntax(
    text: str,
    *,
    rules: Optional[Sequence[RepairRule]] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> str:
    """Run the repair rules in order; a failing rule leaves the text untouched.

    A rule can undo what an earlier one established (removing a script block
    may unbalance a code span), so the ordered list is repeated until a round
    leaves the text unchanged. Each rule is reported at most once.
    """

    active = list(rules) if rules is not None else default_rules()
    reported: set = set()
    for _ in range(MAX_REPAIR_ROUNDS):
        changed = False
        for rule in active:
            try:
                updated = rule.apply(text)
            except Exception as exc:
                if diagnostics is not None and (rule.name, "skipped") not in reported:
                    diagnostics.warning("repair", f"rule {rule.name} skipped: {exc}")
                reported.add((rule.name, "skipped"))
                continue
            if updated != text:
                if diagnostics is not None and (rule.name, "rewrote") not in reported:
                    diagnostics.info("repair", f"rule {rule.name} rewrote the body")
                reported.add((rule.name, "rewrote"))
                text = updated
                changed = True
        if not changed:
            return text
    if diagnostics is not None:
        diagnostics.warning(
            "repair", f"body still changing after {MAX_REPAIR_ROUNDS} rounds; using last result"
        )
    return text


__all__ = [
    "MAX_REPAIR_ROUNDS",
    "RAW_TEXT_ELEMENTS",
    "VOID_ELEMENTS",
    "RepairRule",
    "balance_code_fences",
    "balance_tags",
    "blank_code",
    "code_ranges",
    "default_rules",
    "escape_link_targets",
    "neutralize_embeds",
    "repair_syntax",
    "strip_tag_comments",
]
