# SPDX-License-Identifier: AGPL-3.0-or-later
"""Split a document into its leading metadata block and markup body."""

from __future__ import annotations

import re
from typing import Any, Dict, Optional, Tuple

import yaml

from .diagnostics import Diagnostics

_FRONT_MATTER = re.compile(
    r"\A\ufeff?---[ \t]*\r?\n"
    r"(?P<block>.*?)"
    r"^(?:---|\.\.\.)[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


def split_front_matter(text: str) -> Tuple[Optional[str], str]:
    """Return ``(raw_block, body)``; ``raw_block`` is ``None`` without delimiters."""

    match = _FRONT_MATTER.match(text)
    if not match:
        return None, text
    return match.group("block"), text[match.end():]


def extract_metadata(
    text: str, diagnostics: Optional[Diagnostics] = None
) -> Tuple[Dict[str, Any], str]:
    """Parse the leading metadata block of *text*.

    Returns the metadata mapping (insertion ordered, possibly empty) and the
    remaining body. A block whose delimiters are present but whose content is
    not a YAML mapping yields empty metadata and a warning; the body after the
    block is still returned so the prose is not lost.
    """

    raw, body = split_front_matter(text)
    if raw is None:
        return {}, text

    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        if diagnostics is not None:
            diagnostics.warning("metadata", f"malformed metadata block ignored: {_first_line(exc)}")
        return {}, body

    if parsed is None:
        return {}, body
    if not isinstance(parsed, dict):
        if diagnostics is not None:
            diagnostics.warning(
                "metadata",
                f"metadata block is a {type(parsed).__name__}, expected key/value pairs",
            )
        return {}, body

    metadata = {str(key): value for key, value in parsed.items()}
    if diagnostics is not None:
        diagnostics.info("metadata", f"extracted {len(metadata)} metadata field(s)")
    return metadata, body


def _first_line(exc: Exception) -> str:
    message = str(exc).strip()
    return message.splitlines()[0] if message else type(exc).__name__


__all__ = ["extract_metadata", "split_front_matter"]
