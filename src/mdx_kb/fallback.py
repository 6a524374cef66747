# SPDX-License-Identifier: AGPL-3.0-or-later
"""Degraded conversion path used when the primary parse cannot proceed."""

from __future__ import annotations

from typing import Optional

from .diagnostics import Diagnostics
from .parsers import parse_markup
from .stringify import reduce_to_plain_text, stringify


def fallback_convert(body: str, diagnostics: Optional[Diagnostics] = None) -> Optional[str]:
    """Best-effort plain text for *body* without tree normalisation.

    The prose markup is parsed without the embedded-syntax extensions and HTML
    stays verbatim until the reducer strips it. Should that parse raise, the
    body is reduced directly. ``None`` is returned only if both attempts fail.
    """

    try:
        return stringify(parse_markup(body, embedded=False))
    except Exception as exc:
        if diagnostics is not None:
            diagnostics.warning("fallback", f"degraded parse failed, reducing raw body: {exc}")
    try:
        return reduce_to_plain_text(body)
    except Exception as exc:
        if diagnostics is not None:
            diagnostics.error("fallback", f"raw reduction failed: {exc}")
        return None


__all__ = ["fallback_convert"]
