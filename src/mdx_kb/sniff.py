"""Boundary checks deciding which files reach the conversion pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Optional

_EXTENSION_MAP: Dict[str, str] = {
    ".md": "md",
    ".markdown": "md",
    ".mdown": "md",
    ".mdx": "mdx",
}


def detect_type(path: str | Path) -> str:
    """Return ``"md"``, ``"mdx"`` or ``"other"`` for *path*."""

    return _EXTENSION_MAP.get(Path(path).suffix.lower(), "other")


def is_eligible(name: str | Path, extensions: Optional[Iterable[str]] = None) -> bool:
    """True when the extension of *name* is one of *extensions*."""

    allowed = {ext.lower() for ext in (extensions if extensions is not None else (".md", ".mdx"))}
    return Path(name).suffix.lower() in allowed


__all__ = ["detect_type", "is_eligible"]
