# SPDX-License-Identifier: AGPL-3.0-or-later
"""Read raw documents from disk for the conversion pipeline."""

from __future__ import annotations

import codecs
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from .models import RawDocument
from .sniff import is_eligible

logger = logging.getLogger(__name__)

_BOMS: Tuple[Tuple[bytes, str], ...] = (
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)


def _size_guard(path: Path, max_size_mb: float) -> None:
    limit = int(max_size_mb * 1024 * 1024)
    sz = path.stat().st_size
    if sz > limit:
        raise ValueError(f"File too large: {sz} bytes > limit={limit} bytes")


def decode_best_effort(blob: bytes) -> str | bytes:
    """Decode *blob* as UTF-8 (or a BOM-declared encoding).

    Undecodable input is returned unchanged so the pipeline can drop the
    offending bytes itself.
    """

    for bom, encoding in _BOMS:
        if blob.startswith(bom):
            try:
                return blob.decode(encoding)
            except UnicodeDecodeError:
                break
    try:
        return blob.decode("utf-8")
    except UnicodeDecodeError:
        return blob


def load_document(path: str | Path, *, max_size_mb: float = 50.0) -> RawDocument:
    """Read *path* into a :class:`RawDocument`.

    Raises ``FileNotFoundError``/``IsADirectoryError`` for unusable paths and
    ``ValueError`` when the file exceeds *max_size_mb*.
    """

    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(f"No such file: {source}")
    if source.is_dir():
        raise IsADirectoryError(f"Expected a file, got a directory: {source}")
    _size_guard(source, max_size_mb)
    data = decode_best_effort(source.read_bytes())
    if isinstance(data, bytes):
        logger.debug("%s is not valid UTF-8; keeping raw bytes", source)
    return RawDocument(name=source.name, data=data, source=source)


def expand_paths(
    paths: Iterable[str | Path], extensions: Optional[Sequence[str]] = None
) -> List[Path]:
    """Expand directories recursively; explicit files are kept as given.

    Files found inside directories are filtered by *extensions* and sorted so
    batches are reproducible. Explicit file arguments are not filtered; the
    pipeline rejects them with a diagnostic instead.
    """

    expanded: List[Path] = []
    for entry in paths:
        candidate = Path(entry).expanduser()
        if candidate.is_dir():
            found = sorted(
                item
                for item in candidate.rglob("*")
                if item.is_file() and is_eligible(item, extensions)
            )
            expanded.extend(found)
        else:
            expanded.append(candidate)
    return expanded


__all__ = ["decode_best_effort", "expand_paths", "load_document"]
