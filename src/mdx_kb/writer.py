"""Persist knowledge-base records and batch skip reports as JSON Lines."""

from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Mapping, TextIO, Union

from .schema import NormalizedRecord

Row = Union[NormalizedRecord, Mapping[str, object]]


def record_line(row: Row) -> str:
    """One JSON object using the interchange keys (``createdAt``)."""

    payload = row.to_dict() if isinstance(row, NormalizedRecord) else dict(row)
    return json.dumps(payload, ensure_ascii=False, default=str)


@contextmanager
def _open_destination(destination: str | Path | TextIO) -> Iterator[TextIO]:
    if isinstance(destination, (str, Path)):
        if str(destination) == "-":
            yield sys.stdout
            return
        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="\n") as handle:
            yield handle
        return
    if not hasattr(destination, "write"):
        raise TypeError("destination must be a path, '-', or a text IO handle")
    yield destination


def write_jsonl(rows: Iterable[Row], destination: str | Path | TextIO) -> int:
    """Write *rows* one per line and return how many were written.

    Handles passed in by the caller are left open.
    """

    written = 0
    with _open_destination(destination) as handle:
        for row in rows:
            handle.write(record_line(row) + "\n")
            written += 1
    return written


def write_skip_report(
    rejected: Iterable[str], failed: Iterable[str], stream: TextIO | None = None
) -> int:
    """Report skipped documents as ``{"document", "status"}`` lines."""

    entries = [{"document": name, "status": "rejected"} for name in rejected]
    entries += [{"document": name, "status": "failed"} for name in failed]
    return write_jsonl(entries, stream if stream is not None else sys.stderr)


__all__ = ["record_line", "write_jsonl", "write_skip_report"]
