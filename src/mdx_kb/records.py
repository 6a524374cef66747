# SPDX-License-Identifier: AGPL-3.0-or-later
"""Assemble knowledge-base records from metadata and reduced text."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Mapping, Optional

from .diagnostics import Diagnostics
from .schema import NormalizedRecord, RecordMeta, dedupe_tags, utc_now_iso
from .settings import RecordDefaults


def _text_or_default(value: Any, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(item) for item in value)
    text = str(value).strip()
    return text or default


def normalize_tags(value: Any) -> List[str]:
    """Coerce a ``tags`` metadata value into an ordered, de-duplicated list."""

    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
    else:
        items = [value]
    tags = [str(item).strip() for item in items if item is not None]
    return dedupe_tags(tag for tag in tags if tag)


def normalize_timestamp(value: Any, diagnostics: Optional[Diagnostics] = None) -> str:
    """Return an ISO-8601 timestamp for a ``date`` metadata value.

    Missing values become the current time. Naive values are taken as UTC.
    """

    if value is None or (isinstance(value, str) and not value.strip()):
        return utc_now_iso()
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime.combine(value, time.min)
    else:
        raw = str(value).strip()
        try:
            moment = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            if diagnostics is not None:
                diagnostics.warning("record", f"unparsable date {raw!r}; using current time")
            return utc_now_iso()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat()


def build_record(
    metadata: Optional[Mapping[str, Any]],
    content: Optional[str],
    *,
    defaults: Optional[RecordDefaults] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> Optional[NormalizedRecord]:
    """Combine *metadata* and *content* into a record with defaults applied.

    Returns ``None`` only when there is neither metadata nor content, which
    tells the caller there is nothing to record for the document.
    """

    if not metadata and content is None:
        if diagnostics is not None:
            diagnostics.error("record", "no metadata and no content; nothing to record")
        return None
    defaults = defaults or RecordDefaults()
    meta: Mapping[str, Any] = metadata or {}
    return NormalizedRecord(
        title=_text_or_default(meta.get("title"), defaults.title),
        content=content or "",
        tags=normalize_tags(meta.get("tags")),
        category=_text_or_default(meta.get("category"), defaults.category),
        metadata=RecordMeta(
            created_at=normalize_timestamp(meta.get("date"), diagnostics),
            author=_text_or_default(meta.get("author"), defaults.author),
        ),
    )


def format_record(record: NormalizedRecord | Dict[str, Any]) -> NormalizedRecord:
    """Tidy a record: trim every text field and drop empty tags."""

    if not isinstance(record, NormalizedRecord):
        record = NormalizedRecord.model_validate(record)
    tags = dedupe_tags(tag.strip() for tag in record.tags if tag.strip())
    return record.model_copy(
        update={
            "title": record.title.strip(),
            "content": record.content.strip(),
            "tags": tags,
            "category": record.category.strip(),
            "metadata": record.metadata.model_copy(
                update={"author": record.metadata.author.strip()}
            ),
        }
    )


__all__ = ["build_record", "format_record", "normalize_tags", "normalize_timestamp"]
