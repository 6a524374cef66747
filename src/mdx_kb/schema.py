# SPDX-License-Identifier: AGPL-3.0-or-later
"""Records and diagnostics emitted by the conversion pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def dedupe_tags(tags: Iterable[str]) -> List[str]:
    """Drop repeated tags, keeping first-seen order (case-sensitive)."""
    seen: Dict[str, None] = {}
    for tag in tags:
        seen.setdefault(tag, None)
    return list(seen)


# -------- Knowledge-base record --------

class RecordMeta(BaseModel):
    """Provenance block nested inside every record."""
    model_config = ConfigDict(populate_by_name=True)

    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")
    author: str = "Unknown"


class NormalizedRecord(BaseModel):
    """Plain-text knowledge-base entry produced for one document."""
    title: str = "Untitled"
    content: str = ""
    tags: List[str] = Field(default_factory=list)
    category: str = "General"
    metadata: RecordMeta = Field(default_factory=RecordMeta)

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, value: List[str]) -> List[str]:
        return dedupe_tags(value)

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serialisable mapping using the interchange key names."""

        return self.model_dump(by_alias=True)


# -------- Diagnostics --------

DiagnosticLevel = Literal["info", "warning", "error"]


class Diagnostic(BaseModel):
    """Non-fatal event raised while converting a single document."""
    document: str
    level: DiagnosticLevel = "info"
    stage: str
    message: str
