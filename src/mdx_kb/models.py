# SPDX-License-Identifier: AGPL-3.0-or-later
"""Lightweight data structures passed between the loader and the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass(slots=True)
class RawDocument:
    """A caller-supplied document blob plus the filename used for diagnostics."""

    name: str
    data: str | bytes
    source: Optional[Path] = None

    @property
    def suffix(self) -> str:
        return Path(self.name).suffix.lower()

    def text(self) -> str:
        """Return the blob as text, dropping undecodable bytes."""

        if isinstance(self.data, bytes):
            return self.data.decode("utf-8", errors="ignore")
        return self.data

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "source": str(self.source) if self.source else None,
            "text": self.text(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawDocument":
        source = data.get("source")
        return cls(
            name=data["name"],
            data=data.get("text", ""),
            source=Path(source) if source else None,
        )
