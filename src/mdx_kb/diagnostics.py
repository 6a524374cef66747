# SPDX-License-Identifier: AGPL-3.0-or-later
"""Per-document diagnostics channel mirrored to the standard logger."""

from __future__ import annotations

import logging
from typing import Iterator, List

from .schema import Diagnostic, DiagnosticLevel

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class Diagnostics:
    """Collect events for one document; every event is also logged."""

    def __init__(self, document: str) -> None:
        self.document = document
        self.events: List[Diagnostic] = []

    def emit(self, level: DiagnosticLevel, stage: str, message: str) -> Diagnostic:
        event = Diagnostic(document=self.document, level=level, stage=stage, message=message)
        self.events.append(event)
        logger.log(_LOG_LEVELS[level], "[%s] %s: %s", self.document, stage, message)
        return event

    def info(self, stage: str, message: str) -> Diagnostic:
        return self.emit("info", stage, message)

    def warning(self, stage: str, message: str) -> Diagnostic:
        return self.emit("warning", stage, message)

    def error(self, stage: str, message: str) -> Diagnostic:
        return self.emit("error", stage, message)

    def by_level(self, level: DiagnosticLevel) -> List[Diagnostic]:
        return [event for event in self.events if event.level == level]

    @property
    def has_errors(self) -> bool:
        return any(event.level == "error" for event in self.events)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.events)

    def __len__(self) -> int:
        return len(self.events)


__all__ = ["Diagnostics"]
