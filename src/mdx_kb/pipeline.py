# SPDX-License-Identifier: AGPL-3.0-or-later
"""High level conversion pipeline wiring the repair, parse and record stages."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .diagnostics import Diagnostics
from .distributed import run_ordered
from .fallback import fallback_convert
from .loaders import load_document
from .metadata import extract_metadata
from .models import RawDocument
from .normalize import normalize_tree
from .parsers import parse_markup
from .records import build_record, format_record
from .repair import default_rules, repair_syntax
from .schema import Diagnostic, NormalizedRecord
from .settings import AdapterSettings, PipelineSettings, get_settings
from .sniff import is_eligible
from .stringify import stringify
from .validity import check_syntax

logger = logging.getLogger(__name__)

BatchItem = Union[RawDocument, Tuple[str, Union[str, bytes]], str, Path]


@dataclass
class PipelineMetrics:
    """Track step durations during a single conversion."""

    start: float = field(default_factory=time.perf_counter)
    last_checkpoint: float = field(init=False)
    metadata_ms: float = 0.0
    repair_ms: float = 0.0
    parse_ms: float = 0.0

    def __post_init__(self) -> None:
        self.last_checkpoint = self.start

    def checkpoint(self) -> float:
        now = time.perf_counter()
        elapsed = (now - self.last_checkpoint) * 1000.0
        self.last_checkpoint = now
        return elapsed

    def spent_ms(self) -> float:
        return (time.perf_counter() - self.start) * 1000.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "metadata_ms": round(self.metadata_ms, 2),
            "repair_ms": round(self.repair_ms, 2),
            "parse_ms": round(self.parse_ms, 2),
            "total_ms": round(self.spent_ms(), 2),
        }


@dataclass
class ConversionResult:
    """Outcome of converting one document: a record or ``None`` plus events."""

    name: str
    record: Optional[NormalizedRecord]
    diagnostics: List[Diagnostic] = field(default_factory=list)
    used_fallback: bool = False
    metrics: Dict[str, float] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.record is not None


@dataclass
class BatchResult:
    """Records in input order plus the names of skipped documents."""

    records: List[NormalizedRecord] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    results: List[ConversionResult] = field(default_factory=list)


def render_primary(
    body: str, settings: PipelineSettings, diagnostics: Optional[Diagnostics] = None
) -> str:
    """Parse, normalise and stringify *body*; errors propagate to the caller."""

    tree = parse_markup(body)
    normalize_tree(tree, settings, diagnostics)
    return stringify(tree)


class DocumentConverter:
    """Convert single documents; never raises out of :meth:`convert`."""

    def __init__(self, settings: Optional[AdapterSettings] = None) -> None:
        self.settings = settings or get_settings()
        pipeline = self.settings.pipeline
        self._rules = default_rules(
            script_marker=pipeline.script_marker,
            style_marker=pipeline.style_marker,
        )

    def convert(
        self, document: RawDocument | str | bytes, name: Optional[str] = None
    ) -> ConversionResult:
        raw = _coerce_document(document, name)
        diagnostics = Diagnostics(raw.name)
        metrics = PipelineMetrics()
        record: Optional[NormalizedRecord] = None
        used_fallback = False
        try:
            record, used_fallback = self._convert(raw, diagnostics, metrics)
        except Exception as exc:
            logger.exception("unexpected failure converting %s", raw.name)
            diagnostics.error("pipeline", f"conversion failed: {exc}")
        if record is None:
            diagnostics.error("pipeline", "document skipped: no record produced")
        return ConversionResult(
            name=raw.name,
            record=record,
            diagnostics=list(diagnostics),
            used_fallback=used_fallback,
            metrics=metrics.to_dict(),
        )

    def _convert(
        self, raw: RawDocument, diagnostics: Diagnostics, metrics: PipelineMetrics
    ) -> Tuple[Optional[NormalizedRecord], bool]:
        text = raw.text()
        try:
            metadata, body = extract_metadata(text, diagnostics)
        except Exception as exc:
            diagnostics.warning("metadata", f"metadata extraction failed: {exc}")
            metadata, body = {}, text
        metrics.metadata_ms = metrics.checkpoint()

        repaired = repair_syntax(body, rules=self._rules, diagnostics=diagnostics)
        metrics.repair_ms = metrics.checkpoint()

        content: Optional[str] = None
        if check_syntax(repaired, diagnostics):
            try:
                content = render_primary(repaired, self.settings.pipeline, diagnostics)
            except Exception as exc:
                diagnostics.warning("parse", f"primary parse failed: {type(exc).__name__}: {exc}")
        used_fallback = content is None
        if used_fallback:
            diagnostics.warning("fallback", "switching to the degraded parse path")
            content = fallback_convert(repaired, diagnostics)
        metrics.parse_ms = metrics.checkpoint()

        record = build_record(
            metadata,
            content,
            defaults=self.settings.defaults,
            diagnostics=diagnostics,
        )
        return record, used_fallback


def _coerce_document(document: RawDocument | str | bytes, name: Optional[str]) -> RawDocument:
    if isinstance(document, RawDocument):
        return document
    if isinstance(document, (str, bytes)):
        return RawDocument(name=name or "<document>", data=document)
    raise TypeError(f"cannot convert object of type {type(document).__name__}")


def convert(
    document: RawDocument | str | bytes,
    *,
    name: Optional[str] = None,
    settings: Optional[AdapterSettings] = None,
) -> ConversionResult:
    """Convert a single document (text, bytes or :class:`RawDocument`)."""

    return DocumentConverter(settings).convert(document, name=name)


def _item_name(item: BatchItem) -> str:
    if isinstance(item, RawDocument):
        return item.name
    if isinstance(item, tuple):
        return str(item[0])
    return Path(item).name


def _build_worker(converter: DocumentConverter):
    max_size_mb = converter.settings.pipeline.max_size_mb

    def _worker(item: BatchItem) -> ConversionResult:
        if isinstance(item, (str, Path)):
            try:
                item = load_document(item, max_size_mb=max_size_mb)
            except (OSError, ValueError) as exc:
                diagnostics = Diagnostics(Path(item).name)
                diagnostics.error("boundary", f"could not read {item}: {exc}")
                return ConversionResult(
                    name=diagnostics.document, record=None, diagnostics=list(diagnostics)
                )
        elif isinstance(item, tuple):
            name, data = item
            item = RawDocument(name=str(name), data=data)
        return converter.convert(item)

    return _worker


def _failed_result(item: BatchItem, exc: Exception) -> ConversionResult:
    diagnostics = Diagnostics(_item_name(item))
    diagnostics.error("pipeline", f"worker crashed: {type(exc).__name__}: {exc}")
    return ConversionResult(name=diagnostics.document, record=None, diagnostics=list(diagnostics))


def batch_convert(
    items: Iterable[BatchItem],
    *,
    settings: Optional[AdapterSettings] = None,
    concurrency: int = 0,
    backend: str | None = None,
    format: bool = False,
) -> BatchResult:
    """Convert many documents; records come back in input order.

    Items may be :class:`RawDocument` objects, ``(name, data)`` tuples, or
    filesystem paths (``str``/``Path``). Files whose extension is not eligible
    are rejected before conversion. One document failing never aborts the
    batch.
    """

    settings = settings or get_settings()
    eligible_extensions = settings.pipeline.eligible_extensions
    batch = BatchResult()
    accepted: List[BatchItem] = []
    for item in items:
        name = _item_name(item)
        if not is_eligible(name, eligible_extensions):
            diagnostics = Diagnostics(name)
            diagnostics.warning(
                "boundary",
                f"rejected: extension not in {', '.join(eligible_extensions)}",
            )
            batch.rejected.append(name)
            batch.diagnostics.extend(diagnostics)
            continue
        accepted.append(item)

    dist_settings = settings.distributed
    worker_count = concurrency if concurrency > 0 else (dist_settings.max_workers or 0)
    results = run_ordered(
        _build_worker(DocumentConverter(settings)),
        accepted,
        backend=backend or dist_settings.default_backend,
        workers=worker_count,
        on_error=_failed_result,
    )

    for result in results:
        batch.results.append(result)
        batch.diagnostics.extend(result.diagnostics)
        if result.record is None:
            batch.failed.append(result.name)
            continue
        batch.records.append(format_record(result.record) if format else result.record)
    logger.info(
        "batch finished: %d record(s), %d failed, %d rejected",
        len(batch.records),
        len(batch.failed),
        len(batch.rejected),
    )
    return batch


__all__ = [
    "BatchResult",
    "ConversionResult",
    "DocumentConverter",
    "PipelineMetrics",
    "batch_convert",
    "convert",
    "render_primary",
]
