# SPDX-License-Identifier: AGPL-3.0-or-later
"""Public interface for :mod:`mdx_kb` with lightweight imports."""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any, Dict, Tuple

__all__ = [
    "AdapterSettings",
    "BatchResult",
    "ConversionResult",
    "Diagnostic",
    "DocumentConverter",
    "NormalizedRecord",
    "RawDocument",
    "SyntaxTree",
    "batch_convert",
    "build_record",
    "check_syntax",
    "convert",
    "extract_metadata",
    "fallback_convert",
    "format_record",
    "get_settings",
    "normalize_tree",
    "parse_markup",
    "reduce_to_plain_text",
    "repair_syntax",
    "stringify",
    "write_jsonl",
]

_LAZY_ATTRS: Dict[str, Tuple[str, str]] = {
    "AdapterSettings": (".settings", "AdapterSettings"),
    "BatchResult": (".pipeline", "BatchResult"),
    "ConversionResult": (".pipeline", "ConversionResult"),
    "Diagnostic": (".schema", "Diagnostic"),
    "DocumentConverter": (".pipeline", "DocumentConverter"),
    "NormalizedRecord": (".schema", "NormalizedRecord"),
    "RawDocument": (".models", "RawDocument"),
    "SyntaxTree": (".tree", "SyntaxTree"),
    "batch_convert": (".pipeline", "batch_convert"),
    "build_record": (".records", "build_record"),
    "check_syntax": (".validity", "check_syntax"),
    "convert": (".pipeline", "convert"),
    "extract_metadata": (".metadata", "extract_metadata"),
    "fallback_convert": (".fallback", "fallback_convert"),
    "format_record": (".records", "format_record"),
    "get_settings": (".settings", "get_settings"),
    "normalize_tree": (".normalize", "normalize_tree"),
    "parse_markup": (".parsers", "parse_markup"),
    "reduce_to_plain_text": (".stringify", "reduce_to_plain_text"),
    "repair_syntax": (".repair", "repair_syntax"),
    "stringify": (".stringify", "stringify"),
    "write_jsonl": (".writer", "write_jsonl"),
}

if TYPE_CHECKING:  # pragma: no cover - import-time only for type checkers
    from .fallback import fallback_convert
    from .metadata import extract_metadata
    from .models import RawDocument
    from .normalize import normalize_tree
    from .parsers import parse_markup
    from .pipeline import BatchResult, ConversionResult, DocumentConverter, batch_convert, convert
    from .records import build_record, format_record
    from .repair import repair_syntax
    from .schema import Diagnostic, NormalizedRecord
    from .settings import AdapterSettings, get_settings
    from .stringify import reduce_to_plain_text, stringify
    from .tree import SyntaxTree
    from .validity import check_syntax
    from .writer import write_jsonl


def __getattr__(name: str) -> Any:
    try:
        module_name, attr_name = _LAZY_ATTRS[name]
    except KeyError as exc:
        raise AttributeError(name) from exc
    module = import_module(module_name, package=__name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:  # pragma: no cover - simple delegation
    return sorted(__all__)
