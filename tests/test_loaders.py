# SPDX-License-Identifier: AGPL-3.0-or-later
from __future__ import annotations

import codecs
from pathlib import Path

import pytest

from mdx_kb.loaders import decode_best_effort, expand_paths, load_document
from mdx_kb.sniff import detect_type, is_eligible


def test_load_document_reads_text(tmp_path: Path) -> None:
    source = tmp_path / "guide.mdx"
    source.write_bytes(codecs.BOM_UTF8 + "# Título\n".encode("utf-8"))

    document = load_document(source)

    assert document.name == "guide.mdx"
    assert document.source == source
    assert document.text() == "# Título\n"


def test_load_document_keeps_undecodable_bytes(tmp_path: Path) -> None:
    source = tmp_path / "broken.md"
    source.write_bytes(b"ok \xff\xfe done")

    document = load_document(source)

    assert isinstance(document.data, bytes)
    assert document.text() == "ok  done"


def test_load_document_rejects_unusable_paths(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_document(tmp_path / "missing.md")
    with pytest.raises(IsADirectoryError):
        load_document(tmp_path)


def test_size_guard(tmp_path: Path) -> None:
    big = tmp_path / "big.md"
    big.write_bytes(b"x" * 2048)

    with pytest.raises(ValueError, match="too large"):
        load_document(big, max_size_mb=0.001)


def test_decode_best_effort_honours_utf16_bom() -> None:
    blob = codecs.BOM_UTF16_LE + "hi".encode("utf-16-le")
    assert decode_best_effort(blob) == "hi"


def test_expand_paths_filters_directories_only(tmp_path: Path) -> None:
    (tmp_path / "docs" / "deep").mkdir(parents=True)
    (tmp_path / "docs" / "b.md").write_text("b", encoding="utf-8")
    (tmp_path / "docs" / "deep" / "a.mdx").write_text("a", encoding="utf-8")
    (tmp_path / "docs" / "notes.txt").write_text("n", encoding="utf-8")
    explicit = tmp_path / "explicit.txt"

    expanded = expand_paths([tmp_path / "docs", explicit])

    assert [path.name for path in expanded] == ["b.md", "a.mdx", "explicit.txt"]


@pytest.mark.parametrize(
    ("name", "kind", "eligible"),
    [
        ("readme.md", "md", True),
        ("Page.MDX", "mdx", True),
        ("notes.markdown", "md", False),
        ("data.json", "other", False),
        ("noext", "other", False),
    ],
)
def test_sniff(name: str, kind: str, eligible: bool) -> None:
    assert detect_type(name) == kind
    assert is_eligible(name) is eligible
