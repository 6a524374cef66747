from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from mdx_kb.schema import NormalizedRecord, RecordMeta
from mdx_kb.writer import write_jsonl, write_skip_report


def test_write_jsonl_accepts_mappings(tmp_path: Path) -> None:
    destination = tmp_path / "nested" / "out.jsonl"
    payloads = [
        {"document": "a.md", "status": "failed"},
        {"document": "b.txt", "status": "rejected"},
    ]

    count = write_jsonl(payloads, destination)

    assert count == 2
    lines = destination.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line) for line in lines] == payloads


def test_write_jsonl_uses_interchange_keys() -> None:
    buffer = io.StringIO()
    record = NormalizedRecord(
        title="Café",
        content="body",
        tags=["a"],
        metadata=RecordMeta(created_at="2024-01-05T00:00:00+00:00", author="Ada"),
    )

    write_jsonl([record], buffer)

    line = buffer.getvalue().strip()
    assert "Café" in line
    assert json.loads(line) == {
        "title": "Café",
        "content": "body",
        "tags": ["a"],
        "category": "General",
        "metadata": {"createdAt": "2024-01-05T00:00:00+00:00", "author": "Ada"},
    }
    assert not buffer.closed


def test_skip_report_lists_rejected_before_failed() -> None:
    stream = io.StringIO()

    count = write_skip_report(["notes.txt"], ["broken.md"], stream)

    assert count == 2
    assert [json.loads(line) for line in stream.getvalue().splitlines()] == [
        {"document": "notes.txt", "status": "rejected"},
        {"document": "broken.md", "status": "failed"},
    ]


def test_unsupported_destination_is_rejected() -> None:
    with pytest.raises(TypeError):
        write_jsonl([{"a": 1}], 42)
