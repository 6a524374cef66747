# SPDX-License-Identifier: AGPL-3.0-or-later
from __future__ import annotations

from datetime import date, datetime, timezone

from mdx_kb.diagnostics import Diagnostics
from mdx_kb.records import build_record, format_record, normalize_tags, normalize_timestamp
from mdx_kb.schema import NormalizedRecord
from mdx_kb.settings import RecordDefaults


def test_defaults_fill_missing_fields() -> None:
    record = build_record({}, "Some text")

    assert record is not None
    assert record.title == "Untitled"
    assert record.category == "General"
    assert record.metadata.author == "Unknown"
    assert record.tags == []
    created = datetime.fromisoformat(record.metadata.created_at)
    assert abs((datetime.now(timezone.utc) - created).total_seconds()) < 5


def test_blank_values_fall_back_to_configured_defaults() -> None:
    defaults = RecordDefaults(title="Draft", category="Inbox", author="Docs Team")
    record = build_record({"title": "   ", "author": None}, "x", defaults=defaults)

    assert record.title == "Draft"
    assert record.category == "Inbox"
    assert record.metadata.author == "Docs Team"


def test_tags_are_deduplicated_in_first_seen_order() -> None:
    record = build_record({"tags": ["a", "b", "a"]}, "")
    assert record.tags == ["a", "b"]
    assert normalize_tags("x, y , x,") == ["x", "y"]
    assert normalize_tags(["A", "a", 3, None]) == ["A", "a", "3"]
    assert normalize_tags("solo") == ["solo"]


def test_nothing_to_record_returns_none() -> None:
    diagnostics = Diagnostics("empty.md")
    assert build_record({}, None, diagnostics=diagnostics) is None
    assert build_record(None, None) is None
    assert diagnostics.has_errors


def test_empty_content_still_produces_a_record() -> None:
    assert build_record({}, "") is not None
    record = build_record({"title": "Only metadata"}, None)
    assert record.title == "Only metadata"
    assert record.content == ""


def test_dates_are_normalised_to_iso_timestamps() -> None:
    assert normalize_timestamp(date(2024, 1, 5)) == "2024-01-05T00:00:00+00:00"
    assert normalize_timestamp("2024-03-01T10:00:00Z") == "2024-03-01T10:00:00+00:00"
    assert normalize_timestamp(datetime(2024, 3, 1, 8, 30)) == "2024-03-01T08:30:00+00:00"

    diagnostics = Diagnostics("doc.md")
    fallback = normalize_timestamp("next tuesday", diagnostics)
    assert datetime.fromisoformat(fallback).tzinfo is not None
    assert diagnostics.by_level("warning")


def test_record_serialises_with_interchange_keys() -> None:
    record = build_record({"date": "2024-02-02", "author": "Ada"}, "text")
    payload = record.to_dict()
    assert payload["metadata"] == {"createdAt": "2024-02-02T00:00:00+00:00", "author": "Ada"}
    assert set(payload) == {"title", "content", "tags", "category", "metadata"}


def test_format_record_trims_fields_and_drops_empty_tags() -> None:
    record = NormalizedRecord(
        title="  Title  ",
        content="\n body \n",
        tags=[" a ", "", "a", "b "],
        category=" Notes ",
    )
    formatted = format_record(record)

    assert formatted.title == "Title"
    assert formatted.content == "body"
    assert formatted.tags == ["a", "b"]
    assert formatted.category == "Notes"
    assert format_record(formatted.to_dict()) == formatted
