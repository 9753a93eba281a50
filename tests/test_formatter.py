"""Tests for JSON and CSV formatting."""

import json
from datetime import UTC, datetime, timedelta, timezone

from health_export.catalog import BODY_MASS, lookup
from health_export.formatter import (
    format_csv,
    format_latest_json,
    iso8601,
    merge_csv,
    parse_csv,
)
from health_export.store import HealthSample

SLEEP = lookup("category.HKCategoryTypeIdentifierSleepAnalysis")


def _sample(day: int, value: float, hours: int = 0) -> HealthSample:
    start = datetime(2024, 1, day, 8, 0, tzinfo=UTC)
    return HealthSample(start_date=start, end_date=start + timedelta(hours=hours), value=value)


def test_iso8601_converts_to_utc():
    local = datetime(2024, 1, 15, 10, 30, 45, 123456, tzinfo=timezone(timedelta(hours=2)))

    assert iso8601(local) == "2024-01-15T08:30:45Z"
    assert iso8601(datetime(2024, 1, 15, 8, 0)) == "2024-01-15T08:00:00Z"


def test_latest_json():
    text = format_latest_json(72.4, datetime(2024, 1, 15, 8, 0, tzinfo=UTC))

    assert json.loads(text) == {"date": "2024-01-15T08:00:00Z", "weight": 72.4}
    assert text.startswith("{\n  ")


def test_quantity_csv():
    text = format_csv(BODY_MASS, [_sample(10, 72.4), _sample(12, 72.0)])

    assert text == (
        "date,value\n"
        "2024-01-10T08:00:00Z,72.4000\n"
        "2024-01-12T08:00:00Z,72.0000\n"
    )


def test_category_csv():
    text = format_csv(SLEEP, [_sample(14, 4, hours=3)])

    assert text == "start_date,end_date,value\n2024-01-14T08:00:00Z,2024-01-14T11:00:00Z,4.0000\n"


def test_empty_csv_has_header_only():
    assert format_csv(BODY_MASS, []) == "date,value\n"


def test_parse_csv_drops_blank_lines():
    header, rows = parse_csv("date,value\r\n\n2024-01-10T08:00:00Z,72.4000\n\n")

    assert header == "date,value"
    assert rows == ["2024-01-10T08:00:00Z,72.4000"]
    assert parse_csv("") == ("", [])


class TestMergeCsv:
    """Tests for merging an existing remote CSV into new content."""

    def test_new_rows_win_and_result_is_sorted(self):
        existing = (
            "date,value\n"
            "2024-01-05T08:00:00Z,73.0000\n"
            "2024-01-10T08:00:00Z,72.9000\n"
        )
        new = (
            "date,value\n"
            "2024-01-10T08:00:00Z,72.4000\n"
            "2024-01-12T08:00:00Z,72.0000\n"
        )

        assert merge_csv(existing, new) == (
            "date,value\n"
            "2024-01-05T08:00:00Z,73.0000\n"
            "2024-01-10T08:00:00Z,72.4000\n"
            "2024-01-12T08:00:00Z,72.0000\n"
        )

    def test_category_rows_keyed_by_start_and_end(self):
        existing = "start_date,end_date,value\n2024-01-14T23:00:00Z,2024-01-15T01:00:00Z,3.0000\n"
        new = "start_date,end_date,value\n2024-01-14T23:00:00Z,2024-01-15T02:00:00Z,4.0000\n"

        _, rows = parse_csv(merge_csv(existing, new))

        assert len(rows) == 2

    def test_header_mismatch_keeps_new(self):
        new = "date,value\n2024-01-10T08:00:00Z,72.4000\n"
        assert merge_csv("timestamp,kg\n2024-01-01,70\n", new) == new

    def test_empty_new_keeps_existing(self):
        existing = "date,value\n2024-01-10T08:00:00Z,72.4000\n"
        assert merge_csv(existing, "") == existing
