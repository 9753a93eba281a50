"""JSON and CSV formatting of Health samples."""

import json
from collections.abc import Iterable
from datetime import UTC, datetime

from .catalog import HealthDataKind, HealthDataType
from .store import HealthSample


def iso8601(value: datetime) -> str:
    """Format as UTC ISO 8601 with second precision, e.g. ``2024-01-15T08:00:00Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_latest_json(value: float, at: datetime, field: str = "weight") -> str:
    """Pretty-printed JSON document for a single latest value."""
    return json.dumps({"date": iso8601(at), field: value}, indent=2)


def format_value(value: float) -> str:
    return f"{value:.4f}"


def format_row(data_type: HealthDataType, sample: HealthSample) -> str:
    """One CSV row (without newline) for a sample."""
    if data_type.kind is HealthDataKind.QUANTITY:
        return f"{iso8601(sample.start_date)},{format_value(sample.value)}"
    return f"{iso8601(sample.start_date)},{iso8601(sample.end_date)},{format_value(sample.value)}"


def format_csv(data_type: HealthDataType, samples: Iterable[HealthSample]) -> str:
    """CSV document: header line, then one newline-terminated row per sample."""
    lines = [data_type.csv_header]
    lines.extend(format_row(data_type, sample) for sample in samples)
    return "\n".join(lines) + "\n"


def parse_csv(text: str) -> tuple[str, list[str]]:
    """Split a CSV document into its header line and non-empty data rows."""
    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line]
    if not lines:
        return "", []
    return lines[0], lines[1:]


def _row_key(header: str, row: str) -> str:
    # Timestamp columns are every column but the trailing value
    key_columns = max(header.count(","), 1)
    return ",".join(row.split(",")[:key_columns])


def merge_csv(existing: str, new: str) -> str:
    """Merge rows of an existing CSV document into a new one.

    Rows are keyed by their timestamp columns; rows from ``new`` replace
    existing rows with the same key. The result is sorted by key. When the
    headers differ the existing document is discarded.
    """
    old_header, old_rows = parse_csv(existing)
    header, new_rows = parse_csv(new)
    if not header:
        return existing
    if old_header != header:
        return new

    merged = {_row_key(header, row): row for row in old_rows}
    merged.update((_row_key(header, row), row) for row in new_rows)
    lines = [header, *(merged[key] for key in sorted(merged))]
    return "\n".join(lines) + "\n"
