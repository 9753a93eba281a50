"""Tests for Health data store adapters."""

import json
from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from health_export.catalog import BODY_MASS, lookup
from health_export.config import StoreSettings
from health_export.store import (
    AutoExportStore,
    HealthSample,
    XMLExportStore,
    category_value_code,
    create_store,
    match_metric_name,
    normalize_payload,
    parse_health_date,
)

STEPS = lookup("quantity.HKQuantityTypeIdentifierStepCount")
HEART_RATE = lookup("quantity.HKQuantityTypeIdentifierHeartRate")
HEIGHT = lookup("quantity.HKQuantityTypeIdentifierHeight")
SLEEP = lookup("category.HKCategoryTypeIdentifierSleepAnalysis")


class TestDates:
    """Tests for Health timestamp parsing."""

    def test_export_format(self):
        parsed = parse_health_date("2022-06-12 23:59:00 +0400")
        assert parsed == datetime(2022, 6, 12, 19, 59, tzinfo=UTC)

    def test_iso_format(self):
        assert parse_health_date("2024-01-15T10:30:00+00:00") == datetime(
            2024, 1, 15, 10, 30, tzinfo=UTC
        )

    def test_naive_is_utc(self):
        assert parse_health_date("2024-01-15T10:30:00").tzinfo is UTC

    def test_sample_accepts_strings_and_naive_datetimes(self):
        sample = HealthSample(
            start_date="2024-01-15 08:00:00 +0000",
            end_date=datetime(2024, 1, 15, 9, 0),
            value=1,
        )
        assert sample.start_date == datetime(2024, 1, 15, 8, 0, tzinfo=UTC)
        assert sample.end_date.tzinfo is UTC
        assert sample.date == sample.start_date


def test_category_value_codes():
    assert category_value_code("HKCategoryValueSleepAnalysisInBed") == 0.0
    assert category_value_code("HKCategoryValueSleepAnalysisAsleepREM") == 5.0
    assert category_value_code("3") == 3.0
    assert category_value_code(2) == 2.0
    assert category_value_code("HKCategoryValueSomethingNew") == 0.0


class TestXMLExportStore:
    """Tests for export.xml reading."""

    def test_authorization_requires_file(self, export_xml, tmp_path):
        assert XMLExportStore(export_xml).request_authorization({BODY_MASS}) is True
        assert XMLExportStore(tmp_path / "missing.xml").request_authorization({BODY_MASS}) is False

    def test_most_recent_sample_is_converted(self, export_xml):
        store = XMLExportStore(export_xml)

        # 160 lb recorded on Jan 15 is the latest by start date
        assert store.fetch_most_recent_sample(BODY_MASS) == pytest.approx(72.5748, rel=1e-4)

    def test_history_sorted_ascending(self, export_xml):
        history = XMLExportStore(export_xml).fetch_history(BODY_MASS)

        assert [s.start_date.day for s in history] == [10, 12, 15]
        assert history[0].value == pytest.approx(72.4)

    def test_history_date_bounds(self, export_xml):
        store = XMLExportStore(export_xml)

        history = store.fetch_history(
            BODY_MASS,
            start=datetime(2024, 1, 11, tzinfo=UTC),
            end=datetime(2024, 1, 12, 8, 0, tzinfo=UTC),
        )

        assert len(history) == 1
        assert history[0].value == pytest.approx(72.0)

    def test_category_record(self, export_xml):
        history = XMLExportStore(export_xml).fetch_history(SLEEP)

        assert len(history) == 1
        assert history[0].value == 4.0
        assert history[0].end_date == datetime(2024, 1, 15, 2, 0, tzinfo=UTC)

    def test_quantity_with_metadata_children(self, export_xml):
        history = XMLExportStore(export_xml).fetch_history(STEPS)
        assert [s.value for s in history] == [1523.0]

    def test_unconvertible_unit_is_skipped(self, export_xml):
        assert XMLExportStore(export_xml).fetch_history(HEIGHT) == []

    def test_missing_type_returns_empty(self, export_xml):
        store = XMLExportStore(export_xml)

        assert store.fetch_most_recent_sample(HEART_RATE) is None
        assert store.fetch_history(HEART_RATE) == []

    def test_malformed_file_keeps_parsed_records(self, tmp_path):
        path = tmp_path / "export.xml"
        path.write_text(
            "<HealthData>"
            '<Record type="HKQuantityTypeIdentifierBodyMass" unit="kg" '
            'startDate="2024-01-10 08:00:00 +0000" endDate="2024-01-10 08:00:00 +0000" value="70"/>'
            "<Record",
            encoding="utf-8",
        )

        assert XMLExportStore(path).fetch_most_recent_sample(BODY_MASS) == 70.0

    def test_unreadable_file_is_unavailable(self, export_xml):
        with patch("health_export.store.os.access", return_value=False):
            assert XMLExportStore(export_xml).request_authorization({BODY_MASS}) is False

    def test_read_error_gives_empty_results(self, export_xml):
        store = XMLExportStore(export_xml)

        with patch(
            "health_export.store.iterparse", side_effect=PermissionError("Permission denied")
        ):
            assert store.fetch_history(BODY_MASS) == []
            assert store.fetch_most_recent_sample(BODY_MASS) is None


class TestAutoExport:
    """Tests for Health Auto Export JSON reading."""

    def test_match_metric_names(self):
        assert match_metric_name("weight_body_mass") is BODY_MASS
        assert match_metric_name("body_mass") is BODY_MASS
        assert match_metric_name("bodyMass") is BODY_MASS
        assert match_metric_name("HKQuantityTypeIdentifierBodyMass") is BODY_MASS
        assert match_metric_name("step_count") is STEPS
        assert match_metric_name("sleep_analysis") is SLEEP
        assert match_metric_name("not_a_metric") is None

    def test_normalize_rest_format(self, sample_body_mass_payload):
        items = normalize_payload(sample_body_mass_payload)

        assert len(items) == 3
        assert items[0]["name"] == "weight_body_mass"
        assert items[0]["units"] == "kg"
        assert items[2]["name"] == "heart_rate"

    def test_normalize_flat_and_single_formats(self):
        flat = {"source": "iPhone", "data": [{"name": "step_count", "qty": 10}]}
        single = {"name": "step_count", "qty": 10}

        assert normalize_payload(flat) == [{"source": "iPhone", "name": "step_count", "qty": 10}]
        assert normalize_payload(single) == [single]

    def test_reads_directory(self, tmp_path, sample_body_mass_payload):
        (tmp_path / "2024-01-12.json").write_text(json.dumps(sample_body_mass_payload))
        store = AutoExportStore(tmp_path)

        assert store.request_authorization({BODY_MASS}) is True
        assert store.fetch_most_recent_sample(BODY_MASS) == pytest.approx(72.0)
        assert [s.value for s in store.fetch_history(HEART_RATE)] == [64.0]

    def test_overlapping_files_are_deduplicated(self, tmp_path, sample_body_mass_payload):
        (tmp_path / "a.json").write_text(json.dumps(sample_body_mass_payload))
        (tmp_path / "b.json").write_text(json.dumps(sample_body_mass_payload))

        history = AutoExportStore(tmp_path).fetch_history(BODY_MASS)

        assert len(history) == 2

    def test_unreadable_file_is_skipped(self, tmp_path, sample_body_mass_payload):
        (tmp_path / "bad.json").write_text("{not json")
        (tmp_path / "good.json").write_text(json.dumps(sample_body_mass_payload))

        assert len(AutoExportStore(tmp_path).fetch_history(BODY_MASS)) == 2

    def test_unit_conversion(self, tmp_path):
        payload = {
            "data": {
                "metrics": [
                    {
                        "name": "weight_body_mass",
                        "units": "lbs",
                        "data": [{"date": "2024-01-10 08:00:00 +0000", "qty": 100}],
                    }
                ]
            }
        }
        (tmp_path / "lbs.json").write_text(json.dumps(payload))

        value = AutoExportStore(tmp_path).fetch_most_recent_sample(BODY_MASS)

        assert value == pytest.approx(45.359237)

    def test_sleep_category_entries(self, tmp_path):
        payload = {
            "data": [
                {
                    "name": "sleep_analysis",
                    "startDate": "2024-01-14 23:00:00 +0000",
                    "endDate": "2024-01-15 02:00:00 +0000",
                    "value": "HKCategoryValueSleepAnalysisAsleepCore",
                }
            ]
        }
        (tmp_path / "sleep.json").write_text(json.dumps(payload))

        history = AutoExportStore(tmp_path).fetch_history(SLEEP)

        assert len(history) == 1
        assert history[0].value == 3.0

    def test_average_used_when_qty_missing(self, tmp_path):
        payload = {
            "data": {
                "metrics": [
                    {
                        "name": "heart_rate",
                        "units": "count/min",
                        "data": [
                            {"date": "2024-01-12 09:00:00 +0000", "Min": 58, "Avg": 64, "Max": 71}
                        ],
                    }
                ]
            }
        }
        (tmp_path / "hr.json").write_text(json.dumps(payload))

        assert AutoExportStore(tmp_path).fetch_most_recent_sample(HEART_RATE) == 64.0

    def test_unreadable_directory_is_unavailable(self, tmp_path):
        with patch("health_export.store.os.access", return_value=False):
            assert AutoExportStore(tmp_path).request_authorization({BODY_MASS}) is False

    def test_missing_directory_is_unavailable(self, tmp_path):
        store = AutoExportStore(tmp_path / "nope")

        assert store.request_authorization({BODY_MASS}) is False
        assert store.fetch_history(BODY_MASS) == []


def test_create_store_by_format(tmp_path):
    xml_store = create_store(StoreSettings(export_path=tmp_path / "export.xml"))
    auto_store = create_store(StoreSettings(export_path=tmp_path, format="auto_export"))

    assert isinstance(xml_store, XMLExportStore)
    assert isinstance(auto_store, AutoExportStore)
