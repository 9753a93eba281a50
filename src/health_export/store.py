"""Health data store adapters.

A store answers three questions for the export workflows: is the data
readable, what is the most recent value of a type, and what samples exist in
a date range. Two backends read the data the Health app hands out:

- ``XMLExportStore``: the ``export.xml`` from "Export All Health Data".
- ``AutoExportStore``: a directory of Health Auto Export JSON files.
"""

import json
import os
import re
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from xml.etree.ElementTree import ParseError, iterparse

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .catalog import HealthDataKind, HealthDataType, all_types, lookup_identifier
from .config import StoreSettings
from .types import JSONObject
from .units import UnitConversionError, convert

logger = structlog.get_logger(__name__)


# Regex to normalize Health export date format:
# "2022-06-12 23:59:00 +0400" -> "2022-06-12T23:59:00+04:00"
_DATE_SPACE_TZ_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\s(\d{2}:\d{2}:\d{2})\s([+-])(\d{2})(\d{2})$")


def _normalize_date(value: Any) -> Any:
    """Normalize date strings from Health export format to ISO 8601."""
    if not isinstance(value, str):
        return value
    m = _DATE_SPACE_TZ_RE.match(value.strip())
    if m:
        return f"{m[1]}T{m[2]}{m[3]}{m[4]}:{m[5]}"
    return value


def parse_health_date(value: str) -> datetime:
    """Parse a Health export timestamp into an aware datetime (naive means UTC)."""
    parsed = datetime.fromisoformat(_normalize_date(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class HealthSample(BaseModel):
    """One sample read from the store, in the catalog unit of its type."""

    model_config = ConfigDict(frozen=True)

    start_date: datetime = Field(description="Sample start")
    end_date: datetime = Field(description="Sample end")
    value: float = Field(description="Quantity value or category value code")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_health_date(v)
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def date(self) -> datetime:
        """Alias for the start date, which is what charts and CSV rows use."""
        return self.start_date


# HealthKit category value codes keyed by the symbolic names in export.xml
CATEGORY_VALUE_CODES: dict[str, int] = {
    "HKCategoryValueNotApplicable": 0,
    "HKCategoryValueSleepAnalysisInBed": 0,
    "HKCategoryValueSleepAnalysisAsleep": 1,
    "HKCategoryValueSleepAnalysisAsleepUnspecified": 1,
    "HKCategoryValueSleepAnalysisAwake": 2,
    "HKCategoryValueSleepAnalysisAsleepCore": 3,
    "HKCategoryValueSleepAnalysisAsleepDeep": 4,
    "HKCategoryValueSleepAnalysisAsleepREM": 5,
    "HKCategoryValueAppleStandHourStood": 0,
    "HKCategoryValueAppleStandHourIdle": 1,
    "HKCategoryValueMenstrualFlowUnspecified": 1,
    "HKCategoryValueMenstrualFlowLight": 2,
    "HKCategoryValueMenstrualFlowMedium": 3,
    "HKCategoryValueMenstrualFlowHeavy": 4,
    "HKCategoryValueMenstrualFlowNone": 5,
    "HKCategoryValueOvulationTestResultNegative": 1,
    "HKCategoryValueOvulationTestResultLuteinizingHormoneSurge": 2,
    "HKCategoryValueOvulationTestResultPositive": 2,
    "HKCategoryValueOvulationTestResultIndeterminate": 3,
    "HKCategoryValueOvulationTestResultEstrogenSurge": 4,
    "HKCategoryValueCervicalMucusQualityDry": 1,
    "HKCategoryValueCervicalMucusQualitySticky": 2,
    "HKCategoryValueCervicalMucusQualityCreamy": 3,
    "HKCategoryValueCervicalMucusQualityWatery": 4,
    "HKCategoryValueCervicalMucusQualityEggWhite": 5,
    "HKCategoryValueContraceptiveUnspecified": 1,
    "HKCategoryValueContraceptiveImplant": 2,
    "HKCategoryValueContraceptiveInjection": 3,
    "HKCategoryValueContraceptiveIntrauterineDevice": 4,
    "HKCategoryValueContraceptiveIntravaginalRing": 5,
    "HKCategoryValueContraceptiveOral": 6,
    "HKCategoryValueContraceptivePatch": 7,
}


def category_value_code(raw: Any) -> float:
    """Map a category value (symbolic or numeric) to its HealthKit code."""
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip()
    if text in CATEGORY_VALUE_CODES:
        return float(CATEGORY_VALUE_CODES[text])
    try:
        return float(text)
    except ValueError:
        logger.debug("unknown_category_value", value=text)
        return 0.0


def _to_sample(
    data_type: HealthDataType,
    start: Any,
    end: Any,
    raw_value: Any,
    unit: str | None,
) -> HealthSample | None:
    """Build a sample in catalog units, or None if the value is unusable."""
    try:
        if data_type.kind is HealthDataKind.CATEGORY:
            value = category_value_code(raw_value)
        else:
            value = convert(float(raw_value), unit, data_type.unit)
        return HealthSample(start_date=start, end_date=end or start, value=value)
    except UnitConversionError as e:
        logger.warning(
            "sample_unit_unsupported",
            type_id=data_type.id,
            unit=e.source,
            expected=e.target,
        )
    except (TypeError, ValueError) as e:
        logger.warning(
            "sample_parse_failed",
            type_id=data_type.id,
            error=str(e),
            error_type=type(e).__name__,
        )
    return None


class HealthStore(ABC):
    """Read access to Health samples.

    Subclasses provide ``is_available`` and ``_samples_for``; ordering and
    date filtering live here.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the underlying data can be read at all."""

    @abstractmethod
    def _samples_for(self, data_type: HealthDataType) -> list[HealthSample]:
        """All samples of a type, in any order."""

    def request_authorization(self, data_types: Iterable[HealthDataType]) -> bool:
        """Check read access for the given types.

        Returns False instead of raising when the store is unavailable.
        """
        type_ids = sorted(t.id for t in data_types)
        try:
            available = self.is_available()
        except OSError as e:
            logger.error("authorization_failed", error=str(e), types=type_ids)
            return False
        if not available:
            logger.warning("health_data_unavailable", store=self.__class__.__name__)
            return False
        logger.debug("authorization_granted", types=type_ids)
        return True

    def fetch_most_recent_sample(self, data_type: HealthDataType) -> float | None:
        """Value of the latest sample by start date, or None when there is none."""
        samples = self._samples_for(data_type)
        if not samples:
            return None
        return max(samples, key=lambda s: s.start_date).value

    def fetch_history(
        self,
        data_type: HealthDataType,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[HealthSample]:
        """Samples with ``start <= start_date <= end``, oldest first.

        Args:
            data_type: Type to read.
            start: Lower bound, or None for no lower bound.
            end: Upper bound, defaults to now.
        """
        if end is None:
            end = datetime.now(UTC)
        return sorted(
            (
                s
                for s in self._samples_for(data_type)
                if (start is None or s.start_date >= start) and s.start_date <= end
            ),
            key=lambda s: s.start_date,
        )


class XMLExportStore(HealthStore):
    """Reads ``<Record>`` elements from an Apple Health ``export.xml``.

    The file is stream-parsed once and indexed by record type; the whole
    export can be several hundred megabytes, so elements are cleared as they
    are consumed.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._index: dict[str, list[HealthSample]] | None = None
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return self._path.is_file() and os.access(self._path, os.R_OK)

    def _samples_for(self, data_type: HealthDataType) -> list[HealthSample]:
        return self._load_index().get(data_type.identifier, [])

    def _load_index(self) -> dict[str, list[HealthSample]]:
        with self._lock:
            if self._index is None:
                self._index = self._build_index()
            return self._index

    def _build_index(self) -> dict[str, list[HealthSample]]:
        index: dict[str, list[HealthSample]] = {}
        if not self.is_available():
            logger.warning("export_file_missing", path=str(self._path))
            return index

        count = 0
        try:
            for _, elem in iterparse(self._path, events=("end",)):
                if elem.tag == "Record":
                    sample_type = self._record_type(elem.attrib)
                    if sample_type is not None:
                        sample = _to_sample(
                            sample_type,
                            elem.attrib.get("startDate"),
                            elem.attrib.get("endDate"),
                            elem.attrib.get("value"),
                            elem.attrib.get("unit"),
                        )
                        if sample is not None:
                            index.setdefault(sample_type.identifier, []).append(sample)
                            count += 1
                    elem.clear()
        except ParseError as e:
            logger.error("export_parse_failed", path=str(self._path), error=str(e))
        except OSError as e:
            logger.error("export_read_failed", path=str(self._path), error=str(e))

        logger.info("export_indexed", path=str(self._path), samples=count, types=len(index))
        return index

    @staticmethod
    def _record_type(attrib: dict[str, str]) -> HealthDataType | None:
        identifier = attrib.get("type")
        if not identifier or not attrib.get("startDate"):
            return None
        return lookup_identifier(identifier)


def _snake_case(name: str) -> str:
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", "_", name).lower()


# Health Auto Export names that don't follow from the HealthKit identifier
AUTO_EXPORT_ALIASES: dict[str, str] = {
    "weight_body_mass": "BodyMass",
    "weight": "BodyMass",
    "body_fat": "BodyFatPercentage",
    "bmi": "BodyMassIndex",
    "heart_rate_variability": "HeartRateVariabilitySDNN",
    "hrv": "HeartRateVariabilitySDNN",
    "walking_heart_rate": "WalkingHeartRateAverage",
    "active_energy": "ActiveEnergyBurned",
    "basal_energy": "BasalEnergyBurned",
    "walking_running_distance": "DistanceWalkingRunning",
    "cycling_distance": "DistanceCycling",
    "dietary_energy": "DietaryEnergyConsumed",
    "carbohydrates": "DietaryCarbohydrates",
    "protein": "DietaryProtein",
    "total_fat": "DietaryFatTotal",
    "dietary_water": "DietaryWater",
    "blood_oxygen_saturation": "OxygenSaturation",
    "blood_oxygen": "OxygenSaturation",
    "exercise_time": "AppleExerciseTime",
    "stand_time": "AppleStandTime",
    "stand_hour": "AppleStandHour",
    "stair_speed_up": "StairAscentSpeed",
    "stair_speed_down": "StairDescentSpeed",
    "six_minute_walking_test_distance": "SixMinuteWalkTestDistance",
    "headphone_audio_levels": "HeadphoneAudioExposure",
    "environmental_audio_levels": "EnvironmentalAudioExposure",
    "uv_index": "UVExposure",
    "vo2max": "VO2Max",
    "handwashing": "HandwashingEvent",
    "toothbrushing": "ToothbrushingEvent",
    "mindful_minutes": "MindfulSession",
}


def _build_name_map() -> dict[str, HealthDataType]:
    names: dict[str, HealthDataType] = {}
    for data_type in all_types():
        short = data_type.short_name
        names[short.lower()] = data_type
        names[_snake_case(short)] = data_type
        names[data_type.identifier.lower()] = data_type
    by_short = {t.short_name: t for t in all_types()}
    for alias, short in AUTO_EXPORT_ALIASES.items():
        names[alias] = by_short[short]
    return names


_AUTO_EXPORT_NAMES = _build_name_map()


def match_metric_name(name: str) -> HealthDataType | None:
    """Match a Health Auto Export metric name (``body_mass``, ``bodyMass``) to the catalog."""
    key = name.strip()
    return _AUTO_EXPORT_NAMES.get(key.lower()) or _AUTO_EXPORT_NAMES.get(_snake_case(key))


class AutoExportStore(HealthStore):
    """Reads Health Auto Export JSON files from a directory."""

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)
        self._index: dict[str, list[HealthSample]] | None = None
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return self._directory.is_dir() and os.access(self._directory, os.R_OK | os.X_OK)

    def _samples_for(self, data_type: HealthDataType) -> list[HealthSample]:
        with self._lock:
            if self._index is None:
                self._index = self._build_index()
            return self._index.get(data_type.identifier, [])

    def _build_index(self) -> dict[str, list[HealthSample]]:
        index: dict[str, list[HealthSample]] = {}
        if not self.is_available():
            logger.warning("export_directory_missing", path=str(self._directory))
            return index

        # Overlapping exports repeat samples
        seen: set[tuple[str, datetime, datetime, float]] = set()
        for path in sorted(self._directory.glob("*.json")):
            for item in self._read_items(path):
                name = item.get("name")
                data_type = match_metric_name(str(name)) if name else None
                if data_type is None:
                    continue
                sample = self._item_to_sample(data_type, item)
                if sample is None:
                    continue
                key = (data_type.identifier, sample.start_date, sample.end_date, sample.value)
                if key in seen:
                    continue
                seen.add(key)
                index.setdefault(data_type.identifier, []).append(sample)

        logger.info(
            "auto_export_indexed",
            path=str(self._directory),
            samples=len(seen),
            types=len(index),
        )
        return index

    def _read_items(self, path: Path) -> Iterator[JSONObject]:
        try:
            with open(path, encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("auto_export_read_failed", path=str(path), error=str(e))
            return
        if isinstance(payload, dict):
            yield from normalize_payload(payload)

    @staticmethod
    def _item_to_sample(data_type: HealthDataType, item: JSONObject) -> HealthSample | None:
        if data_type.kind is HealthDataKind.CATEGORY:
            start = item.get("startDate") or item.get("start") or item.get("sleepStart") or item.get("date")
            end = item.get("endDate") or item.get("end") or item.get("sleepEnd")
            raw = item.get("value", item.get("qty", 1))
        else:
            start = item.get("date") or item.get("startDate")
            end = item.get("endDate")
            raw = item.get("qty", item.get("value"))
            if raw is None:
                # Heart rate points carry Min/Avg/Max instead of qty
                raw = item.get("Avg", item.get("avg"))
        if start is None or raw is None:
            return None
        units = item.get("units")
        return _to_sample(data_type, start, end, raw, str(units) if units else None)


def normalize_payload(data: JSONObject) -> list[JSONObject]:
    """Flatten a Health Auto Export payload into individual metric dicts.

    REST API format (nested metrics, current):
        {"data": {"metrics": [{"name": "body_mass", "units": "kg",
                               "data": [{"date": "...", "qty": 72.4}]}]}}

    Flat list format (legacy):
        {"data": [{"name": "body_mass", "date": "...", "qty": 72.4}]}
    """
    inner = data.get("data")

    if isinstance(inner, dict) and "metrics" in inner:
        items: list[JSONObject] = []
        metrics = inner["metrics"]
        if not isinstance(metrics, list):
            return items
        for metric in metrics:
            if not isinstance(metric, dict):
                continue
            name = metric.get("name", "")
            units = metric.get("units", "")
            points = metric.get("data", [])
            if not isinstance(points, list):
                continue
            for point in points:
                if isinstance(point, dict):
                    item = {**point, "name": name}
                    if units:
                        item.setdefault("units", units)
                    items.append(item)
        return items

    if isinstance(inner, list):
        base = {k: v for k, v in data.items() if k != "data"}
        return [{**base, **item} for item in inner if isinstance(item, dict)]

    return [data]


def create_store(settings: StoreSettings) -> HealthStore:
    """Build the store backend selected in settings."""
    if settings.format == "auto_export":
        return AutoExportStore(settings.export_path)
    return XMLExportStore(settings.export_path)
