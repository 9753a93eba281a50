"""Catalog of exportable Health data types.

Each entry maps a stable id to its display name, HealthKit identifier,
canonical unit and the slug used for remote file names. Units use HealthKit's
unit string notation (``kg``, ``count/min``, ``mg/dL``), which is also what
``export.xml`` records carry.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

QUANTITY_PREFIX = "HKQuantityTypeIdentifier"
CATEGORY_PREFIX = "HKCategoryTypeIdentifier"


class HealthDataKind(Enum):
    """Sample kind: a measured quantity or a categorized interval."""

    QUANTITY = "quantity"
    CATEGORY = "category"


class HealthDataCategory(Enum):
    """Grouping used when listing types."""

    BODY_MEASUREMENTS = "bodyMeasurements"
    HEART = "heart"
    ACTIVITY = "activity"
    ENERGY = "energy"
    NUTRITION = "nutrition"
    VITALS = "vitals"
    MOBILITY = "mobility"
    ENVIRONMENT = "environment"
    RESPIRATORY = "respiratory"
    MINDFULNESS_SLEEP = "mindfulnessSleep"
    REPRODUCTIVE = "reproductive"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _CATEGORY_NAMES[self]


_CATEGORY_NAMES = {
    HealthDataCategory.BODY_MEASUREMENTS: "Body Measurements",
    HealthDataCategory.HEART: "Heart",
    HealthDataCategory.ACTIVITY: "Activity",
    HealthDataCategory.ENERGY: "Energy",
    HealthDataCategory.NUTRITION: "Nutrition",
    HealthDataCategory.VITALS: "Vitals",
    HealthDataCategory.MOBILITY: "Mobility",
    HealthDataCategory.ENVIRONMENT: "Environment",
    HealthDataCategory.RESPIRATORY: "Respiratory",
    HealthDataCategory.MINDFULNESS_SLEEP: "Mindfulness & Sleep",
    HealthDataCategory.REPRODUCTIVE: "Reproductive Health",
    HealthDataCategory.OTHER: "Other",
}


@dataclass(frozen=True)
class HealthDataType:
    """A single exportable Health data type."""

    id: str
    display_name: str
    kind: HealthDataKind
    category: HealthDataCategory
    identifier: str
    unit: str | None
    file_name: str

    @property
    def csv_header(self) -> str:
        """CSV header line (without newline) for this type's history file."""
        if self.kind is HealthDataKind.QUANTITY:
            return "date,value"
        return "start_date,end_date,value"

    @property
    def short_name(self) -> str:
        """Identifier without the HealthKit prefix, e.g. ``BodyMass``."""
        for prefix in (QUANTITY_PREFIX, CATEGORY_PREFIX):
            if self.identifier.startswith(prefix):
                return self.identifier[len(prefix):]
        return self.identifier


def _quantity(
    name: str, display_name: str, unit: str, file_name: str, category: HealthDataCategory
) -> HealthDataType:
    identifier = f"{QUANTITY_PREFIX}{name}"
    return HealthDataType(
        id=f"quantity.{identifier}",
        display_name=display_name,
        kind=HealthDataKind.QUANTITY,
        category=category,
        identifier=identifier,
        unit=unit,
        file_name=file_name,
    )


def _category(
    name: str, display_name: str, file_name: str, category: HealthDataCategory
) -> HealthDataType:
    identifier = f"{CATEGORY_PREFIX}{name}"
    return HealthDataType(
        id=f"category.{identifier}",
        display_name=display_name,
        kind=HealthDataKind.CATEGORY,
        category=category,
        identifier=identifier,
        unit=None,
        file_name=file_name,
    )


_C = HealthDataCategory

_CATALOG: tuple[HealthDataType, ...] = (
    _quantity("BodyMass", "Body Weight", "kg", "body-weight", _C.BODY_MEASUREMENTS),
    _quantity("BodyFatPercentage", "Body Fat Percentage", "%", "body-fat-percentage", _C.BODY_MEASUREMENTS),
    _quantity("LeanBodyMass", "Lean Body Mass", "kg", "lean-body-mass", _C.BODY_MEASUREMENTS),
    _quantity("BodyMassIndex", "Body Mass Index", "count", "body-mass-index", _C.BODY_MEASUREMENTS),
    _quantity("Height", "Height", "m", "height", _C.BODY_MEASUREMENTS),
    _quantity("WaistCircumference", "Waist Circumference", "m", "waist-circumference", _C.BODY_MEASUREMENTS),

    _quantity("HeartRate", "Heart Rate", "count/min", "heart-rate", _C.HEART),
    _quantity("RestingHeartRate", "Resting Heart Rate", "count/min", "resting-heart-rate", _C.HEART),
    _quantity("WalkingHeartRateAverage", "Walking Heart Rate Average", "count/min", "walking-heart-rate-average", _C.HEART),
    _quantity("HeartRateVariabilitySDNN", "HRV (SDNN)", "ms", "heart-rate-variability-sdnn", _C.HEART),

    _quantity("StepCount", "Step Count", "count", "step-count", _C.ACTIVITY),
    _quantity("DistanceWalkingRunning", "Distance Walking/Running", "m", "distance-walking-running", _C.ACTIVITY),
    _quantity("DistanceCycling", "Distance Cycling", "m", "distance-cycling", _C.ACTIVITY),
    _quantity("DistanceWheelchair", "Distance Wheelchair", "m", "distance-wheelchair", _C.ACTIVITY),
    _quantity("FlightsClimbed", "Flights Climbed", "count", "flights-climbed", _C.ACTIVITY),

    _quantity("BasalEnergyBurned", "Basal Energy Burned", "kcal", "basal-energy-burned", _C.ENERGY),
    _quantity("ActiveEnergyBurned", "Active Energy Burned", "kcal", "active-energy-burned", _C.ENERGY),
    _quantity("DietaryEnergyConsumed", "Dietary Energy", "kcal", "dietary-energy", _C.NUTRITION),

    _quantity("DietaryCarbohydrates", "Dietary Carbohydrates", "g", "dietary-carbohydrates", _C.NUTRITION),
    _quantity("DietaryProtein", "Dietary Protein", "g", "dietary-protein", _C.NUTRITION),
    _quantity("DietaryFatTotal", "Dietary Fat", "g", "dietary-fat-total", _C.NUTRITION),
    _quantity("DietaryWater", "Dietary Water", "L", "dietary-water", _C.NUTRITION),
    _quantity("DietarySugar", "Dietary Sugar", "g", "dietary-sugar", _C.NUTRITION),
    _quantity("DietaryFiber", "Dietary Fiber", "g", "dietary-fiber", _C.NUTRITION),
    _quantity("DietaryCaffeine", "Dietary Caffeine", "mg", "dietary-caffeine", _C.NUTRITION),
    _quantity("DietaryCholesterol", "Dietary Cholesterol", "mg", "dietary-cholesterol", _C.NUTRITION),
    _quantity("DietarySodium", "Dietary Sodium", "mg", "dietary-sodium", _C.NUTRITION),
    _quantity("DietaryPotassium", "Dietary Potassium", "mg", "dietary-potassium", _C.NUTRITION),
    _quantity("DietaryCalcium", "Dietary Calcium", "mg", "dietary-calcium", _C.NUTRITION),
    _quantity("DietaryIron", "Dietary Iron", "mg", "dietary-iron", _C.NUTRITION),
    _quantity("DietaryVitaminA", "Dietary Vitamin A", "mcg", "dietary-vitamin-a", _C.NUTRITION),
    _quantity("DietaryVitaminC", "Dietary Vitamin C", "mg", "dietary-vitamin-c", _C.NUTRITION),
    _quantity("DietaryVitaminD", "Dietary Vitamin D", "mcg", "dietary-vitamin-d", _C.NUTRITION),
    _quantity("DietaryVitaminE", "Dietary Vitamin E", "mg", "dietary-vitamin-e", _C.NUTRITION),
    _quantity("DietaryVitaminB6", "Dietary Vitamin B6", "mg", "dietary-vitamin-b6", _C.NUTRITION),
    _quantity("DietaryVitaminB12", "Dietary Vitamin B12", "mcg", "dietary-vitamin-b12", _C.NUTRITION),
    _quantity("DietaryFolate", "Dietary Folate", "mcg", "dietary-folate", _C.NUTRITION),
    _quantity("DietaryThiamin", "Dietary Thiamin", "mg", "dietary-thiamin", _C.NUTRITION),
    _quantity("DietaryRiboflavin", "Dietary Riboflavin", "mg", "dietary-riboflavin", _C.NUTRITION),
    _quantity("DietaryNiacin", "Dietary Niacin", "mg", "dietary-niacin", _C.NUTRITION),
    _quantity("DietaryBiotin", "Dietary Biotin", "mcg", "dietary-biotin", _C.NUTRITION),
    _quantity("DietaryPantothenicAcid", "Dietary Pantothenic Acid", "mg", "dietary-pantothenic-acid", _C.NUTRITION),
    _quantity("DietaryPhosphorus", "Dietary Phosphorus", "mg", "dietary-phosphorus", _C.NUTRITION),
    _quantity("DietaryMagnesium", "Dietary Magnesium", "mg", "dietary-magnesium", _C.NUTRITION),
    _quantity("DietaryCopper", "Dietary Copper", "mcg", "dietary-copper", _C.NUTRITION),
    _quantity("DietaryZinc", "Dietary Zinc", "mg", "dietary-zinc", _C.NUTRITION),
    _quantity("DietarySelenium", "Dietary Selenium", "mcg", "dietary-selenium", _C.NUTRITION),
    _quantity("DietaryManganese", "Dietary Manganese", "mg", "dietary-manganese", _C.NUTRITION),
    _quantity("DietaryChromium", "Dietary Chromium", "mcg", "dietary-chromium", _C.NUTRITION),
    _quantity("DietaryMolybdenum", "Dietary Molybdenum", "mcg", "dietary-molybdenum", _C.NUTRITION),
    _quantity("DietaryChloride", "Dietary Chloride", "mg", "dietary-chloride", _C.NUTRITION),
    _quantity("DietaryIodine", "Dietary Iodine", "mcg", "dietary-iodine", _C.NUTRITION),

    _quantity("BloodPressureSystolic", "Blood Pressure Systolic", "mmHg", "blood-pressure-systolic", _C.VITALS),
    _quantity("BloodPressureDiastolic", "Blood Pressure Diastolic", "mmHg", "blood-pressure-diastolic", _C.VITALS),
    _quantity("BloodGlucose", "Blood Glucose", "mg/dL", "blood-glucose", _C.VITALS),
    _quantity("OxygenSaturation", "Oxygen Saturation", "%", "oxygen-saturation", _C.VITALS),
    _quantity("RespiratoryRate", "Respiratory Rate", "count/min", "respiratory-rate", _C.VITALS),
    _quantity("BodyTemperature", "Body Temperature", "degC", "body-temperature", _C.VITALS),
    _quantity("ElectrodermalActivity", "Electrodermal Activity", "S", "electrodermal-activity", _C.VITALS),
    _quantity("PeripheralPerfusionIndex", "Peripheral Perfusion Index", "%", "peripheral-perfusion-index", _C.VITALS),

    _quantity("VO2Max", "VO2 Max", "mL/min·kg", "vo2-max", _C.MOBILITY),
    _quantity("WalkingSpeed", "Walking Speed", "m/s", "walking-speed", _C.MOBILITY),
    _quantity("WalkingStepLength", "Walking Step Length", "m", "walking-step-length", _C.MOBILITY),
    _quantity("SixMinuteWalkTestDistance", "Six-Minute Walk Distance", "m", "six-minute-walk-distance", _C.MOBILITY),
    _quantity("StairAscentSpeed", "Stair Ascent Speed", "m/s", "stair-ascent-speed", _C.MOBILITY),
    _quantity("StairDescentSpeed", "Stair Descent Speed", "m/s", "stair-descent-speed", _C.MOBILITY),
    _quantity("WalkingAsymmetryPercentage", "Walking Asymmetry", "%", "walking-asymmetry", _C.MOBILITY),
    _quantity("WalkingDoubleSupportPercentage", "Walking Double Support", "%", "walking-double-support", _C.MOBILITY),
    _quantity("RunningSpeed", "Running Speed", "m/s", "running-speed", _C.MOBILITY),
    _quantity("RunningStrideLength", "Running Stride Length", "m", "running-stride-length", _C.MOBILITY),
    _quantity("RunningPower", "Running Power", "W", "running-power", _C.MOBILITY),
    _quantity("RunningVerticalOscillation", "Running Vertical Oscillation", "m", "running-vertical-oscillation", _C.MOBILITY),
    _quantity("RunningGroundContactTime", "Running Ground Contact Time", "ms", "running-ground-contact-time", _C.MOBILITY),

    _quantity("EnvironmentalAudioExposure", "Environmental Audio Exposure", "dBASPL", "environmental-audio-exposure", _C.ENVIRONMENT),
    _quantity("HeadphoneAudioExposure", "Headphone Audio Exposure", "dBASPL", "headphone-audio-exposure", _C.ENVIRONMENT),
    _quantity("UVExposure", "UV Exposure", "count", "uv-exposure", _C.ENVIRONMENT),

    _quantity("AppleExerciseTime", "Apple Exercise Time", "min", "apple-exercise-time", _C.ACTIVITY),
    _quantity("AppleStandTime", "Apple Stand Time", "min", "apple-stand-time", _C.ACTIVITY),

    _quantity("BloodAlcoholContent", "Blood Alcohol Content", "%", "blood-alcohol-content", _C.OTHER),
    _quantity("InsulinDelivery", "Insulin Delivery", "IU", "insulin-delivery", _C.OTHER),
    _quantity("InhalerUsage", "Inhaler Usage", "count", "inhaler-usage", _C.RESPIRATORY),
    _quantity("NumberOfTimesFallen", "Number of Times Fallen", "count", "number-of-times-fallen", _C.OTHER),
    _quantity("PeakExpiratoryFlowRate", "Peak Expiratory Flow Rate", "L/min", "peak-expiratory-flow-rate", _C.RESPIRATORY),
    _quantity("ForcedVitalCapacity", "Forced Vital Capacity", "L", "forced-vital-capacity", _C.RESPIRATORY),
    _quantity("ForcedExpiratoryVolume1", "Forced Expiratory Volume (1s)", "L", "forced-expiratory-volume-1s", _C.RESPIRATORY),

    _category("SleepAnalysis", "Sleep Analysis", "sleep-analysis", _C.MINDFULNESS_SLEEP),
    _category("MindfulSession", "Mindful Session", "mindful-session", _C.MINDFULNESS_SLEEP),
    _category("AppleStandHour", "Apple Stand Hour", "apple-stand-hour", _C.ACTIVITY),
    _category("HighHeartRateEvent", "High Heart Rate Event", "high-heart-rate-event", _C.HEART),
    _category("LowHeartRateEvent", "Low Heart Rate Event", "low-heart-rate-event", _C.HEART),
    _category("IrregularHeartRhythmEvent", "Irregular Heart Rhythm", "irregular-heart-rhythm-event", _C.HEART),
    _category("MenstrualFlow", "Menstrual Flow", "menstrual-flow", _C.REPRODUCTIVE),
    _category("IntermenstrualBleeding", "Intermenstrual Bleeding", "intermenstrual-bleeding", _C.REPRODUCTIVE),
    _category("SexualActivity", "Sexual Activity", "sexual-activity", _C.REPRODUCTIVE),
    _category("OvulationTestResult", "Ovulation Test Result", "ovulation-test-result", _C.REPRODUCTIVE),
    _category("CervicalMucusQuality", "Cervical Mucus Quality", "cervical-mucus-quality", _C.REPRODUCTIVE),
    _category("Contraceptive", "Contraceptive", "contraceptive", _C.REPRODUCTIVE),
    _category("ToothbrushingEvent", "Toothbrushing", "toothbrushing", _C.OTHER),
    _category("HandwashingEvent", "Handwashing", "handwashing", _C.OTHER),
)

_BY_ID: dict[str, HealthDataType] = {t.id: t for t in _CATALOG}
_BY_IDENTIFIER: dict[str, HealthDataType] = {t.identifier: t for t in _CATALOG}

BODY_MASS: HealthDataType = _BY_ID[f"quantity.{QUANTITY_PREFIX}BodyMass"]


def all_types() -> list[HealthDataType]:
    """Return every catalog entry in declaration order."""
    return list(_CATALOG)


def lookup(type_id: str) -> HealthDataType | None:
    """Look up a type by its catalog id (``quantity.HK...``)."""
    return _BY_ID.get(type_id)


def lookup_identifier(identifier: str) -> HealthDataType | None:
    """Look up a type by its HealthKit identifier."""
    return _BY_IDENTIFIER.get(identifier)


def grouped_by_category() -> list[tuple[HealthDataCategory, list[HealthDataType]]]:
    """Group types by category, sorted by display name within each group.

    Categories keep their declaration order and empty ones are omitted.
    """
    groups: list[tuple[HealthDataCategory, list[HealthDataType]]] = []
    for category in HealthDataCategory:
        items = sorted(
            (t for t in _CATALOG if t.category is category),
            key=lambda t: t.display_name.casefold(),
        )
        if items:
            groups.append((category, items))
    return groups


def parse_selection(raw: str) -> set[HealthDataType]:
    """Parse a comma-separated list of type ids, ignoring unknown ids."""
    parts = (part.strip() for part in raw.split(","))
    return {_BY_ID[part] for part in parts if part in _BY_ID}


def format_selection(types: Iterable[HealthDataType]) -> str:
    """Serialize a selection as sorted, comma-separated ids."""
    return ",".join(sorted({t.id for t in types}))


def _add_months(value: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's end."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


class ExportRange(Enum):
    """How far back a history export reaches."""

    LAST_30_DAYS = "last30Days"
    LAST_3_MONTHS = "last3Months"
    LAST_YEAR = "lastYear"
    ALL = "all"

    @property
    def display_name(self) -> str:
        return {
            ExportRange.LAST_30_DAYS: "Last 30 Days",
            ExportRange.LAST_3_MONTHS: "Last 3 Months",
            ExportRange.LAST_YEAR: "Last Year",
            ExportRange.ALL: "All",
        }[self]

    def start_date(self, reference: datetime | None = None) -> datetime | None:
        """Earliest sample date included by this range, or None for no bound."""
        if reference is None:
            reference = datetime.now().astimezone()
        if self is ExportRange.LAST_30_DAYS:
            return reference - timedelta(days=30)
        if self is ExportRange.LAST_3_MONTHS:
            return _add_months(reference, -3)
        if self is ExportRange.LAST_YEAR:
            return _add_months(reference, -12)
        return None
