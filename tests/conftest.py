"""Pytest configuration and fixtures."""

from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from health_export.config import (  # noqa: E402
    AppSettings,
    ExportSettings,
    GitHubSettings,
    Settings,
    StoreSettings,
)

EXPORT_XML = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE HealthData>
<HealthData locale="en_US">
 <ExportDate value="2024-01-20 09:00:00 +0000"/>
 <Me HKCharacteristicTypeIdentifierBiologicalSex="HKBiologicalSexNotSet"/>
 <Record type="HKQuantityTypeIdentifierBodyMass" sourceName="Scale" unit="kg"
  creationDate="2024-01-10 08:00:00 +0000" startDate="2024-01-10 08:00:00 +0000"
  endDate="2024-01-10 08:00:00 +0000" value="72.4"/>
 <Record type="HKQuantityTypeIdentifierBodyMass" sourceName="Scale" unit="lb"
  creationDate="2024-01-15 08:00:00 +0000" startDate="2024-01-15 08:00:00 +0000"
  endDate="2024-01-15 08:00:00 +0000" value="160"/>
 <Record type="HKQuantityTypeIdentifierBodyMass" sourceName="Scale" unit="kg"
  creationDate="2024-01-12 08:00:00 +0000" startDate="2024-01-12 08:00:00 +0000"
  endDate="2024-01-12 08:00:00 +0000" value="72.0"/>
 <Record type="HKQuantityTypeIdentifierStepCount" sourceName="iPhone" unit="count"
  creationDate="2024-01-15 23:59:00 +0000" startDate="2024-01-15 10:00:00 +0000"
  endDate="2024-01-15 11:00:00 +0000" value="1523">
  <MetadataEntry key="HKMetadataKeyWasUserEntered" value="0"/>
 </Record>
 <Record type="HKCategoryTypeIdentifierSleepAnalysis" sourceName="Watch"
  creationDate="2024-01-15 07:00:00 +0000" startDate="2024-01-14 23:00:00 +0000"
  endDate="2024-01-15 02:00:00 +0000" value="HKCategoryValueSleepAnalysisAsleepDeep"/>
 <Record type="HKQuantityTypeIdentifierUnknownThing" sourceName="App" unit="kg"
  startDate="2024-01-15 08:00:00 +0000" endDate="2024-01-15 08:00:00 +0000" value="1"/>
 <Record type="HKQuantityTypeIdentifierHeight" sourceName="App" unit="furlong"
  startDate="2024-01-15 08:00:00 +0000" endDate="2024-01-15 08:00:00 +0000" value="1"/>
 <Workout workoutActivityType="HKWorkoutActivityTypeRunning" duration="30"
  startDate="2024-01-15 07:00:00 +0000" endDate="2024-01-15 07:30:00 +0000"/>
</HealthData>
"""


@pytest.fixture
def export_xml(tmp_path):
    """Write a small Apple Health export.xml and return its path."""
    path = tmp_path / "export.xml"
    path.write_text(EXPORT_XML, encoding="utf-8")
    return path


@pytest.fixture
def sample_body_mass_payload():
    """Health Auto Export REST payload with body mass and heart rate."""
    return {
        "data": {
            "metrics": [
                {
                    "name": "weight_body_mass",
                    "units": "kg",
                    "data": [
                        {"date": "2024-01-10 08:00:00 +0000", "qty": 72.4, "source": "Scale"},
                        {"date": "2024-01-12 08:00:00 +0000", "qty": 72.0, "source": "Scale"},
                    ],
                },
                {
                    "name": "heart_rate",
                    "units": "count/min",
                    "data": [{"date": "2024-01-12T09:00:00+00:00", "qty": 64}],
                },
            ]
        }
    }


@pytest.fixture
def github_settings():
    """GitHub settings with fast retries for tests."""
    return GitHubSettings(
        owner="octo",
        repo="health",
        token="test-token",
        max_retries=3,
        retry_delay_seconds=0.01,
    )


@pytest.fixture
def settings(github_settings, export_xml):
    """Combined settings pointing at the sample export."""
    return Settings(
        github=github_settings,
        store=StoreSettings(export_path=export_xml),
        export=ExportSettings(),
        app=AppSettings(),
    )
