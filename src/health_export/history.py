"""Weight history helpers for the overview chart."""

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from .store import HealthSample

# Range choices offered by the overview: 7 days, 30 days, everything
RANGE_CHOICES: dict[str, int | None] = {"7": 7, "30": 30, "all": None}

DEFAULT_Y_RANGE = (60.0, 100.0)


def filter_history(
    samples: Sequence[HealthSample],
    range_days: int | None,
    now: datetime | None = None,
) -> list[HealthSample]:
    """Keep samples that start within the last ``range_days`` days."""
    if range_days is None:
        return list(samples)
    if now is None:
        now = datetime.now(UTC)
    cutoff = now - timedelta(days=range_days)
    return [s for s in samples if s.start_date >= cutoff]


def y_axis_range(
    latest: float | None,
    samples: Sequence[HealthSample],
) -> tuple[float, float] | None:
    """Chart value range covering the samples with room around the latest value.

    Returns None without a latest value or samples; callers then fall back to
    ``DEFAULT_Y_RANGE``.
    """
    if latest is None or not samples:
        return None
    values = [s.value for s in samples]
    lower = min(latest - 5, min(values) - 1)
    upper = max(latest + 5, max(values) + 1)
    return lower, upper
