"""Result models for uploads and export runs."""

from dataclasses import dataclass, field
from enum import Enum

from .store import HealthSample


@dataclass
class RemoteFile:
    """A file as currently stored in the repository."""

    path: str
    sha: str
    content: str


@dataclass
class UploadResult:
    """Outcome of a contents API write."""

    path: str
    status_code: int
    created: bool
    sha: str | None = None
    commit_sha: str | None = None
    merged: bool = False


@dataclass
class ConnectionResult:
    """Outcome of a repository connection check."""

    success: bool
    message: str
    status_code: int | None = None


class ExportStatus(str, Enum):
    """Per-type export outcome."""

    UPLOADED = "uploaded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class TypeExportResult:
    """Export outcome for one Health data type."""

    type_id: str
    display_name: str
    status: ExportStatus
    path: str | None = None
    sample_count: int = 0
    error: str | None = None


@dataclass
class ExportSummary:
    """Aggregate of a history export run."""

    range: str
    results: list[TypeExportResult] = field(default_factory=list)

    def _with_status(self, status: ExportStatus) -> list[TypeExportResult]:
        return [r for r in self.results if r.status is status]

    @property
    def uploaded(self) -> list[TypeExportResult]:
        return self._with_status(ExportStatus.UPLOADED)

    @property
    def skipped(self) -> list[TypeExportResult]:
        return self._with_status(ExportStatus.SKIPPED)

    @property
    def failed(self) -> list[TypeExportResult]:
        return self._with_status(ExportStatus.FAILED)

    @property
    def success(self) -> bool:
        return not self.failed


@dataclass
class LatestExportResult:
    """Outcome of exporting today's latest value."""

    status: ExportStatus
    value: float | None = None
    path: str | None = None
    error: str | None = None


@dataclass
class Overview:
    """Latest weight and weight history shown by the overview command."""

    authorized: bool
    body_mass_selected: bool
    latest: float | None = None
    history: list[HealthSample] = field(default_factory=list)
