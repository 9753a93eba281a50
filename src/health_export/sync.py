"""Export workflows: store -> formatter -> GitHub."""

import asyncio
import functools
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TypeVar

import structlog

from .catalog import BODY_MASS, ExportRange, HealthDataType, parse_selection
from .config import ExportSettings, Settings
from .formatter import format_csv, format_latest_json
from .github import GitHubContentsClient, GitHubError
from .metrics import SAMPLES_EXPORTED, UPLOADS
from .models import (
    ExportStatus,
    ExportSummary,
    LatestExportResult,
    Overview,
    TypeExportResult,
)
from .store import HealthStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")

MISSING_SETTINGS_MESSAGE = "Please fill in GitHub owner, repo, and token in Settings."
EMPTY_SELECTION_MESSAGE = "Please select at least one Health data type in Settings."
NO_PERMISSION_MESSAGE = "No permission to read Health data"


class ExportError(Exception):
    """Base class for errors that stop an export before any upload."""


class SettingsMissingError(ExportError):
    """Raised when GitHub owner, repo or token is not configured."""

    def __init__(self) -> None:
        super().__init__(MISSING_SETTINGS_MESSAGE)


class SelectionEmptyError(ExportError):
    """Raised when a history export has no types to export."""

    def __init__(self) -> None:
        super().__init__(EMPTY_SELECTION_MESSAGE)


class HealthDataUnavailableError(ExportError):
    """Raised when the Health data store cannot be read."""

    def __init__(self) -> None:
        super().__init__(NO_PERMISSION_MESSAGE)


def selected_types(settings: ExportSettings) -> set[HealthDataType]:
    """Types selected in settings; body mass when nothing valid is selected."""
    return parse_selection(settings.selected_types) or {BODY_MASS}


class Exporter:
    """Runs exports of Health data to a GitHub repository."""

    def __init__(
        self,
        store: HealthStore,
        settings: Settings,
        client: GitHubContentsClient | None = None,
    ) -> None:
        """Initialize the exporter.

        Args:
            store: Health data source.
            settings: Combined settings; GitHub and export groups are used.
            client: Contents API client, built from settings when omitted.
        """
        self._store = store
        self._settings = settings
        self._client = client or GitHubContentsClient(settings.github)

    async def _in_thread(self, fn: Callable[..., T], *args) -> T:
        # Store reads parse files and must not block the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args))

    def check_settings(self) -> None:
        """Raise SettingsMissingError unless owner, repo and token are set."""
        github = self._settings.github
        if not (github.owner.strip() and github.repo.strip() and github.token.strip()):
            raise SettingsMissingError()

    def latest_path(self, now: datetime) -> str:
        return f"{self._settings.export.latest_folder}/{now.strftime('%Y-%m-%d')}.json"

    def history_path(self, data_type: HealthDataType, export_range: ExportRange) -> str:
        return (
            f"{self._settings.export.history_folder}/"
            f"{data_type.file_name}-{export_range.value}.csv"
        )

    async def export_latest(
        self,
        data_type: HealthDataType = BODY_MASS,
        now: datetime | None = None,
    ) -> LatestExportResult:
        """Upload today's latest value as ``<latest_folder>/<YYYY-MM-DD>.json``.

        Raises:
            SettingsMissingError: If GitHub settings are incomplete.
        """
        self.check_settings()
        if now is None:
            now = datetime.now().astimezone()

        authorized = await self._in_thread(self._store.request_authorization, {data_type})
        if not authorized:
            return LatestExportResult(status=ExportStatus.FAILED, error=NO_PERMISSION_MESSAGE)

        value = await self._in_thread(self._store.fetch_most_recent_sample, data_type)
        if value is None:
            logger.info("latest_export_skipped", type_id=data_type.id, reason="no_samples")
            return LatestExportResult(status=ExportStatus.SKIPPED)

        path = self.latest_path(now)
        content = format_latest_json(value, now)
        try:
            await self._client.upload(path, content, "Update today's weight")
        except GitHubError as e:
            UPLOADS.labels(kind="latest", status="failed").inc()
            logger.error("latest_export_failed", path=path, error=str(e))
            return LatestExportResult(
                status=ExportStatus.FAILED, value=value, path=path, error=str(e)
            )

        UPLOADS.labels(kind="latest", status="success").inc()
        SAMPLES_EXPORTED.labels(type_id=data_type.id).inc()
        logger.info("latest_export_completed", path=path, value=value)
        return LatestExportResult(status=ExportStatus.UPLOADED, value=value, path=path)

    async def export_history(
        self,
        data_types: Iterable[HealthDataType],
        export_range: ExportRange,
        now: datetime | None = None,
    ) -> ExportSummary:
        """Upload one CSV history file per type, in parallel.

        A failure for one type is recorded in the summary and does not stop
        the others.

        Raises:
            SettingsMissingError: If GitHub settings are incomplete.
            SelectionEmptyError: If ``data_types`` is empty.
            HealthDataUnavailableError: If the store cannot be read.
        """
        self.check_settings()
        ordered = sorted(set(data_types), key=lambda t: t.display_name)
        if not ordered:
            raise SelectionEmptyError()

        authorized = await self._in_thread(self._store.request_authorization, set(ordered))
        if not authorized:
            raise HealthDataUnavailableError()

        start = export_range.start_date(now)
        semaphore = asyncio.Semaphore(self._settings.export.max_concurrent_uploads)

        async def run(data_type: HealthDataType) -> TypeExportResult:
            async with semaphore:
                return await self._export_type(data_type, export_range, start, now)

        results = await asyncio.gather(*(run(t) for t in ordered))
        summary = ExportSummary(range=export_range.value, results=list(results))
        logger.info(
            "history_export_completed",
            range=export_range.value,
            uploaded=len(summary.uploaded),
            skipped=len(summary.skipped),
            failed=len(summary.failed),
        )
        return summary

    async def _export_type(
        self,
        data_type: HealthDataType,
        export_range: ExportRange,
        start: datetime | None,
        now: datetime | None,
    ) -> TypeExportResult:
        result = TypeExportResult(
            type_id=data_type.id,
            display_name=data_type.display_name,
            status=ExportStatus.SKIPPED,
        )
        samples = await self._in_thread(self._store.fetch_history, data_type, start, now)
        if not samples:
            logger.debug("history_export_skipped", type_id=data_type.id, reason="no_samples")
            return result

        path = self.history_path(data_type, export_range)
        result.path = path
        result.sample_count = len(samples)
        try:
            await self._client.upload(
                path,
                format_csv(data_type, samples),
                f"Upload {data_type.display_name} history",
                merge=self._settings.export.merge_existing,
            )
        except GitHubError as e:
            UPLOADS.labels(kind="history", status="failed").inc()
            logger.error(
                "history_export_failed",
                type_id=data_type.id,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            result.status = ExportStatus.FAILED
            result.error = str(e)
            return result

        UPLOADS.labels(kind="history", status="success").inc()
        SAMPLES_EXPORTED.labels(type_id=data_type.id).inc(len(samples))
        result.status = ExportStatus.UPLOADED
        return result

    async def refresh(self, data_types: Iterable[HealthDataType]) -> Overview:
        """Read the latest weight and full weight history for the overview."""
        types = set(data_types)
        authorized = await self._in_thread(self._store.request_authorization, types)
        if not authorized:
            return Overview(authorized=False, body_mass_selected=BODY_MASS in types)
        if BODY_MASS not in types:
            return Overview(authorized=True, body_mass_selected=False)

        latest = await self._in_thread(self._store.fetch_most_recent_sample, BODY_MASS)
        history = await self._in_thread(self._store.fetch_history, BODY_MASS, None, None)
        return Overview(
            authorized=True,
            body_mass_selected=True,
            latest=latest,
            history=history,
        )
