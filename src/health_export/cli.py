"""Command line front-end for Health exports."""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog
from pydantic import ValidationError

from .catalog import ExportRange, grouped_by_category, parse_selection
from .config import Settings, get_settings
from .github import GitHubContentsClient
from .history import DEFAULT_Y_RANGE, RANGE_CHOICES, filter_history, y_axis_range
from .logging import setup_logging
from .models import ExportStatus
from .store import create_store
from .sync import ExportError, Exporter, selected_types

logger = structlog.get_logger(__name__)


def _exporter(settings: Settings) -> Exporter:
    return Exporter(create_store(settings.store), settings)


def cmd_types(settings: Settings, args: argparse.Namespace) -> int:
    """List catalog types grouped by category, marking the selected ones."""
    selected = selected_types(settings.export)
    for category, items in grouped_by_category():
        print(f"{category.display_name}:")
        for data_type in items:
            mark = "x" if data_type in selected else " "
            print(f"  [{mark}] {data_type.display_name:<34} {data_type.id}")
        print()
    return 0


async def _overview(settings: Settings, range_key: str) -> int:
    exporter = _exporter(settings)
    overview = await exporter.refresh(selected_types(settings.export))

    print("Latest Weight")
    if not overview.body_mass_selected:
        print("  Enable Body Mass in Settings")
        return 0
    if not overview.authorized:
        print("  No permission to read Health data")
        print(
            "Health permissions are required to show your weight history. "
            "Point HEALTH_EXPORT_PATH at a readable Health export."
        )
        return 1
    if overview.latest is None:
        print("  No data")
    else:
        print(f"  {overview.latest:.1f} kg")

    history = filter_history(overview.history, RANGE_CHOICES[range_key])
    if not history:
        print("No data for selected range")
        return 0

    lower, upper = y_axis_range(overview.latest, history) or DEFAULT_Y_RANGE
    print(f"Samples in range: {len(history)}")
    print(f"First: {history[0].start_date:%Y-%m-%d}  Last: {history[-1].start_date:%Y-%m-%d}")
    print(f"Chart range: {lower:.1f} - {upper:.1f} kg")
    return 0


def cmd_overview(settings: Settings, args: argparse.Namespace) -> int:
    return asyncio.run(_overview(settings, args.range))


def cmd_export_latest(settings: Settings, args: argparse.Namespace) -> int:
    """Upload today's weight as JSON."""
    result = asyncio.run(_exporter(settings).export_latest())
    if result.status is ExportStatus.UPLOADED:
        print(f"Exported {result.value:.1f} kg to {result.path}")
        return 0
    if result.status is ExportStatus.SKIPPED:
        print("No weight sample to export")
        return 0
    print(f"Export failed: {result.error}", file=sys.stderr)
    return 1


def cmd_export_history(settings: Settings, args: argparse.Namespace) -> int:
    """Upload CSV history for the selected types."""
    types = parse_selection(args.types) if args.types else selected_types(settings.export)
    export_range = ExportRange(args.range or settings.export.range)

    summary = asyncio.run(_exporter(settings).export_history(types, export_range))
    for result in summary.results:
        if result.status is ExportStatus.UPLOADED:
            print(f"  uploaded  {result.display_name} ({result.sample_count} samples) -> {result.path}")
        elif result.status is ExportStatus.SKIPPED:
            print(f"  skipped   {result.display_name} (no samples)")
        else:
            print(f"  failed    {result.display_name}: {result.error}")
    print(
        f"\n{export_range.display_name}: {len(summary.uploaded)} uploaded, "
        f"{len(summary.skipped)} skipped, {len(summary.failed)} failed"
    )
    return 0 if summary.success else 1


def cmd_test_connection(settings: Settings, args: argparse.Namespace) -> int:
    """Check the repository is reachable."""
    result = asyncio.run(GitHubContentsClient(settings.github).test_connection())
    print(result.message)
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="health-export",
        description="Export Apple Health data to a GitHub repository",
    )
    parser.add_argument(
        "--export-path",
        type=Path,
        help="export.xml or Health Auto Export directory (overrides HEALTH_EXPORT_PATH)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    types_parser = subparsers.add_parser("types", help="List exportable Health data types")
    types_parser.set_defaults(func=cmd_types)

    overview_parser = subparsers.add_parser("overview", help="Show latest weight and history")
    overview_parser.add_argument(
        "--range",
        choices=list(RANGE_CHOICES),
        default="30",
        help="History window in days (default: 30)",
    )
    overview_parser.set_defaults(func=cmd_overview)

    latest_parser = subparsers.add_parser("export-latest", help="Export today's weight as JSON")
    latest_parser.set_defaults(func=cmd_export_latest)

    history_parser = subparsers.add_parser(
        "export-history", help="Export full history of selected types as CSV"
    )
    history_parser.add_argument(
        "--types",
        help="Comma-separated type ids (default: EXPORT_SELECTED_TYPES)",
    )
    history_parser.add_argument(
        "--range",
        choices=[r.value for r in ExportRange],
        help="History range (default: EXPORT_RANGE)",
    )
    history_parser.set_defaults(func=cmd_export_history)

    connection_parser = subparsers.add_parser(
        "test-connection", help="Check the GitHub repository is reachable"
    )
    connection_parser.set_defaults(func=cmd_test_connection)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Usage:
        health-export types
        health-export overview [--range 7|30|all]
        health-export export-latest
        health-export export-history [--types ids] [--range last30Days]
        health-export test-connection
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            print(f"Invalid setting {location}: {error['msg']}", file=sys.stderr)
        return 1
    setup_logging(settings.app)
    if args.export_path is not None:
        settings = settings.model_copy(
            update={"store": settings.store.model_copy(update={"export_path": args.export_path})}
        )

    try:
        return args.func(settings, args)
    except ExportError as e:
        logger.error("export_aborted", command=args.command, error=str(e))
        print(str(e), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
