"""Prometheus metrics definitions for exports."""

from prometheus_client import Counter, Histogram

# -- GitHub uploads --
UPLOADS = Counter(
    "health_export_uploads_total",
    "Total file uploads to GitHub",
    ["kind", "status"],
)
UPLOAD_DURATION = Histogram(
    "health_export_upload_duration_seconds",
    "Read-modify-write upload latency",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)
UPLOAD_CONFLICTS = Counter(
    "health_export_upload_conflicts_total",
    "Uploads that hit a stale sha and were retried",
)

# -- Samples --
SAMPLES_EXPORTED = Counter(
    "health_export_samples_exported_total",
    "Total samples written to exported files",
    ["type_id"],
)
