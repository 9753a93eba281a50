"""Apple Health to GitHub exporter.

Reads body-metric and health samples from an Apple Health export and uploads
them as JSON/CSV files to a GitHub repository through the contents API.

Modules:
    catalog: Static table of exportable Health data types
    store: Health data store adapters (export.xml, Health Auto Export JSON)
    formatter: JSON and CSV formatting of samples
    github: GitHub contents API client with read-modify-write uploads
    sync: Export workflows tying store, formatter and client together
    config: Configuration management using pydantic-settings

Example:
    Upload the full history of the selected types::

        $ health-export export-history --range last3Months
"""

__version__ = "0.1.0"

from .config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
