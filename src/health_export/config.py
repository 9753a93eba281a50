"""Configuration management using pydantic-settings."""

import threading
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Valid log levels
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

VALID_STORE_FORMATS = ("xml", "auto_export")

VALID_EXPORT_RANGES = ("last30Days", "last3Months", "lastYear", "all")

BODY_MASS_ID = "quantity.HKQuantityTypeIdentifierBodyMass"


class GitHubSettings(BaseSettings):
    """GitHub repository and API settings."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_")

    owner: str = Field(default="", description="Repository owner (user or organization)")
    repo: str = Field(default="", description="Repository name")
    token: str = Field(default="", description="Personal access token")
    branch: str | None = Field(default=None, description="Target branch (default branch if unset)")
    api_url: str = Field(default="https://api.github.com", description="GitHub API base URL")
    committer_name: str = Field(default="Health Exporter", description="Commit author name")
    committer_email: str = Field(default="you@example.com", description="Commit author email")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    max_retries: int = Field(default=3, description="Attempts per request on transient errors")
    retry_delay_seconds: float = Field(default=1.0, description="Base delay between retries")

    @field_validator("owner", "repo", "token")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Trim surrounding whitespace from identifiers and tokens."""
        return v.strip()

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Validate the API URL scheme and drop any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"API URL must start with http:// or https://, got '{v}'")
        return v.rstrip("/")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError(f"Timeout must be positive, got {v}")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        """Validate retry count is reasonable."""
        if v < 1:
            raise ValueError(f"Max retries must be at least 1, got {v}")
        if v > 10:
            raise ValueError(f"Max retries too large (max 10), got {v}")
        return v

    @property
    def is_complete(self) -> bool:
        """Whether owner, repo and token are all set."""
        return bool(self.owner and self.repo and self.token)


class StoreSettings(BaseSettings):
    """Health data store settings."""

    model_config = SettingsConfigDict(env_prefix="HEALTH_")

    export_path: Path = Field(
        default=Path("apple_health_export/export.xml"),
        description="export.xml file or Health Auto Export JSON directory",
    )
    format: str = Field(default="xml", description="Store format: xml or auto_export")

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate store format is known."""
        normalized = v.lower().replace("-", "_")
        if normalized not in VALID_STORE_FORMATS:
            raise ValueError(
                f"Invalid store format '{v}'. Must be one of: {', '.join(VALID_STORE_FORMATS)}"
            )
        return normalized


class ExportSettings(BaseSettings):
    """Export selection and destination layout settings."""

    model_config = SettingsConfigDict(env_prefix="EXPORT_")

    selected_types: str = Field(
        default=BODY_MASS_ID,
        description="Comma-separated Health data type ids to export",
    )
    range: str = Field(default="last30Days", description="History export range")
    history_folder: str = Field(default="Health Data", description="Folder for CSV history files")
    latest_folder: str = Field(default="Body Metrics", description="Folder for daily JSON files")
    max_concurrent_uploads: int = Field(default=4, description="Parallel history uploads")
    merge_existing: bool = Field(
        default=False,
        description="Merge rows of an existing remote CSV instead of replacing it",
    )

    @field_validator("range")
    @classmethod
    def validate_range(cls, v: str) -> str:
        """Validate export range is known."""
        if v not in VALID_EXPORT_RANGES:
            raise ValueError(
                f"Invalid export range '{v}'. Must be one of: {', '.join(VALID_EXPORT_RANGES)}"
            )
        return v

    @field_validator("history_folder", "latest_folder")
    @classmethod
    def validate_folder(cls, v: str) -> str:
        """Strip slashes so folders join cleanly into repository paths."""
        normalized = v.strip().strip("/")
        if not normalized:
            raise ValueError("Folder name cannot be empty")
        return normalized

    @field_validator("max_concurrent_uploads")
    @classmethod
    def validate_max_concurrent(cls, v: int) -> int:
        """Validate concurrency is within range."""
        if not 1 <= v <= 32:
            raise ValueError(f"Max concurrent uploads must be between 1 and 32, got {v}")
        return v


class AppSettings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_prefix="APP_")

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log format: json or console")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        normalized = v.upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: {', '.join(sorted(VALID_LOG_LEVELS))}"
            )
        return normalized

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format is valid."""
        normalized = v.lower()
        if normalized not in ("json", "console"):
            raise ValueError(f"Invalid log format '{v}'. Must be 'json' or 'console'")
        return normalized


class Settings(BaseSettings):
    """Combined application settings."""

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    app: AppSettings = Field(default_factory=AppSettings)

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            github=GitHubSettings(),
            store=StoreSettings(),
            export=ExportSettings(),
            app=AppSettings(),
        )


# Global settings instance with thread-safe initialization
_settings: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get or create the global settings instance.

    Thread-safe singleton pattern using double-checked locking.
    """
    global _settings
    if _settings is None:
        with _settings_lock:
            if _settings is None:
                _settings = Settings.load()
    return _settings
