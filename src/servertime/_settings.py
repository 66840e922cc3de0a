"""Application configuration via pydantic-settings.

Configuration is loaded from environment variables and/or ``.env``
files.  Variables carry the ``SERVERTIME_`` prefix and nested models
use ``__`` as the delimiter, e.g.
``SERVERTIME_SYNC__ENDPOINT=https://time.example.com/now``.

The schema covers three concerns:

* **Sync** — endpoint, HTTP method, attempt count and timing.
* **Format** — default pattern and local-zone override.
* **Logging** — level, format, optional file sink, rotation.

All sync durations are in **milliseconds**, the unit every timestamp
in this package uses.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PATTERN = "YYYY-MM-DD HH:mm:ss"

REQUEST_TIMEOUT_MS = 5000.0
DEFAULT_SYNC_ATTEMPTS = 3
DEFAULT_SYNC_INTERVAL_MS = 100.0
MIN_SYNC_INTERVAL_MS = 50.0
DEFAULT_AUTO_UPDATE_INTERVAL_MS = 300_000.0

# -------------------------------------------------------------------
# Sub-models (BaseModel, NOT BaseSettings — nested via composition)
# -------------------------------------------------------------------


class SyncSettings(BaseModel):
    """Time endpoint and sampling configuration.

    Environment variables (with ``__`` nesting)::

        SERVERTIME_SYNC__ENDPOINT=https://time.example.com/now
        SERVERTIME_SYNC__METHOD=GET
        SERVERTIME_SYNC__ATTEMPTS=5
        SERVERTIME_SYNC__ATTEMPT_INTERVAL_MS=150
    """

    endpoint: str | None = Field(
        default=None,
        description="URL of the time endpoint. Required by the CLI.",
    )
    method: Literal["GET", "POST"] = Field(
        default="POST",
        description="HTTP method used for every attempt.",
    )
    attempts: Annotated[int, Field(ge=1)] = Field(
        default=DEFAULT_SYNC_ATTEMPTS,
        description="Independent round trips per sync call.",
    )
    attempt_interval_ms: Annotated[float, Field(ge=MIN_SYNC_INTERVAL_MS)] = Field(
        default=DEFAULT_SYNC_INTERVAL_MS,
        description=(
            "Pause between consecutive attempts. "
            "Values below 50 ms are rejected to avoid request congestion."
        ),
    )
    request_timeout_ms: Annotated[float, Field(gt=0)] = Field(
        default=REQUEST_TIMEOUT_MS,
        description="Upper bound for a single request; exceeding it fails the attempt.",
    )
    auto_update_interval_ms: float = Field(
        default=DEFAULT_AUTO_UPDATE_INTERVAL_MS,
        description=(
            "Period of the background re-sync started by "
            "``auto_update()``. Zero or negative disables it."
        ),
    )
    strict: bool = Field(
        default=False,
        description=(
            "Raise AllAttemptsFailedError when a foreground sync has no "
            "successful attempt instead of falling back to local time."
        ),
    )


class FormatSettings(BaseModel):
    """Formatting defaults.

    ``local_zone`` overrides the host's zone for every call that does
    not name a zone explicitly.  ``None`` resolves the host zone.
    """

    default_pattern: str = Field(
        default=DEFAULT_PATTERN,
        description="Pattern used when format() is called without one.",
    )
    local_zone: str | None = Field(
        default=None,
        description="IANA zone used in place of the host zone (optional).",
    )


class LoggingSettings(BaseModel):
    """Logging configuration.

    When ``file`` is set, logs are also written to a rotating file
    (``max_file_size_mb`` per file, ``backup_count`` generations kept).
    When ``None``, logs go to stderr only.

    The ``format`` field selects the output format:

    - ``"json"`` — structured JSON lines for log aggregators.
    - ``"text"`` (default) — human-readable timestamped lines.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Root log level.",
    )
    format: Literal["json", "text"] = Field(
        default="text",
        description=(
            "Log output format. "
            "'json' emits structured JSON lines; "
            "'text' emits human-readable timestamped lines."
        ),
    )
    file: str | None = Field(
        default=None,
        description="Optional log file path. ``None`` means stderr only.",
    )
    max_file_size_mb: Annotated[int, Field(ge=1)] = Field(
        default=10,
        description=(
            "Maximum log file size in megabytes before rotation. "
            "Only applies when ``file`` is set."
        ),
    )
    backup_count: Annotated[int, Field(ge=0)] = Field(
        default=3,
        description="Number of rotated log files to keep.",
    )


# -------------------------------------------------------------------
# Root settings
# -------------------------------------------------------------------


class Settings(BaseSettings):
    """Root settings for servertime.

    Loaded from ``SERVERTIME_``-prefixed environment variables with the
    nested delimiter ``__`` and an optional ``.env`` file in the
    working directory.

    Example ``.env``::

        SERVERTIME_SYNC__ENDPOINT=https://time.example.com/now
        SERVERTIME_SYNC__METHOD=GET
        SERVERTIME_FORMAT__LOCAL_ZONE=Europe/Berlin
        SERVERTIME_LOGGING__LEVEL=DEBUG
        SERVERTIME_LOGGING__FORMAT=json
    """

    model_config = SettingsConfigDict(
        env_prefix="SERVERTIME_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    sync: SyncSettings = Field(
        default_factory=SyncSettings,
        description="Time endpoint and sampling settings.",
    )
    format: FormatSettings = Field(
        default_factory=FormatSettings,
        description="Formatting defaults.",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration.",
    )
