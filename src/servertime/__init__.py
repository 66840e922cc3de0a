"""servertime.

Best-effort authoritative time for a client process: sample an HTTP time
endpoint a few times, estimate clock offset NTP-style, and format the
corrected instant in any IANA zone.

Usage::

    clock = ServerClock()
    await clock.sync("https://time.example.com/now").auto_update(60_000)
    print(ServerTime(clock).format("Europe/London", "HH:mm:ss"))
"""

from importlib.metadata import PackageNotFoundError, version

from servertime._clock import ClockPort, SystemClock, SystemWallClock, WallClockPort
from servertime._engine import SyncAttemptResult, SyncEngine, SyncReport
from servertime._errors import (
    AllAttemptsFailedError,
    AttemptFailure,
    InvalidTimestampError,
    MalformedResponseError,
    ServerTimeError,
    TransportError,
    build_attempt_failure,
)
from servertime._logging import JsonFormatter, configure_logging
from servertime._parts import (
    FormatterCache,
    PartFormatter,
    extract_day_period,
    extract_part,
)
from servertime._pattern import render
from servertime._server_clock import ClockState, ServerClock, SyncCall
from servertime._settings import (
    DEFAULT_PATTERN,
    FormatSettings,
    LoggingSettings,
    Settings,
    SyncSettings,
)
from servertime._time import ServerTime, is_valid_timezone
from servertime._timestamps import normalize_timestamp
from servertime._transport import (
    HttpxTransport,
    MockTransport,
    TransportPort,
    TransportResponse,
)

try:
    __version__ = version("servertime")
except PackageNotFoundError:
    # Last resort fallback for source checkouts without metadata
    __version__ = "0.0.0+unknown"

__all__ = [
    # Version
    "__version__",
    # Clock
    "ClockPort",
    "SystemClock",
    "SystemWallClock",
    "WallClockPort",
    # Sync
    "ClockState",
    "ServerClock",
    "SyncAttemptResult",
    "SyncCall",
    "SyncEngine",
    "SyncReport",
    "normalize_timestamp",
    # Formatting
    "DEFAULT_PATTERN",
    "FormatterCache",
    "PartFormatter",
    "ServerTime",
    "extract_day_period",
    "extract_part",
    "is_valid_timezone",
    "render",
    # Transport
    "HttpxTransport",
    "MockTransport",
    "TransportPort",
    "TransportResponse",
    # Errors
    "AllAttemptsFailedError",
    "AttemptFailure",
    "InvalidTimestampError",
    "MalformedResponseError",
    "ServerTimeError",
    "TransportError",
    "build_attempt_failure",
    # Logging
    "JsonFormatter",
    "configure_logging",
    # Settings
    "FormatSettings",
    "LoggingSettings",
    "Settings",
    "SyncSettings",
]
