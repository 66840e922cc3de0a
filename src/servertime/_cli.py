"""Command-line interface (Typer-based).

Global options (``--version``, ``--log-level``, ``--log-format``,
``--env-file``) are parsed by the callback, which loads
:class:`~servertime._settings.Settings`, applies the overrides and
configures logging.  Commands:

- ``sync`` — one foreground sync, then print the corrected time.
- ``watch`` — sync with auto-update and print the time every second.
- ``format`` — render the local wall-clock time, no network involved.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Annotated, Any, TypeVar, get_args

import typer
from pydantic import ValidationError

from servertime._logging import configure_logging
from servertime._server_clock import METHODS, ServerClock
from servertime._settings import LoggingSettings, Settings
from servertime._time import ServerTime
from servertime._transport import HttpxTransport, TransportPort

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUNTIME_ERROR = 3
EXIT_NOT_SYNCED = 4

# ---------------------------------------------------------------------------
# Allowed values (extracted from LoggingSettings Literal types)
# ---------------------------------------------------------------------------

_VALID_LOG_LEVELS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["level"].annotation,
)
_VALID_LOG_FORMATS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["format"].annotation,
)


def _make_transport() -> TransportPort:
    return HttpxTransport()


@dataclass(frozen=True)
class SyncOutcome:
    rendered: str
    synced: bool
    offset_ms: float


app = typer.Typer(
    help="Server-corrected time from an HTTP time endpoint.",
    add_completion=False,
)

# -- helpers -----------------------------------------------------------------


def _resolve_endpoint(settings: Settings, endpoint: str | None) -> str:
    url = endpoint or settings.sync.endpoint
    if not url:
        raise typer.BadParameter(
            "No endpoint given. Pass ENDPOINT or set SERVERTIME_SYNC__ENDPOINT.",
            param_hint="'ENDPOINT'",
        )
    return url


def _resolve_method(settings: Settings, method: str | None) -> str:
    if method is None:
        return settings.sync.method
    if method.upper() not in METHODS:
        raise typer.BadParameter(
            f"Invalid method '{method}'. Choose from: {', '.join(METHODS)}",
            param_hint="'--method'",
        )
    return method.upper()


def _render(
    time: ServerTime,
    settings: Settings,
    zone: str | None,
    pattern: str | None,
) -> str:
    if zone is not None:
        return time.format(zone, pattern or settings.format.default_pattern)
    return time.format(None, pattern)


def _run(coro: Coroutine[Any, Any, T]) -> T | None:
    """Run *coro*, mapping unexpected errors to EXIT_RUNTIME_ERROR.

    Returns ``None`` when interrupted with Ctrl+C.
    """
    try:
        with contextlib.suppress(KeyboardInterrupt):
            return asyncio.run(coro)
    except SystemExit:
        raise
    except Exception as exc:
        logger.error("Runtime error: %s", exc)
        sys.exit(EXIT_RUNTIME_ERROR)
    return None


# -- async bodies --------------------------------------------------------------


async def _sync_once(
    settings: Settings,
    endpoint: str,
    method: str,
    zone: str | None,
    pattern: str | None,
) -> SyncOutcome:
    async with ServerClock.from_settings(settings, transport=_make_transport()) as clock:
        await clock.sync(endpoint, method)
        time = ServerTime.from_settings(clock, settings)
        return SyncOutcome(
            rendered=_render(time, settings, zone, pattern),
            synced=clock.is_synced,
            offset_ms=clock.offset_ms,
        )


async def _watch(
    settings: Settings,
    endpoint: str,
    method: str,
    interval_ms: float,
    count: int,
    zone: str | None,
    pattern: str | None,
) -> None:
    async with ServerClock.from_settings(settings, transport=_make_transport()) as clock:
        await clock.sync(endpoint, method).auto_update(interval_ms)
        time = ServerTime.from_settings(clock, settings)
        ticks = 0
        while True:
            marker = "" if clock.is_synced else " (local)"
            typer.echo(f"{_render(time, settings, zone, pattern)}{marker}")
            ticks += 1
            if count and ticks >= count:
                return
            await asyncio.sleep(1.0)


# -- callback ----------------------------------------------------------------


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version_flag: Annotated[
        bool | None,
        typer.Option("--version", is_eager=True, help="Show version and exit."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Override log level."),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option("--log-format", help="Override log format."),
    ] = None,
    env_file: Annotated[
        str,
        typer.Option("--env-file", help="Path to .env file."),
    ] = ".env",
) -> None:
    from servertime import __version__  # noqa: PLC0415

    if version_flag:
        typer.echo(f"servertime v{__version__}")
        raise typer.Exit()

    if log_level is not None and log_level.upper() not in _VALID_LOG_LEVELS:
        raise typer.BadParameter(
            f"Invalid log level '{log_level}'. "
            f"Choose from: {', '.join(_VALID_LOG_LEVELS)}",
            param_hint="'--log-level'",
        )

    if log_format is not None and log_format.lower() not in _VALID_LOG_FORMATS:
        raise typer.BadParameter(
            f"Invalid log format '{log_format}'. "
            f"Choose from: {', '.join(_VALID_LOG_FORMATS)}",
            param_hint="'--log-format'",
        )

    try:
        settings = Settings(_env_file=env_file)  # type: ignore[call-arg]
    except ValidationError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(EXIT_CONFIG_ERROR) from exc

    if log_level is not None:
        settings.logging = settings.logging.model_copy(
            update={"level": log_level.upper()},
        )
    if log_format is not None:
        settings.logging = settings.logging.model_copy(
            update={"format": log_format.lower()},
        )

    configure_logging(settings.logging, service="servertime", version=__version__)
    ctx.obj = settings

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


# -- commands ----------------------------------------------------------------


@app.command()
def sync(
    ctx: typer.Context,
    endpoint: Annotated[
        str | None,
        typer.Argument(help="Time endpoint URL (default: settings)."),
    ] = None,
    method: Annotated[
        str | None,
        typer.Option("--method", help="HTTP method, GET or POST."),
    ] = None,
    zone: Annotated[
        str | None,
        typer.Option("--zone", help="IANA zone to render in."),
    ] = None,
    pattern: Annotated[
        str | None,
        typer.Option("--pattern", help="Output pattern, e.g. 'YYYY-MM-DD HH:mm:ss'."),
    ] = None,
    attempts: Annotated[
        int | None,
        typer.Option("--attempts", min=1, help="Round trips per sync."),
    ] = None,
) -> None:
    """Sync once and print the corrected time."""
    settings: Settings = ctx.obj
    url = _resolve_endpoint(settings, endpoint)
    verb = _resolve_method(settings, method)
    if attempts is not None:
        settings.sync = settings.sync.model_copy(update={"attempts": attempts})

    outcome = _run(_sync_once(settings, url, verb, zone, pattern))
    if outcome is None:
        raise typer.Exit(EXIT_RUNTIME_ERROR)
    typer.echo(outcome.rendered)
    typer.echo(f"synced={str(outcome.synced).lower()} offset_ms={outcome.offset_ms:.1f}")
    raise typer.Exit(EXIT_OK if outcome.synced else EXIT_NOT_SYNCED)


@app.command()
def watch(
    ctx: typer.Context,
    endpoint: Annotated[
        str | None,
        typer.Argument(help="Time endpoint URL (default: settings)."),
    ] = None,
    method: Annotated[
        str | None,
        typer.Option("--method", help="HTTP method, GET or POST."),
    ] = None,
    interval_ms: Annotated[
        float | None,
        typer.Option("--interval-ms", help="Re-sync period in milliseconds."),
    ] = None,
    count: Annotated[
        int,
        typer.Option("--count", min=0, help="Lines to print; 0 runs until interrupted."),
    ] = 0,
    zone: Annotated[
        str | None,
        typer.Option("--zone", help="IANA zone to render in."),
    ] = None,
    pattern: Annotated[
        str | None,
        typer.Option("--pattern", help="Output pattern."),
    ] = None,
) -> None:
    """Sync with auto-update and print the corrected time every second."""
    settings: Settings = ctx.obj
    url = _resolve_endpoint(settings, endpoint)
    verb = _resolve_method(settings, method)
    period = interval_ms if interval_ms is not None else settings.sync.auto_update_interval_ms
    _run(_watch(settings, url, verb, period, count, zone, pattern))


@app.command("format")
def format_command(
    ctx: typer.Context,
    pattern: Annotated[
        str | None,
        typer.Argument(help="Output pattern (default: settings)."),
    ] = None,
    zone: Annotated[
        str | None,
        typer.Option("--zone", help="IANA zone to render in."),
    ] = None,
) -> None:
    """Render the local wall-clock time without syncing."""
    settings: Settings = ctx.obj
    time = ServerTime.from_settings(ServerClock(_make_transport()), settings)
    typer.echo(_render(time, settings, zone, pattern))


def run() -> None:
    """Console-script entry point."""
    app()
