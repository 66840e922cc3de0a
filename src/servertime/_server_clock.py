"""Server-corrected clock: state, sync entry point, auto-update.

:class:`ServerClock` owns one :class:`ClockState` and is the only
writer of it.  Each instance is independent, so tests and multi-server
processes can hold as many clocks as they need.

Sync semantics:

- **Foreground** (``await clock.sync(url)``): resets the state, runs
  the attempts, and either commits the best offset or falls back to
  the local wall clock with ``is_synced = False``.
- **Background** (auto-update tick): runs the attempts without a
  reset; a run with no successful attempt leaves the previous state
  untouched, so a synced clock is never downgraded by a failed
  refresh.

Syncs on one instance are serialized by an :class:`asyncio.Lock`: a
second call waits for the first to finish before it resets the state.
At most one auto-update task exists per state; starting a new one
cancels the previous.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Generator
from dataclasses import dataclass, field
from typing import Any, Self

from servertime._clock import (
    ClockPort,
    SystemClock,
    SystemWallClock,
    WallClockPort,
    to_millis,
)
from servertime._engine import SleepFunc, SyncAttemptResult, SyncEngine, SyncReport
from servertime._errors import AllAttemptsFailedError
from servertime._settings import (
    DEFAULT_AUTO_UPDATE_INTERVAL_MS,
    DEFAULT_SYNC_ATTEMPTS,
    DEFAULT_SYNC_INTERVAL_MS,
    REQUEST_TIMEOUT_MS,
    Settings,
)
from servertime._timestamps import round_half_up
from servertime._transport import HttpxTransport, TransportPort

logger = logging.getLogger(__name__)

METHODS = ("GET", "POST")

# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@dataclass
class ClockState:
    """Mutable sync state owned by one :class:`ServerClock`.

    Attributes:
        offset_ms: Server reference time minus client monotonic time.
        is_synced: True only after the latest sync found a result.
        auto_update_task: The single active periodic re-sync, if any.
        last_report: Report of the most recently completed sync.
    """

    offset_ms: float = 0.0
    is_synced: bool = False
    auto_update_task: asyncio.Task[None] | None = field(default=None, repr=False)
    last_report: SyncReport | None = None

    def reset(self) -> None:
        self.offset_ms = 0.0
        self.is_synced = False

    def commit(self, result: SyncAttemptResult) -> None:
        self.offset_ms = result.offset
        self.is_synced = True

    def cancel_auto_update(self) -> asyncio.Task[None] | None:
        """Cancel the active auto-update task and return it (or ``None``)."""
        task = self.auto_update_task
        if task is not None:
            task.cancel()
            self.auto_update_task = None
        return task


# ---------------------------------------------------------------------------
# Sync handle
# ---------------------------------------------------------------------------


class SyncCall:
    """Awaitable handle for one foreground sync.

    Awaiting it yields the synced instant in epoch milliseconds.  The
    sync itself is already running as a task when the handle is
    returned, so :meth:`auto_update` can be chained before or after
    awaiting::

        instant = await clock.sync(url).auto_update(60_000)
    """

    def __init__(self, clock: ServerClock, endpoint: str, method: str) -> None:
        self.endpoint = endpoint
        self.method = method
        self._clock = clock
        self._task: asyncio.Task[int] = asyncio.ensure_future(
            clock._foreground_sync(endpoint, method),
        )

    def __await__(self) -> Generator[Any, None, int]:
        return self._task.__await__()

    def auto_update(
        self,
        interval_ms: float = DEFAULT_AUTO_UPDATE_INTERVAL_MS,
    ) -> Self:
        """Re-sync periodically with this call's endpoint and method.

        Cancels any existing auto-update first; ``interval_ms <= 0``
        only cancels.

        Returns:
            This handle, for chaining.
        """
        self._clock._schedule_auto_update(self.endpoint, self.method, interval_ms)
        return self

    def done(self) -> bool:
        """Whether the sync has finished."""
        return self._task.done()


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class ServerClock:
    """Time source corrected against a remote endpoint.

    Args:
        transport: HTTP port; defaults to :class:`HttpxTransport`.
        clock: Monotonic clock; defaults to :class:`SystemClock`.
        wall_clock: Fallback wall clock; defaults to
            :class:`SystemWallClock`.
        attempts: Round trips per sync.
        attempt_interval_ms: Pause between round trips (>= 50 ms).
        request_timeout_ms: Bound for one request.
        strict: Raise :class:`AllAttemptsFailedError` from a foreground
            sync with no successful attempt, after resetting state.
        sleep: Coroutine used for all waits (attempt spacing and
            auto-update period).
        state: Pre-existing state to manage; a fresh one by default.
    """

    def __init__(
        self,
        transport: TransportPort | None = None,
        *,
        clock: ClockPort | None = None,
        wall_clock: WallClockPort | None = None,
        attempts: int = DEFAULT_SYNC_ATTEMPTS,
        attempt_interval_ms: float = DEFAULT_SYNC_INTERVAL_MS,
        request_timeout_ms: float = REQUEST_TIMEOUT_MS,
        strict: bool = False,
        sleep: SleepFunc = asyncio.sleep,
        state: ClockState | None = None,
    ) -> None:
        self._transport = transport if transport is not None else HttpxTransport()
        self._clock = clock if clock is not None else SystemClock()
        self._wall_clock = wall_clock if wall_clock is not None else SystemWallClock()
        self._strict = strict
        self._sleep = sleep
        self._state = state if state is not None else ClockState()
        self._lock = asyncio.Lock()
        self._engine = SyncEngine(
            transport=self._transport,
            clock=self._clock,
            attempts=attempts,
            attempt_interval_ms=attempt_interval_ms,
            request_timeout_ms=request_timeout_ms,
            sleep=sleep,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: TransportPort | None = None,
        **kwargs: Any,
    ) -> Self:
        """Build a clock from :class:`~servertime._settings.Settings`."""
        sync = settings.sync
        return cls(
            transport,
            attempts=sync.attempts,
            attempt_interval_ms=sync.attempt_interval_ms,
            request_timeout_ms=sync.request_timeout_ms,
            strict=sync.strict,
            **kwargs,
        )

    # -- read-only state ------------------------------------------------------

    @property
    def is_synced(self) -> bool:
        """Whether the latest sync produced a server offset."""
        return self._state.is_synced

    @property
    def offset_ms(self) -> float:
        return self._state.offset_ms

    @property
    def last_report(self) -> SyncReport | None:
        return self._state.last_report

    @property
    def state(self) -> ClockState:
        return self._state

    @property
    def auto_update_active(self) -> bool:
        task = self._state.auto_update_task
        return task is not None and not task.done()

    def now_ms(self) -> float:
        """Current instant in epoch ms: server-corrected if synced, else wall clock."""
        if not self._state.is_synced:
            return to_millis(self._wall_clock.now())
        return to_millis(self._clock.now()) + self._state.offset_ms

    # -- sync -------------------------------------------------------------------

    def sync(self, endpoint: str, method: str = "POST") -> SyncCall:
        """Start a foreground sync against *endpoint*.

        Must be called from a running event loop.

        Raises:
            ValueError: If *method* is not GET or POST.
        """
        verb = method.upper()
        if verb not in METHODS:
            msg = f"Unsupported method {method!r}; expected one of {METHODS}"
            raise ValueError(msg)
        return SyncCall(self, endpoint, verb)

    async def _foreground_sync(self, endpoint: str, method: str) -> int:
        async with self._lock:
            self._state.reset()
            report = await self._engine.run(endpoint, method)
            self._state.last_report = report

            if report.selected is None:
                self._state.reset()
                if self._strict:
                    raise AllAttemptsFailedError(endpoint, report.failures)
                logger.warning(
                    "All %d sync attempts against %s failed, using local time",
                    len(report.failures),
                    endpoint,
                    extra={"endpoint": endpoint, "method": method},
                )
                return round_half_up(to_millis(self._wall_clock.now()))

            self._state.commit(report.selected)
            return report.selected.server_timestamp

    async def _background_sync(self, endpoint: str, method: str) -> None:
        async with self._lock:
            report = await self._engine.run(endpoint, method, background=True)
            self._state.last_report = report
            if report.selected is None:
                logger.warning(
                    "Background sync against %s failed, keeping previous state",
                    endpoint,
                    extra={"endpoint": endpoint, "method": method},
                )
                return
            self._state.commit(report.selected)

    # -- auto-update ------------------------------------------------------------

    def _schedule_auto_update(
        self,
        endpoint: str,
        method: str,
        interval_ms: float,
    ) -> None:
        self._state.cancel_auto_update()
        if interval_ms <= 0:
            logger.debug("Auto-update disabled")
            return
        self._state.auto_update_task = asyncio.create_task(
            self._auto_update_loop(endpoint, method, interval_ms / 1000.0),
        )
        logger.info("Auto-update every %.0f ms against %s", interval_ms, endpoint)

    async def _auto_update_loop(
        self,
        endpoint: str,
        method: str,
        interval: float,
    ) -> None:
        """Re-sync at a fixed interval until cancelled.

        Sleeps *first*: the foreground sync that started auto-update
        has just run.
        """
        while True:
            await self._sleep(interval)
            try:
                await self._background_sync(endpoint, method)
            except Exception:
                logger.exception("Background sync against %s crashed", endpoint)

    def stop_auto_update(self) -> None:
        """Cancel the auto-update task, if any.  Idempotent."""
        self._state.cancel_auto_update()

    async def aclose(self) -> None:
        """Stop auto-update and release the transport.

        Idempotent — safe to call multiple times.
        """
        task = self._state.cancel_auto_update()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        closer = getattr(self._transport, "aclose", None)
        if closer is not None:
            await closer()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
