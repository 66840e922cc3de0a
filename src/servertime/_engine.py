"""Multi-sample offset estimation against an HTTP time endpoint.

One :meth:`SyncEngine.run` performs ``attempts`` sequential round trips
and reports every outcome in a :class:`SyncReport`.  Each successful
round trip yields a :class:`SyncAttemptResult` computed with the NTP
offset/delay formulas::

    offset = ((t2 - t1) + (t3 - t4)) / 2
    delay  = (t4 - t1) - (t3 - t2)

``t1``/``t4`` are the client's monotonic send/receive times.  The
endpoint reports a single timestamp, so the server receive/send times
are synthesised as ``t2 = ts - 100`` and ``t3 = ts + 100``.  The
synthetic 200 ms window shifts every delay by the same constant, so
comparing delays between attempts is unaffected; a delay can therefore
be negative and is not clamped.

The engine holds no clock state of its own: committing the selected
offset is the job of :class:`~servertime._server_clock.ServerClock`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime

from servertime._clock import ClockPort, to_millis
from servertime._errors import (
    AttemptFailure,
    MalformedResponseError,
    TransportError,
    build_attempt_failure,
)
from servertime._settings import (
    DEFAULT_SYNC_ATTEMPTS,
    DEFAULT_SYNC_INTERVAL_MS,
    MIN_SYNC_INTERVAL_MS,
    REQUEST_TIMEOUT_MS,
)
from servertime._timestamps import coerce_timestamp
from servertime._transport import JSON_HEADERS, TransportPort

logger = logging.getLogger(__name__)

SERVER_WINDOW_MS = 100
"""Half-width of the synthetic server receive/send window."""

SleepFunc = Callable[[float], Awaitable[None]]

# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SyncAttemptResult:
    """Offset and delay estimated from one successful round trip (ms)."""

    offset: float
    delay: float
    server_timestamp: int


@dataclass(frozen=True)
class SyncReport:
    """Outcome of one sync run.

    ``selected`` is the lowest-delay result, or ``None`` when every
    attempt failed.
    """

    endpoint: str
    method: str
    results: tuple[SyncAttemptResult, ...] = ()
    failures: tuple[AttemptFailure, ...] = ()
    selected: SyncAttemptResult | None = None
    background: bool = False

    @property
    def succeeded(self) -> bool:
        return self.selected is not None

    def to_dict(self) -> dict[str, object]:
        return {
            "endpoint": self.endpoint,
            "method": self.method,
            "background": self.background,
            "results": [asdict(result) for result in self.results],
            "failures": [failure.to_dict() for failure in self.failures],
            "selected": asdict(self.selected) if self.selected else None,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def estimate(t1: float, t4: float, server_timestamp: int) -> SyncAttemptResult:
    """Apply the offset/delay formulas to one round trip."""
    t2 = server_timestamp - SERVER_WINDOW_MS
    t3 = server_timestamp + SERVER_WINDOW_MS
    offset = ((t2 - t1) + (t3 - t4)) / 2
    delay = (t4 - t1) - (t3 - t2)
    return SyncAttemptResult(offset=offset, delay=delay, server_timestamp=server_timestamp)


def select_best(results: Iterable[SyncAttemptResult]) -> SyncAttemptResult | None:
    """Return the result with the smallest delay; ties keep the earliest."""
    best: SyncAttemptResult | None = None
    for result in results:
        if best is None or result.delay < best.delay:
            best = result
    return best


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@dataclass
class SyncEngine:
    """Runs sequential sync attempts against one transport.

    Args:
        transport: Port used for every request.
        clock: Monotonic clock providing ``t1``/``t4``.
        attempts: Round trips per run; values below 1 become 1.
        attempt_interval_ms: Pause between attempts; raised to 50 ms
            when smaller.
        request_timeout_ms: Bound for a single request.
        sleep: Coroutine used for the inter-attempt pause.  Tests
            inject one that advances a fake clock.
        failure_clock: Optional wall-clock callable stamped onto
            :class:`AttemptFailure` records.
    """

    transport: TransportPort
    clock: ClockPort
    attempts: int = DEFAULT_SYNC_ATTEMPTS
    attempt_interval_ms: float = DEFAULT_SYNC_INTERVAL_MS
    request_timeout_ms: float = REQUEST_TIMEOUT_MS
    sleep: SleepFunc = field(default=asyncio.sleep, repr=False)
    failure_clock: Callable[[], datetime] | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.attempts = max(1, round(self.attempts))
        self.attempt_interval_ms = max(
            MIN_SYNC_INTERVAL_MS,
            round(self.attempt_interval_ms),
        )

    async def attempt(self, endpoint: str, method: str) -> SyncAttemptResult:
        """Perform one round trip.

        Raises:
            TransportError: Network failure or non-2xx status.
            MalformedResponseError: Body without a usable ``timestamp``.
            TimeoutError: The request exceeded ``request_timeout_ms``.
        """
        timeout = self.request_timeout_ms / 1000.0
        headers = JSON_HEADERS if method == "POST" else None

        t1 = to_millis(self.clock.now())
        response = await asyncio.wait_for(
            self.transport.request(method, endpoint, headers=headers, timeout=timeout),
            timeout=timeout,
        )
        if not response.ok:
            msg = f"HTTP request failed: {response.status}"
            raise TransportError(msg, status=response.status)

        body = response.body
        if not isinstance(body, Mapping) or "timestamp" not in body:
            msg = "Invalid response format: missing timestamp field"
            raise MalformedResponseError(msg)

        server_timestamp = coerce_timestamp(body["timestamp"])
        t4 = to_millis(self.clock.now())
        return estimate(t1, t4, server_timestamp)

    async def run(
        self,
        endpoint: str,
        method: str = "POST",
        *,
        background: bool = False,
    ) -> SyncReport:
        """Run all attempts and select the most accurate result.

        Per-attempt errors are logged and recorded, never raised.
        """
        results: list[SyncAttemptResult] = []
        failures: list[AttemptFailure] = []

        for index in range(self.attempts):
            if index > 0:
                await self.sleep(self.attempt_interval_ms / 1000.0)
            try:
                result = await self.attempt(endpoint, method)
            except Exception as exc:
                failure = build_attempt_failure(
                    exc,
                    attempt=index,
                    clock=self.failure_clock,
                )
                failures.append(failure)
                logger.warning(
                    "Sync attempt %d/%d against %s failed: %s",
                    index + 1,
                    self.attempts,
                    endpoint,
                    failure.message,
                    extra={"endpoint": endpoint, "method": method, "attempt": index},
                )
                continue

            results.append(result)
            logger.debug(
                "Sync attempt %d/%d: offset=%.1fms delay=%.1fms",
                index + 1,
                self.attempts,
                result.offset,
                result.delay,
                extra={
                    "endpoint": endpoint,
                    "method": method,
                    "attempt": index,
                    "offset_ms": result.offset,
                    "delay_ms": result.delay,
                },
            )

        selected = select_best(results)
        if selected is not None:
            logger.info(
                "Synced with %s: offset=%.1fms delay=%.1fms (%d/%d attempts ok)",
                endpoint,
                selected.offset,
                selected.delay,
                len(results),
                self.attempts,
                extra={
                    "endpoint": endpoint,
                    "method": method,
                    "offset_ms": selected.offset,
                    "delay_ms": selected.delay,
                },
            )

        return SyncReport(
            endpoint=endpoint,
            method=method,
            results=tuple(results),
            failures=tuple(failures),
            selected=selected,
            background=background,
        )
