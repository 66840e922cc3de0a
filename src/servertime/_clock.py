"""Clock ports and system adapters.

Provides two Protocol-based ports and their production adapters:

- :class:`ClockPort` / :class:`SystemClock` — monotonic seconds, used
  as the timing reference for offset math and for "now" once synced.
- :class:`WallClockPort` / :class:`SystemWallClock` — wall-clock
  seconds since the Unix epoch, used as the fallback time source when
  no sync has succeeded.

**Why monotonic?** time.monotonic() is immune to NTP adjustments and
manual system-clock changes.  The epoch is arbitrary — only
*differences* between now() calls are meaningful (PEP 418).  A
successful sync turns that arbitrary epoch into server time by adding
the estimated offset.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class ClockPort(Protocol):
    """Monotonic clock for timing measurements.

    The default implementation wraps ``time.monotonic()``.  Tests
    inject a deterministic fake clock for reproducible timing.
    """

    def now(self) -> float:
        """Return monotonic time in seconds.

        Returns:
            A float representing seconds from an arbitrary epoch.
            Only the *difference* between two calls is meaningful.
        """
        ...


@runtime_checkable
class WallClockPort(Protocol):
    """Wall clock returning seconds since the Unix epoch.

    Structurally identical to :class:`ClockPort`; the separate name
    documents which reference a collaborator expects.
    """

    def now(self) -> float:
        """Return wall-clock time in seconds since the epoch."""
        ...


class SystemClock:
    """Production clock wrapping ``time.monotonic()``.

    Satisfies :class:`ClockPort` via structural subtyping — no
    base-class inheritance required (PEP 544).
    """

    def now(self) -> float:
        """Return monotonic time in seconds."""
        return time.monotonic()


class SystemWallClock:
    """Production wall clock wrapping ``time.time()``."""

    def now(self) -> float:
        """Return wall-clock time in seconds since the epoch."""
        return time.time()


def to_millis(seconds: float) -> float:
    """Convert a clock reading in seconds to milliseconds."""
    return seconds * 1000.0
