"""Public test-support utilities for servertime.

Re-exports test doubles and factories so that consumer test suites
can import everything from a single ``servertime.testing`` namespace
instead of reaching into private modules.

Provided symbols:

- :class:`ClockHarness` — ServerClock + ServerTime wired with doubles.
- :class:`MockTransport` — in-memory transport that records calls.
- :class:`FakeClock` — deterministic clock for timing tests.
- :func:`make_settings` — factory for ``Settings`` without ``.env`` files.
"""

from servertime._transport import MockTransport
from servertime.testing._clock import FakeClock
from servertime.testing._harness import ClockHarness
from servertime.testing._settings import make_settings

__all__ = [
    "ClockHarness",
    "FakeClock",
    "MockTransport",
    "make_settings",
]
