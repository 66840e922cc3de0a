"""Time accessors over a :class:`~servertime._server_clock.ServerClock`.

:class:`ServerTime` reads the clock's corrected instant and renders it.
Its :meth:`ServerTime.format` accepts four call shapes::

    time.format()                               # local zone, default pattern
    time.format("HH:mm")                        # local zone, custom pattern
    time.format("Asia/Tokyo")                   # zone, default pattern
    time.format("Asia/Tokyo", "YYYY/MM/DD")     # zone and pattern

A single argument is read as a zone only when
:func:`is_valid_timezone` accepts it.  That check is a strict prefix
allowlist used for disambiguation alone; a zone passed in the
two-argument form goes to :mod:`zoneinfo` unchecked.
"""

from __future__ import annotations

from datetime import UTC, datetime, tzinfo

from servertime._parts import FormatterCache, ZoneLike, resolve_zone
from servertime._pattern import render
from servertime._server_clock import ServerClock
from servertime._settings import DEFAULT_PATTERN, Settings

VALID_ZONE_PREFIXES: tuple[str, ...] = (
    "Africa/",
    "America/",
    "Antarctica/",
    "Arctic/",
    "Asia/",
    "Atlantic/",
    "Australia/",
    "Europe/",
    "Indian/",
    "Pacific/",
)
BASIC_ZONES = frozenset({"UTC", "GMT", "Zulu"})


def is_valid_timezone(value: object) -> bool:
    """Whether *value* looks like an IANA zone name."""
    if not isinstance(value, str):
        return False
    return value.startswith(VALID_ZONE_PREFIXES) or value in BASIC_ZONES


class ServerTime:
    """Reads and formats the instant of a :class:`ServerClock`.

    Args:
        clock: The clock providing the corrected instant.
        default_pattern: Pattern used when ``format`` gets none.
        local_zone: Zone standing in for "local"; the host zone when
            ``None``.
        cache: Formatter cache; the shared module cache by default.
    """

    def __init__(
        self,
        clock: ServerClock,
        *,
        default_pattern: str = DEFAULT_PATTERN,
        local_zone: ZoneLike = None,
        cache: FormatterCache | None = None,
    ) -> None:
        self._clock = clock
        self._default_pattern = default_pattern
        self._local_zone: tzinfo | None = (
            resolve_zone(local_zone) if local_zone is not None else None
        )
        self._cache = cache

    @classmethod
    def from_settings(cls, clock: ServerClock, settings: Settings) -> ServerTime:
        return cls(
            clock,
            default_pattern=settings.format.default_pattern,
            local_zone=settings.format.local_zone,
        )

    @property
    def clock(self) -> ServerClock:
        return self._clock

    def now_ms(self) -> float:
        """Current corrected instant in epoch milliseconds."""
        return self._clock.now_ms()

    def get_date(self, zone: ZoneLike = None) -> datetime:
        """Return the current corrected instant as an aware datetime.

        *zone* only picks the ``tzinfo`` the instant is expressed in
        (UTC when omitted or unknown); ``.timestamp()`` is the same
        whatever the zone.
        """
        instant = datetime.fromtimestamp(self.now_ms() / 1000.0, tz=UTC)
        if zone is None:
            return instant
        return instant.astimezone(resolve_zone(zone, UTC))

    def format(
        self,
        zone_or_pattern: str | None = None,
        pattern: str | None = None,
    ) -> str:
        """Render the current corrected instant.

        See the module docstring for the accepted call shapes.
        """
        zone: str | None = None
        fmt = self._default_pattern

        if zone_or_pattern is not None and pattern is None:
            if is_valid_timezone(zone_or_pattern):
                zone = zone_or_pattern
            else:
                fmt = zone_or_pattern
        elif zone_or_pattern is not None or pattern is not None:
            zone = zone_or_pattern
            fmt = pattern if pattern is not None else fmt

        return render(
            self.get_date(),
            fmt,
            zone,
            local_zone=self._local_zone,
            cache=self._cache,
        )
