"""Timezone-aware calendar part extraction.

Given an instant and an IANA zone, :func:`extract_part` returns one
calendar field (year, month, day, hour, minute, second) as a string and
:func:`extract_day_period` returns the AM/PM indicator.

Conversion goes through :class:`PartFormatter` objects, one per
(locale, options) combination, which break an instant down into typed
parts.  Formatters are reused through a :class:`FormatterCache`.

**Cache bound.**  Entries are never evicted.  The key is built from the
locale (always ``en-US``), the zone, the 12/24-hour flag and the
requested part set, and only two part sets exist (the full calendar
breakdown and the hour/day-period pair).  The number of entries is
therefore at most ``3 x distinct zones requested``, which is small for
any realistic process.

Zones are resolved with :mod:`zoneinfo`.  A name ``zoneinfo`` does not
know falls back to the local zone with a warning; formatting never
raises because of a bad zone.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from functools import lru_cache
from typing import Literal, NamedTuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

LOCALE = "en-US"

PartField = Literal["year", "month", "day", "hour", "minute", "second"]

CALENDAR_FIELDS: tuple[str, ...] = ("year", "month", "day", "hour", "minute", "second")
DAY_PERIOD_FIELDS: tuple[str, ...] = ("hour",)

ZoneLike = str | tzinfo | None

# ---------------------------------------------------------------------------
# Zone resolution
# ---------------------------------------------------------------------------


def resolve_local_zone() -> tzinfo:
    """Return the host's local zone (UTC when it cannot be determined)."""
    return datetime.now().astimezone().tzinfo or UTC


@lru_cache(maxsize=64)
def _load_zone(name: str) -> tzinfo | None:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using the local zone", name)
        return None


def resolve_zone(zone: ZoneLike, local_zone: tzinfo | None = None) -> tzinfo:
    """Resolve *zone* to a :class:`~datetime.tzinfo`.

    ``None`` and unknown names resolve to *local_zone*, or to the host
    zone when *local_zone* is not given.
    """
    if isinstance(zone, tzinfo):
        return zone
    if zone:
        loaded = _load_zone(zone)
        if loaded is not None:
            return loaded
    return local_zone if local_zone is not None else resolve_local_zone()


def zone_key(zone: tzinfo) -> str:
    """Stable string identifying *zone* inside a cache key."""
    return getattr(zone, "key", None) or repr(zone)


# ---------------------------------------------------------------------------
# Formatter objects
# ---------------------------------------------------------------------------


class DatePart(NamedTuple):
    """One typed piece of a formatted instant, e.g. ``("month", "01")``."""

    type: str
    value: str


@dataclass(frozen=True)
class PartFormatter:
    """Breaks an instant into zone-local, 2-digit calendar parts.

    Numeric parts are zero-padded to two digits except the year, which
    is rendered as a plain number.  With ``hour12`` the hour runs
    ``01``-``12`` and a ``dayPeriod`` part (``AM``/``PM``) is emitted.
    """

    locale: str
    zone: tzinfo
    hour12: bool
    fields: tuple[str, ...] = CALENDAR_FIELDS

    def format_to_parts(self, instant: datetime) -> list[DatePart]:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        local = instant.astimezone(self.zone)

        parts: list[DatePart] = []
        for name in self.fields:
            if name == "year":
                parts.append(DatePart("year", str(local.year)))
            elif name == "month":
                parts.append(DatePart("month", f"{local.month:02d}"))
            elif name == "day":
                parts.append(DatePart("day", f"{local.day:02d}"))
            elif name == "hour":
                hour = (local.hour % 12 or 12) if self.hour12 else local.hour
                parts.append(DatePart("hour", f"{hour:02d}"))
            elif name == "minute":
                parts.append(DatePart("minute", f"{local.minute:02d}"))
            elif name == "second":
                parts.append(DatePart("second", f"{local.second:02d}"))
        if self.hour12:
            parts.append(DatePart("dayPeriod", "AM" if local.hour < 12 else "PM"))
        return parts


class FormatterCache:
    """Unbounded, append-only map of serialized options to formatters.

    Safe without locking under asyncio's single-threaded model.  See
    the module docstring for why the key space stays small.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PartFormatter] = {}

    def get_or_create(
        self,
        key: str,
        factory: Callable[[], PartFormatter],
    ) -> PartFormatter:
        formatter = self._entries.get(key)
        if formatter is None:
            formatter = factory()
            self._entries[key] = formatter
        return formatter

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def clear(self) -> None:
        self._entries.clear()


default_cache = FormatterCache()


def _cache_key(zone: tzinfo, hour12: bool, fields: tuple[str, ...]) -> str:
    options = {"timeZone": zone_key(zone), "hour12": hour12, "fields": list(fields)}
    return json.dumps({"locale": LOCALE, "options": options}, sort_keys=True)


def get_formatter(
    zone: tzinfo,
    *,
    hour12: bool = False,
    fields: tuple[str, ...] = CALENDAR_FIELDS,
    cache: FormatterCache | None = None,
) -> PartFormatter:
    """Return the cached formatter for these options, creating it on a miss."""
    store = cache if cache is not None else default_cache
    return store.get_or_create(
        _cache_key(zone, hour12, fields),
        lambda: PartFormatter(locale=LOCALE, zone=zone, hour12=hour12, fields=fields),
    )


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def _find(parts: list[DatePart], name: str) -> str:
    return next((part.value for part in parts if part.type == name), "")


def extract_part(
    instant: datetime,
    field: PartField,
    zone: ZoneLike = None,
    *,
    padded: bool = True,
    twelve_hour: bool = False,
    local_zone: tzinfo | None = None,
    cache: FormatterCache | None = None,
) -> str:
    """Return *field* of *instant* as seen in *zone*.

    Args:
        instant: The moment to render.  Naive datetimes are read as UTC.
        field: Calendar field to extract.
        zone: IANA name or tzinfo; ``None`` means the local zone.
        padded: Keep the 2-digit form (``"07"``) instead of ``"7"``.
        twelve_hour: 12-hour clock; only meaningful for ``"hour"``.
        local_zone: Zone used for ``zone=None`` and unknown names.
        cache: Formatter cache; the module-level cache by default.

    Returns:
        The field value, or ``""`` when the formatter did not produce it.
    """
    tz = resolve_zone(zone, local_zone)
    hour12 = twelve_hour and field == "hour"
    formatter = get_formatter(tz, hour12=hour12, cache=cache)
    value = _find(formatter.format_to_parts(instant), field)
    if padded or not value:
        return value
    return str(int(value))


def extract_day_period(
    instant: datetime,
    zone: ZoneLike = None,
    *,
    uppercase: bool = True,
    local_zone: tzinfo | None = None,
    cache: FormatterCache | None = None,
) -> str:
    """Return ``AM``/``PM`` for *instant* in *zone*, case-folded on request."""
    tz = resolve_zone(zone, local_zone)
    formatter = get_formatter(tz, hour12=True, fields=DAY_PERIOD_FIELDS, cache=cache)
    value = _find(formatter.format_to_parts(instant), "dayPeriod")
    return value.upper() if uppercase else value.lower()
