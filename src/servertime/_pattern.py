"""Token-based pattern rendering.

Token vocabulary::

    YYYY  4-digit year          M   month, no padding
    MM    month, 2 digits       D   day, no padding
    DD    day, 2 digits         H   hour 0-23, no padding
    HH    hour 00-23            h   hour 1-12, no padding
    hh    hour 01-12            m   minute, no padding
    mm    minute, 2 digits      s   second, no padding
    ss    second, 2 digits      A   AM/PM
                                a   am/pm

The pattern is scanned once, left to right, by a single regular
expression whose alternatives are ordered longest first, so ``HH`` is
consumed before ``H`` can match.  Substituted values are appended to
the output and never rescanned.  Characters that are not part of a
token pass through unchanged.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime, tzinfo

from servertime._parts import FormatterCache, ZoneLike, extract_day_period, extract_part

_Handler = Callable[[datetime, ZoneLike, tzinfo | None, FormatterCache | None], str]


def _part(field: str, *, padded: bool, twelve_hour: bool = False) -> _Handler:
    def handler(
        instant: datetime,
        zone: ZoneLike,
        local_zone: tzinfo | None,
        cache: FormatterCache | None,
    ) -> str:
        return extract_part(
            instant,
            field,  # type: ignore[arg-type]
            zone,
            padded=padded,
            twelve_hour=twelve_hour,
            local_zone=local_zone,
            cache=cache,
        )

    return handler


def _period(*, uppercase: bool) -> _Handler:
    def handler(
        instant: datetime,
        zone: ZoneLike,
        local_zone: tzinfo | None,
        cache: FormatterCache | None,
    ) -> str:
        return extract_day_period(
            instant,
            zone,
            uppercase=uppercase,
            local_zone=local_zone,
            cache=cache,
        )

    return handler


TOKEN_HANDLERS: dict[str, _Handler] = {
    "YYYY": _part("year", padded=True),
    "MM": _part("month", padded=True),
    "DD": _part("day", padded=True),
    "HH": _part("hour", padded=True),
    "hh": _part("hour", padded=True, twelve_hour=True),
    "mm": _part("minute", padded=True),
    "ss": _part("second", padded=True),
    "M": _part("month", padded=False),
    "D": _part("day", padded=False),
    "H": _part("hour", padded=False),
    "h": _part("hour", padded=False, twelve_hour=True),
    "m": _part("minute", padded=False),
    "s": _part("second", padded=False),
    "A": _period(uppercase=True),
    "a": _period(uppercase=False),
}

_TOKEN_RE = re.compile(
    "|".join(re.escape(token) for token in sorted(TOKEN_HANDLERS, key=len, reverse=True)),
)


def tokenize(pattern: str) -> list[tuple[bool, str]]:
    """Split *pattern* into ``(is_token, text)`` pieces, in order."""
    pieces: list[tuple[bool, str]] = []
    position = 0
    for match in _TOKEN_RE.finditer(pattern):
        if match.start() > position:
            pieces.append((False, pattern[position : match.start()]))
        pieces.append((True, match.group()))
        position = match.end()
    if position < len(pattern):
        pieces.append((False, pattern[position:]))
    return pieces


def render(
    instant: datetime,
    pattern: str,
    zone: ZoneLike = None,
    *,
    local_zone: tzinfo | None = None,
    cache: FormatterCache | None = None,
) -> str:
    """Render *instant* in *zone* according to *pattern*.

    Example::

        >>> render(datetime(2025, 1, 1, 13, 5, tzinfo=UTC), "h:mm a", "UTC")
        '1:05 pm'
    """
    return "".join(
        TOKEN_HANDLERS[text](instant, zone, local_zone, cache) if is_token else text
        for is_token, text in tokenize(pattern)
    )
