"""Timestamp unit normalisation.

Time endpoints disagree on units: some report Unix seconds
(``1735693200``), others milliseconds (``1735693200000``).  A value with
exactly ten decimal digits is seconds, anything else is already
milliseconds.
There is no further bounds checking, so 9- or 11-digit second counts
pass through unchanged and are read as milliseconds.
"""

from __future__ import annotations

import math
from numbers import Real

from servertime._errors import InvalidTimestampError

_SECONDS_DIGITS = 10


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity."""
    return math.floor(value + 0.5)


def normalize_timestamp(value: object) -> int:
    """Return *value* in integer milliseconds.

    Args:
        value: A finite real number in seconds or milliseconds.

    Raises:
        InvalidTimestampError: If *value* is not a real number
            (``bool`` included) or is NaN/infinite.
    """
    if isinstance(value, bool) or not isinstance(value, Real):
        msg = f"Invalid timestamp {value!r}: must be a finite number"
        raise InvalidTimestampError(msg)
    if not math.isfinite(value):
        msg = f"Invalid timestamp {value!r}: must be a finite number"
        raise InvalidTimestampError(msg)

    rounded = round_half_up(float(value))
    if len(str(abs(rounded))) == _SECONDS_DIGITS:
        return rounded * 1000
    return rounded


def coerce_timestamp(raw: object) -> int:
    """Coerce a JSON ``timestamp`` field and normalise it.

    Numeric strings (``"1735693200"``) are accepted; anything that does
    not parse as a finite float fails.
    """
    if isinstance(raw, str):
        try:
            raw = float(raw.strip())
        except ValueError as exc:
            msg = f"Invalid timestamp {raw!r}: not numeric"
            raise InvalidTimestampError(msg) from exc
    return normalize_timestamp(raw)
