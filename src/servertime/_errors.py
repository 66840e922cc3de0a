"""Exception taxonomy and structured attempt-failure records.

Every error the sync engine can observe while talking to a time
endpoint maps onto one of these classes::

    ServerTimeError
    ├── TransportError            ← network failure, timeout, non-2xx
    ├── MalformedResponseError    ← body not JSON / not an object / no timestamp
    │   └── InvalidTimestampError ← timestamp not a finite number
    └── AllAttemptsFailedError    ← zero successful attempts in one sync

Per-attempt errors never reach the caller.  The engine converts each
one into an immutable :class:`AttemptFailure` (via
:func:`build_attempt_failure`) so that failures stay observable through
logs and :class:`~servertime._engine.SyncReport` without being raised.

Consumers may supply their own ``error_type_map`` to map exception
classes to machine-readable type strings.  Unknown exceptions fall
back to the generic ``"error"`` type.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Sequence
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ServerTimeError(Exception):
    """Base class for all servertime errors."""


class TransportError(ServerTimeError):
    """The request could not be completed or returned a non-2xx status.

    Args:
        message: Human-readable description.
        status: HTTP status code when a response was received.
    """

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class MalformedResponseError(ServerTimeError):
    """The response body does not carry a usable ``timestamp`` field."""


class InvalidTimestampError(MalformedResponseError):
    """A timestamp value is not a finite number."""


class AllAttemptsFailedError(ServerTimeError):
    """No attempt of a sync call produced a result.

    Args:
        endpoint: The endpoint that was sampled.
        failures: One record per failed attempt, in attempt order.
    """

    def __init__(
        self,
        endpoint: str,
        failures: Sequence[AttemptFailure] = (),
    ) -> None:
        super().__init__(
            f"All {len(failures)} sync attempts against {endpoint} failed",
        )
        self.endpoint = endpoint
        self.failures = tuple(failures)


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------

DEFAULT_ERROR_TYPE_MAP: dict[type[BaseException], str] = {
    TransportError: "transport",
    MalformedResponseError: "malformed_response",
    InvalidTimestampError: "invalid_timestamp",
    asyncio.TimeoutError: "timeout",
}
"""Exact-class mapping used when no ``error_type_map`` is given."""


@dataclass(frozen=True, slots=True)
class AttemptFailure:
    """Immutable record of one failed sync attempt."""

    attempt: int
    error_type: str
    message: str
    timestamp: str

    def to_dict(self) -> dict[str, object]:
        """Serialise to a plain dictionary."""
        return asdict(self)

    def to_json(self) -> str:
        """Serialise to a JSON string."""
        return json.dumps(self.to_dict())


def build_attempt_failure(
    error: BaseException,
    *,
    attempt: int,
    error_type_map: dict[type[BaseException], str] | None = None,
    clock: Callable[[], datetime] | None = None,
) -> AttemptFailure:
    """Convert an exception into a structured :class:`AttemptFailure`.

    Looks up the exact class of the exception; subclasses are not matched.

    Args:
        error: The exception raised by the attempt.
        attempt: Zero-based attempt index within the sync call.
        error_type_map: Optional mapping from exception types to
            machine-readable ``error_type`` strings.  Defaults to
            :data:`DEFAULT_ERROR_TYPE_MAP`; unmapped types fall back
            to ``"error"``.
        clock: Optional callable returning a :class:`~datetime.datetime`.
            Defaults to ``datetime.now(UTC)``.

    Returns:
        A frozen dataclass ready for logging or serialisation.
    """
    resolved_map = (
        DEFAULT_ERROR_TYPE_MAP if error_type_map is None else error_type_map
    )
    error_type = resolved_map.get(type(error), "error")
    now = clock() if clock is not None else datetime.now(UTC)
    message = str(error) or type(error).__name__
    return AttemptFailure(
        attempt=attempt,
        error_type=error_type,
        message=message,
        timestamp=now.isoformat(),
    )
