"""HTTP transport port and adapters.

Provides TransportPort (Protocol) and two implementations:

- HttpxTransport — real adapter backed by ``httpx.AsyncClient``
- MockTransport — test double that records calls and replays scripted
  responses

Design decisions:

- httpx is imported lazily inside HttpxTransport._get_client() so the
  mock adapter works without httpx installed
- The port returns the *decoded* JSON body; a body that is not JSON
  raises MalformedResponseError inside the adapter
- Status handling (2xx or not) is left to the caller so adapters stay
  dumb pipes
- Timeouts are passed per request; the sync engine additionally wraps
  each call in ``asyncio.wait_for`` so a misbehaving adapter cannot
  hang an attempt
"""

from __future__ import annotations

import json
import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from servertime._errors import MalformedResponseError, TransportError

logger = logging.getLogger(__name__)

JSON_HEADERS: dict[str, str] = {"Content-Type": "application/json"}
"""Headers sent with POST requests."""

# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransportResponse:
    """A completed HTTP exchange.

    Attributes:
        status: HTTP status code.
        body: Decoded JSON body (``None`` for an empty body).
    """

    status: int
    body: Any = None

    @property
    def ok(self) -> bool:
        """Whether the status is in the 2xx range."""
        return 200 <= self.status < 300


# ---------------------------------------------------------------------------
# Port (Protocol)
# ---------------------------------------------------------------------------


@runtime_checkable
class TransportPort(Protocol):
    """Port contract for fetching a timestamp document over HTTP.

    All HTTP interaction goes through this protocol so adapters are
    swappable.
    """

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> TransportResponse: ...


def decode_json_body(content: bytes | str) -> Any:
    """Decode a response body, mapping parse errors to MalformedResponseError."""
    if not content:
        return None
    try:
        return json.loads(content)
    except (UnicodeDecodeError, ValueError) as exc:
        msg = f"Response body is not valid JSON: {exc}"
        raise MalformedResponseError(msg) from exc


# ---------------------------------------------------------------------------
# Mock / test-double adapter
# ---------------------------------------------------------------------------


@dataclass
class MockTransport:
    """In-memory test double that records requests.

    Scripted outcomes are consumed in FIFO order; each is either a
    :class:`TransportResponse` to return or an exception to raise.
    When the script runs dry, ``default`` is used (an exception or a
    response).  With no ``default`` an exhausted script raises
    :class:`~servertime._errors.TransportError`.
    """

    default: TransportResponse | BaseException | None = None
    calls: list[tuple[str, str, dict[str, str], float | None]] = field(
        default_factory=list,
    )
    _script: deque[TransportResponse | BaseException] = field(
        default_factory=deque,
        init=False,
        repr=False,
    )

    # -- TransportPort method ------------------------------------------------

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> TransportResponse:
        """Record the request and return the next scripted outcome."""
        self.calls.append((method, url, dict(headers or {}), timeout))
        outcome = self._script.popleft() if self._script else self.default
        if outcome is None:
            msg = f"MockTransport has no response scripted for {method} {url}"
            raise TransportError(msg)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    # -- Test helpers -------------------------------------------------------

    def queue(self, *outcomes: TransportResponse | BaseException) -> None:
        """Append outcomes to the script."""
        self._script.extend(outcomes)

    def queue_timestamp(self, timestamp: object, *, status: int = 200) -> None:
        """Script a JSON body ``{"timestamp": timestamp}``."""
        self.queue(TransportResponse(status=status, body={"timestamp": timestamp}))

    @property
    def call_count(self) -> int:
        """Number of recorded requests."""
        return len(self.calls)

    def reset(self) -> None:
        """Clear recorded calls and the remaining script."""
        self.calls.clear()
        self._script.clear()


# ---------------------------------------------------------------------------
# Real adapter
# ---------------------------------------------------------------------------


@dataclass
class HttpxTransport:
    """Production transport backed by ``httpx.AsyncClient``.

    The client is created on first use and reused for every attempt so
    that connection setup is paid once per process rather than once
    per attempt.  Call :meth:`aclose` to release it.

    ``http_transport`` is handed to the client unchanged; tests pass an
    ``httpx.MockTransport`` there to serve canned responses.

    Network-level failures (``httpx.HTTPError`` and ``OSError``) are
    re-raised as :class:`~servertime._errors.TransportError`.
    """

    user_agent: str = "servertime"
    http_transport: Any = field(default=None, repr=False)
    _client: Any = field(default=None, init=False, repr=False)

    def _get_client(self) -> Any:
        try:
            import httpx  # noqa: PLC0415
        except ModuleNotFoundError as exc:
            msg = "httpx is required to use HttpxTransport"
            raise RuntimeError(msg) from exc

        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
                transport=self.http_transport,
            )
        return self._client

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> TransportResponse:
        """Send one request and decode its JSON body."""
        client = self._get_client()
        import httpx  # noqa: PLC0415

        try:
            response = await client.request(
                method,
                url,
                headers=dict(headers or {}),
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            msg = f"{method} {url} timed out"
            raise TransportError(msg) from exc
        except (httpx.HTTPError, OSError) as exc:
            msg = f"{method} {url} failed: {exc}"
            raise TransportError(msg) from exc

        logger.debug("%s %s -> %d", method, url, response.status_code)
        if not response.is_success:
            return TransportResponse(status=response.status_code)
        return TransportResponse(
            status=response.status_code,
            body=decode_json_body(response.content),
        )

    async def aclose(self) -> None:
        """Close the underlying client.

        Idempotent — safe to call multiple times.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
