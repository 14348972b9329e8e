"""Blocking HTTP transport for the SpeedSentry REST API.

A transport performs exactly one POST and normalizes the outcome into a
:class:`TransportResult`. It never raises for network problems; a request
that produced no response at all is reported as status 0.
"""

import threading
import time
from dataclasses import dataclass
from typing import Protocol

import httpx
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_AUTHORITY = "https://rest.1.speed-sentry.com"

CLIENT_NAME = "Python API"

MAX_REDIRECTS = 5

STATUS_NO_RESPONSE = 0


@dataclass(frozen=True)
class TransportResult:
    """Normalized outcome of a single POST.

    ``status_code`` is 0 when no response was obtained, in which case
    ``body`` and ``content_type`` are None. Otherwise ``content_type`` is
    the lower-cased header value, or an empty string if absent.
    """

    status_code: int
    body: bytes | None = None
    content_type: str | None = None

    @property
    def completed(self) -> bool:
        """True if the server answered at all."""
        return self.status_code != STATUS_NO_RESPONSE


NO_RESPONSE = TransportResult(STATUS_NO_RESPONSE)


def user_agent_for(customer_identifier: str) -> str:
    """User-Agent header value reported for a customer."""
    return f"{CLIENT_NAME} {customer_identifier}"


class Transport(Protocol):
    """Anything able to POST a JSON payload to a route."""

    def post(
        self,
        route: str,
        payload: bytes,
        *,
        timeout: float,
        user_agent: str,
    ) -> TransportResult:
        """POST ``payload`` to ``route`` and return the normalized result."""
        ...


class HttpxTransport:
    """Transport backed by httpx.

    Thread-safe through thread-local storage of httpx.Client instances.
    Can be used as a context manager for automatic cleanup.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_AUTHORITY,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the transport.

        Args:
            base_url: Scheme and authority of the REST API.
            transport: Optional httpx transport, mainly for tests
                (e.g. ``httpx.MockTransport``).

        Raises:
            ValueError: If base_url is empty.
        """
        if not base_url:
            msg = "base_url cannot be empty"
            raise ValueError(msg)

        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._local = threading.local()

    @property
    def client(self) -> httpx.Client:
        """Get or create the thread-local httpx client."""
        if not hasattr(self._local, "client") or self._local.client.is_closed:
            self._local.client = httpx.Client(
                base_url=self.base_url,
                follow_redirects=True,
                max_redirects=MAX_REDIRECTS,
                transport=self._transport,
            )
        return self._local.client

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and cleanup resources."""
        self.close()

    def close(self):
        """Close the thread-local HTTP client if open."""
        if hasattr(self._local, "client") and not self._local.client.is_closed:
            self._local.client.close()

    def post(
        self,
        route: str,
        payload: bytes,
        *,
        timeout: float,
        user_agent: str,
    ) -> TransportResult:
        """POST a JSON payload and normalize the response.

        Args:
            route: Path under the base URL (e.g. "/v1/monitors/list").
            payload: Request body, already JSON encoded.
            timeout: Timeout for this call, in seconds.
            user_agent: User-Agent header value.

        Returns:
            The status, raw body and lower-cased content type, or
            status 0 if no response was obtained.
        """
        headers = {
            "content-type": "application/json",
            "user-agent": user_agent,
            "content-length": str(len(payload)),
        }

        start_time = time.time()
        try:
            logger.debug("Posting request", route=route, size=len(payload))
            response = self.client.post(
                route,
                content=payload,
                headers=headers,
                timeout=timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "Request failed without a response",
                route=route,
                error=str(exc),
                error_type=type(exc).__name__,
                duration_seconds=round(time.time() - start_time, 3),
            )
            return NO_RESPONSE

        logger.debug(
            "Request completed",
            route=route,
            status_code=response.status_code,
            duration_seconds=round(time.time() - start_time, 3),
        )
        return TransportResult(
            status_code=response.status_code,
            body=response.content,
            content_type=response.headers.get("content-type", "").lower(),
        )
