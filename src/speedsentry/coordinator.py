"""Request coordination: sign, send, resync once on 401, interpret.

States::

    Idle -> Sent -> Done
                 -> RetryAfterSync -> Sent' -> Done

At most one retry happens per logical call, so a call costs at most two
POSTs plus one clock-sync round trip. A transport failure (status 0) is
terminal and never triggers a resync.
"""

import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from . import signer
from .clock import HTTP_OK, ClockSync
from .config import ClientConfig
from .errors import FailureKind
from .transport import NO_RESPONSE, Transport, TransportResult, user_agent_for
from .types import PlotResult

logger = structlog.get_logger(__name__)

HTTP_UNAUTHORIZED = 401


@dataclass(frozen=True)
class Exchange:
    """Final transport result of a coordinated request and its classification.

    ``failure`` is None when the server answered 200. ``attempts`` counts
    the POSTs made and ``resynced`` tells whether a clock sync succeeded
    in between.
    """

    result: TransportResult
    failure: FailureKind | None = None
    attempts: int = 0
    resynced: bool = False

    @property
    def ok(self) -> bool:
        """True if the final status was 200."""
        return self.failure is None


class RequestCoordinator:
    """Drives signer, transport and clock sync for a single logical call."""

    def __init__(
        self,
        config: ClientConfig,
        transport: Transport,
        clock_sync: ClockSync | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the coordinator.

        Args:
            config: Client configuration (identity, secret, clock delta).
            transport: Transport used for every POST.
            clock_sync: Clock sync used after a 401; built on top of
                ``transport`` when omitted.
            clock: Wall-clock reader used when signing.
        """
        self.config = config
        self.transport = transport
        self.clock_sync = clock_sync or ClockSync(transport, clock=clock)
        self._clock = clock

    def _post_signed(self, message: Any, route: str, secret: bytes) -> TransportResult:
        canonical_json, digest = signer.sign(
            message,
            secret,
            self.config.clock_delta,
            now=self._clock(),
        )
        envelope = signer.build_envelope(
            self.config.customer_identifier,
            canonical_json,
            digest,
        )
        return self.transport.post(
            route,
            envelope.to_bytes(),
            timeout=self.config.timeout,
            user_agent=user_agent_for(self.config.customer_identifier),
        )

    def exchange(self, message: Any, route: str) -> Exchange:
        """Send a signed message, resyncing the clock once on 401.

        Args:
            message: JSON-serializable request body.
            route: API route (e.g. "/v1/events/list").

        Returns:
            The final exchange, classified.
        """
        secret = self.config.secret
        if secret is None:
            logger.error("No REST API secret configured", route=route)
            return Exchange(NO_RESPONSE, FailureKind.CONFIGURATION)

        result = self._post_signed(message, route, secret)
        attempts = 1
        resynced = False

        if result.status_code == HTTP_UNAUTHORIZED:
            logger.info("Request unauthorized, resyncing clock", route=route)
            if self.clock_sync.refresh(self.config):
                resynced = True
                result = self._post_signed(message, route, secret)
                attempts += 1

        if not result.completed:
            failure: FailureKind | None = FailureKind.TRANSPORT
        elif result.status_code == HTTP_UNAUTHORIZED:
            failure = FailureKind.AUTHENTICATION
        elif result.status_code != HTTP_OK:
            failure = FailureKind.APPLICATION
        else:
            failure = None

        if failure is not None:
            logger.info(
                "Request failed",
                route=route,
                failure=failure.value,
                status_code=result.status_code,
                attempts=attempts,
            )
        return Exchange(result, failure, attempts, resynced)

    def send(self, message: Any, route: str) -> Any | None:
        """Send a message and decode the JSON reply.

        Args:
            message: JSON-serializable request body.
            route: API route.

        Returns:
            The decoded JSON value, or None on any failure.
        """
        exchange = self.exchange(message, route)
        if not exchange.ok:
            return None

        try:
            return json.loads(exchange.result.body or b"")
        except ValueError:
            logger.warning(
                "Request failed",
                route=route,
                failure=FailureKind.DECODE.value,
                status_code=exchange.result.status_code,
            )
            return None

    def send_binary(self, message: Any, route: str) -> PlotResult | None:
        """Send a message and return the raw reply with its content type.

        Args:
            message: JSON-serializable request body.
            route: API route.

        Returns:
            The raw body and content type, or None on any failure.
        """
        exchange = self.exchange(message, route)
        if not exchange.ok:
            return None
        return PlotResult(
            body=exchange.result.body or b"",
            content_type=exchange.result.content_type or "",
        )
