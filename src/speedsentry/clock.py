"""Clock delta resynchronization.

The signing scheme depends on client and server agreeing on the current 30
second window. When they disagree the server answers 401, and the client
asks the dedicated time-delta route for the offset between the two clocks.
That route is unsigned since it exists to bootstrap clock agreement.
"""

import time
from collections.abc import Callable

import pydantic
import structlog

from .config import ClientConfig
from .signer import encode_message
from .transport import Transport, user_agent_for
from .types import TimeDeltaReply

logger = structlog.get_logger(__name__)

TIME_DELTA_ROUTE = "/td/"

HTTP_OK = 200


class ClockSync:
    """Fetches the authoritative clock delta from the server."""

    def __init__(
        self,
        transport: Transport,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the clock sync.

        Args:
            transport: Transport used to reach the time-delta route.
            clock: Wall-clock reader returning Unix time in seconds.
        """
        self._transport = transport
        self._clock = clock

    def refresh(self, config: ClientConfig) -> bool:
        """Query the server time and update ``config.clock_delta``.

        Args:
            config: Configuration whose clock delta is refreshed.

        Returns:
            True if a new delta was stored (and the sink notified). False on
            any failure, leaving the clock delta untouched.
        """
        payload = encode_message({"timestamp": int(self._clock())})
        result = self._transport.post(
            TIME_DELTA_ROUTE,
            payload,
            timeout=config.timeout,
            user_agent=user_agent_for(config.customer_identifier),
        )

        if result.status_code != HTTP_OK or result.body is None:
            logger.warning(
                "Clock delta request failed",
                status_code=result.status_code,
            )
            return False

        try:
            reply = TimeDeltaReply.model_validate_json(result.body)
        except pydantic.ValidationError as exc:
            logger.warning(
                "Clock delta reply rejected",
                errors=exc.error_count(),
            )
            return False

        config.update_clock_delta(reply.time_delta)
        return True
