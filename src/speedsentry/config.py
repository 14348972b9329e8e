"""Long-lived client configuration.

Holds the customer identity, the shared secret, the request timeout and the
clock delta used when signing. The clock delta is the only value that
changes after construction during normal use; reads and writes of it are
serialized through a lock, and sink notification happens inside the same
critical section as the update.
"""

import base64
import binascii
from collections.abc import Callable
from threading import RLock

import structlog

from .errors import ConfigurationError

logger = structlog.get_logger(__name__)

REST_API_SECRET_LENGTH = 56

DEFAULT_TIMEOUT = 20.0

# Key passed to the clock delta sink; matches the option name existing
# deployments already persist the value under.
TIME_DELTA_OPTION = "inesonic_rest_time_delta"

ClockDeltaSink = Callable[[str, int], None]


def decode_secret(secret: str | bytes, is_base64_encoded: bool = False) -> bytes | None:
    """Turn a raw or base64 encoded secret into raw bytes.

    Args:
        secret: The secret, either raw or base64 encoded.
        is_base64_encoded: True if ``secret`` is base64 text.

    Returns:
        The raw secret if it is exactly 56 bytes long, otherwise None.
    """
    if is_base64_encoded:
        try:
            raw = base64.b64decode(secret, validate=True)
        except (binascii.Error, ValueError):
            return None
    elif isinstance(secret, str):
        try:
            raw = secret.encode("latin-1")
        except UnicodeEncodeError:
            return None
    else:
        raw = bytes(secret)

    if len(raw) != REST_API_SECRET_LENGTH:
        return None
    return raw


class ClientConfig:
    """Configuration shared by the signer, clock sync and coordinator.

    Can be safely shared between threads: the clock delta is guarded by a
    lock, everything else is only read while signing.
    """

    def __init__(
        self,
        customer_identifier: str = "",
        secret: str | bytes | None = None,
        clock_delta: int = 0,
        *,
        is_base64_encoded: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        clock_delta_sink: ClockDeltaSink | None = None,
    ):
        """Initialize the configuration.

        Args:
            customer_identifier: Identity sent with every request.
            secret: The 56 byte REST API secret, raw or base64 encoded. None
                leaves the client unconfigured until
                :meth:`set_rest_api_secret` is called.
            clock_delta: Last known server time minus local time, seconds.
            is_base64_encoded: True if ``secret`` is base64 text.
            timeout: Per-request timeout in seconds.
            clock_delta_sink: Called as ``sink(TIME_DELTA_OPTION, delta)``
                whenever a resync produces a new clock delta.

        Raises:
            ConfigurationError: If ``secret`` does not decode to 56 bytes.
            ValueError: If ``timeout`` is not positive.
        """
        self._lock = RLock()
        self._secret: bytes | None = None
        if secret is not None and not self.set_rest_api_secret(
            secret,
            is_base64_encoded,
        ):
            msg = f"REST API secret must be exactly {REST_API_SECRET_LENGTH} bytes"
            raise ConfigurationError(msg)

        self.customer_identifier = customer_identifier
        self.timeout = timeout
        self._clock_delta = int(clock_delta)
        self.clock_delta_sink = clock_delta_sink

    @property
    def secret(self) -> bytes | None:
        """The raw 56 byte secret, or None if not configured."""
        return self._secret

    def set_rest_api_secret(
        self,
        secret: str | bytes,
        is_base64_encoded: bool = False,
    ) -> bool:
        """Replace the REST API secret.

        Args:
            secret: The new secret, raw or base64 encoded.
            is_base64_encoded: True if ``secret`` is base64 text.

        Returns:
            True if the secret was accepted. False if it does not decode to
            exactly 56 bytes, in which case the current secret is kept.
        """
        raw = decode_secret(secret, is_base64_encoded)
        if raw is None:
            logger.warning(
                "Rejected REST API secret with invalid length",
                is_base64_encoded=is_base64_encoded,
            )
            return False
        self._secret = raw
        return True

    @property
    def timeout(self) -> float:
        """Per-request timeout in seconds."""
        return self._timeout

    @timeout.setter
    def timeout(self, value: float) -> None:
        if value <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        self._timeout = float(value)

    @property
    def clock_delta(self) -> int:
        """Server time minus local time, in seconds."""
        with self._lock:
            return self._clock_delta

    @clock_delta.setter
    def clock_delta(self, value: int) -> None:
        # Seeding a cached value; the sink is not notified.
        with self._lock:
            self._clock_delta = int(value)

    def update_clock_delta(self, value: int) -> None:
        """Store a freshly measured clock delta and notify the sink.

        The lock is reentrant, so the sink may read or seed the delta. A sink
        that raises is logged and the stored value stands.

        Args:
            value: The new clock delta in seconds.
        """
        with self._lock:
            self._clock_delta = value
            if self.clock_delta_sink is not None:
                try:
                    self.clock_delta_sink(TIME_DELTA_OPTION, value)
                except Exception:
                    logger.exception(
                        "Clock delta sink failed",
                        option=TIME_DELTA_OPTION,
                        clock_delta=value,
                    )
        logger.info("Clock delta updated", clock_delta=value)
