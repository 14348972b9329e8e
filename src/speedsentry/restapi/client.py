"""SpeedSentry REST API client.

Typed accessors over the signed request coordinator. Every accessor sends a
small JSON request to a fixed route and extracts one or more fields from
the reply. Communication and server errors are reported as None (or False
for the boolean accessors); the failure cause is logged.
"""

import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import structlog
from pydantic import BaseModel

from ..clock import ClockSync
from ..config import DEFAULT_TIMEOUT, ClientConfig, ClockDeltaSink
from ..coordinator import RequestCoordinator
from ..errors import FailureKind
from ..transport import DEFAULT_AUTHORITY, HttpxTransport, Transport
from ..types import PlotResult
from .types import LatencyPlotSettings, MonitorEntry, MonitorOrder

logger = structlog.get_logger(__name__)

CAPABILITIES_GET_ROUTE = "/v1/capabilities/get"
HOSTS_GET_ROUTE = "/v1/hosts/get"
HOSTS_LIST_ROUTE = "/v1/hosts/list"
MONITORS_GET_ROUTE = "/v1/monitors/get"
MONITORS_LIST_ROUTE = "/v1/monitors/list"
MONITORS_UPDATE_ROUTE = "/v1/monitors/update"
REGIONS_GET_ROUTE = "/v1/regions/get"
REGIONS_LIST_ROUTE = "/v1/regions/list"
EVENTS_GET_ROUTE = "/v1/events/get"
EVENTS_LIST_ROUTE = "/v1/events/list"
EVENTS_CREATE_ROUTE = "/v1/events/create"
STATUS_GET_ROUTE = "/v1/status/get"
STATUS_LIST_ROUTE = "/v1/status/list"
MULTIPLE_LIST_ROUTE = "/v1/multiple/list"
LATENCY_LIST_ROUTE = "/v1/latency/list"
LATENCY_PLOT_ROUTE = "/v1/latency/plot"
CUSTOMER_PAUSE_ROUTE = "/v1/customer/pause"

STATUS_OK = "OK"


def _dump(value: BaseModel | Mapping[str, Any]) -> dict[str, Any]:
    """Convert a request model to a dict, dropping unset fields."""
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_none=True)
    return dict(value)


class SpeedSentryClient:
    """Client for the SpeedSentry REST API.

    Owns a :class:`ClientConfig` and a :class:`RequestCoordinator`; the
    configuration can be changed at any time through :attr:`config`.
    Can be used as a context manager for automatic cleanup.
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
        transport: Transport | None = None,
        base_url: str = DEFAULT_AUTHORITY,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the client.

        Args:
            customer_identifier: Identity from the account settings page.
            secret: The 56 byte REST API secret, raw or base64 encoded.
            clock_delta: Last known clock delta, e.g. a persisted value.
            is_base64_encoded: True if ``secret`` is base64 text.
            timeout: Per-request timeout in seconds.
            clock_delta_sink: Called as ``sink(option, delta)`` after every
                successful resync so the delta can be persisted.
            transport: Transport to use; an :class:`HttpxTransport` for
                ``base_url`` is created when omitted.
            base_url: Scheme and authority of the REST API.
            clock: Wall-clock reader used for signing and resync.

        Raises:
            ConfigurationError: If ``secret`` does not decode to 56 bytes.
            ValueError: If ``timeout`` is not positive or ``base_url`` is
                empty.
        """
        config = ClientConfig(
            customer_identifier,
            secret,
            clock_delta,
            is_base64_encoded=is_base64_encoded,
            timeout=timeout,
            clock_delta_sink=clock_delta_sink,
        )
        self._wire(config, transport, base_url, clock)

    def _wire(
        self,
        config: ClientConfig,
        transport: Transport | None,
        base_url: str,
        clock: Callable[[], float],
    ) -> None:
        self._owns_transport = transport is None
        if transport is None:
            transport = HttpxTransport(base_url)
        self.config = config
        self.coordinator = RequestCoordinator(
            config,
            transport,
            ClockSync(transport, clock=clock),
            clock=clock,
        )

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        transport: Transport | None = None,
        base_url: str = DEFAULT_AUTHORITY,
        clock: Callable[[], float] = time.time,
    ) -> "SpeedSentryClient":
        """Build a client around an existing configuration."""
        client = cls.__new__(cls)
        client._wire(config, transport, base_url, clock)
        return client

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and cleanup resources."""
        self.close()

    def close(self):
        """Close the underlying transport if this client created it."""
        transport = self.coordinator.transport
        if self._owns_transport and isinstance(transport, HttpxTransport):
            transport.close()

    def set_rest_api_secret(
        self,
        secret: str | bytes,
        is_base64_encoded: bool = False,
    ) -> bool:
        """Replace the REST API secret; see :meth:`ClientConfig.set_rest_api_secret`."""
        return self.config.set_rest_api_secret(secret, is_base64_encoded)

    def _call(self, route: str, message: Any, *fields: str) -> dict[str, Any] | None:
        """Send a message and return the reply if it reports success.

        Args:
            route: API route.
            message: JSON-serializable request body.
            *fields: Keys the reply must contain.

        Returns:
            The decoded reply if it is a JSON object with status "OK" and
            all ``fields`` present, otherwise None.
        """
        response = self.coordinator.send(message, route)
        if response is None:
            return None

        if not isinstance(response, dict) or response.get("status") != STATUS_OK:
            logger.info(
                "Request failed",
                route=route,
                failure=FailureKind.APPLICATION.value,
                status=response.get("status") if isinstance(response, dict) else None,
            )
            return None

        if missing := [field for field in fields if field not in response]:
            logger.warning("Reply is missing fields", route=route, missing=missing)
            return None
        return response

    def capabilities_get(self) -> dict[str, Any] | None:
        """Fetch the features available under the current subscription.

        Returns:
            Mapping of capability name (``maximum_number_monitors``,
            ``supports_rest_api``, ``paused``, ...) to value, or None on
            error.
        """
        response = self._call(CAPABILITIES_GET_ROUTE, {}, "capabilities")
        return response["capabilities"] if response is not None else None

    def hosts_get(self, host_scheme_id: int) -> dict[str, Any] | None:
        """Fetch one host/scheme (``host_scheme_id``, ``url``,
        ``ssl_expiration_timestamp``), or None on error."""
        response = self._call(
            HOSTS_GET_ROUTE,
            {"host_scheme_id": host_scheme_id},
            "host_scheme",
        )
        return response["host_scheme"] if response is not None else None

    def hosts_list(self) -> Any | None:
        """Fetch all host/schemes indexed by host/scheme ID."""
        response = self._call(HOSTS_LIST_ROUTE, {}, "host_schemes")
        return response["host_schemes"] if response is not None else None

    def monitors_get(self, monitor_id: int) -> dict[str, Any] | None:
        """Fetch the settings of one monitor, or None on error."""
        response = self._call(MONITORS_GET_ROUTE, {"monitor_id": monitor_id}, "monitor")
        return response["monitor"] if response is not None else None

    def monitors_list(self, order_by: MonitorOrder = "monitor_id") -> Any | None:
        """Fetch all monitors.

        Args:
            order_by: How the result is indexed: ``monitor_id``,
                ``user_ordering`` or ``url``.

        Returns:
            Monitors indexed as requested, or None on error.
        """
        response = self._call(MONITORS_LIST_ROUTE, {"order_by": order_by}, "monitors")
        return response["monitors"] if response is not None else None

    def monitors_update(
        self,
        monitor_data: Sequence[MonitorEntry | Mapping[str, Any]]
        | Mapping[int, MonitorEntry | Mapping[str, Any]],
    ) -> list[Any] | None:
        """Replace the customer's monitors.

        Args:
            monitor_data: Monitor entries in user order, either as a
                sequence or as a mapping indexed by zero based user
                ordering. Entries may be dicts or :class:`MonitorEntry`.

        Returns:
            An empty list on success. A list of per-entry errors, exactly as
            reported by the server, if the update was rejected. None if the
            request itself failed.
        """
        if isinstance(monitor_data, Mapping):
            entries = [monitor_data[key] for key in sorted(monitor_data)]
        else:
            entries = list(monitor_data)

        response = self.coordinator.send(
            [_dump(entry) for entry in entries],
            MONITORS_UPDATE_ROUTE,
        )
        if not isinstance(response, dict) or "status" not in response:
            return None

        if response["status"] == STATUS_OK:
            return []

        errors = response.get("errors")
        if not isinstance(errors, list):
            logger.warning(
                "Monitor update rejected without an error list",
                status=response["status"],
            )
            return None
        logger.info("Monitor update rejected", error_count=len(errors))
        return errors

    def regions_get(self, region_id: int) -> str | None:
        """Fetch the description of a latency measurement region."""
        response = self._call(REGIONS_GET_ROUTE, {"region_id": region_id}, "region")
        if response is None or not isinstance(response["region"], dict):
            return None
        return response["region"].get("description")

    def regions_list(self) -> Any | None:
        """Fetch all regions indexed by region ID."""
        response = self._call(REGIONS_LIST_ROUTE, {}, "regions")
        return response["regions"] if response is not None else None

    def events_get(self, event_id: int) -> dict[str, Any] | None:
        """Fetch one event (``event_id``, ``monitor_id``, ``message``,
        ``timestamp``), or None on error."""
        response = self._call(EVENTS_GET_ROUTE, {"event_id": event_id}, "event")
        return response["event"] if response is not None else None

    def events_list(
        self,
        start_timestamp: int = 0,
        end_timestamp: int = 0,
    ) -> list[Any] | None:
        """Fetch events in time order.

        Args:
            start_timestamp: Inclusive start; 0 means no lower bound.
            end_timestamp: Inclusive end; 0 means now.

        Returns:
            List of events, or None on error.
        """
        request: dict[str, Any] = {"start_timestamp": start_timestamp}
        if end_timestamp != 0:
            request["end_timestamp"] = end_timestamp

        response = self._call(EVENTS_LIST_ROUTE, request, "events")
        return response["events"] if response is not None else None

    def events_create(
        self,
        event_type: int,
        message: str,
        monitor_id: int = 0,
    ) -> bool:
        """Create a custom event.

        Args:
            event_type: Custom event type, 1 through 10.
            message: Message attached to the event.
            monitor_id: Monitor the event is tied to; 0 ties it to the first
                monitor.

        Returns:
            True on success.
        """
        request: dict[str, Any] = {"type": event_type, "message": message}
        if monitor_id:
            request["monitor_id"] = monitor_id
        return self._call(EVENTS_CREATE_ROUTE, request) is not None

    def status_get(self, monitor_id: int) -> str | None:
        """Fetch the last reported status of a monitor.

        Returns:
            One of ``failed``, ``working`` or ``unknown``, or None on error.
        """
        response = self._call(
            STATUS_GET_ROUTE,
            {"monitor_id": monitor_id},
            "monitor_status",
        )
        return response["monitor_status"] if response is not None else None

    def status_list(self) -> Any | None:
        """Fetch the last reported status of every monitor, by monitor ID."""
        response = self._call(STATUS_LIST_ROUTE, {}, "monitor_status")
        return response["monitor_status"] if response is not None else None

    def multiple_list(self) -> dict[str, Any] | None:
        """Fetch monitors, hosts, events and status in one request.

        Returns:
            Dict with keys ``monitors``, ``authorities``, ``events`` and
            ``status``, or None on error.
        """
        response = self._call(
            MULTIPLE_LIST_ROUTE,
            {},
            "monitors",
            "host_schemes",
            "events",
            "monitor_status",
        )
        if response is None:
            return None
        return {
            "monitors": response["monitors"],
            "authorities": response["host_schemes"],
            "events": response["events"],
            "status": response["monitor_status"],
        }

    def latency_list(
        self,
        monitor_id: int = 0,
        region_id: int = 0,
        start_timestamp: int = 0,
        end_timestamp: int = 0,
    ) -> dict[str, Any] | None:
        """Fetch raw and aggregated latency data.

        This can return a very large amount of data. Zero for any argument
        means "no restriction".

        Returns:
            Dict with ``recent`` (raw values from roughly the last 30 days)
            and ``aggregated`` (older, aggregated values), or None on error.
        """
        request: dict[str, Any] = {"start_timestamp": start_timestamp}
        if end_timestamp != 0:
            request["end_timestamp"] = end_timestamp
        if monitor_id != 0:
            request["monitor_id"] = monitor_id
        if region_id != 0:
            request["region_id"] = region_id

        response = self._call(LATENCY_LIST_ROUTE, request, "recent", "aggregated")
        if response is None:
            return None
        return {"recent": response["recent"], "aggregated": response["aggregated"]}

    def latency_plot(
        self,
        settings: LatencyPlotSettings | Mapping[str, Any] | None = None,
    ) -> PlotResult | None:
        """Render a latency plot.

        Args:
            settings: Plot settings; omitted values use server defaults.

        Returns:
            The image bytes and content type, or a JSON error body with
            ``application/json`` content type. None on communication error.
        """
        return self.coordinator.send_binary(
            _dump(settings) if settings is not None else {},
            LATENCY_PLOT_ROUTE,
        )

    def customer_pause(self, pause: bool) -> bool:
        """Enter (True) or leave (False) maintenance mode.

        Returns:
            True on success.
        """
        return self._call(CUSTOMER_PAUSE_ROUTE, {"pause": pause}) is not None
