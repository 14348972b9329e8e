"""SpeedSentry REST API client.

Python client for the SpeedSentry monitoring service. Requests are signed
with a time-bucketed HMAC; clock skew is recovered automatically by a
one-shot resync against the server's time-delta route.
"""

from .config import ClientConfig
from .errors import ConfigurationError, FailureKind
from .restapi import SpeedSentryClient
from .types import PlotResult

__version__ = "0.1.0"

__all__ = [
    "ClientConfig",
    "ConfigurationError",
    "FailureKind",
    "PlotResult",
    "SpeedSentryClient",
]
