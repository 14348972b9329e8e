"""Failure classification for the SpeedSentry client.

The public accessors collapse every failure to ``None`` (or ``False``), but
the coordinator keeps track of why a request failed so that logs and tests
can tell the causes apart.
"""

import enum


class FailureKind(enum.Enum):
    """Why a request did not produce a usable result."""

    CONFIGURATION = "configuration"
    """No valid secret is configured, so nothing was sent."""

    TRANSPORT = "transport"
    """No HTTP response was obtained (DNS, connect, timeout)."""

    AUTHENTICATION = "authentication"
    """The server answered 401 and a resync did not fix it."""

    APPLICATION = "application"
    """Non-200 status, or a JSON reply whose status is not ``OK``."""

    DECODE = "decode"
    """A 200 reply whose body is not valid JSON."""


class ConfigurationError(ValueError):
    """Raised when a client is constructed with invalid settings."""
