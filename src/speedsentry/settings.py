"""File-based settings and logging setup for the SpeedSentry client."""

import logging
import os
import pathlib
import sys

import pydantic
import structlog

from .config import DEFAULT_TIMEOUT, ClientConfig, ClockDeltaSink, decode_secret
from .restapi import SpeedSentryClient
from .transport import DEFAULT_AUTHORITY

CONFIG_ENV_VAR = "SPEEDSENTRY_CONFIG_PATH"
DEFAULT_CONFIG_PATH = "speedsentry.json"
logger = structlog.get_logger(__name__)


class ClientSettings(pydantic.BaseModel):
    """Settings for a SpeedSentry client."""

    customer_identifier: str = pydantic.Field(
        description="Customer identifier from the account settings page",
    )
    rest_api_secret: str = pydantic.Field(
        description="Base64 encoded 56 byte REST API secret",
    )
    timeout: float = pydantic.Field(
        DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
        gt=0,
    )
    clock_delta: int = pydantic.Field(
        0,
        description="Last known server time minus local time, in seconds",
    )
    base_url: str = pydantic.Field(
        DEFAULT_AUTHORITY,
        description="Scheme and authority of the REST API",
        min_length=1,
    )
    log_level: str = pydantic.Field("INFO", description="Logging level")

    @pydantic.field_validator("rest_api_secret")
    @classmethod
    def validate_secret(cls, v: str) -> str:
        """Check the secret decodes to exactly 56 bytes."""
        if decode_secret(v, is_base64_encoded=True) is None:
            msg = "rest_api_secret must be base64 encoding of exactly 56 bytes"
            raise ValueError(msg)
        return v


def configure_logging(log_level_name: str) -> None:
    """Send logfmt lines to stderr, keeping stdout for the host program.

    Request events carry ``route`` and ``status_code``; they are placed
    right after the message so exchanges line up when scanning a log.
    """
    log_level = logging.getLevelName(log_level_name.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg", "route", "status_code"),
                drop_missing=True,
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def load_settings(config_path: str | os.PathLike) -> ClientSettings:
    """Read and validate a JSON settings file.

    Raises:
        FileNotFoundError: If nothing exists at ``config_path``.
        pydantic.ValidationError: If the file is not valid settings JSON.
    """
    path = pathlib.Path(config_path)
    if not path.is_file():
        msg = f"SpeedSentry settings file not found: {path}"
        raise FileNotFoundError(msg)
    return ClientSettings.model_validate_json(path.read_bytes())


def create_client_from_settings(
    settings: ClientSettings,
    clock_delta_sink: ClockDeltaSink | None = None,
) -> SpeedSentryClient:
    """Construct a client from validated settings."""
    config = ClientConfig(
        settings.customer_identifier,
        settings.rest_api_secret,
        settings.clock_delta,
        is_base64_encoded=True,
        timeout=settings.timeout,
        clock_delta_sink=clock_delta_sink,
    )
    logger.info(
        "Created REST API client",
        base_url=settings.base_url,
        customer_identifier=settings.customer_identifier,
    )
    return SpeedSentryClient.from_config(config, base_url=settings.base_url)


def create_client(
    config_path: str | None = None,
    clock_delta_sink: ClockDeltaSink | None = None,
) -> SpeedSentryClient:
    """Create a client using a settings path or the environment default."""
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)
    settings = load_settings(resolved_path)
    configure_logging(settings.log_level)
    return create_client_from_settings(settings, clock_delta_sink)
