"""Tests for settings loading, logging setup and the client factory."""

import base64
import json

import pydantic
import pytest
import structlog

from speedsentry import settings
from speedsentry.restapi import SpeedSentryClient
from speedsentry.transport import DEFAULT_AUTHORITY, HttpxTransport

SECRET = bytes(range(56))
SECRET_B64 = base64.b64encode(SECRET).decode("ascii")


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo configure_logging after each test."""
    yield
    structlog.reset_defaults()


def _write(tmp_path, data: dict) -> str:
    path = tmp_path / "speedsentry.json"
    path.write_text(json.dumps(data))
    return str(path)


# ---------------------------------------------------------------------------
# ClientSettings
# ---------------------------------------------------------------------------


def test_settings_defaults():
    """Only identity and secret are required."""
    s = settings.ClientSettings(customer_identifier="cust-1", rest_api_secret=SECRET_B64)
    assert s.timeout == 20.0
    assert s.clock_delta == 0
    assert s.base_url == DEFAULT_AUTHORITY
    assert s.log_level == "INFO"


def test_settings_reject_bad_secret():
    """The secret must be base64 of exactly 56 bytes."""
    with pytest.raises(pydantic.ValidationError, match="56 bytes"):
        settings.ClientSettings(
            customer_identifier="cust-1",
            rest_api_secret=base64.b64encode(b"short").decode(),
        )


def test_settings_reject_non_positive_timeout():
    """Timeout must be positive."""
    with pytest.raises(pydantic.ValidationError):
        settings.ClientSettings(
            customer_identifier="cust-1",
            rest_api_secret=SECRET_B64,
            timeout=0,
        )


# ---------------------------------------------------------------------------
# load_settings
# ---------------------------------------------------------------------------


def test_load_settings_reads_json(tmp_path):
    """Values in the file override defaults."""
    path = _write(
        tmp_path,
        {
            "customer_identifier": "cust-1",
            "rest_api_secret": SECRET_B64,
            "timeout": 5,
            "clock_delta": -3,
        },
    )

    s = settings.load_settings(path)

    assert s.customer_identifier == "cust-1"
    assert s.timeout == 5.0
    assert s.clock_delta == -3


def test_load_settings_missing_file(tmp_path):
    """A missing file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError, match="not found"):
        settings.load_settings(str(tmp_path / "absent.json"))


def test_load_settings_rejects_invalid_json(tmp_path):
    """A file that is not settings JSON fails validation."""
    path = tmp_path / "speedsentry.json"
    path.write_text("{not json")
    with pytest.raises(pydantic.ValidationError):
        settings.load_settings(path)


# ---------------------------------------------------------------------------
# create_client
# ---------------------------------------------------------------------------


def test_create_client_from_path(tmp_path):
    """The factory builds a configured client for the file's base URL."""
    path = _write(
        tmp_path,
        {
            "customer_identifier": "cust-1",
            "rest_api_secret": SECRET_B64,
            "clock_delta": 7,
            "base_url": "https://rest.example.test",
            "log_level": "debug",
        },
    )
    sink = lambda option, value: None  # noqa: E731

    api = settings.create_client(path, clock_delta_sink=sink)

    assert isinstance(api, SpeedSentryClient)
    assert api.config.secret == SECRET
    assert api.config.clock_delta == 7
    assert api.config.clock_delta_sink is sink
    assert isinstance(api.coordinator.transport, HttpxTransport)
    assert api.coordinator.transport.base_url == "https://rest.example.test"


def test_create_client_uses_env_var(tmp_path, monkeypatch):
    """Without an explicit path the environment variable is used."""
    path = _write(
        tmp_path,
        {"customer_identifier": "from-env", "rest_api_secret": SECRET_B64},
    )
    monkeypatch.setenv(settings.CONFIG_ENV_VAR, path)

    assert settings.create_client().config.customer_identifier == "from-env"


def test_configure_logging_accepts_unknown_level():
    """An unknown level name falls back to INFO instead of failing."""
    settings.configure_logging("verbose")
    structlog.get_logger("test").info("still works")


def test_configure_logging_writes_logfmt_to_stderr(capsys):
    """Lines go to stderr with route and status right after the message."""
    settings.configure_logging("info")
    log = structlog.get_logger("test")

    log.debug("hidden")
    log.info("received", size=3, status_code=200, route="/v1/hosts/list")

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "hidden" not in captured.err
    assert (
        "level=info msg=received route=/v1/hosts/list status_code=200 size=3"
        in captured.err
    )
