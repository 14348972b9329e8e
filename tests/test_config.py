"""Tests for ClientConfig secret handling and clock delta bookkeeping."""

import base64
import threading
from unittest.mock import MagicMock

import pytest

from speedsentry import config
from speedsentry.errors import ConfigurationError

SECRET = bytes(range(56))
SECRET_B64 = base64.b64encode(SECRET).decode("ascii")

# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def test_defaults():
    """An empty config has no secret, zero delta and the default timeout."""
    cfg = config.ClientConfig()
    assert cfg.customer_identifier == ""
    assert cfg.secret is None
    assert cfg.clock_delta == 0
    assert cfg.timeout == config.DEFAULT_TIMEOUT
    assert cfg.clock_delta_sink is None


def test_init_accepts_raw_and_base64_secret():
    """Constructor accepts a secret in either encoding."""
    assert config.ClientConfig("c", SECRET).secret == SECRET
    assert config.ClientConfig("c", SECRET_B64, is_base64_encoded=True).secret == SECRET


def test_init_rejects_short_secret():
    """A wrong-length secret at construction is a configuration error."""
    with pytest.raises(ConfigurationError, match="56 bytes"):
        config.ClientConfig("c", SECRET[:-1])


def test_init_rejects_non_positive_timeout():
    """Timeout must be positive."""
    with pytest.raises(ValueError, match="timeout"):
        config.ClientConfig(timeout=0)


# ---------------------------------------------------------------------------
# set_rest_api_secret
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("secret", "is_base64_encoded"),
    [
        (SECRET, False),
        (SECRET.decode("latin-1"), False),
        (SECRET_B64, True),
        (SECRET_B64.encode("ascii"), True),
    ],
)
def test_set_secret_accepts_56_bytes(secret, is_base64_encoded):
    """Any input decoding to exactly 56 bytes is accepted."""
    cfg = config.ClientConfig()
    assert cfg.set_rest_api_secret(secret, is_base64_encoded) is True
    assert cfg.secret == SECRET


@pytest.mark.parametrize(
    ("secret", "is_base64_encoded"),
    [
        (SECRET[:55], False),
        (SECRET + b"\x00", False),
        (b"", False),
        (base64.b64encode(SECRET[:55]).decode("ascii"), True),
        ("not base64!!", True),
        (SECRET_B64, False),
        ("€" * 56, False),
    ],
)
def test_set_secret_rejects_everything_else(secret, is_base64_encoded):
    """Other inputs are rejected and the previous secret is kept."""
    previous = bytes(reversed(SECRET))
    cfg = config.ClientConfig("c", previous)

    assert cfg.set_rest_api_secret(secret, is_base64_encoded) is False
    assert cfg.secret == previous


# ---------------------------------------------------------------------------
# Clock delta
# ---------------------------------------------------------------------------


def test_clock_delta_setter_does_not_notify_sink():
    """Seeding a cached delta does not call the sink."""
    sink = MagicMock()
    cfg = config.ClientConfig(clock_delta_sink=sink)

    cfg.clock_delta = 42

    assert cfg.clock_delta == 42
    sink.assert_not_called()


def test_update_clock_delta_stores_then_notifies():
    """The sink sees the new value already stored, under the option key."""
    seen = []
    cfg = config.ClientConfig()
    cfg.clock_delta_sink = lambda option, value: seen.append(
        (option, value, cfg.clock_delta)
    )

    cfg.update_clock_delta(-7)

    assert cfg.clock_delta == -7
    assert seen == [(config.TIME_DELTA_OPTION, -7, -7)]


def test_sink_may_seed_clock_delta():
    """The sink runs under a reentrant lock and can write the delta back."""

    def sink(_, value):
        cfg.clock_delta = value + 1

    cfg = config.ClientConfig(clock_delta_sink=sink)
    cfg.update_clock_delta(10)

    assert cfg.clock_delta == 11


def test_failing_sink_keeps_update():
    """A sink error is logged and the new delta stays stored."""
    sink = MagicMock(side_effect=OSError("disk full"))
    cfg = config.ClientConfig(clock_delta_sink=sink)

    cfg.update_clock_delta(4)

    assert cfg.clock_delta == 4
    sink.assert_called_once_with(config.TIME_DELTA_OPTION, 4)


def test_update_clock_delta_without_sink():
    """No sink means the update is just stored."""
    cfg = config.ClientConfig()
    cfg.update_clock_delta(3)
    assert cfg.clock_delta == 3


def test_concurrent_updates_notify_in_update_order():
    """Concurrent updates call the sink in the same order values are stored."""
    notified = []
    cfg = config.ClientConfig(clock_delta_sink=lambda _, v: notified.append(v))
    thread_count = 20
    barrier = threading.Barrier(thread_count)

    def worker(value):
        barrier.wait()
        cfg.update_clock_delta(value)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(thread_count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(notified) == list(range(thread_count))
    assert cfg.clock_delta == notified[-1]
