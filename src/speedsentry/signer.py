"""Time-bucketed HMAC signing for SpeedSentry requests.

Every request body is signed with HMAC-SHA256. The key is the 56 byte
shared secret followed by the current 30 second time bucket, encoded as a
64-bit little-endian integer, so a signature is only valid within the
server's tolerance around that window.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Any

from .types import SignedEnvelope

TIME_BUCKET_SECONDS = 30
BUCKET_MASK = 0xFFFF_FFFF_FFFF_FFFF


def encode_message(message: Any) -> bytes:
    """Serialize a message to canonical JSON bytes.

    Compact separators, keys in insertion order (never sorted).

    Args:
        message: Any JSON-serializable value.

    Returns:
        UTF-8 encoded JSON.
    """
    return json.dumps(message, separators=(",", ":")).encode("utf-8")


def time_bucket(now: float, clock_delta: int) -> int:
    """Quantize adjusted wall-clock time into a 30 second bucket.

    Args:
        now: Local Unix time in seconds.
        clock_delta: Server time minus local time, in seconds.

    Returns:
        ``floor((now + clock_delta) / 30)`` as an integer.
    """
    return (int(now) + clock_delta) // TIME_BUCKET_SECONDS


def hmac_key(secret: bytes, bucket: int) -> bytes:
    """Build the HMAC key for a time bucket.

    Args:
        secret: The raw 56 byte shared secret.
        bucket: Time bucket from :func:`time_bucket`.

    Returns:
        ``secret`` followed by the low 64 bits of the bucket, little-endian.
    """
    return secret + (bucket & BUCKET_MASK).to_bytes(8, "little")


def sign(
    message: Any,
    secret: bytes,
    clock_delta: int,
    now: float | None = None,
) -> tuple[bytes, bytes]:
    """Sign a message for the current time bucket.

    Args:
        message: Any JSON-serializable value.
        secret: The raw 56 byte shared secret.
        clock_delta: Server time minus local time, in seconds.
        now: Local Unix time; read from the system clock when omitted.

    Returns:
        Tuple of (canonical_json, digest) where digest is the raw
        HMAC-SHA256 over canonical_json.
    """
    if now is None:
        now = time.time()

    canonical_json = encode_message(message)
    key = hmac_key(secret, time_bucket(now, clock_delta))
    digest = hmac.new(key, canonical_json, hashlib.sha256).digest()
    return canonical_json, digest


def build_envelope(
    customer_identifier: str,
    canonical_json: bytes,
    digest: bytes,
) -> SignedEnvelope:
    """Wrap a signed message in the envelope the server expects."""
    return SignedEnvelope(
        cid=customer_identifier,
        data=base64.b64encode(canonical_json).decode("ascii"),
        hash=base64.b64encode(digest).decode("ascii"),
    )
