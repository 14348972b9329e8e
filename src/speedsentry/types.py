"""Wire types exchanged with the SpeedSentry REST API.

Pydantic models for the signed request envelope and the time-delta reply,
plus the plain result type handed back for binary (plot) endpoints.
"""

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class SignedEnvelope(BaseModel):
    """Outer JSON structure carried by every signed request.

    ``data`` is the base64 encoded canonical JSON message and ``hash`` is
    the base64 encoded HMAC-SHA256 digest over that same JSON.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    customer_identifier: str = Field(alias="cid")
    data: str
    hash: str

    def to_bytes(self) -> bytes:
        """Serialize the envelope as compact JSON for the request body."""
        return self.model_dump_json(by_alias=True).encode("utf-8")


class TimeDeltaReply(BaseModel):
    """Successful reply from the time-delta route.

    ``time_delta`` must be a real integer within the signed 64-bit range;
    floats, strings and booleans are rejected.
    """

    status: Literal["OK"]
    time_delta: StrictInt = Field(ge=-(2**63), le=2**63 - 1)


@dataclass(frozen=True)
class PlotResult:
    """Raw payload returned by a binary endpoint.

    On success ``content_type`` is ``image/png`` or ``image/jpg``. The
    server may also answer 200 with an ``application/json`` body explaining
    why no plot was produced.
    """

    body: bytes
    content_type: str

    @property
    def is_image(self) -> bool:
        """True if the payload is an image rather than a JSON error."""
        return self.content_type.startswith("image/")
