"""SpeedSentry REST API accessors.

Exports:
    SpeedSentryClient: Client exposing one method per REST API endpoint.
    types: Module containing Pydantic request models.
"""

from . import types
from .client import SpeedSentryClient

__all__ = [
    "SpeedSentryClient",
    "types",
]
