"""API models for agentdeckd."""

from .errors import ErrorResponse
from .responses import CancelResponse
from .responses import InstalledResponse
from .responses import ProcessListResponse
from .responses import StatusResponse
from .responses import StreamStartedResponse
from .responses import VersionResponse

__all__ = [
    "ErrorResponse",
    "CancelResponse",
    "InstalledResponse",
    "ProcessListResponse",
    "StatusResponse",
    "StreamStartedResponse",
    "VersionResponse",
]
