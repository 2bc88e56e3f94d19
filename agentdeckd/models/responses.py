"""Response models for agentdeckd API."""

from pydantic import Field

from agentdeck_library.models.base import CamelCaseModel


class StreamStartedResponse(CamelCaseModel):
    """Handle of a streaming turn; output follows on the event stream."""

    process_id: str = Field(..., description="Process handle")


class CancelResponse(CamelCaseModel):
    success: bool = Field(..., description="Whether the handle was registered")


class ProcessListResponse(CamelCaseModel):
    processes: list[str] = Field(default_factory=list, description="Registered process handles")


class VersionResponse(CamelCaseModel):
    version: str | None = Field(default=None, description="Agent version string, if available")


class InstalledResponse(CamelCaseModel):
    installed: bool


class StatusResponse(CamelCaseModel):
    """Daemon status.

    Attributes:
        status: Always "running"
        version: Daemon version
        uptime_seconds: Seconds since the daemon module was loaded
        active_processes: Number of registered agent processes
    """

    status: str
    version: str
    uptime_seconds: float
    active_processes: int
