"""Error models for agentdeckd API.

Pydantic models for error responses.
"""

from pydantic import Field

from agentdeck_library.models.base import CamelCaseModel


class ErrorResponse(CamelCaseModel):
    """Standard error response.

    Attributes:
        error: Error message
        detail: Optional additional details (bounded diagnostic tail)
        exit_code: Exit code of the agent process, for process failures
    """

    error: str = Field(..., description="Error message")
    detail: str | None = Field(default=None, description="Additional error details")
    exit_code: int | None = Field(default=None, description="Agent process exit code")
