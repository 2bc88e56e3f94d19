"""Process-level models: spawn options, handles and agent responses.

Contract:
- Inputs: Caller options, decoded agent JSON documents
- Outputs: Validated model instances
- Side Effects: None (pure data structures)
"""

from enum import Enum
from typing import NewType

from pydantic import Field

from .base import CamelCaseModel

ProcessHandle = NewType("ProcessHandle", str)


class PermissionMode(str, Enum):
    """Permission mode passed to the agent binary."""

    PLAN = "plan"
    ACCEPT_EDITS = "acceptEdits"
    ACCEPT_ALL = "acceptAll"
    ASK = "ask"


class OutputFormat(str, Enum):
    """Agent output format selector.

    JSON produces one document on exit; STREAM_JSON produces one event per line.
    """

    JSON = "json"
    STREAM_JSON = "stream-json"


class SpawnOptions(CamelCaseModel):
    """Command profile for one agent invocation."""

    prompt: str = Field(description="Free-text prompt for this turn")
    cwd: str | None = Field(default=None, description="Working directory for the agent process")
    session_id: str | None = Field(default=None, description="Resumable session identifier")
    continue_latest: bool = Field(default=False, description="Resume the most recent conversation")
    allowed_tools: list[str] | None = Field(default=None, description="Tool names the agent may use")
    disallowed_tools: list[str] | None = Field(default=None, description="Tool names the agent may not use")
    permission_mode: PermissionMode | None = Field(default=None, description="Permission mode")
    model: str | None = Field(default=None, description="Model selector")
    max_turns: int | None = Field(default=None, ge=1, description="Agentic turn limit")
    system_prompt: str | None = Field(default=None, description="System prompt override")
    append_system_prompt: str | None = Field(default=None, description="Text appended to the system prompt")


class TokenUsage(CamelCaseModel):
    """Token counts reported by the agent for one turn."""

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    cache_read_input_tokens: int | None = Field(default=None)
    cache_creation_input_tokens: int | None = Field(default=None)


class ResultContentItem(CamelCaseModel):
    """One entry of a structured result content array."""

    type: str
    text: str | None = None


class ResultContent(CamelCaseModel):
    """Structured fallback shape of a whole-document `result`."""

    content: list[ResultContentItem] = Field(default_factory=list)


class AgentResponse(CamelCaseModel):
    """Whole-response document produced by a non-streaming invocation."""

    session_id: str | None = Field(default=None, description="Resumable session identifier")
    process_id: str | None = Field(default=None, description="Handle of the process that produced it")
    result: str | ResultContent | None = Field(default=None, description="Final text or structured content")
    usage: TokenUsage = Field(default_factory=TokenUsage)
    total_cost_usd: float | None = None
    duration_ms: int | None = None
    num_turns: int | None = None
    is_error: bool = False

    def text(self) -> str:
        """Flatten `result` into display text.

        Returns:
            The result string, or the newline-joined text entries of a
            structured result.
        """
        if isinstance(self.result, str):
            return self.result
        if self.result is None:
            return ""
        return "\n".join(item.text for item in self.result.content if item.type == "text" and item.text)


class McpTransport(str, Enum):
    HTTP = "http"
    SSE = "sse"
    STDIO = "stdio"


class McpScope(str, Enum):
    LOCAL = "local"
    PROJECT = "project"
    USER = "user"


class McpServerConfig(CamelCaseModel):
    """MCP server registration passed to `<agent> mcp add`."""

    name: str = Field(min_length=1)
    transport: McpTransport = McpTransport.STDIO
    url: str | None = None
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    scope: McpScope | None = None
    env: dict[str, str] = Field(default_factory=dict)


class McpResult(CamelCaseModel):
    """Outcome of an MCP management command; failures never raise."""

    success: bool
    error: str | None = None
    output: str | None = None
