"""Tool activity model and tool-name helpers.

Contract:
- Inputs: Tool names and inputs from `tool_use` blocks
- Outputs: ToolActivity instances, display classification
- Side Effects: None (pure data structures)
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field
from pydantic import computed_field

from .base import CamelCaseModel

NAMESPACE_SEPARATOR = "__"


class ToolStatus(str, Enum):
    """Tool activity lifecycle status.

    State transitions:
    - PENDING: Reserved, not produced by current event shapes
    - RUNNING: First sighting of the invocation
    - COMPLETED: Matching result arrived, or the turn ended while running
    - ERROR: Result signalled failure, or the process failed while unresolved
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ToolStatus.COMPLETED, ToolStatus.ERROR)


class ToolKind(str, Enum):
    """Display classification of a tool by its base name."""

    FILE_READ = "file_read"
    FILE_WRITE = "file_write"
    SHELL = "shell"
    SEARCH = "search"
    WEB = "web"
    TASK = "task"
    OTHER = "other"


_TOOL_KINDS: dict[str, ToolKind] = {
    "Read": ToolKind.FILE_READ,
    "NotebookRead": ToolKind.FILE_READ,
    "Write": ToolKind.FILE_WRITE,
    "Edit": ToolKind.FILE_WRITE,
    "MultiEdit": ToolKind.FILE_WRITE,
    "NotebookEdit": ToolKind.FILE_WRITE,
    "Bash": ToolKind.SHELL,
    "BashOutput": ToolKind.SHELL,
    "KillShell": ToolKind.SHELL,
    "Glob": ToolKind.SEARCH,
    "Grep": ToolKind.SEARCH,
    "LS": ToolKind.SEARCH,
    "WebFetch": ToolKind.WEB,
    "WebSearch": ToolKind.WEB,
    "Task": ToolKind.TASK,
    "TodoWrite": ToolKind.TASK,
}


def tool_base_name(name: str) -> str:
    """Strip namespacing from a tool name.

    Args:
        name: Tool name as reported by the agent

    Returns:
        Trailing segment after the last namespace separator

    Example:
        >>> tool_base_name("mcp__fs__Read")
        'Read'
        >>> tool_base_name("Bash")
        'Bash'
    """
    return name.rsplit(NAMESPACE_SEPARATOR, 1)[-1]


def tool_kind(name: str) -> ToolKind:
    """Classify a tool for display, after stripping its namespace."""
    return _TOOL_KINDS.get(tool_base_name(name), ToolKind.OTHER)


def tool_summary(name: str, input_data: dict[str, Any]) -> str:
    """One-line summary of a tool invocation.

    Args:
        name: Tool name (namespaced or not)
        input_data: Tool input payload

    Returns:
        Short human-readable description of what the tool was asked to do
    """
    base = tool_base_name(name)
    if base == "Bash":
        cmd = str(input_data.get("command", ""))
        return cmd[:70] + ("..." if len(cmd) > 70 else "")
    if base in ("Read", "Write", "Edit", "MultiEdit"):
        parts = str(input_data.get("file_path", "")).split("/")
        # keep the last two components of long paths
        return "/".join(parts[-2:]) if len(parts) > 3 else "/".join(parts)
    if base == "Glob":
        return str(input_data.get("pattern", ""))
    if base == "Grep":
        pattern = input_data.get("pattern", "")
        path = input_data.get("path", "")
        return f"/{pattern}/" + (f" in {path}" if path else "")
    if base == "Task":
        return str(input_data.get("description", ""))
    if base in ("WebFetch", "WebSearch"):
        return str(input_data.get("url", input_data.get("query", "")))
    return str(input_data)[:60]


class ToolActivity(CamelCaseModel):
    """One tool invocation by the agent within a turn."""

    id: str = Field(description="Invocation identifier used for deduplication")
    tool_name: str = Field(description="Tool name as reported, possibly namespaced")
    status: ToolStatus = Field(default=ToolStatus.RUNNING)
    input: dict[str, Any] = Field(default_factory=dict)
    output: str | None = Field(default=None, description="Result text captured at completion")
    start_time: datetime
    end_time: datetime | None = Field(default=None, description="Set when the activity reaches a terminal state")
    text_position: int = Field(ge=0, description="Offset in the turn's text where the tool was first observed")

    @computed_field  # type: ignore[misc]
    @property
    def base_name(self) -> str:
        return tool_base_name(self.tool_name)

    @computed_field  # type: ignore[misc]
    @property
    def kind(self) -> ToolKind:
        return tool_kind(self.tool_name)
