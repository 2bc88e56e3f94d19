"""Models for agentdeck library."""

from .base import CamelCaseModel
from .events import AssistantContentEvent
from .events import AssistantText
from .events import InitEvent
from .events import StreamEvent
from .events import TerminalResultEvent
from .events import TextDeltaEvent
from .events import ToolResult
from .events import ToolUse
from .events import UnrecognizedEvent
from .events import UserContentEvent
from .messages import ContentBlock
from .messages import Message
from .messages import MessageRole
from .messages import TextBlock
from .messages import ToolBlock
from .messages import UsageStats
from .process import AgentResponse
from .process import McpResult
from .process import McpScope
from .process import McpServerConfig
from .process import McpTransport
from .process import OutputFormat
from .process import PermissionMode
from .process import ProcessHandle
from .process import SpawnOptions
from .process import TokenUsage
from .tools import ToolActivity
from .tools import ToolKind
from .tools import ToolStatus
from .tools import tool_base_name
from .tools import tool_kind
from .tools import tool_summary

__all__ = [
    "CamelCaseModel",
    "AssistantContentEvent",
    "AssistantText",
    "InitEvent",
    "StreamEvent",
    "TerminalResultEvent",
    "TextDeltaEvent",
    "ToolResult",
    "ToolUse",
    "UnrecognizedEvent",
    "UserContentEvent",
    "ContentBlock",
    "Message",
    "MessageRole",
    "TextBlock",
    "ToolBlock",
    "UsageStats",
    "AgentResponse",
    "McpResult",
    "McpScope",
    "McpServerConfig",
    "McpTransport",
    "OutputFormat",
    "PermissionMode",
    "ProcessHandle",
    "SpawnOptions",
    "TokenUsage",
    "ToolActivity",
    "ToolKind",
    "ToolStatus",
    "tool_base_name",
    "tool_kind",
    "tool_summary",
]
