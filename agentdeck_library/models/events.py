"""Classified stream events.

Each line of the agent's stream-json output that decodes to a JSON object is
classified into exactly one of the variants below. The `kind` field is the
discriminant; `UnrecognizedEvent` is the explicit catch-all arm.

Contract:
- Inputs: Decoded JSON objects from the classifier
- Outputs: Immutable event instances
- Side Effects: None (pure data structures)
"""

from typing import Annotated
from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .process import TokenUsage


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw: dict[str, Any] = Field(default_factory=dict, repr=False, description="Original decoded record")


class AssistantText(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ToolUse(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


AssistantBlock = Annotated[AssistantText | ToolUse, Field(discriminator="type")]


class ToolResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool_use_id: str
    content: str = ""
    is_error: bool = False


class InitEvent(_Event):
    """`type=system, subtype=init`: turn/session start."""

    kind: Literal["init"] = "init"
    session_id: str | None = None


class AssistantContentEvent(_Event):
    """`type=assistant`: structured turn content (text and tool invocations)."""

    kind: Literal["assistant"] = "assistant"
    blocks: tuple[AssistantBlock, ...] = ()


class UserContentEvent(_Event):
    """`type=user`: tool results correlated by invocation id."""

    kind: Literal["user"] = "user"
    results: tuple[ToolResult, ...] = ()


class TextDeltaEvent(_Event):
    """`type=stream_event` carrying a `text_delta`."""

    kind: Literal["text_delta"] = "text_delta"
    text: str


class TerminalResultEvent(_Event):
    """`type=result`: end of the turn."""

    kind: Literal["result"] = "result"
    subtype: str = "success"
    is_error: bool = False
    session_id: str | None = None
    result: str | None = None
    usage: TokenUsage | None = None
    total_cost_usd: float | None = None

    @property
    def succeeded(self) -> bool:
        return self.subtype == "success" and not self.is_error


class UnrecognizedEvent(_Event):
    """Any decodable record whose discriminant is not handled."""

    kind: Literal["unrecognized"] = "unrecognized"
    type: str | None = None


StreamEvent = Annotated[
    InitEvent | AssistantContentEvent | UserContentEvent | TextDeltaEvent | TerminalResultEvent | UnrecognizedEvent,
    Field(discriminator="kind"),
]
