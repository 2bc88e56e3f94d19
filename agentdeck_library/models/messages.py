"""Conversation message models.

Contract:
- Inputs: Finalized turn content from the reconstruction engine
- Outputs: Immutable Message instances, usage totals
- Side Effects: None (pure data structures)
"""

from datetime import datetime
from enum import Enum
from typing import Annotated
from typing import Literal

from pydantic import ConfigDict
from pydantic import Field
from pydantic import computed_field

from .base import CamelCaseModel
from .tools import ToolActivity


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class TextBlock(CamelCaseModel):
    """Free text between tool activities."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ToolBlock(CamelCaseModel):
    """A tool activity positioned within the turn's text."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool"] = "tool"
    tool: ToolActivity


ContentBlock = Annotated[TextBlock | ToolBlock, Field(discriminator="type")]


class Message(CamelCaseModel):
    """One conversational turn.

    Messages are never mutated: a streaming message is replaced by a new
    instance as its turn progresses, and the instance produced at the
    terminal event is final.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique message identifier")
    role: MessageRole
    content: str = Field(default="", description="Flattened text, always populated")
    content_blocks: tuple[ContentBlock, ...] | None = Field(
        default=None, description="Structured body, only for assistant turns that used tools"
    )
    timestamp: datetime
    is_streaming: bool = False


class UsageStats(CamelCaseModel):
    """Cumulative token usage across turns."""

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[misc]
    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens
