"""Content reconstruction for one streaming turn.

Merges text deltas and tool sightings into an ordered sequence of content
blocks. Each tool is positioned at the length of the turn's text when it was
first observed; the text between two insertion points becomes a text block
unless it is blank.

Contract:
- Inputs: Classified stream events for exactly one process handle
- Outputs: Incremental text fragments, live block snapshots, a final TurnOutcome
- Side Effects: Mutates its own ToolActivityTracker
"""

import logging
from dataclasses import dataclass
from typing import Literal

from ..models.events import AssistantContentEvent
from ..models.events import AssistantText
from ..models.events import InitEvent
from ..models.events import StreamEvent
from ..models.events import TerminalResultEvent
from ..models.events import TextDeltaEvent
from ..models.events import ToolUse
from ..models.events import UserContentEvent
from ..models.messages import ContentBlock
from ..models.messages import TextBlock
from ..models.messages import ToolBlock
from ..models.process import TokenUsage
from ..models.tools import ToolStatus
from .tracker import ToolActivityTracker

logger = logging.getLogger(__name__)

_Slot = tuple[Literal["text", "tool"], str]


@dataclass(frozen=True)
class TurnOutcome:
    """Final state of a reconstructed turn.

    Attributes:
        content: Full accumulated text, plus any cancellation/error marker
        content_blocks: Ordered blocks, or None when the turn used no tools
        session_id: Resumable identifier seen during the turn (init or result)
        usage: Token usage reported by the terminal result, if any
        total_cost_usd: Cost reported by the terminal result, if any
        succeeded: False when the turn was cancelled or failed
    """

    content: str
    content_blocks: tuple[ContentBlock, ...] | None
    session_id: str | None
    usage: TokenUsage | None
    total_cost_usd: float | None
    succeeded: bool


class TurnReconstructor:
    """Rebuild one turn's body from its event stream.

    An instance is scoped to a single turn and owns that turn's process
    handle; events for any other handle must not be applied to it.

    Example:
        >>> turn = TurnReconstructor("proc-1")
        >>> turn.apply(TextDeltaEvent(text="Hello "))
        'Hello '
        >>> turn.apply(AssistantContentEvent(blocks=(ToolUse(id="t1", name="Read"),)))
        >>> turn.apply(TextDeltaEvent(text="world"))
        'world'
        >>> [b.type for b in turn.finalize().content_blocks]
        ['text', 'tool', 'text']
    """

    def __init__(self, handle: str, tracker: ToolActivityTracker | None = None) -> None:
        self.handle = handle
        self.tracker = tracker or ToolActivityTracker()
        self.session_id: str | None = None
        self.usage: TokenUsage | None = None
        self.total_cost_usd: float | None = None
        self.result: TerminalResultEvent | None = None
        self._text = ""
        self._slots: list[_Slot] = []
        self._last_position = 0
        self._saw_delta = False
        self._outcome: TurnOutcome | None = None

    @property
    def text(self) -> str:
        """Accumulated free text of the turn so far."""
        return self._text

    @property
    def is_finished(self) -> bool:
        return self._outcome is not None

    def apply(self, event: StreamEvent) -> str | None:
        """Apply one event.

        Args:
            event: Classified event from this turn's handle

        Returns:
            The newly appended text fragment, if the event added text
        """
        if self._outcome is not None:
            logger.debug(f"Ignoring {event.kind} event after turn {self.handle} finished")
            return None

        if isinstance(event, TextDeltaEvent):
            self._saw_delta = True
            return self._append_text(event.text)

        if isinstance(event, AssistantContentEvent):
            added: list[str] = []
            for block in event.blocks:
                if isinstance(block, ToolUse):
                    self._insert_tool(block)
                elif isinstance(block, AssistantText) and not self._saw_delta:
                    # without partial messages, whole text blocks are the only text source
                    fragment = self._append_text(block.text)
                    if fragment:
                        added.append(fragment)
            return "".join(added) or None

        if isinstance(event, UserContentEvent):
            for result in event.results:
                self.tracker.complete(result)
            return None

        if isinstance(event, InitEvent):
            if event.session_id:
                self.session_id = event.session_id
            return None

        if isinstance(event, TerminalResultEvent):
            self.result = event
            if event.session_id:
                self.session_id = event.session_id
            self.usage = event.usage
            self.total_cost_usd = event.total_cost_usd
            self.tracker.force_close(ToolStatus.COMPLETED if event.succeeded else ToolStatus.ERROR)
            if not self._text and event.result:
                return self._append_text(event.result)
            return None

        return None

    def snapshot(self) -> tuple[ContentBlock, ...]:
        """Live view of the blocks so far, including unflushed trailing text."""
        slots = list(self._slots)
        trailing = self._text[self._last_position :]
        if trailing.strip():
            slots.append(("text", trailing))
        return self._materialize(slots)

    def finalize(self) -> TurnOutcome:
        """Flush trailing text and produce the final turn body.

        Activities still running are completed. Tool blocks are bound to the
        tracker's latest state at this moment.
        """
        if self._outcome is None:
            self.tracker.force_close(ToolStatus.COMPLETED)
            succeeded = self.result.succeeded if self.result is not None else True
            self._outcome = self._build(marker=None, succeeded=succeeded)
        return self._outcome

    def fail(self, marker: str) -> TurnOutcome:
        """Finish the turn after cancellation or process failure.

        Partial text is preserved; `marker` is appended to the content and
        unresolved activities move to ERROR.

        Args:
            marker: Annotation such as "[Cancelled]" or "[Error: ...]"
        """
        if self._outcome is None:
            self.tracker.force_close(ToolStatus.ERROR)
            self._outcome = self._build(marker=marker, succeeded=False)
        return self._outcome

    def _append_text(self, fragment: str) -> str | None:
        if not fragment:
            return None
        self._text += fragment
        return fragment

    def _insert_tool(self, tool_use: ToolUse) -> None:
        activity = self.tracker.observe(tool_use, text_position=len(self._text))
        if activity is None:
            return

        preceding = self._text[self._last_position : activity.text_position]
        if preceding.strip():
            self._slots.append(("text", preceding))
        self._slots.append(("tool", activity.id))
        self._last_position = len(self._text)

    def _build(self, marker: str | None, succeeded: bool) -> TurnOutcome:
        trailing = self._text[self._last_position :]
        if trailing.strip():
            self._slots.append(("text", trailing))
        self._last_position = len(self._text)

        content = self._text
        if marker:
            content = f"{content}\n\n{marker}" if content else marker

        blocks: tuple[ContentBlock, ...] | None = None
        if len(self.tracker):
            slots = list(self._slots)
            if marker:
                slots.append(("text", marker))
            blocks = self._materialize(slots)

        return TurnOutcome(
            content=content,
            content_blocks=blocks,
            session_id=self.session_id,
            usage=self.usage,
            total_cost_usd=self.total_cost_usd,
            succeeded=succeeded,
        )

    def _materialize(self, slots: list[_Slot]) -> tuple[ContentBlock, ...]:
        blocks: list[ContentBlock] = []
        seen_tools: set[str] = set()
        for slot_type, payload in slots:
            if slot_type == "text":
                blocks.append(TextBlock(text=payload))
                continue
            if payload in seen_tools:
                continue
            seen_tools.add(payload)
            activity = self.tracker.get(payload)
            if activity is not None:
                blocks.append(ToolBlock(tool=activity.model_copy(deep=True)))
        return tuple(blocks)
