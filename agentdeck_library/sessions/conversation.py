"""Conversation client: the caller side of agent turns.

A Conversation owns the message list, the cross-turn session state and at
most one active streaming turn. Host events are applied to the active turn
only when their handle matches it, so output from a cancelled or superseded
process never reaches the reconstruction state.

Contract:
- Inputs: User prompts, host events from a ProcessSupervisor's bus
- Outputs: Immutable Message instances, session identifier, usage totals
- Side Effects: Spawns and cancels agent processes through the supervisor
"""

import asyncio
import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
from datetime import UTC
from datetime import datetime

from pydantic import Field

from ..errors import AgentDeckError
from ..models.base import CamelCaseModel
from ..models.messages import ContentBlock
from ..models.messages import Message
from ..models.messages import MessageRole
from ..models.messages import UsageStats
from ..models.process import PermissionMode
from ..models.process import ProcessHandle
from ..models.process import SpawnOptions
from ..process.supervisor import ProcessSupervisor
from ..reconstruction.engine import TurnOutcome
from ..reconstruction.engine import TurnReconstructor
from ..streaming.emitter import HostEvent
from ..streaming.emitter import HostEventKind
from .aggregator import SessionAggregator

logger = logging.getLogger(__name__)

NO_CWD_ERROR = "Please select a working directory first"
EMPTY_RESPONSE = "No response received"
CANCELLED_MARKER = "[Cancelled]"


class ConversationOptions(CamelCaseModel):
    """Per-conversation command profile applied to every turn."""

    cwd: str | None = Field(default=None, description="Working directory for agent processes")
    allowed_tools: list[str] | None = None
    disallowed_tools: list[str] | None = None
    permission_mode: PermissionMode | None = None
    model: str | None = None
    max_turns: int | None = Field(default=None, ge=1)
    system_prompt: str | None = None
    append_system_prompt: str | None = None


def new_message_id() -> str:
    return f"msg-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


@dataclass
class _ActiveTurn:
    handle: ProcessHandle
    reconstructor: TurnReconstructor
    message_id: str
    done: asyncio.Future[Message] = field(default_factory=lambda: asyncio.get_running_loop().create_future())


class Conversation:
    """Send prompts to the agent and maintain the resulting transcript.

    Example:
        >>> async with ProcessSupervisor(settings) as supervisor:
        ...     conversation = Conversation(supervisor, ConversationOptions(cwd="."))
        ...     await conversation.send_message_streaming("List the files here")
        ...     message = await conversation.wait_for_turn()
    """

    def __init__(self, supervisor: ProcessSupervisor, options: ConversationOptions | None = None) -> None:
        self.supervisor = supervisor
        self.options = options or ConversationOptions()
        self.aggregator = SessionAggregator()
        self.messages: list[Message] = []
        self.is_loading = False
        self.is_streaming = False
        self.error: str | None = None
        self.streaming_text = ""
        self._turn: _ActiveTurn | None = None

        bus = supervisor.bus
        self._unsubscribers: list[Callable[[], None]] = [
            bus.on(HostEventKind.STREAM_EVENT, self._on_stream_event),
            bus.on(HostEventKind.STREAM_END, self._on_stream_end),
            bus.on(HostEventKind.STDERR, self._on_stderr),
        ]

    @property
    def session_id(self) -> str | None:
        return self.aggregator.session_id

    @property
    def usage(self) -> UsageStats:
        return self.aggregator.usage

    @property
    def active_process_id(self) -> ProcessHandle | None:
        return self._turn.handle if self._turn else None

    async def send_message(self, prompt: str) -> Message | None:
        """Run one non-streaming turn.

        Returns:
            The assistant message, or None if the turn failed (see `error`)
        """
        if not self.options.cwd:
            self.error = NO_CWD_ERROR
            return None

        self.is_loading = True
        self.error = None
        self._append(MessageRole.USER, prompt)
        try:
            response = await self.supervisor.run(self._spawn_options(prompt))
        except AgentDeckError as e:
            self._report_failure(str(e))
            return None
        finally:
            self.is_loading = False

        self.aggregator.on_turn_completed(response.session_id, response.usage)
        return self._append(MessageRole.ASSISTANT, response.text() or EMPTY_RESPONSE)

    async def send_message_streaming(self, prompt: str) -> ProcessHandle | None:
        """Start a streaming turn and return once the process is registered.

        A turn that is still active is cancelled first. Output arrives through
        the supervisor's bus and updates the placeholder assistant message.

        Returns:
            Handle of the new turn, or None if it could not be started
        """
        if not self.options.cwd:
            self.error = NO_CWD_ERROR
            return None

        if self._turn is not None:
            logger.info(f"Superseding active turn {self._turn.handle}")
            await self.cancel()

        self.is_loading = True
        self.is_streaming = True
        self.error = None
        self.streaming_text = ""
        self._append(MessageRole.USER, prompt)
        placeholder = self._append(MessageRole.ASSISTANT, "", is_streaming=True)

        try:
            handle = await self.supervisor.stream(self._spawn_options(prompt))
        except AgentDeckError as e:
            self.is_loading = False
            self.is_streaming = False
            self.messages = [m for m in self.messages if m.id != placeholder.id]
            self._report_failure(str(e))
            return None

        self._turn = _ActiveTurn(handle=handle, reconstructor=TurnReconstructor(handle), message_id=placeholder.id)
        return handle

    async def wait_for_turn(self) -> Message | None:
        """Wait until the active streaming turn finishes.

        Returns:
            The final assistant message, or None if no turn is active
        """
        if self._turn is None:
            return None
        return await asyncio.shield(self._turn.done)

    async def cancel(self) -> bool:
        """Cancel the active streaming turn, keeping its partial output.

        Returns:
            True if a turn was active
        """
        turn = self._turn
        if turn is None:
            return False

        # stop accepting events before the process is interrupted
        self._turn = None
        await self.supervisor.cancel(turn.handle)
        outcome = turn.reconstructor.fail(CANCELLED_MARKER)
        self._complete(turn, outcome)
        logger.info(f"Turn {turn.handle} cancelled")
        return True

    async def reset_session(self) -> None:
        """Start over: cancel any active turn, drop the transcript and session state."""
        await self.cancel()
        self.aggregator.reset_session()
        self.messages = []
        self.error = None
        self.streaming_text = ""
        self.is_loading = False
        self.is_streaming = False

    def clear_error(self) -> None:
        self.error = None

    def close(self) -> None:
        """Detach from the supervisor's bus."""
        for off in self._unsubscribers:
            off()
        self._unsubscribers = []

    # --- Host event handlers ---

    def _on_stream_event(self, event: HostEvent) -> None:
        turn = self._active_for(event)
        if turn is None or event.event is None:
            return

        fragment = turn.reconstructor.apply(event.event)
        if fragment:
            self.streaming_text += fragment

        reconstructor = turn.reconstructor
        blocks = reconstructor.snapshot() if len(reconstructor.tracker) else None
        self._replace(turn.message_id, content=reconstructor.text, content_blocks=blocks, is_streaming=True)

    def _on_stream_end(self, event: HostEvent) -> None:
        turn = self._active_for(event)
        if turn is None:
            return

        self._turn = None
        code = event.data.get("code")
        if code == 0:
            outcome = turn.reconstructor.finalize()
            if not outcome.content:
                outcome = replace(outcome, content=EMPTY_RESPONSE)
            self._complete(turn, outcome)
            return

        detail = event.data.get("error") or f"Process exited with code {code}"
        outcome = turn.reconstructor.fail(f"[Error: {detail}]")
        self._complete(turn, outcome)
        self._report_failure(detail)

    def _on_stderr(self, event: HostEvent) -> None:
        if self._active_for(event) is not None:
            logger.warning(f"Agent stderr ({event.process_id}): {event.data.get('data', '').rstrip()}")

    def _active_for(self, event: HostEvent) -> _ActiveTurn | None:
        turn = self._turn
        if turn is None or event.process_id != turn.handle:
            logger.debug(f"Ignoring {event.kind.value} for inactive handle {event.process_id}")
            return None
        return turn

    # --- Helpers ---

    def _complete(self, turn: _ActiveTurn, outcome: TurnOutcome) -> None:
        self.aggregator.on_turn_completed(outcome.session_id, outcome.usage)
        message = self._replace(
            turn.message_id,
            content=outcome.content,
            content_blocks=outcome.content_blocks,
            is_streaming=False,
        )
        self.streaming_text = ""
        self.is_loading = False
        self.is_streaming = False
        if message is not None and not turn.done.done():
            turn.done.set_result(message)

    def _spawn_options(self, prompt: str) -> SpawnOptions:
        return SpawnOptions(
            prompt=prompt,
            session_id=self.aggregator.session_id,
            **self.options.model_dump(),
        )

    def _append(self, role: MessageRole, content: str, is_streaming: bool = False) -> Message:
        message = Message(
            id=new_message_id(),
            role=role,
            content=content,
            timestamp=datetime.now(UTC),
            is_streaming=is_streaming,
        )
        self.messages.append(message)
        return message

    def _replace(
        self,
        message_id: str,
        content: str,
        content_blocks: tuple[ContentBlock, ...] | None,
        is_streaming: bool,
    ) -> Message | None:
        for index, message in enumerate(self.messages):
            if message.id == message_id:
                updated = message.model_copy(
                    update={"content": content, "content_blocks": content_blocks, "is_streaming": is_streaming}
                )
                self.messages[index] = updated
                return updated
        return None

    def _report_failure(self, detail: str) -> None:
        logger.warning(f"Turn failed: {detail}")
        self.error = detail
        self._append(MessageRole.SYSTEM, f"Error: {detail}")
