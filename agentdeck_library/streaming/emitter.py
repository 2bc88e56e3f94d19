"""Host event subscriptions.

Delivers process output notifications to passive subscribers: callbacks
registered per event kind, and queues for long-lived consumers such as the
daemon's SSE endpoint. Publishing is synchronous on the event loop, so
subscribers observe events for one handle in record order.

Contract:
- Inputs: HostEvent instances from the process supervisor
- Outputs: Callback invocations and queued events
- Side Effects: None beyond subscriber bookkeeping
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Any

from ..models.events import StreamEvent

logger = logging.getLogger(__name__)


class HostEventKind(str, Enum):
    """Notification kinds published for every process handle."""

    PROGRESS = "progress"
    STREAM_START = "stream-start"
    STREAM_TEXT = "stream-text"
    STREAM_EVENT = "stream-event"
    STREAM_END = "stream-end"
    STDERR = "stderr"


@dataclass(frozen=True)
class HostEvent:
    """One notification about one process handle.

    Attributes:
        kind: Notification kind
        process_id: Handle of the process the notification belongs to
        data: JSON-serializable payload
        event: Classified stream event, for STREAM_EVENT notifications
    """

    kind: HostEventKind
    process_id: str
    data: dict[str, Any] = field(default_factory=dict)
    event: StreamEvent | None = None

    def to_message(self) -> dict[str, Any]:
        """Serialize as an `{"event", "data"}` pair for queue subscribers."""
        return {"event": self.kind.value, "data": {"processId": self.process_id, **self.data}}


Callback = Callable[[HostEvent], None]


class HostEventBus:
    """Publish host events to callbacks and subscriber queues.

    Example:
        >>> bus = HostEventBus()
        >>> seen = []
        >>> off = bus.on(HostEventKind.STREAM_TEXT, seen.append)
        >>> bus.publish(HostEvent(HostEventKind.STREAM_TEXT, "proc-1", {"text": "hi"}))
        >>> off()
        >>> len(seen)
        1
    """

    def __init__(self) -> None:
        self._callbacks: dict[HostEventKind, list[Callback]] = {kind: [] for kind in HostEventKind}
        self.queues: list[asyncio.Queue[dict[str, Any]]] = []

    def on(self, kind: HostEventKind, callback: Callback) -> Callable[[], None]:
        """Register a callback for one event kind.

        Args:
            kind: Event kind to listen for
            callback: Called with each matching HostEvent

        Returns:
            Deregistration function; calling it more than once is harmless
        """
        callbacks = self._callbacks[kind]
        callbacks.append(callback)

        def off() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return off

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        """Create a queue that receives every published event.

        Returns:
            asyncio.Queue of `{"event": kind, "data": payload}` dicts
        """
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.queues.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        """Remove subscriber queue.

        Args:
            queue: Queue to remove
        """
        if queue in self.queues:
            self.queues.remove(queue)

    def publish(self, event: HostEvent) -> None:
        """Deliver an event to every subscriber of its kind.

        A failing subscriber is logged and does not prevent delivery to the others.
        """
        for callback in list(self._callbacks[event.kind]):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Host event callback failed for {event.kind.value}: {e}")

        if self.queues:
            message = event.to_message()
            for queue in self.queues:
                queue.put_nowait(message)

    def clear(self) -> None:
        """Drop every callback and queue subscription."""
        for callbacks in self._callbacks.values():
            callbacks.clear()
        self.queues.clear()
