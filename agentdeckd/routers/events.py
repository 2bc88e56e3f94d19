"""Process event streaming endpoint.

Delivers every host notification (progress, stream-start, stream-text,
stream-event, stream-end, stderr) for every process handle to SSE clients.
"""

import asyncio
import json
import logging
from datetime import UTC
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends
from sse_starlette import ServerSentEvent
from sse_starlette.sse import EventSourceResponse

from agentdeck_library.streaming.emitter import HostEventBus

from ..dependencies import get_event_bus

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/events", tags=["events"])

KEEPALIVE_SECONDS = 30.0


@router.get("")
async def process_event_stream(bus: Annotated[HostEventBus, Depends(get_event_bus)]) -> EventSourceResponse:
    """SSE stream of process notifications.

    Connection lifecycle:
    - Connect: Subscribes a queue on the host event bus
    - Disconnect: Unsubscribes the queue

    Returns:
        SSE EventSourceResponse streaming host events

    Events:
        - connected: Initial connection established
        - keepalive: Periodic heartbeat (every 30s)
        - progress, stream-start, stream-text, stream-event, stream-end, stderr:
          Process notifications; every payload carries `processId`
        - error: Stream error occurred
    """

    async def event_generator():
        """Generate SSE events from the host event bus."""
        queue = bus.subscribe()

        try:
            yield ServerSentEvent(
                data=json.dumps({"timestamp": datetime.now(UTC).isoformat()}),
                event="connected",
            )
            logger.info("Process event stream connected")

            while True:
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                    yield ServerSentEvent(
                        data=json.dumps(message["data"]),
                        event=message["event"],
                    )

                except TimeoutError:
                    yield ServerSentEvent(
                        data=json.dumps({"timestamp": datetime.now(UTC).isoformat()}),
                        event="keepalive",
                    )

        except asyncio.CancelledError:
            logger.info("Process event stream disconnected")

        except Exception as e:
            logger.error(f"Process event stream error: {e}")
            yield ServerSentEvent(
                data=json.dumps({"error": str(e), "timestamp": datetime.now(UTC).isoformat()}),
                event="error",
            )

        finally:
            bus.unsubscribe(queue)

    return EventSourceResponse(event_generator())
