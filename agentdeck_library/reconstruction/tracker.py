"""Tool activity registry for one turn.

Keyed by invocation id, deduplicated on first sighting, with each activity
moving one way through `pending/running -> completed | error`.

Contract:
- Inputs: tool_use sightings, tool results, turn termination
- Outputs: ToolActivity instances reflecting the latest state
- Side Effects: Mutates the activities it owns
"""

import logging
from collections.abc import Callable
from collections.abc import Iterator
from datetime import UTC
from datetime import datetime

from ..models.events import ToolResult
from ..models.events import ToolUse
from ..models.tools import ToolActivity
from ..models.tools import ToolStatus

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ToolActivityTracker:
    """In-flight and completed tool invocations, in first-sighting order."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._activities: dict[str, ToolActivity] = {}

    def observe(self, tool_use: ToolUse, text_position: int) -> ToolActivity | None:
        """Record the first sighting of an invocation.

        Args:
            tool_use: The tool_use block
            text_position: Length of the turn's accumulated text at this moment

        Returns:
            The new activity, or None when the id was already seen
        """
        if tool_use.id in self._activities:
            return None

        activity = ToolActivity(
            id=tool_use.id,
            tool_name=tool_use.name,
            status=ToolStatus.RUNNING,
            input=dict(tool_use.input),
            start_time=self._clock(),
            text_position=text_position,
        )
        self._activities[tool_use.id] = activity
        logger.debug(f"Tool {activity.base_name} ({activity.id}) running at offset {text_position}")
        return activity

    def complete(self, result: ToolResult) -> ToolActivity | None:
        """Apply a tool result to its matching activity.

        Unknown ids and activities already in a terminal state are left untouched.

        Returns:
            The updated activity, or None if nothing changed
        """
        activity = self._activities.get(result.tool_use_id)
        if activity is None or activity.status.is_terminal:
            return None

        activity.output = result.content
        self._finish(activity, ToolStatus.ERROR if result.is_error else ToolStatus.COMPLETED)
        return activity

    def force_close(self, status: ToolStatus = ToolStatus.COMPLETED) -> list[ToolActivity]:
        """Move every unresolved activity to a terminal state.

        Args:
            status: COMPLETED when the turn ended normally, ERROR when it failed

        Returns:
            The activities that were closed
        """
        if not status.is_terminal:
            raise ValueError(f"Cannot force-close activities into non-terminal state {status.value}")

        closed = [activity for activity in self._activities.values() if not activity.status.is_terminal]
        for activity in closed:
            self._finish(activity, status)
        return closed

    def get(self, tool_id: str) -> ToolActivity | None:
        return self._activities.get(tool_id)

    def clear(self) -> None:
        self._activities.clear()

    def __contains__(self, tool_id: str) -> bool:
        return tool_id in self._activities

    def __iter__(self) -> Iterator[ToolActivity]:
        return iter(self._activities.values())

    def __len__(self) -> int:
        return len(self._activities)

    def _finish(self, activity: ToolActivity, status: ToolStatus) -> None:
        activity.status = status
        activity.end_time = self._clock()
        logger.debug(f"Tool {activity.base_name} ({activity.id}) {status.value}")
