"""
Unit tests for the tool activity tracker.

Tests first-sighting deduplication and one-way status transitions.
"""

from datetime import UTC
from datetime import datetime

import pytest

from agentdeck_library.models.events import ToolResult
from agentdeck_library.models.events import ToolUse
from agentdeck_library.models.tools import ToolKind
from agentdeck_library.models.tools import ToolStatus
from agentdeck_library.reconstruction.tracker import ToolActivityTracker

FIXED_TIME = datetime(2026, 1, 1, tzinfo=UTC)


@pytest.fixture
def tracker() -> ToolActivityTracker:
    return ToolActivityTracker(clock=lambda: FIXED_TIME)


@pytest.mark.unit
class TestToolActivityTracker:
    """Test ToolActivityTracker lifecycle handling."""

    def test_observe_creates_running_activity(self, tracker: ToolActivityTracker) -> None:
        """Test first sighting creates a RUNNING activity at the given offset."""
        activity = tracker.observe(ToolUse(id="t1", name="mcp__fs__Read", input={"file_path": "a.txt"}), 6)

        assert activity is not None
        assert activity.status == ToolStatus.RUNNING
        assert activity.text_position == 6
        assert activity.base_name == "Read"
        assert activity.kind == ToolKind.FILE_READ
        assert activity.start_time == FIXED_TIME

    def test_duplicate_sightings_keep_one_activity(self, tracker: ToolActivityTracker) -> None:
        """Test repeated sightings of one id are ignored.

        Given: A tool_use seen once at offset 0
        When: The same id is seen again at later offsets
        Then: One activity exists, still at the first offset
        """
        tracker.observe(ToolUse(id="t1", name="Bash"), 0)

        assert tracker.observe(ToolUse(id="t1", name="Bash"), 5) is None
        assert tracker.observe(ToolUse(id="t1", name="Bash"), 9) is None
        assert len(tracker) == 1
        assert tracker.get("t1").text_position == 0

    def test_result_completes_activity_with_output(self, tracker: ToolActivityTracker) -> None:
        """Test a matching result moves the activity to COMPLETED."""
        tracker.observe(ToolUse(id="t1", name="Bash"), 0)

        updated = tracker.complete(ToolResult(tool_use_id="t1", content="ok"))

        assert updated is not None
        assert updated.status == ToolStatus.COMPLETED
        assert updated.output == "ok"
        assert updated.end_time == FIXED_TIME

    def test_error_result_marks_activity_error(self, tracker: ToolActivityTracker) -> None:
        """Test an error result moves the activity to ERROR."""
        tracker.observe(ToolUse(id="t1", name="Bash"), 0)

        tracker.complete(ToolResult(tool_use_id="t1", content="denied", is_error=True))

        assert tracker.get("t1").status == ToolStatus.ERROR

    def test_unknown_and_repeated_results_are_noops(self, tracker: ToolActivityTracker) -> None:
        """Test results for unknown ids or terminal activities change nothing."""
        tracker.observe(ToolUse(id="t1", name="Bash"), 0)
        tracker.complete(ToolResult(tool_use_id="t1", content="first"))

        assert tracker.complete(ToolResult(tool_use_id="nope")) is None
        assert tracker.complete(ToolResult(tool_use_id="t1", content="second", is_error=True)) is None
        assert tracker.get("t1").status == ToolStatus.COMPLETED
        assert tracker.get("t1").output == "first"

    def test_force_close_only_touches_unresolved(self, tracker: ToolActivityTracker) -> None:
        """Test force_close leaves terminal activities untouched."""
        tracker.observe(ToolUse(id="t1", name="Bash"), 0)
        tracker.observe(ToolUse(id="t2", name="Grep"), 0)
        tracker.complete(ToolResult(tool_use_id="t1", content="ok"))

        closed = tracker.force_close(ToolStatus.ERROR)

        assert [a.id for a in closed] == ["t2"]
        assert tracker.get("t1").status == ToolStatus.COMPLETED
        assert tracker.get("t2").status == ToolStatus.ERROR

    def test_force_close_rejects_non_terminal_status(self, tracker: ToolActivityTracker) -> None:
        """Test force_close refuses RUNNING or PENDING targets."""
        with pytest.raises(ValueError):
            tracker.force_close(ToolStatus.RUNNING)

    def test_iteration_follows_first_sighting_order(self, tracker: ToolActivityTracker) -> None:
        """Test activities iterate in first-sighting order."""
        for tool_id in ("b", "a", "c"):
            tracker.observe(ToolUse(id=tool_id, name="Read"), 0)

        assert [a.id for a in tracker] == ["b", "a", "c"]

        tracker.clear()
        assert len(tracker) == 0
