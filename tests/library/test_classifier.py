"""
Unit tests for stream record classification.

Tests each recognized record shape, the unrecognized arm and ParseSkip cases.
"""

import json

import pytest

from agentdeck_library.models.events import AssistantContentEvent
from agentdeck_library.models.events import AssistantText
from agentdeck_library.models.events import InitEvent
from agentdeck_library.models.events import TerminalResultEvent
from agentdeck_library.models.events import TextDeltaEvent
from agentdeck_library.models.events import ToolUse
from agentdeck_library.models.events import UnrecognizedEvent
from agentdeck_library.models.events import UserContentEvent
from agentdeck_library.streaming.classifier import ParseSkip
from agentdeck_library.streaming.classifier import classify


def record(data: dict) -> str:
    return json.dumps(data)


@pytest.mark.unit
class TestClassify:
    """Test classify() dispatch."""

    def test_init_record_carries_session_id(self) -> None:
        """Test system/init becomes InitEvent with the session id."""
        event = classify(record({"type": "system", "subtype": "init", "session_id": "s1"}))

        assert isinstance(event, InitEvent)
        assert event.session_id == "s1"
        assert event.raw["subtype"] == "init"

    def test_text_delta_record(self) -> None:
        """Test stream_event with a text_delta becomes TextDeltaEvent."""
        event = classify(
            record({"type": "stream_event", "event": {"delta": {"type": "text_delta", "text": "Hello "}}})
        )

        assert isinstance(event, TextDeltaEvent)
        assert event.text == "Hello "

    def test_non_text_stream_event_is_unrecognized(self) -> None:
        """Test stream_event without a text delta falls to the unrecognized arm."""
        event = classify(record({"type": "stream_event", "event": {"type": "message_start"}}))

        assert isinstance(event, UnrecognizedEvent)
        assert event.type == "stream_event"

    def test_assistant_record_keeps_block_order(self) -> None:
        """Test assistant content keeps text and tool_use blocks in order."""
        event = classify(
            record(
                {
                    "type": "assistant",
                    "message": {
                        "content": [
                            {"type": "text", "text": "Let me look."},
                            {"type": "tool_use", "id": "t1", "name": "mcp__fs__Read", "input": {"file_path": "a.txt"}},
                            {"type": "thinking", "thinking": "ignored"},
                        ]
                    },
                }
            )
        )

        assert isinstance(event, AssistantContentEvent)
        assert len(event.blocks) == 2
        assert isinstance(event.blocks[0], AssistantText)
        assert isinstance(event.blocks[1], ToolUse)
        assert event.blocks[1].id == "t1"
        assert event.blocks[1].input == {"file_path": "a.txt"}

    def test_tool_use_without_id_gets_synthetic_id(self) -> None:
        """Test a tool_use missing its id still gets a unique id."""
        data = {"type": "assistant", "message": {"content": [{"type": "tool_use", "name": "Bash"}]}}

        first = classify(record(data))
        second = classify(record(data))

        assert isinstance(first, AssistantContentEvent)
        assert isinstance(second, AssistantContentEvent)
        assert first.blocks[0].id != second.blocks[0].id

    def test_user_record_yields_tool_results(self) -> None:
        """Test user tool_result entries are collected with flattened content."""
        event = classify(
            record(
                {
                    "type": "user",
                    "message": {
                        "content": [
                            {"type": "tool_result", "tool_use_id": "t1", "content": [{"type": "text", "text": "ok"}]},
                            {"type": "tool_result", "tool_use_id": "t2", "content": "denied", "is_error": True},
                            {"type": "tool_result"},
                        ]
                    },
                }
            )
        )

        assert isinstance(event, UserContentEvent)
        assert [r.tool_use_id for r in event.results] == ["t1", "t2"]
        assert event.results[0].content == "ok"
        assert event.results[1].is_error is True

    def test_user_prompt_echo_has_no_results(self) -> None:
        """Test a user record whose content is a plain string yields no results."""
        event = classify(record({"type": "user", "message": {"content": "hi"}}))

        assert isinstance(event, UserContentEvent)
        assert event.results == ()

    def test_result_record_carries_usage_and_cost(self) -> None:
        """Test result records expose session, usage, cost and success."""
        event = classify(
            record(
                {
                    "type": "result",
                    "subtype": "success",
                    "session_id": "s9",
                    "result": "done",
                    "usage": {"input_tokens": 3, "output_tokens": 4},
                    "total_cost_usd": 0.02,
                }
            )
        )

        assert isinstance(event, TerminalResultEvent)
        assert event.succeeded
        assert event.session_id == "s9"
        assert event.usage is not None
        assert event.usage.input_tokens == 3
        assert event.total_cost_usd == 0.02

    def test_error_result_does_not_succeed(self) -> None:
        """Test result records with an error subtype are not successful."""
        event = classify(record({"type": "result", "subtype": "error_max_turns", "is_error": True}))

        assert isinstance(event, TerminalResultEvent)
        assert not event.succeeded

    def test_malformed_usage_is_dropped_not_fatal(self) -> None:
        """Test a bad usage block does not prevent classification."""
        event = classify(record({"type": "result", "subtype": "success", "usage": {"input_tokens": -1}}))

        assert isinstance(event, TerminalResultEvent)
        assert event.usage is None

    @pytest.mark.parametrize("cost", ["free", [1], True])
    def test_non_numeric_cost_keeps_the_result(self, cost) -> None:
        """Test a bad cost value is dropped while session and usage survive."""
        event = classify(
            record(
                {
                    "type": "result",
                    "subtype": "success",
                    "session_id": "s3",
                    "usage": {"input_tokens": 1, "output_tokens": 2},
                    "total_cost_usd": cost,
                }
            )
        )

        assert isinstance(event, TerminalResultEvent)
        assert event.total_cost_usd is None
        assert event.session_id == "s3"
        assert event.usage is not None
        assert event.usage.output_tokens == 2

    def test_integer_cost_is_accepted(self) -> None:
        event = classify(record({"type": "result", "subtype": "success", "total_cost_usd": 1}))

        assert event.total_cost_usd == 1.0

    def test_deeply_nested_line_is_skipped(self) -> None:
        """Test input that exhausts the decoder's recursion is a malformed line."""
        skip = classify("[" * 100000)

        assert isinstance(skip, ParseSkip)
        assert skip.reason == "not json"

    def test_deeply_nested_object_value_is_skipped(self) -> None:
        line = '{"type": "assistant", "message": ' + "[" * 100000 + "]" * 100000 + "}"

        assert isinstance(classify(line), ParseSkip)

    def test_unknown_type_is_unrecognized(self) -> None:
        """Test an unknown discriminant becomes UnrecognizedEvent."""
        event = classify(record({"type": "telemetry", "value": 1}))

        assert isinstance(event, UnrecognizedEvent)
        assert event.type == "telemetry"

    @pytest.mark.parametrize("line", ["", "   ", "warming up...", "[1, 2]", '"text"', '{"type": '])
    def test_unusable_records_are_skipped(self, line: str) -> None:
        """Test blank, non-JSON and non-object records yield ParseSkip."""
        assert isinstance(classify(line), ParseSkip)
