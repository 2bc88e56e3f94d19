"""Stream-json record classification.

Decodes one framed record and dispatches it by its discriminant into a
`StreamEvent` variant. Records that are not JSON objects (agents interleave
diagnostic lines with protocol lines) yield `ParseSkip`, which callers drop
silently.

Contract:
- Inputs: One complete record (no delimiter)
- Outputs: StreamEvent or ParseSkip
- Side Effects: None
"""

import itertools
import json
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from ..models.events import AssistantContentEvent
from ..models.events import AssistantText
from ..models.events import InitEvent
from ..models.events import StreamEvent
from ..models.events import TerminalResultEvent
from ..models.events import TextDeltaEvent
from ..models.events import ToolResult
from ..models.events import ToolUse
from ..models.events import UnrecognizedEvent
from ..models.events import UserContentEvent
from ..models.process import TokenUsage

logger = logging.getLogger(__name__)

_synthetic_tool_ids = itertools.count(1)


@dataclass(frozen=True)
class ParseSkip:
    """Sentinel for a record that is not a usable protocol event."""

    reason: str
    record: str = ""


def classify(record: str) -> StreamEvent | ParseSkip:
    """Classify one record.

    Args:
        record: A single line of agent output

    Returns:
        The classified event, or ParseSkip for blank, non-JSON or malformed records

    Example:
        >>> classify('{"type":"system","subtype":"init","session_id":"s1"}').session_id
        's1'
        >>> isinstance(classify("warming up..."), ParseSkip)
        True
    """
    text = record.strip()
    if not text:
        return ParseSkip("blank")

    try:
        data = json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return ParseSkip("not json", text[:120])

    if not isinstance(data, dict):
        return ParseSkip("not an object", text[:120])

    try:
        return _dispatch(data)
    except (ValidationError, TypeError, AttributeError, ValueError, RecursionError) as e:
        logger.debug(f"Malformed {data.get('type')!r} record skipped: {e}")
        return ParseSkip("malformed", text[:120])


def _dispatch(data: dict[str, Any]) -> StreamEvent:
    event_type = data.get("type")

    if event_type == "system" and data.get("subtype") == "init":
        return InitEvent(raw=data, session_id=_optional_str(data.get("session_id")))

    if event_type == "stream_event":
        delta = (data.get("event") or {}).get("delta") or {}
        if delta.get("type") == "text_delta":
            return TextDeltaEvent(raw=data, text=str(delta.get("text") or ""))
        return UnrecognizedEvent(raw=data, type=event_type)

    if event_type == "assistant":
        blocks: list[AssistantText | ToolUse] = []
        for entry in _message_content(data):
            if entry.get("type") == "text" and isinstance(entry.get("text"), str):
                blocks.append(AssistantText(text=entry["text"]))
            elif entry.get("type") == "tool_use":
                tool_id = entry.get("id") or f"tool-{next(_synthetic_tool_ids)}"
                blocks.append(
                    ToolUse(
                        id=str(tool_id),
                        name=str(entry.get("name") or "unknown"),
                        input=entry.get("input") if isinstance(entry.get("input"), dict) else {},
                    )
                )
        return AssistantContentEvent(raw=data, blocks=tuple(blocks))

    if event_type == "user":
        results = [
            ToolResult(
                tool_use_id=str(entry["tool_use_id"]),
                content=_flatten_result_content(entry.get("content")),
                is_error=bool(entry.get("is_error", False)),
            )
            for entry in _message_content(data)
            if entry.get("type") == "tool_result" and entry.get("tool_use_id")
        ]
        return UserContentEvent(raw=data, results=tuple(results))

    if event_type == "result":
        return TerminalResultEvent(
            raw=data,
            subtype=str(data.get("subtype") or "success"),
            is_error=bool(data.get("is_error", False)),
            session_id=_optional_str(data.get("session_id")),
            result=data.get("result") if isinstance(data.get("result"), str) else None,
            usage=_usage(data.get("usage")),
            total_cost_usd=_cost(data.get("total_cost_usd")),
        )

    return UnrecognizedEvent(raw=data, type=_optional_str(event_type))


def _message_content(data: dict[str, Any]) -> list[dict[str, Any]]:
    message = data.get("message")
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if not isinstance(content, list):
        # user prompts are echoed as plain strings
        return []
    return [entry for entry in content if isinstance(entry, dict)]


def _flatten_result_content(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [item.get("text", "") for item in content if isinstance(item, dict) and item.get("type") == "text"]
        return "\n".join(part for part in parts if part)
    return json.dumps(content, ensure_ascii=False)


def _usage(value: Any) -> TokenUsage | None:
    if not isinstance(value, dict):
        return None
    try:
        return TokenUsage.model_validate(value)
    except ValidationError as e:
        logger.debug(f"Ignoring malformed usage block: {e}")
        return None


def _optional_str(value: Any) -> str | None:
    return str(value) if value else None


def _cost(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)
