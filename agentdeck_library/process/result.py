"""Decoding of whole-document agent output.

A non-streaming invocation prints one JSON document on exit. Agents and
wrapper scripts sometimes print banners or warnings around it, so decoding
falls back to the span between the first "{" and the last "}". That
fallback is a heuristic: braces inside surrounding noise can defeat it.

Contract:
- Inputs: Buffered stdout text
- Outputs: AgentResponse
- Side Effects: None
"""

import json
import logging
from typing import Any

from pydantic import ValidationError

from ..errors import ParseError
from ..models.process import AgentResponse

logger = logging.getLogger(__name__)

DEFAULT_TAIL_CHARS = 500


def tail(text: str, limit: int = DEFAULT_TAIL_CHARS) -> str:
    """Return at most the last `limit` characters of `text`, stripped."""
    return text.strip()[-limit:]


def extract_outermost_json(text: str) -> str | None:
    """Locate the outermost JSON object by scanning for braces.

    Example:
        >>> extract_outermost_json('warning: x\\n{"a": {"b": 1}}\\n')
        '{"a": {"b": 1}}'
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def decode_agent_response(
    stdout: str,
    process_id: str | None = None,
    tail_chars: int = DEFAULT_TAIL_CHARS,
) -> AgentResponse:
    """Decode a whole-document response.

    Args:
        stdout: Complete stdout of a process that exited with code 0
        process_id: Handle to record on the response
        tail_chars: Bound on the payload excerpt carried by ParseError

    Returns:
        The decoded response

    Raises:
        ParseError: If neither the whole text nor the extracted object decodes
    """
    data = _loads_object(stdout)
    if data is None:
        candidate = extract_outermost_json(stdout)
        if candidate is not None:
            data = _loads_object(candidate)
            if data is not None:
                logger.debug(f"Decoded response for {process_id} via fallback extraction")

    if data is None:
        raise ParseError("Failed to parse agent response", detail=tail(stdout, tail_chars))

    try:
        response = AgentResponse.model_validate(data)
    except ValidationError as e:
        raise ParseError(
            f"Unexpected agent response shape: {e.error_count()} error(s)", detail=tail(stdout, tail_chars)
        ) from e

    if process_id is not None:
        response = response.model_copy(update={"process_id": process_id})
    return response


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return None
    return data if isinstance(data, dict) else None
