"""Helpers to parse Assistants and Responses API objects."""

import json
from typing import Any, Dict, List, Optional

from models.run_models import ToolCall


def extract_tool_calls(run: Any) -> List[ToolCall]:
    """Return the function calls a run is waiting on, or an empty list."""
    required = getattr(run, "required_action", None)
    if required is None or getattr(required, "type", None) != "submit_tool_outputs":
        return []
    submit = getattr(required, "submit_tool_outputs", None)
    calls: List[ToolCall] = []
    for call in getattr(submit, "tool_calls", None) or []:
        function = getattr(call, "function", None)
        calls.append(
            ToolCall(
                id=getattr(call, "id", ""),
                function_name=getattr(function, "name", "") or "",
                arguments_json=getattr(function, "arguments", "") or "{}",
            )
        )
    return calls


def message_text(message: Any) -> Optional[str]:
    """Return the first text part of a thread message."""
    for content in getattr(message, "content", None) or []:
        if getattr(content, "type", None) != "text":
            continue
        text = getattr(content, "text", None)
        value = getattr(text, "value", None)
        if value:
            return value
    return None


def extract_output_text(response: Any) -> str:
    """Extract the aggregated output text from a Responses API result."""
    text = getattr(response, "output_text", None)
    if text:
        return text
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for content in getattr(item, "content", None) or []:
            if getattr(content, "type", None) == "output_text":
                return getattr(content, "text", "") or ""
    return ""


def parse_function_call(response: Any, *, tool_name: str) -> Dict[str, Any]:
    """Return the parsed arguments of the Responses API function call named `tool_name`."""
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) == "function_call" and getattr(item, "name", None) == tool_name:
            return json.loads(getattr(item, "arguments", "{}") or "{}")
    raise RuntimeError(f"No function_call output for '{tool_name}' found in Responses API output.")


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
    """Return token usage information from the response, if present."""
    usage = getattr(response, "usage", None)
    return {
        "input_tokens": getattr(usage, "input_tokens", None) if usage else None,
        "output_tokens": getattr(usage, "output_tokens", None) if usage else None,
    }
