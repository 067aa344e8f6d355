"""
Marginalia - Response Parser
Strips formatting noise from model output and parses structured results
"""

import json
import re
from typing import Any, List, Dict

from llm.errors import MalformedResponseError

# Opening fence with an optional language tag, and a closing fence
_OPEN_FENCE = re.compile(r"^\s*```[A-Za-z0-9_+-]*[ \t]*\n?")
_CLOSE_FENCE = re.compile(r"\n?\s*```\s*$")


def clean_json(raw_text: str) -> str:
    """Remove surrounding Markdown code fences, if any."""
    text = (raw_text or "").strip()
    text = _OPEN_FENCE.sub("", text, count=1)
    text = _CLOSE_FENCE.sub("", text, count=1)
    return text.strip()


def parse_structured(raw_text: str) -> Any:
    """
    Parse model output expected to be JSON.

    Raises:
        MalformedResponseError: The text is not valid JSON after fence removal
    """
    cleaned = clean_json(raw_text)
    if not cleaned:
        raise MalformedResponseError("Empty response where JSON was expected", raw_text or "")

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Invalid JSON: {e.msg} at position {e.pos}", raw_text)


def as_list(value: Any) -> List[Any]:
    """
    Normalize a parsed value to a list.

    A solitary object is wrapped; anything else is rejected.
    """
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        return [value]
    raise MalformedResponseError(f"Expected a JSON array, got {type(value).__name__}")


def as_object(value: Any) -> Dict[str, Any]:
    """Normalize a parsed value to an object, unwrapping a one-element list."""
    if isinstance(value, dict):
        return value
    if isinstance(value, list) and len(value) == 1 and isinstance(value[0], dict):
        return value[0]
    raise MalformedResponseError(f"Expected a JSON object, got {type(value).__name__}")
