import json
from typing import Any, Dict, Optional

from closet.core.errors import AIResponseParseError


def _balanced_end(text: str, start: int) -> Optional[int]:
    """Index just past the brace closing the object opened at `start`."""
    depth = 0
    in_str = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def extract_json_object(text: Optional[str]) -> Dict[str, Any]:
    """Return the first balanced {...} span in model output as a dict.

    Prose or markdown fences around the object are ignored. Raises
    AIResponseParseError when no span parses as a JSON object.
    """
    if not text:
        raise AIResponseParseError("Empty AI response")
    pos = text.find("{")
    while pos != -1:
        end = _balanced_end(text, pos)
        if end is None:
            break
        try:
            data = json.loads(text[pos:end])
        except ValueError:
            data = None
        if isinstance(data, dict):
            return data
        pos = text.find("{", pos + 1)
    raise AIResponseParseError()
