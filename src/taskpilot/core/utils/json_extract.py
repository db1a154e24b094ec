"""
Tolerant JSON Extraction

LLM responses are untrusted text: the JSON object we asked for may be wrapped
in prose, fenced in markdown, or truncated. This module locates the first
balanced ``{...}`` object in such text by counting brace depth while skipping
over string literals and escape sequences.

Both THINK parsing and plan parsing go through these helpers. Neither helper
ever raises on malformed input; callers decide on the fallback value.
"""

import json
from typing import Any


def extract_json(text: str | None) -> str | None:
    """
    Return the substring spanning the first balanced JSON object in ``text``.

    Scanning starts at the first ``{``. Braces inside double-quoted strings
    are ignored, and backslash escapes inside strings are honoured so that
    ``"\\""`` does not terminate the string early.

    Args:
        text: Raw model output

    Returns:
        The balanced object substring, or None if no ``{`` exists or the
        object is never closed.

    Example:
        >>> extract_json('Sure! {"a": {"b": "}"}} trailing')
        '{"a": {"b": "}"}}'
    """
    if not text:
        return None

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]

        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]

    return None


def parse_json_object(text: str | None) -> dict[str, Any] | None:
    """
    Extract and decode the first JSON object in ``text``.

    Returns None when nothing is extractable, when the extracted substring is
    not valid JSON, or when it does not decode to an object.
    """
    candidate = extract_json(text)
    if candidate is None:
        return None

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        return None

    return data if isinstance(data, dict) else None
