"""Pull a JSON object out of free-text agent messages.

Agents tend to wrap their JSON in prose or markdown fences. ``extract``
takes everything from the first ``{`` to the last ``}``, which handles the
common cases and is fooled by messages holding more than one object. The
result is untrusted until it survives ``json.loads`` and model validation.
"""

import json
from typing import Any

from devin_triage.exceptions import ParseError


def extract(text: str) -> str:
    """Return the greedy first-``{``-to-last-``}`` span of ``text``.

    Args:
        text: Raw message text

    Returns:
        The candidate JSON span, or ``text`` unchanged when it holds no
        ``{`` followed later by a ``}``.

    Example:
        >>> extract('Here you go: {"a": 1} thanks')
        '{"a": 1}'
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return text
    return text[start : end + 1]


def parse_json_object(text: str) -> dict[str, Any]:
    """Extract and decode a JSON object from ``text``.

    Raises:
        ParseError: If no JSON object can be decoded
    """
    candidate = extract(text)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ParseError(f"Agent message does not contain valid JSON: {e.msg}") from e
    except RecursionError as e:
        raise ParseError("Agent message JSON is nested too deeply to decode") from e

    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}")
    return data
