"""
Recover JSON values embedded in LLM output.

Models wrap JSON in prose or code fences; this scans for balanced
``{...}`` / ``[...]`` spans (respecting string literals and escapes) and
returns the first one that decodes.
"""

import json
from typing import Any, Callable, Iterator, Optional, Tuple

from ..errors import ParseError


_OPENERS = {"{": "}", "[": "]"}


def _balanced_end(text: str, start: int) -> Optional[int]:
    """Index one past the bracket closing ``text[start]``, or None."""
    stack = [_OPENERS[text[start]]]
    in_string = False
    escaped = False

    for i in range(start + 1, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in ("}", "]"):
            if ch != stack[-1]:
                return None
            stack.pop()
            if not stack:
                return i + 1

    return None


def iter_json_spans(text: str) -> Iterator[Tuple[int, int]]:
    """Yield (start, end) of every balanced span, in order of start position."""
    for start, ch in enumerate(text):
        if ch in _OPENERS:
            end = _balanced_end(text, start)
            if end is not None:
                yield start, end


def extract_json_span(text: str) -> Any:
    """
    Decode the first balanced JSON array or object in ``text``.

    Args:
        text: Raw model output

    Returns:
        Decoded dict or list

    Raises:
        ParseError: If no balanced span decodes
    """
    if not text:
        raise ParseError("Empty model output")

    for start, end in iter_json_spans(text):
        try:
            return json.loads(text[start:end])
        except json.JSONDecodeError:
            continue

    raise ParseError("No decodable JSON value found")


def find_json_value(
    text: str,
    accept: Optional[Callable[[Any], bool]] = None,
) -> Optional[Any]:
    """
    Like extract_json_span, but returns None instead of raising.

    Args:
        text: Raw model output
        accept: Optional predicate; spans whose decoded value it rejects are skipped
    """
    if accept is None:
        try:
            return extract_json_span(text)
        except ParseError:
            return None

    for start, end in iter_json_spans(text or ""):
        try:
            value = json.loads(text[start:end])
        except json.JSONDecodeError:
            continue
        if accept(value):
            return value
    return None


def find_json_object(text: str) -> Optional[dict]:
    """First balanced span that decodes to a JSON object, or None."""
    return find_json_value(text, accept=lambda value: isinstance(value, dict))
