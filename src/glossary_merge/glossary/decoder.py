"""Extract JSON from free-form LLM output.

Models often wrap JSON in code fences, add comments, or surround it with
chatter. Strategies, in order:

1. a ```json fenced block
2. any fenced block, as-is then with ``//`` / ``/* */`` comments removed
3. every top-level balanced ``{...}`` / ``[...]`` segment of the raw text,
   arrays first, longer snippets first
"""

import json
import re
from typing import Any

import structlog

from glossary_merge.glossary.errors import StructuralError

logger = structlog.get_logger()

_JSON_FENCE = re.compile(r"```json\s*\n(.*?)\n?```", re.DOTALL)
_ANY_FENCE = re.compile(r"```\w*\s*\n(.*?)\n?(?:```|$)", re.DOTALL)
_LINE_COMMENT = re.compile(r"//.*$", re.MULTILINE)
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)

_CLOSERS = {"}": "{", "]": "["}


def strip_comments(text: str) -> str:
    return _BLOCK_COMMENT.sub("", _LINE_COMMENT.sub("", text))


def _loads_lenient(text: str) -> tuple[bool, Any]:
    """Try ``json.loads`` as-is, then with comments stripped."""
    for candidate in (text, strip_comments(text)):
        try:
            return True, json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return False, None


def extract_balanced_segments(text: str) -> list[str]:
    """Return every outermost balanced JSON-looking segment in ``text``.

    Quotes and backslash escapes are tracked so brackets inside strings
    are ignored. A mismatched closer abandons the current segment.
    """
    segments: list[str] = []
    stack: list[str] = []
    start = -1
    in_string = False
    escape_next = False

    for i, ch in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if ch == "\\":
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if ch in "{[":
            stack.append(ch)
            if len(stack) == 1:
                start = i
        elif ch in _CLOSERS:
            if not stack:
                continue
            if stack[-1] != _CLOSERS[ch]:
                stack.clear()
                start = -1
                continue
            stack.pop()
            if not stack and start != -1:
                segments.append(text[start : i + 1])
                start = -1

    return segments


def parse_json_from_llm(llm_output: str) -> Any:
    """Parse the JSON payload of an LLM response.

    Args:
        llm_output: Raw completion text

    Returns:
        Parsed JSON value (object, array, ...)

    Raises:
        StructuralError: If no strategy yields valid JSON
    """
    match = _JSON_FENCE.search(llm_output)
    if match:
        try:
            return json.loads(match.group(1).strip())
        except json.JSONDecodeError:
            pass  # Malformed json fence, fall through

    for fence in _ANY_FENCE.finditer(llm_output):
        ok, value = _loads_lenient(fence.group(1).strip())
        if ok:
            return value

    candidates = sorted(
        (s.strip() for s in extract_balanced_segments(llm_output)),
        key=lambda s: (not s.startswith("["), -len(s)),
    )
    for snippet in candidates:
        ok, value = _loads_lenient(snippet)
        if ok:
            return value

    logger.debug("llm_json_not_found", response=llm_output[:500])
    raise StructuralError("No valid JSON found in arbitration response")
