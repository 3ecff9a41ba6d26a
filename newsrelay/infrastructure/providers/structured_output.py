"""Parsing of generated text into JSON values and line lists.

Models frequently wrap JSON in markdown fences or emit typographic quotes.
Parsing gets exactly one cleanup pass before the output is rejected.
"""

import json
import re
from typing import Any, List, Optional, Type, Union

from ...domain.exceptions import InvalidResponseError
from ...logging import debug, LogRecord, LogEvent

_FENCE_RE = re.compile(r"^\s*```(?:json|JSON)?\s*|\s*```\s*$")
_LINE_MARKER_RE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")

_CHAR_REPLACEMENTS = {
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
    "—": "-",
    "–": "-",
    "…": "...",
}
_CHAR_TABLE = str.maketrans(_CHAR_REPLACEMENTS)

_BRACKETS = {list: ("[", "]"), dict: ("{", "}")}


def sanitize_generated_text(text: str, expect: Union[Type[list], Type[dict]] = list) -> str:
    """Strip markdown fences, normalize typography and cut to the outermost JSON span."""
    cleaned = _FENCE_RE.sub("", text.strip()).strip()
    cleaned = cleaned.translate(_CHAR_TABLE)
    opener, closer = _BRACKETS[expect]
    start = cleaned.find(opener)
    end = cleaned.rfind(closer)
    if start != -1 and end > start:
        cleaned = cleaned[start : end + 1]
    return cleaned


def parse_structured(
    text: str,
    expect: Union[Type[list], Type[dict]] = list,
    provider_name: Optional[str] = None,
) -> Any:
    """Parse generated text as a JSON list or object.

    Args:
        text: Raw generated text
        expect: ``list`` or ``dict``; the parsed value must be of this type
        provider_name: Attached to the raised error

    Returns:
        The parsed JSON value

    Raises:
        InvalidResponseError: If the text does not parse after one sanitization pass
    """
    if expect not in _BRACKETS:
        raise ValueError(f"expect must be list or dict, got {expect!r}")

    try:
        value = json.loads(text)
        if isinstance(value, expect):
            return value
    except ValueError:
        pass

    cleaned = sanitize_generated_text(text, expect)
    debug(
        LogRecord(
            event=LogEvent.OUTPUT_SANITIZED.value,
            message="Sanitized generated output before parsing",
            data={"provider": provider_name, "raw_length": len(text)},
        )
    )
    try:
        value = json.loads(cleaned)
    except ValueError as exc:
        raise InvalidResponseError(
            "Generated output is not valid JSON",
            raw_text=text,
            provider_name=provider_name,
        ) from exc
    if not isinstance(value, expect):
        raise InvalidResponseError(
            f"Generated output is a {type(value).__name__}, expected {expect.__name__}",
            raw_text=text,
            provider_name=provider_name,
        )
    return value


def parse_lines(text: str) -> List[str]:
    """Split generated text into items, one per non-blank line.

    Lines that are only an ordinal (``"3."``) are dropped; leading bullet
    markers and numbering are removed from the rest.
    """
    items: List[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        stripped = _LINE_MARKER_RE.sub("", line).strip()
        if not stripped:
            continue
        items.append(stripped.translate(_CHAR_TABLE))
    return items
