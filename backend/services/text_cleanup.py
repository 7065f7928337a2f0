"""
Post-processing of raw model output.

Pure functions, independent of any provider:
    strip_preamble       removes conversational lead-ins ("Here is...:", "Sure!")
    extract_json_object  parses the first balanced {...} block in a response
"""

import json
import re
from typing import Optional

_PREAMBLE_PATTERNS = [
    # "Here is the prompt for the writer:" / "Evo uputa:" (up to the first colon)
    re.compile(r"^\s*(?:here(?:'s| is| are)|evo)\b[^\n:]*:[ \t]*\n*", re.IGNORECASE),
    # Standalone acknowledgements: "Sure!", "Certainly, I can help with that."
    # A plain "Of course, she said nothing." line is story text and stays.
    re.compile(
        r"^\s*(?:sure|certainly|of course|absolutely|okay|naravno)"
        r"(?:!|[,.]\s*(?:i can|i'll|i will|i'd|let me|here(?:'s| is| are)|happy to|evo)\b)[^\n]{0,100}\n+",
        re.IGNORECASE,
    ),
    re.compile(r"^\s*(?:i understand|understood|razumijem)\b[^\n]*\n+", re.IGNORECASE),
    re.compile(r"^\s*(?:dear (?:user|author|writer)|poštovani)\b[^\n]*\n+", re.IGNORECASE),
]


def strip_preamble(text: str) -> str:
    """
    Remove boilerplate lead-ins a model puts before the actual content.

    Patterns are applied repeatedly, so "Sure!\\nHere is the prompt:\\n..."
    loses both lines. If nothing would remain, the input is returned stripped.
    """
    if not text:
        return ""

    cleaned = text
    changed = True
    while changed:
        changed = False
        for pattern in _PREAMBLE_PATTERNS:
            stripped = pattern.sub("", cleaned, count=1)
            if stripped != cleaned:
                cleaned = stripped
                changed = True

    cleaned = cleaned.strip()
    return cleaned if cleaned else text.strip()


def extract_json_object(text: Optional[str]) -> Optional[dict]:
    """
    Parse the first balanced {...} substring of `text`.

    Braces inside JSON strings are ignored while scanning. Returns None if
    there is no balanced block, or it is not a valid JSON object.
    """
    if not text:
        return None

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
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
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                try:
                    parsed = json.loads(text[start : i + 1])
                except json.JSONDecodeError:
                    return None
                return parsed if isinstance(parsed, dict) else None

    return None
