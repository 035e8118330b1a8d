# src/chatrelay/classifier.py
"""
Heuristic content classification for assistant replies.

`classify()` tags a reply as JSON, code or plain text. The result is only a
rendering hint stored on the message; nothing in the session lifecycle
branches on it.
"""

import json
import re
from typing import Any, Tuple

from .models import ContentType

CODE_FENCE = "```"

# Any one of these at the start of the text is enough to call it code.
STRONG_CODE_PATTERN = re.compile(r"^\s*(class|def|function)\s+")

CODE_INDICATORS: Tuple[str, ...] = (
    "import ", "export ", "require(", "def ", "class ", "function ",
    "const ", "let ", "var ", "public ", "private ", "static ", "void ",
    "SELECT ", "INSERT ", "UPDATE ",
    "<[a-zA-Z]",  # opening tag
    "=>", "&&", "||",
)

_INDICATOR_PATTERNS = tuple(
    re.compile(indicator) if indicator.startswith("<[") else re.compile(re.escape(indicator))
    for indicator in CODE_INDICATORS
)

MIN_INDICATOR_HITS = 2


def _reject_constant(name: str) -> Any:
    # NaN, Infinity and -Infinity are not JSON.
    raise ValueError(f"Non-standard JSON constant: {name}")


def is_json(text: Any) -> bool:
    """True when the trimmed text is a bracketed object/array that parses as JSON."""
    if not isinstance(text, str):
        return False
    trimmed = text.strip()
    bracketed = (
        (trimmed.startswith('{') and trimmed.endswith('}'))
        or (trimmed.startswith('[') and trimmed.endswith(']'))
    )
    if not bracketed:
        return False
    try:
        json.loads(trimmed, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return False
    return True


def is_code(text: Any) -> bool:
    """True when the text carries a code fence, a leading declaration, or enough code indicators."""
    if not isinstance(text, str):
        return False
    if CODE_FENCE in text:
        return True
    if STRONG_CODE_PATTERN.search(text):
        return True
    hits = sum(1 for pattern in _INDICATOR_PATTERNS if pattern.search(text))
    return hits >= MIN_INDICATOR_HITS


def classify(text: Any) -> ContentType:
    """
    Classifies reply text as JSON, code or plain text.

    JSON is checked first, so a valid JSON array of code-looking strings is
    still tagged as JSON.
    """
    if is_json(text):
        return ContentType.JSON
    if is_code(text):
        return ContentType.CODE
    return ContentType.TEXT
