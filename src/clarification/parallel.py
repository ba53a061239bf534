from __future__ import annotations

import re
from typing import Optional

ALL_SYNONYMS = {"all", "semua", "semua parallel", "semua paralel"}

_VALID_CODE = re.compile(r"^[kpr][1-4]$")
_ALL_KEYWORD = re.compile(r"\b(all|semua)\b")
_PHRASE = re.compile(r"\b(?:kelas|parallel|paralel)\s*([1-4])\b")
_PUNCT = ".,;:!?()[]{}\"'`*_"


def normalize_parallel_code(value: str) -> str:
    """Trim and lower-case; map the 'all' family to `all`.

    Anything else is passed through without validation, see
    `is_valid_parallel_code`.
    """
    v = (value or "").strip().lower()
    if v in ALL_SYNONYMS:
        return "all"
    return v


def is_valid_parallel_code(value: Optional[str]) -> bool:
    if value is None:
        return False
    v = value.strip().lower()
    return v == "all" or bool(_VALID_CODE.match(v))


def detect_parallel_code(text: str) -> Optional[str]:
    """Find a parallel code mentioned anywhere in free text."""
    lower = (text or "").lower()
    if _ALL_KEYWORD.search(lower):
        return "all"

    for token in lower.split():
        token = token.strip(_PUNCT)
        if _VALID_CODE.match(token):
            return token

    m = _PHRASE.search(lower)
    if m:
        return f"k{m.group(1)}"
    return None
