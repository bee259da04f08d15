"""Canonicalisation helpers for user-entered KFZ codes."""

from __future__ import annotations

import re
from typing import List

MAX_CODE_LENGTH = 3

_INVALID_CHARS = re.compile(r"[^A-ZÄÖÜ]")
_CODE_PATTERN = re.compile(r"^[A-ZÄÖÜ]+$")


def normalize_code(raw: object) -> str:
    """Trim, uppercase, drop non-letters and cap at the longest German prefix."""
    if not isinstance(raw, str) or not raw:
        return ""
    cleaned = _INVALID_CHARS.sub("", raw.strip().upper())
    return cleaned[:MAX_CODE_LENGTH]


def parse_codes(raw: object) -> List[str]:
    if not isinstance(raw, str) or not raw:
        return []
    codes: List[str] = []
    for token in raw.split():
        code = token.strip().upper()
        if not code or len(code) > MAX_CODE_LENGTH:
            continue
        if not _CODE_PATTERN.match(code):
            continue
        if code not in codes:
            codes.append(code)
    return codes


def is_valid_code(raw: object) -> bool:
    return 1 <= len(normalize_code(raw)) <= MAX_CODE_LENGTH


__all__ = ["MAX_CODE_LENGTH", "is_valid_code", "normalize_code", "parse_codes"]
