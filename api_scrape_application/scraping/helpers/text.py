from __future__ import annotations

import json
import re
from typing import Any, List, Optional

from .regex_patterns import NON_NUMERIC_RE, SKILL_DELIMITER_RE, WHITESPACE_RE

_LEADING_NUMBER_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def clean_text(text: str) -> str:
    """Collapse whitespace runs (newlines and tabs included) and trim the ends."""

    return WHITESPACE_RE.sub(" ", text).strip()


def parse_number(value: Any) -> Optional[float]:
    """Coerce a salary-ish value to a number.

    Numbers pass through. Strings keep only digits and dots, then the leading
    number is parsed, so ``"15k"`` becomes ``15`` and ``"¥1,200.50"`` becomes
    ``1200.5``. Unit suffixes such as ``k`` or ``万`` are not multiplied.
    """

    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if not isinstance(value, str):
        return None
    stripped = NON_NUMERIC_RE.sub("", value)
    match = _LEADING_NUMBER_RE.match(stripped)
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def parse_skills(value: Any) -> Optional[List[str]]:
    if isinstance(value, list):
        return [_stringify(skill) for skill in value]
    if isinstance(value, str):
        parts = (part.strip() for part in SKILL_DELIMITER_RE.split(value))
        return [part for part in parts if part]
    return None


def preview(value: Any, limit: int) -> str:
    """Serialize ``value`` for a log line and cut it at ``limit`` characters."""

    if value is None:
        return ""
    if isinstance(value, str):
        text = value
    else:
        try:
            text = json.dumps(value, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            text = repr(value)
    return text[:limit]
