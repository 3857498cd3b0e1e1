from __future__ import annotations

import re

# Primitive tokens
WHITESPACE_PATTERN = r"\s+"
NON_NUMERIC_PATTERN = r"[^\d.]"

# Skill lists mix ASCII and full-width delimiters.
SKILL_DELIMITER_PATTERN = r"[,，;；]"

# Freshness parameters when the URL cannot be parsed as absolute.
FRESHNESS_PARAM_PATTERN = r"(?<![A-Za-z0-9_])(timestamp|ts)=\d+"

PAGE_PLACEHOLDER = "{page}"
TIMESTAMP_PLACEHOLDER = "{timestamp}"

WHITESPACE_RE = re.compile(WHITESPACE_PATTERN)
NON_NUMERIC_RE = re.compile(NON_NUMERIC_PATTERN)
SKILL_DELIMITER_RE = re.compile(SKILL_DELIMITER_PATTERN)
FRESHNESS_PARAM_RE = re.compile(FRESHNESS_PARAM_PATTERN, flags=re.IGNORECASE)
