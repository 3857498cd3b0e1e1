from __future__ import annotations

from typing import Any, Dict

_SENSITIVE_HEADER_NAMES = {"authorization", "cookie", "x-api-key", "apikey", "x-csrf-token", "x-token"}


def mask_secret(secret: str | None) -> str | None:
    """Return a lightly redacted version of a secret for audit purposes."""

    if secret is None:
        return None
    secret_str = str(secret)
    if not secret_str:
        return None
    if len(secret_str) <= 4:
        return "*" * len(secret_str)
    return f"{secret_str[:4]}...{secret_str[-2:]}"


def sanitize_headers(headers: Dict[str, Any] | None) -> Dict[str, Any] | None:
    """Mask credential-like header values while keeping the shape visible."""

    if not isinstance(headers, dict):
        return None

    sanitized: Dict[str, Any] = {}
    for key, value in headers.items():
        if value is None:
            continue
        if isinstance(value, str) and str(key).lower() in _SENSITIVE_HEADER_NAMES:
            masked = mask_secret(value)
            sanitized[key] = masked if masked is not None else value
        else:
            sanitized[key] = value

    return sanitized if sanitized else None
