from __future__ import annotations

from typing import Any, Iterable


class _Missing:
    """Sentinel for a path that does not resolve (distinct from JSON null)."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def split_path(path: str | None) -> list[str]:
    if not isinstance(path, str) or not path:
        return []
    return path.split(".")


def resolve_segments(value: Any, segments: Iterable[str]) -> Any:
    current = value
    seen_any = False
    for key in segments:
        seen_any = True
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return MISSING
    return current if seen_any else MISSING


def resolve(value: Any, path: str | None) -> Any:
    """Resolve a dot path such as ``data.list`` against parsed JSON.

    Only objects are descended into; arrays are valid solely as the final
    target. Returns ``MISSING`` for an empty path, a missing key or a
    non-object intermediate, and ``None`` when the path lands on JSON null.
    Never raises.
    """

    return resolve_segments(value, split_path(path))


def is_missing(value: Any) -> bool:
    return value is MISSING


def has_value(value: Any) -> bool:
    return value is not MISSING and value is not None
