"""
Priority-ordered fallbacks over optional values.

Provider payloads and per-source records are full of optional fields.  Rather
than chaining ``a or b or c`` (which also discards legitimate zeros) every
fallback goes through ``coalesce``: the first value that is not ``None``
(and not an empty string) wins.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional, TypeVar

T = TypeVar("T")


def is_present(value: Any) -> bool:
    """``None`` and ``""`` are absent; ``0``, ``False`` and empty containers are present."""
    return value is not None and value != ""


def coalesce(*values: Optional[T], default: Optional[T] = None) -> Optional[T]:
    """Return the first present value in priority order, else ``default``.

    >>> coalesce(None, "", "Frost", "Fire")
    'Frost'
    >>> coalesce(None, 0, 5)
    0
    """
    for value in values:
        if is_present(value):
            return value
    return default


def dig(payload: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, returning ``None`` at the first missing step.

    >>> dig({"a": [{"b": 1}]}, "a", 0, "b")
    1
    >>> dig({"a": None}, "a", "b") is None
    True
    """
    current = payload
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or not -len(current) <= step < len(current):
                return None
            current = current[step]
        else:
            if not isinstance(current, Mapping):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


def positive_or_none(value: Any) -> Optional[float]:
    """Numeric ``value`` if it is > 0, else ``None`` (providers report 0 for "unknown")."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if value > 0 else None
