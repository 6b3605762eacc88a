from __future__ import annotations

from typing import Any


def split_csv(value: Any) -> list[str]:
    """
    Split a comma-separated string into trimmed, non-empty segments.

    Lists/tuples/sets are flattened the same way, so "a, b" and ["a", "b,c"]
    both work. Anything else yields an empty list.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    if isinstance(value, (list, tuple, set, frozenset)):
        out: list[str] = []
        for item in value:
            if isinstance(item, str):
                out.extend(split_csv(item))
        return out
    return []


def parse_roles(role: Any) -> tuple[str, ...]:
    # order kept for logging only, callers treat it as a set
    return tuple(split_csv(role))
