"""Identifier helpers shared by the favorites modules."""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

_CANONICAL_ID = re.compile(r"^[0-9a-fA-F]{24}$")


def is_canonical_id(value: Any) -> bool:
    """Return ``True`` for the 24-character hexadecimal ids issued by the backend."""

    return isinstance(value, str) and _CANONICAL_ID.match(value) is not None


def normalize_ids(values: Iterable[Any]) -> list[str]:
    """Stringify ``values``, dropping empties and duplicates while keeping order."""

    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value is None:
            continue
        text = str(value)
        if not text or text in seen:
            continue
        seen.add(text)
        ordered.append(text)
    return ordered


__all__ = ["is_canonical_id", "normalize_ids"]
