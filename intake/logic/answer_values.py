"""Canonicalization helpers for raw answer values.

Small, total functions shared by the partitioner, the freshness classifier
and the entity sanitizers. None of them raise on unexpected input; they
return None (or False) instead.
"""

from __future__ import annotations

import json
import math
from typing import Any, Iterable, Mapping, Optional

MAX_INTEGER = 2**63 - 1
MIN_INTEGER = -(2**63)


def has_meaningful_value(value: Any) -> bool:
    """Return True when a value counts as "answered".

    - None                 -> False
    - str                  -> non-blank after strip
    - bool                 -> always True (False is an answer)
    - int / float          -> finite
    - list / tuple / dict  -> non-empty
    """
    if value is None:
        return False
    if isinstance(value, str):
        return len(value.strip()) > 0
    if isinstance(value, bool):
        return True
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    if isinstance(value, Mapping):
        return len(value) > 0
    return False


def coerce_string(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return None


def coerce_number(value: Any) -> Optional[int]:
    """Coerce to a rounded int; halves round up.

    Values outside the 64-bit INTEGER column range are dropped.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if MIN_INTEGER <= value <= MAX_INTEGER else None
    if isinstance(value, float):
        num = value
    elif isinstance(value, str):
        try:
            num = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(num):
        return None
    rounded = int(math.floor(num + 0.5))
    if not MIN_INTEGER <= rounded <= MAX_INTEGER:
        return None
    return rounded


def extract_first_string(row: Mapping[str, Any], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        value = row.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def flatten_array_value(values: Iterable[Any]) -> Optional[str]:
    """Join list entries into a `"; "`-separated string, or None if all blank."""
    parts: list[str] = []
    for item in values:
        if item is None:
            continue
        if isinstance(item, str):
            if item.strip():
                parts.append(item.strip())
            continue
        if isinstance(item, bool):
            parts.append("true" if item else "false")
            continue
        if isinstance(item, (int, float)):
            parts.append(str(coerce_string(item)))
            continue
        if isinstance(item, (Mapping, list, tuple)):
            try:
                parts.append(json.dumps(item, separators=(",", ":")))
            except (TypeError, ValueError):
                continue
    return "; ".join(parts) if parts else None


__all__ = [
    "has_meaningful_value",
    "coerce_string",
    "coerce_number",
    "extract_first_string",
    "flatten_array_value",
]
