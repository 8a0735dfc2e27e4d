"""Reusable helpers for reading JSON-like payloads from the graph editor."""

from __future__ import annotations

import math
from typing import Any, Mapping

TRUE_TOKENS = {"true", "yes", "1", "y", "是"}


def coerce_float(value: Any) -> float | None:
    """Return ``value`` as a finite float, or ``None`` when it is blank or non-numeric.

    Graph payloads carry numbers as strings ("1.0", " 10 "), so both forms are accepted.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def coerce_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in TRUE_TOKENS
    return False


def first_present(payload: Mapping[str, Any], *keys: str) -> Any:
    """Return the first non-``None`` value stored under any of ``keys``."""
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}
