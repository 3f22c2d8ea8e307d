"""Small helpers for numeric parsing."""

from __future__ import annotations

import math


def coerce_int(
    value: object | None,
    *,
    default: int | None = None,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    """Return an int parsed from ``value`` or ``default`` when invalid.

    Numeric strings such as ``"2.0"`` are accepted and truncated. Values above
    ``maximum`` are clamped; values below ``minimum`` fall back to ``default``.
    """

    if value is None or isinstance(value, bool):
        return default
    try:
        parsed_float = float(str(value).strip())
    except (TypeError, ValueError):
        return default
    if not math.isfinite(parsed_float):
        return default
    parsed = int(parsed_float)
    if minimum is not None and parsed < minimum:
        return default
    if maximum is not None and parsed > maximum:
        return maximum
    return parsed


def coerce_float(
    value: object | None,
    *,
    default: float | None = None,
    minimum: float | None = None,
) -> float | None:
    """Return a float parsed from ``value`` or ``default`` when invalid."""

    if value is None or isinstance(value, bool):
        return default
    try:
        parsed = float(str(value).strip())
    except (TypeError, ValueError):
        return default
    if not math.isfinite(parsed):
        return default
    if minimum is not None and parsed < minimum:
        return default
    return parsed


__all__ = [
    "coerce_int",
    "coerce_float",
]
