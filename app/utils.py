"""Utility helpers for the Trakt Lists service."""

from __future__ import annotations

from typing import Any, Mapping
from urllib.parse import unquote


def parse_extra_segment(
    segment: str | None, query: Mapping[str, str] | None = None
) -> dict[str, str]:
    """Merge a Stremio ``key=value&...`` path segment with query parameters.

    Path values are percent-decoded only, so a literal ``+`` survives as the
    genre AND separator. Query parameters win over path extras when both
    name the same key.
    """

    extras: dict[str, str] = {}
    if segment:
        for pair in segment.split("&"):
            if not pair:
                continue
            key, _, value = pair.partition("=")
            key = unquote(key)
            if key:
                extras[key] = unquote(value)
    if query:
        extras.update({str(key): str(value) for key, value in query.items()})
    return extras


def coerce_int(value: Any, *, default: int | None = None) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return default


def coerce_float(value: Any, *, default: float | None = None) -> float | None:
    if isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if result != result or result in {float("inf"), float("-inf")}:
        return default
    return result


def coerce_bool(value: object) -> bool | None:
    """Interpret common truthy/falsy spellings; ``None`` when unknown."""

    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return None
