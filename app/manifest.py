"""Stremio manifest assembly for a user's enabled lists."""

from __future__ import annotations

import re
from typing import Any, Iterable

from .genres import CANONICAL_GENRES
from .models import SORT_FIELDS, SORT_ORDERS, ListConfig

_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")

META_RESOURCE: dict[str, Any] = {
    "name": "meta",
    "types": ["movie", "series"],
    "idPrefixes": ["tt"],
}


def version_string(revision: int) -> str:
    return f"1.0.{revision}"


def derive_type_label(
    catalog_prefix: str | None, addon_name: str | None, default: str
) -> str:
    """Return the single catalog type grouping every list in the client.

    Uses the prefix, then the addon name, then ``default``; only ASCII letters
    and digits survive.
    """

    for candidate in (catalog_prefix, addon_name, default):
        cleaned = _NON_ALNUM_RE.sub("", (candidate or "").strip())
        if cleaned:
            return cleaned
    return "MyTrakt"


def build_catalog_descriptor(list_config: ListConfig, type_label: str) -> dict[str, Any]:
    return {
        "type": type_label,
        "id": list_config.id,
        "name": list_config.name or "List",
        "extra": [
            {"name": "skip", "isRequired": False},
            {"name": "sort", "isRequired": False, "options": list(SORT_FIELDS)},
            {"name": "order", "isRequired": False, "options": list(SORT_ORDERS)},
            {"name": "genre", "isRequired": False, "options": list(CANONICAL_GENRES)},
            {"name": "yearMin", "isRequired": False},
            {"name": "yearMax", "isRequired": False},
            {"name": "ratingMin", "isRequired": False},
            {"name": "ratingMax", "isRequired": False},
        ],
    }


def enabled_lists(lists: Iterable[ListConfig]) -> list[ListConfig]:
    return sorted((item for item in lists if item.enabled), key=lambda item: item.order)


def build_manifest(
    *,
    manifest_id: str,
    revision: int,
    name: str,
    type_label: str,
    lists: Iterable[ListConfig],
    description: str = "Your Trakt lists as paginated Stremio catalogs.",
) -> dict[str, Any]:
    catalogs = [
        build_catalog_descriptor(list_config, type_label)
        for list_config in enabled_lists(lists)
    ]
    return {
        "id": manifest_id,
        "version": version_string(revision),
        "name": name,
        "description": description,
        "resources": ["catalog", dict(META_RESOURCE)],
        "types": [type_label],
        "idPrefixes": ["tt"],
        "catalogs": catalogs,
        "behaviorHints": {"configurable": False},
    }
