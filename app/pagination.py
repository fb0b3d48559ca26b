"""Translate logical catalog offsets into upstream list page fetches.

Two strategies exist. :class:`DirectWindow` serves unfiltered requests by
mapping the offset straight onto upstream pages and sorting only the fetched
window. :class:`NarrowedAccumulate` serves genre/year/rating filtered requests
by filtering pages from the start of the list until enough matches exist,
sorting the whole accumulated pool before slicing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

from .filters import FilterSpec, sort_entries
from .models import CatalogEntry, ContentType

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
UPSTREAM_PAGE_SIZE = 100
MAX_UPSTREAM_PAGES = 10


class ListSource(Protocol):
    """Anything able to return one raw page of list items."""

    async def fetch_page(
        self,
        user_id: str,
        source_ref: str,
        media_kind: ContentType,
        page_size: int,
        page_number: int,
    ) -> list[dict[str, Any]]:
        ...


@dataclass(frozen=True, slots=True)
class PageRequest:
    """Identifies the upstream list and logical offset being synthesised."""

    user_id: str
    source_ref: str
    media_kind: ContentType
    offset: int = 0


async def fetch_upstream_page(
    source: ListSource, request: PageRequest, page_number: int, page_size: int
) -> list[dict[str, Any]]:
    """Fetch one upstream page, treating any failure as end of data."""

    try:
        items = await source.fetch_page(
            request.user_id,
            request.source_ref,
            request.media_kind,
            page_size,
            page_number,
        )
    except Exception as exc:
        logger.warning(
            "List fetch failed for %s page %s (user %s): %s",
            request.source_ref,
            page_number,
            request.user_id,
            exc,
        )
        return []
    if not isinstance(items, list):
        return []
    return items


def _normalise(items: list[Any], media_kind: ContentType) -> list[CatalogEntry]:
    entries: list[CatalogEntry] = []
    for raw in items:
        entry = CatalogEntry.from_list_item(raw, media_kind)
        if entry is not None:
            entries.append(entry)
    return entries


@dataclass(frozen=True)
class DirectWindow:
    """Offset-mapped window over the upstream list; sort is window-local."""

    spec: FilterSpec
    page_size: int = PAGE_SIZE
    upstream_page_size: int = UPSTREAM_PAGE_SIZE
    max_pages: int = MAX_UPSTREAM_PAGES

    async def collect(
        self, source: ListSource, request: PageRequest, *, today: date
    ) -> list[CatalogEntry]:
        page_number = request.offset // self.upstream_page_size + 1
        intra_offset = request.offset % self.upstream_page_size

        first = await fetch_upstream_page(
            source, request, page_number, self.upstream_page_size
        )
        raw_items: list[Any] = list(first[intra_offset:])
        pages_fetched = 1
        while (
            first
            and len(raw_items) < self.page_size
            and pages_fetched < self.max_pages
        ):
            page_number += 1
            page = await fetch_upstream_page(
                source, request, page_number, self.upstream_page_size
            )
            pages_fetched += 1
            if not page:
                break
            raw_items.extend(page)

        window = _normalise(raw_items[: self.page_size], request.media_kind)
        window = self.spec.compile().apply(window, today=today)
        return sort_entries(window, self.spec.sort, self.spec.order)


@dataclass(frozen=True)
class NarrowedAccumulate:
    """Filter pages from the start of the list until the offset is covered."""

    spec: FilterSpec
    page_size: int = PAGE_SIZE
    upstream_page_size: int = UPSTREAM_PAGE_SIZE
    max_pages: int = MAX_UPSTREAM_PAGES

    async def collect(
        self, source: ListSource, request: PageRequest, *, today: date
    ) -> list[CatalogEntry]:
        compiled = self.spec.compile()
        needed = request.offset + self.page_size
        pool: list[CatalogEntry] = []

        for page_number in range(1, self.max_pages + 1):
            page = await fetch_upstream_page(
                source, request, page_number, self.upstream_page_size
            )
            if not page:
                break
            pool.extend(
                compiled.apply(_normalise(page, request.media_kind), today=today)
            )
            if len(pool) >= needed:
                break
        else:
            logger.debug(
                "Stopped %s after %s pages with %s matches",
                request.source_ref,
                self.max_pages,
                len(pool),
            )

        pool = sort_entries(pool, self.spec.sort, self.spec.order)
        return pool[request.offset : needed]


PaginationStrategy = DirectWindow | NarrowedAccumulate


def select_strategy(spec: FilterSpec) -> PaginationStrategy:
    """Pick the strategy matching the filters active in ``spec``."""

    if spec.is_narrowing:
        return NarrowedAccumulate(spec)
    return DirectWindow(spec)
