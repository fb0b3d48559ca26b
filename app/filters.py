"""Genre expression compilation, range filters and catalog sorting.

Genre expressions use ``+`` between AND groups and ``,`` between the OR terms
of a group, so ``Action, Adventure + Comedy`` keeps titles tagged Comedy that
are also tagged Action or Adventure. Parentheses are accepted and ignored.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import date
from functools import cached_property
from typing import Callable, Iterable, Sequence

from .genres import canonicalize_genre
from .models import CatalogEntry, CatalogRequest, ListConfig, UserSettings

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def genre_slug(text: object) -> str:
    """Lower-case ``text`` and collapse anything non-alphanumeric to one space."""

    return _NON_ALNUM_RE.sub(" ", str(text or "").lower()).strip()


def _term_slug(term: str) -> str:
    canonical = canonicalize_genre(term)
    return genre_slug(canonical) if canonical else ""


@dataclass(frozen=True)
class GenrePredicate:
    """AND-of-OR predicate over slugged canonical genres."""

    groups: tuple[frozenset[str], ...] = ()

    def __call__(self, genres: Iterable[str]) -> bool:
        if not self.groups:
            return True
        available = {genre_slug(genre) for genre in genres}
        return all(group & available for group in self.groups)

    def serialize(self) -> str:
        return "+".join(",".join(sorted(group)) for group in self.groups)


def compile_genre_expression(expression: str | None) -> GenrePredicate:
    """Compile a genre filter expression; blank expressions match everything."""

    text = (expression or "").replace("(", " ").replace(")", " ")
    groups: list[frozenset[str]] = []
    for raw_group in text.split("+"):
        terms = frozenset(
            slug for slug in (_term_slug(term) for term in raw_group.split(",")) if slug
        )
        if terms and terms not in groups:
            groups.append(terms)
    groups.sort(key=lambda group: tuple(sorted(group)))
    return GenrePredicate(tuple(groups))


@dataclass(frozen=True)
class RangeFilter:
    """Inclusive numeric bounds; a missing value fails once any bound is set."""

    lower: float | None = None
    upper: float | None = None

    @property
    def active(self) -> bool:
        return self.lower is not None or self.upper is not None

    def __call__(self, value: float | None) -> bool:
        if not self.active:
            return True
        if value is None:
            return False
        if self.lower is not None and value < self.lower:
            return False
        if self.upper is not None and value > self.upper:
            return False
        return True


def is_unreleased(entry: CatalogEntry, today: date) -> bool:
    released = entry.release_date()
    return released is not None and released > today


@dataclass(frozen=True)
class CompiledFilter:
    """Executable form of a :class:`FilterSpec`."""

    genre: GenrePredicate
    years: RangeFilter
    ratings: RangeFilter
    hide_unreleased: bool = False

    def apply(
        self, batch: Sequence[CatalogEntry], *, today: date
    ) -> list[CatalogEntry]:
        """Return the entries of ``batch`` passing every active filter.

        The genre predicate is skipped for a batch in which no entry carries
        genre data at all, since upstream sometimes omits genres entirely.
        """

        check_genres = bool(self.genre.groups) and any(entry.genres for entry in batch)
        kept: list[CatalogEntry] = []
        for entry in batch:
            if check_genres and not self.genre(entry.genres):
                continue
            if not self.years(entry.year):
                continue
            if not self.ratings(entry.imdb_rating):
                continue
            if self.hide_unreleased and is_unreleased(entry, today):
                continue
            kept.append(entry)
        return kept


def _first_set(*values):
    for value in values:
        if value is not None:
            return value
    return None


@dataclass(frozen=True)
class FilterSpec:
    """Filter and sort settings resolved for a single catalog request."""

    sort: str | None = None
    order: str = "desc"
    genre: str | None = None
    year_min: int | None = None
    year_max: int | None = None
    rating_min: float | None = None
    rating_max: float | None = None
    hide_unreleased: bool = False

    @classmethod
    def resolve(
        cls,
        request: CatalogRequest,
        list_config: ListConfig | None = None,
        settings: UserSettings | None = None,
    ) -> "FilterSpec":
        """Merge request extras over list defaults over global user settings."""

        list_config = list_config or ListConfig(name="")
        settings = settings or UserSettings()
        return cls(
            sort=_first_set(request.sort, list_config.sort_by),
            order=_first_set(request.order, list_config.sort_order) or "desc",
            genre=_first_set(request.genre, list_config.genre),
            year_min=_first_set(request.year_min, list_config.year_min),
            year_max=_first_set(request.year_max, list_config.year_max),
            rating_min=_first_set(request.rating_min, list_config.rating_min),
            rating_max=_first_set(request.rating_max, list_config.rating_max),
            hide_unreleased=bool(
                _first_set(
                    request.hide_unreleased,
                    list_config.hide_unreleased,
                    settings.hide_unreleased_all,
                )
            ),
        )

    @cached_property
    def genre_predicate(self) -> GenrePredicate:
        return compile_genre_expression(self.genre)

    @property
    def is_narrowing(self) -> bool:
        """Whether a genre, year or rating constraint is active."""

        return bool(self.genre_predicate.groups) or any(
            bound is not None
            for bound in (self.year_min, self.year_max, self.rating_min, self.rating_max)
        )

    def compile(self) -> CompiledFilter:
        return CompiledFilter(
            genre=self.genre_predicate,
            years=RangeFilter(self.year_min, self.year_max),
            ratings=RangeFilter(self.rating_min, self.rating_max),
            hide_unreleased=self.hide_unreleased,
        )

    def cache_key(self) -> str:
        """Serialise the output-relevant fields into a stable string."""

        payload = {
            "sort": self.sort or "",
            "order": self.order if self.sort else "",
            "genre": self.genre_predicate.serialize(),
            "year": [self.year_min, self.year_max],
            "rating": [
                float(self.rating_min) if self.rating_min is not None else None,
                float(self.rating_max) if self.rating_max is not None else None,
            ],
            "hideUnreleased": self.hide_unreleased,
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))


_SORT_KEYS: dict[str, Callable[[CatalogEntry], object]] = {
    "rating": lambda entry: entry.imdb_rating or 0,
    "year": lambda entry: entry.year or 0,
    "runtime": lambda entry: entry.runtime or 0,
    "name": lambda entry: entry.name.casefold(),
}


def sort_entries(
    entries: Sequence[CatalogEntry], field: str | None, order: str | None = "desc"
) -> list[CatalogEntry]:
    """Stable sort by ``field``; unknown or empty fields keep upstream order."""

    key = _SORT_KEYS.get(field or "")
    if key is None:
        return list(entries)
    return sorted(entries, key=key, reverse=(order or "desc") != "asc")
