"""Pydantic models describing list configuration and catalog payloads."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .genres import canonicalize_genres
from .utils import coerce_bool, coerce_float, coerce_int

ContentType = Literal["movie", "series"]
SortOrder = Literal["asc", "desc"]

SORT_FIELDS: tuple[str, ...] = ("rating", "year", "runtime", "name")
SORT_ORDERS: tuple[str, ...] = ("asc", "desc")

IMDB_ID_RE = re.compile(r"^tt(\d+)$", re.IGNORECASE)


def normalise_media_type(value: object) -> ContentType:
    lowered = str(value or "").strip().lower()
    if lowered in {"series", "show", "shows", "tv"}:
        return "series"
    return "movie"


def _clean_sort_field(value: object) -> str | None:
    if value is None:
        return None
    lowered = str(value).strip().lower()
    return lowered if lowered in SORT_FIELDS else None


def _clean_sort_order(value: object) -> str | None:
    if value is None:
        return None
    lowered = str(value).strip().lower()
    return lowered if lowered in SORT_ORDERS else None


def _positive_or_none(value: object) -> float | None:
    """Treat blanks, zero and garbage as an absent bound."""

    if value is None or value == "":
        return None
    number = coerce_float(value)
    if not number or number <= 0:
        return None
    return number


def _year_or_none(value: object) -> int | None:
    number = _positive_or_none(value)
    return int(number) if number is not None else None


class UserSettings(BaseModel):
    """Global per-user settings affecting the manifest and catalog output."""

    model_config = ConfigDict(populate_by_name=True)

    addon_name: str | None = Field(default=None, alias="addonName")
    catalog_prefix: str | None = Field(default=None, alias="catalogPrefix")
    hide_unreleased_all: bool = Field(default=False, alias="hideUnreleasedAll")


class ListConfig(BaseModel):
    """A watch list attached to a user's catalog feed."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    user_id: str | None = Field(default=None, alias="userId")
    name: str
    url: str = ""
    media_type: ContentType = Field(
        default="movie", validation_alias=AliasChoices("type", "media_type", "mediaType"),
        serialization_alias="type",
    )
    sort_by: str | None = Field(default=None, alias="sortBy")
    sort_order: SortOrder | None = Field(default=None, alias="sortOrder")
    enabled: bool = True
    order: int = 0
    genre: str | None = None
    year_min: int | None = Field(default=None, alias="yearMin")
    year_max: int | None = Field(default=None, alias="yearMax")
    rating_min: float | None = Field(default=None, alias="ratingMin")
    rating_max: float | None = Field(default=None, alias="ratingMax")
    hide_unreleased: bool | None = Field(default=None, alias="hideUnreleased")

    @field_validator("media_type", mode="before")
    @classmethod
    def _normalise_media_type(cls, value: object) -> str:
        return normalise_media_type(value)

    @field_validator("sort_by", mode="before")
    @classmethod
    def _normalise_sort_by(cls, value: object) -> str | None:
        return _clean_sort_field(value)

    @field_validator("sort_order", mode="before")
    @classmethod
    def _normalise_sort_order(cls, value: object) -> str | None:
        return _clean_sort_order(value)

    @field_validator("genre", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("year_min", "year_max", mode="before")
    @classmethod
    def _parse_year(cls, value: object) -> int | None:
        return _year_or_none(value)

    @field_validator("rating_min", "rating_max", mode="before")
    @classmethod
    def _parse_rating(cls, value: object) -> float | None:
        return _positive_or_none(value)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class CatalogRequest(BaseModel):
    """Request-level catalog extras as sent by Stremio."""

    skip: int = 0
    sort: str | None = None
    order: str | None = None
    genre: str | None = None
    year_min: int | None = Field(
        default=None, validation_alias=AliasChoices("yearMin", "year_min")
    )
    year_max: int | None = Field(
        default=None, validation_alias=AliasChoices("yearMax", "year_max")
    )
    rating_min: float | None = Field(
        default=None, validation_alias=AliasChoices("ratingMin", "rating_min")
    )
    rating_max: float | None = Field(
        default=None, validation_alias=AliasChoices("ratingMax", "rating_max")
    )
    hide_unreleased: bool | None = Field(
        default=None, validation_alias=AliasChoices("hideUnreleased", "hide_unreleased")
    )

    @classmethod
    def from_extras(cls, extras: Mapping[str, str]) -> "CatalogRequest":
        return cls.model_validate(dict(extras))

    @field_validator("skip", mode="before")
    @classmethod
    def _parse_skip(cls, value: object) -> int:
        parsed = coerce_int(value, default=0) or 0
        return max(0, parsed)

    @field_validator("sort", mode="before")
    @classmethod
    def _parse_sort(cls, value: object) -> str | None:
        return _clean_sort_field(value)

    @field_validator("order", mode="before")
    @classmethod
    def _parse_order(cls, value: object) -> str | None:
        return _clean_sort_order(value)

    @field_validator("genre", mode="before")
    @classmethod
    def _strip_genre(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("year_min", "year_max", mode="before")
    @classmethod
    def _parse_year(cls, value: object) -> int | None:
        return _year_or_none(value)

    @field_validator("rating_min", "rating_max", mode="before")
    @classmethod
    def _parse_rating(cls, value: object) -> float | None:
        return _positive_or_none(value)

    @field_validator("hide_unreleased", mode="before")
    @classmethod
    def _parse_flag(cls, value: object) -> bool | None:
        if value is None or value == "":
            return None
        return coerce_bool(value)


def round_rating(value: object) -> float | None:
    """Round half up to one decimal; ``None`` for non-numbers and overflow."""

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return math.floor(value * 10 + 0.5) / 10
    except (OverflowError, ValueError):
        return None


def _whole_number(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return None


class CatalogEntry(BaseModel):
    """One normalised catalog record, immutable once built."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: ContentType
    name: str
    description: str | None = None
    imdb_rating: float | None = None
    release_info: str | None = None
    runtime: int | None = None
    genres: tuple[str, ...] = ()
    released: str | None = None

    @property
    def year(self) -> int | None:
        if not self.release_info:
            return None
        return coerce_int(self.release_info)

    def release_date(self) -> date | None:
        """Return the parsed release date, ``None`` when missing or unparsable."""

        if not self.released:
            return None
        text = self.released.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            return None

    @classmethod
    def from_list_item(
        cls, raw: object, media_kind: ContentType
    ) -> "CatalogEntry | None":
        """Build an entry from a raw list item, ``None`` when it has no IMDb id."""

        if not isinstance(raw, Mapping):
            return None

        item_type = str(raw.get("type") or "").lower()
        core = raw.get(item_type) if item_type in {"movie", "show"} else None
        if not isinstance(core, Mapping):
            for key in ("movie", "show"):
                candidate = raw.get(key)
                if isinstance(candidate, Mapping):
                    core, item_type = candidate, key
                    break
            else:
                core = raw

        ids = core.get("ids")
        imdb = str(ids.get("imdb") or "").strip() if isinstance(ids, Mapping) else ""
        match = IMDB_ID_RE.match(imdb)
        if not match:
            return None
        imdb_id = f"tt{match.group(1)}"

        if item_type == "show":
            content_type: ContentType = "series"
        elif item_type == "movie":
            content_type = "movie"
        else:
            content_type = media_kind

        year = _whole_number(core.get("year"))
        overview = core.get("overview")
        released = core.get("released") or core.get("first_aired")

        return cls(
            id=imdb_id,
            type=content_type,
            name=str(core.get("title") or "").strip() or imdb_id,
            description=str(overview) if overview else None,
            imdb_rating=round_rating(core.get("rating")),
            release_info=str(year) if year else None,
            runtime=_whole_number(core.get("runtime")) or None,
            genres=canonicalize_genres(core.get("genres")),
            released=str(released) if released else None,
        )

    def to_meta(self) -> dict[str, object]:
        """Return a Stremio-compatible meta preview."""

        meta: dict[str, object] = {
            "id": self.id,
            "type": self.type,
            "name": self.name,
        }
        if self.description:
            meta["description"] = self.description
        if self.imdb_rating is not None:
            meta["imdbRating"] = self.imdb_rating
        if self.release_info:
            meta["releaseInfo"] = self.release_info
        if self.runtime:
            meta["runtime"] = self.runtime
        if self.genres:
            meta["genres"] = list(self.genres)
        return meta


@dataclass(frozen=True, slots=True)
class CatalogPage:
    """A synthesised catalog page as stored in the cache."""

    entries: tuple[CatalogEntry, ...]
    cached_at: datetime = field(default_factory=datetime.utcnow)

    def to_metas(self) -> list[dict[str, object]]:
        return [entry.to_meta() for entry in self.entries]


def normalise_meta_genres(meta: Mapping[str, Any]) -> list[str] | None:
    """Canonicalise the ``genres`` array of an upstream meta document."""

    genres = canonicalize_genres(meta.get("genres"))
    if not genres:
        return None
    return list(genres)
