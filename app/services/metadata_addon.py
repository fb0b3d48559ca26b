"""Helper client for fetching metadata from Cinemeta-compatible add-ons."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any
from urllib.parse import quote

import httpx

from ..models import IMDB_ID_RE, normalise_meta_genres, round_rating

logger = logging.getLogger(__name__)


class MetadataAddonClient:
    """Wrapper around Cinemeta-compatible meta endpoints."""

    _META_PATH = "/meta/{type}/{id}.json"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        default_base_url: str | None = None,
    ) -> None:
        self._client = http_client
        self._default_base_url = self._normalize_base_url(default_base_url)
        self._semaphore = asyncio.Semaphore(8)

    async def fetch_meta(
        self,
        content_type: str,
        imdb_id: str,
        *,
        base_url: str | None = None,
    ) -> dict[str, Any] | None:
        """Return a Stremio meta document with canonical genres, if found."""

        if not IMDB_ID_RE.match(imdb_id or ""):
            return None
        effective_base = self._normalize_base_url(base_url) or self._default_base_url
        if not effective_base:
            return None

        path = self._META_PATH.format(
            type=quote(content_type, safe=""), id=quote(imdb_id, safe="")
        )
        url = f"{effective_base}{path}"

        response: httpx.Response | None = None
        max_attempts = 2
        for attempt in range(1, max_attempts + 1):
            try:
                async with self._semaphore:
                    response = await self._client.get(url)
                response.raise_for_status()
                break
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code if exc.response else None
                if status == 402 and attempt < max_attempts:
                    await asyncio.sleep(0.1)
                    continue
                logger.warning(
                    "Metadata add-on lookup failed for %s via %s: %s",
                    imdb_id,
                    effective_base,
                    exc,
                )
                return None
            except httpx.HTTPError as exc:
                logger.warning(
                    "Metadata add-on lookup failed for %s via %s: %s",
                    imdb_id,
                    effective_base,
                    exc,
                )
                return None
        else:
            return None

        try:
            payload = response.json()
        except ValueError:
            return None
        meta = payload.get("meta") if isinstance(payload, dict) else None
        if not isinstance(meta, dict):
            return None
        return self._shape_meta(meta, content_type=content_type, imdb_id=imdb_id)

    def _shape_meta(
        self, meta: dict[str, Any], *, content_type: str, imdb_id: str
    ) -> dict[str, Any]:
        year = self._parse_year(meta.get("year") or meta.get("releaseInfo"))
        runtime = self._parse_runtime(meta.get("runtime"))
        rating = self._parse_rating(meta.get("imdbRating") or meta.get("rating"))

        shaped: dict[str, Any] = {
            "id": imdb_id,
            "type": content_type,
            "name": str(meta.get("name") or meta.get("title") or imdb_id),
        }
        optional = {
            "poster": self._ensure_url(meta.get("poster")),
            "background": self._ensure_url(meta.get("background")),
            "description": meta.get("description") or meta.get("overview"),
            "genres": normalise_meta_genres(meta),
            "imdbRating": rating,
            "releaseInfo": str(year) if year else None,
            "runtime": runtime,
        }
        shaped.update({key: value for key, value in optional.items() if value})
        return shaped

    @staticmethod
    def _parse_year(value: Any) -> int | None:
        if isinstance(value, int):
            return value
        if not value:
            return None
        text = str(value)
        match = re.search(r"(19|20|21)\d{2}", text)
        if not match:
            return None
        year = int(match.group(0))
        if 1900 <= year <= 2100:
            return year
        return None

    @staticmethod
    def _parse_runtime(value: Any) -> int | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return int(value) if value > 0 else None
        match = re.match(r"\s*(\d+)", str(value or ""))
        return int(match.group(1)) if match else None

    @staticmethod
    def _parse_rating(value: Any) -> float | None:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return round_rating(number)

    @staticmethod
    def _ensure_url(value: Any) -> str | None:
        if isinstance(value, str) and value.startswith("http"):
            return value
        return None

    @staticmethod
    def _normalize_base_url(value: str | None) -> str | None:
        if not value:
            return None
        normalized = value.strip()
        if not normalized:
            return None
        normalized = normalized.split("?", 1)[0].rstrip("/")
        lowered = normalized.lower()
        for suffix in ("/manifest.json", "/manifest"):
            if lowered.endswith(suffix):
                normalized = normalized[: -len(suffix)].rstrip("/")
                break
        return normalized or None
