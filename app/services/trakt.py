"""Utilities for communicating with the Trakt API."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)

_USER_LIST_URL_RE = re.compile(
    r"^https?://(?:www\.)?trakt\.tv/users/([^/]+)/lists/([^/]+)$", re.IGNORECASE
)
_LIST_URL_RE = re.compile(r"^https?://(?:www\.)?trakt\.tv/lists/([^/]+)$", re.IGNORECASE)
_MDBLIST_URL_RE = re.compile(
    r"^https?://(?:www\.)?mdblist\.com/lists/([^/]+)/([^/]+)$", re.IGNORECASE
)
_USER_LIST_PATH_RE = re.compile(r"^([A-Za-z0-9_-]+)/lists/([A-Za-z0-9_-]+)$")


@dataclass(slots=True)
class ListReference:
    """Where a list lives on Trakt."""

    user_list_path: str | None
    list_id: str | None

    def item_paths(self, kind: str) -> list[str]:
        paths: list[str] = []
        if self.user_list_path:
            paths.append(f"/users/{self.user_list_path}/items/{kind}")
        if self.list_id:
            paths.append(f"/lists/{self.list_id}/items/{kind}")
        return paths


def resolve_list_reference(raw: str) -> ListReference:
    """Resolve a list URL or ``user/lists/slug`` reference."""

    clean = re.sub(r"[?#].*$", "", str(raw or "")).rstrip("/").strip()

    match = _USER_LIST_URL_RE.match(clean) or _MDBLIST_URL_RE.match(clean)
    if match is None:
        match = _USER_LIST_PATH_RE.match(clean)
    if match:
        return ListReference(
            user_list_path=f"{match.group(1)}/lists/{match.group(2)}",
            list_id=match.group(2),
        )

    match = _LIST_URL_RE.match(clean)
    if match:
        return ListReference(user_list_path=None, list_id=match.group(1))

    return ListReference(user_list_path=None, list_id=clean or None)


class TraktClient:
    """Thin wrapper around the Trakt HTTP API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client
        self._max_retries = settings.trakt_retry_limit

    def _headers(self, *, access_token: str | None = None) -> dict[str, str]:
        headers = {
            "trakt-api-version": "2",
            "User-Agent": f"{self._settings.app_name} (traktlists)",
        }
        if self._settings.trakt_client_id:
            headers["trakt-api-key"] = self._settings.trakt_client_id
        resolved_access_token = access_token or self._settings.trakt_access_token
        if resolved_access_token:
            headers["Authorization"] = f"Bearer {resolved_access_token}"
        return headers

    async def _get(self, path: str, params: dict[str, Any]) -> httpx.Response | None:
        """GET with retries on transport errors and 5xx responses."""

        attempt = 0
        while True:
            try:
                response = await self._client.get(
                    path, headers=self._headers(), params=params
                )
            except httpx.HTTPError as exc:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = min(2 ** (attempt - 1), 5) + (0.1 * attempt)
                    logger.info(
                        "Transient error talking to Trakt (%s). Retrying %s in %.1fs",
                        exc.__class__.__name__,
                        path,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                logger.warning("Failed to fetch %s from Trakt: %s", path, exc)
                return None

            if 500 <= response.status_code < 600:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = min(2 ** (attempt - 1), 5) + (0.1 * attempt)
                    logger.info(
                        "Trakt %s for %s. Retrying in %.1fs",
                        response.status_code,
                        path,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                logger.warning(
                    "Failed to fetch %s from Trakt: %s", path, response.status_code
                )
                return None
            return response

    async def fetch_page(
        self,
        user_id: str,
        source_ref: str,
        media_kind: str,
        page_size: int,
        page_number: int,
    ) -> list[dict[str, Any]]:
        """Return one page of raw list items; an empty list means end of data."""

        kind = "shows" if media_kind == "series" else "movies"
        reference = resolve_list_reference(source_ref)
        params = {
            "extended": "full",
            "limit": max(1, int(page_size)),
            "page": max(1, int(page_number)),
        }

        for path in reference.item_paths(kind):
            response = await self._get(path, params)
            if response is None or response.status_code != 200:
                continue
            try:
                data = response.json()
            except ValueError:
                logger.warning("Unexpected non-JSON Trakt response for %s", path)
                continue
            if isinstance(data, list):
                return [entry for entry in data if isinstance(entry, dict)]
            logger.warning("Unexpected Trakt response structure for %s", path)

        logger.debug(
            "No items for %s page %s (user %s)", source_ref, page_number, user_id
        )
        return []

    async def validate_list(self, source_ref: str) -> bool:
        """Return ``True`` when either the movie or show listing responds."""

        reference = resolve_list_reference(source_ref)
        for kind in ("movies", "shows"):
            for path in reference.item_paths(kind):
                response = await self._get(path, {"limit": 1})
                if response is not None and response.status_code == 200:
                    return True
        return False
