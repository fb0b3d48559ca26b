"""Tests for the metadata add-on helper utilities."""

import httpx
import pytest

from app.services.metadata_addon import MetadataAddonClient


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (
            "https://provider.example.com/manifest.json",
            "https://provider.example.com",
        ),
        (
            "https://addons.example.com/custom/manifest.json?token=abc",
            "https://addons.example.com/custom",
        ),
        (
            "https://addons.example.com/custom/manifest.json/",
            "https://addons.example.com/custom",
        ),
        (
            "https://addons.example.com/custom/",
            "https://addons.example.com/custom",
        ),
        (
            "https://example.com/addons/cinemeta",
            "https://example.com/addons/cinemeta",
        ),
    ],
)
def test_normalize_base_url_handles_common_variations(raw: str, expected: str) -> None:
    """Various manifest URL formats normalize to the service base URL."""

    assert MetadataAddonClient._normalize_base_url(raw) == expected


def test_normalize_base_url_rejects_empty_values() -> None:
    """Empty strings or ``None`` are treated as missing URLs."""

    assert MetadataAddonClient._normalize_base_url(None) is None
    assert MetadataAddonClient._normalize_base_url("   ") is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("7.25", 7.3), (8, 8.0), ("1e308", None), ("inf", None), ("nan", None), ("n/a", None)],
)
def test_parse_rating_rounds_and_rejects_out_of_range(raw, expected) -> None:
    assert MetadataAddonClient._parse_rating(raw) == expected


@pytest.mark.anyio("asyncio")
async def test_fetch_meta_canonicalises_genres() -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(
            200,
            json={
                "meta": {
                    "name": "Alien",
                    "genres": ["sci-fi", "Horror", "horror"],
                    "imdbRating": "8.46",
                    "releaseInfo": "1979",
                    "runtime": "117 min",
                    "poster": "https://img.example.com/alien.jpg",
                    "background": "not-a-url",
                }
            },
        )

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport) as http_client:
        client = MetadataAddonClient(http_client, "https://cinemeta.example.com/manifest.json")
        meta = await client.fetch_meta("movie", "tt0078748")

    assert requested == ["https://cinemeta.example.com/meta/movie/tt0078748.json"]
    assert meta == {
        "id": "tt0078748",
        "type": "movie",
        "name": "Alien",
        "poster": "https://img.example.com/alien.jpg",
        "genres": ["Science Fiction", "Horror"],
        "imdbRating": 8.5,
        "releaseInfo": "1979",
        "runtime": 117,
    }


@pytest.mark.anyio("asyncio")
async def test_fetch_meta_handles_missing_and_failed_lookups() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "tt0000404" in request.url.path:
            return httpx.Response(404)
        return httpx.Response(200, json={"meta": None})

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport) as http_client:
        client = MetadataAddonClient(http_client, "https://cinemeta.example.com")
        assert await client.fetch_meta("movie", "tt0000404") is None
        assert await client.fetch_meta("movie", "tt0000001") is None
        assert await client.fetch_meta("movie", "kitsu:1") is None

        unconfigured = MetadataAddonClient(http_client)
        assert await unconfigured.fetch_meta("movie", "tt0000001") is None
