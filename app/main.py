"""Entry point for the FastAPI-powered Stremio addon."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .cache import CatalogCache, MemoryCacheStore
from .config import settings
from .database import Database
from .models import IMDB_ID_RE, CatalogRequest, ContentType, normalise_media_type
from .services.catalog_service import CatalogService, ConfigurationUpdate
from .services.metadata_addon import MetadataAddonClient
from .services.repository import ConfigRepository, InvalidListsError
from .services.revisions import RevisionTracker
from .services.trakt import TraktClient
from .utils import parse_extra_segment

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app: FastAPI

_MANIFEST_CACHE_CONTROL = "no-cache"
_CATALOG_CACHE_CONTROL = "public, max-age=60"
_TOKEN_QUERY_PARAM = "t"


class ListLookup(BaseModel):
    """Body of the list validation and preview endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    media_type: ContentType = Field(default="movie", alias="type")
    user_id: str = Field(default="preview", alias="userId")
    extras: dict[str, str] = Field(default_factory=dict)

    @field_validator("media_type", mode="before")
    @classmethod
    def _normalise_media_type(cls, value: object) -> str:
        return normalise_media_type(value)

    @field_validator("extras", mode="before")
    @classmethod
    def _stringify_extras(cls, value: object) -> object:
        if isinstance(value, dict):
            return {str(key): str(item) for key, item in value.items() if item is not None}
        return value


@asynccontextmanager
async def lifespan(_: FastAPI):
    exit_stack = AsyncExitStack()
    trakt_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.trakt_api_url),
            timeout=httpx.Timeout(20.0, connect=10.0),
        )
    )
    metadata_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=httpx.Timeout(15.0, connect=5.0))
    )
    database = Database(settings.database_url)
    await database.create_all()

    trakt = TraktClient(settings, trakt_http_client)
    default_metadata_addon = (
        str(settings.metadata_addon_url)
        if settings.metadata_addon_url is not None
        else None
    )
    metadata_client = MetadataAddonClient(metadata_http_client, default_metadata_addon)
    cache = CatalogCache(
        MemoryCacheStore(
            maxsize=settings.catalog_cache_size, ttl=settings.catalog_cache_seconds
        )
    )
    catalog_service = CatalogService(
        settings,
        ConfigRepository(database.session_factory),
        RevisionTracker(database.session_factory),
        cache,
        trakt,
    )

    app.state.catalog_service = catalog_service
    app.state.trakt_client = trakt
    app.state.metadata_client = metadata_client
    app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await catalog_service.stop()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Trakt lists served as paginated Stremio catalogs",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_catalog_service(app: FastAPI) -> CatalogService:
    service = getattr(app.state, "catalog_service", None)
    if not isinstance(service, CatalogService):
        raise RuntimeError("Catalog service not initialised")
    return service


def register_routes(fastapi_app: FastAPI) -> None:
    async def _authorise(request: Request, user_id: str, token: str | None) -> CatalogService:
        service = get_catalog_service(fastapi_app)
        provided = token or request.query_params.get(_TOKEN_QUERY_PARAM)
        if not await service.check_token(user_id, provided):
            raise HTTPException(status_code=403, detail="Invalid addon token")
        return service

    async def _manifest_endpoint(
        request: Request, user_id: str, token: str | None = None
    ) -> JSONResponse:
        service = await _authorise(request, user_id, token)
        manifest = await service.build_manifest(user_id)
        return JSONResponse(
            manifest, headers={"Cache-Control": _MANIFEST_CACHE_CONTROL}
        )

    async def _catalog_endpoint(
        request: Request,
        user_id: str,
        catalog_id: str,
        *,
        token: str | None = None,
        extra: str | None = None,
    ) -> JSONResponse:
        service = await _authorise(request, user_id, token)
        query = {
            key: value
            for key, value in request.query_params.items()
            if key != _TOKEN_QUERY_PARAM
        }
        try:
            catalog_request = CatalogRequest.from_extras(
                parse_extra_segment(extra, query)
            )
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors()) from exc
        result = await service.get_catalog(user_id, catalog_id, catalog_request)
        return JSONResponse(
            result.to_payload(), headers={"Cache-Control": _CATALOG_CACHE_CONTROL}
        )

    async def _meta_endpoint(
        request: Request,
        user_id: str,
        content_type: str,
        meta_id: str,
        token: str | None = None,
    ) -> dict[str, Any]:
        await _authorise(request, user_id, token)
        if content_type not in {"movie", "series"} or not IMDB_ID_RE.match(meta_id):
            return {"meta": None}
        metadata_client: MetadataAddonClient | None = getattr(
            fastapi_app.state, "metadata_client", None
        )
        if metadata_client is None:
            return {"meta": None}
        meta = await metadata_client.fetch_meta(content_type, meta_id.lower())
        return {"meta": meta}

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/{user_id}/manifest.json")
    async def manifest(request: Request, user_id: str) -> JSONResponse:
        return await _manifest_endpoint(request, user_id)

    @fastapi_app.get("/{user_id}/{token}/manifest.json")
    async def manifest_with_token(
        request: Request, user_id: str, token: str
    ) -> JSONResponse:
        return await _manifest_endpoint(request, user_id, token)

    @fastapi_app.get("/{user_id}/catalog/{content_type}/{catalog_id}.json")
    async def catalog(
        request: Request, user_id: str, content_type: str, catalog_id: str
    ) -> JSONResponse:
        return await _catalog_endpoint(request, user_id, catalog_id)

    @fastapi_app.get("/{user_id}/catalog/{content_type}/{catalog_id}/{extra}.json")
    async def catalog_with_extra(
        request: Request, user_id: str, content_type: str, catalog_id: str, extra: str
    ) -> JSONResponse:
        return await _catalog_endpoint(request, user_id, catalog_id, extra=extra)

    @fastapi_app.get("/{user_id}/{token}/catalog/{content_type}/{catalog_id}.json")
    async def catalog_with_token(
        request: Request, user_id: str, token: str, content_type: str, catalog_id: str
    ) -> JSONResponse:
        return await _catalog_endpoint(request, user_id, catalog_id, token=token)

    @fastapi_app.get(
        "/{user_id}/{token}/catalog/{content_type}/{catalog_id}/{extra}.json"
    )
    async def catalog_with_token_and_extra(
        request: Request,
        user_id: str,
        token: str,
        content_type: str,
        catalog_id: str,
        extra: str,
    ) -> JSONResponse:
        return await _catalog_endpoint(
            request, user_id, catalog_id, token=token, extra=extra
        )

    @fastapi_app.get("/{user_id}/meta/{content_type}/{meta_id}.json")
    async def meta(
        request: Request, user_id: str, content_type: str, meta_id: str
    ) -> dict[str, Any]:
        return await _meta_endpoint(request, user_id, content_type, meta_id)

    @fastapi_app.get("/{user_id}/{token}/meta/{content_type}/{meta_id}.json")
    async def meta_with_token(
        request: Request, user_id: str, token: str, content_type: str, meta_id: str
    ) -> dict[str, Any]:
        return await _meta_endpoint(request, user_id, content_type, meta_id, token)

    @fastapi_app.get("/api/users/{user_id}/config")
    async def get_config(user_id: str) -> dict[str, Any]:
        service = get_catalog_service(fastapi_app)
        return await service.get_configuration(user_id)

    @fastapi_app.post("/api/users/{user_id}/config")
    async def save_config(user_id: str, request: Request) -> dict[str, Any]:
        service = get_catalog_service(fastapi_app)
        try:
            payload = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc
        try:
            update = ConfigurationUpdate.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors()) from exc
        try:
            await service.save_configuration(user_id, update)
        except InvalidListsError as exc:
            raise HTTPException(
                status_code=400,
                detail={"error": "Invalid lists", "rows": exc.rows},
            ) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return await service.get_configuration(user_id)

    @fastapi_app.delete("/api/users/{user_id}/lists/{list_id}")
    async def delete_list(user_id: str, list_id: str) -> dict[str, Any]:
        service = get_catalog_service(fastapi_app)
        revision = await service.delete_list(user_id, list_id)
        if revision is None:
            raise HTTPException(status_code=404, detail="List not found")
        return await service.get_configuration(user_id)

    @fastapi_app.post("/api/users/{user_id}/token")
    async def issue_token(user_id: str) -> dict[str, str]:
        service = get_catalog_service(fastapi_app)
        token = await service.ensure_addon_token(user_id)
        return {"token": token}

    async def _parse_list_lookup(request: Request) -> ListLookup:
        try:
            payload = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc
        try:
            return ListLookup.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors()) from exc

    @fastapi_app.post("/api/lists/validate")
    async def validate_list(request: Request) -> dict[str, Any]:
        lookup = await _parse_list_lookup(request)
        trakt: TraktClient | None = getattr(fastapi_app.state, "trakt_client", None)
        if trakt is None:
            raise RuntimeError("Trakt client not initialised")
        return {"url": lookup.url, "valid": await trakt.validate_list(lookup.url)}

    @fastapi_app.post("/api/lists/preview")
    async def preview_list(request: Request) -> dict[str, Any]:
        lookup = await _parse_list_lookup(request)
        service = get_catalog_service(fastapi_app)
        try:
            catalog_request = CatalogRequest.from_extras(lookup.extras)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=exc.errors()) from exc
        metas = await service.preview(
            lookup.user_id, lookup.url, lookup.media_type, catalog_request
        )
        return {"metas": metas}


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
