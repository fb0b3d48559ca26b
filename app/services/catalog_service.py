"""High level orchestration for catalog synthesis and manifest generation."""

from __future__ import annotations

import asyncio
import logging
import secrets
from contextlib import suppress
from datetime import date, datetime
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from ..cache import CatalogCache, CatalogResult
from ..config import Settings
from ..filters import FilterSpec
from ..manifest import build_manifest, derive_type_label, enabled_lists, version_string
from ..models import CatalogEntry, CatalogPage, CatalogRequest, ContentType, ListConfig
from ..pagination import ListSource, PageRequest, select_strategy
from .repository import ConfigRepository
from .revisions import RevisionTracker

logger = logging.getLogger(__name__)

PREVIEW_LIMIT = 25


class ConfigurationUpdate(BaseModel):
    """Body of a configuration save: lists and/or global settings."""

    model_config = ConfigDict(populate_by_name=True)

    lists: list[ListConfig] | None = None
    addon_name: str | None = Field(default=None, alias="addonName")
    catalog_prefix: str | None = Field(default=None, alias="catalogPrefix")
    hide_unreleased_all: bool | None = Field(default=None, alias="hideUnreleasedAll")

    @property
    def has_settings(self) -> bool:
        return any(
            value is not None
            for value in (self.addon_name, self.catalog_prefix, self.hide_unreleased_all)
        )

    @property
    def is_empty(self) -> bool:
        return self.lists is None and not self.has_settings


def _utc_today() -> date:
    return datetime.utcnow().date()


class CatalogService:
    """Coordinates list configuration, upstream fetching and caching."""

    def __init__(
        self,
        settings: Settings,
        repository: ConfigRepository,
        revisions: RevisionTracker,
        cache: CatalogCache,
        list_source: ListSource,
        *,
        today: Callable[[], date] = _utc_today,
    ):
        self._settings = settings
        self._repository = repository
        self._revisions = revisions
        self._cache = cache
        self._list_source = list_source
        self._today = today
        self._warmup_jobs: set[asyncio.Task[None]] = set()

    async def stop(self) -> None:
        """Cancel warm-up tasks that are still running."""

        jobs = list(self._warmup_jobs)
        for job in jobs:
            job.cancel()
        for job in jobs:
            with suppress(asyncio.CancelledError):
                await job
        self._warmup_jobs.clear()

    async def wait_for_warmups(self) -> None:
        """Wait until every scheduled warm-up has finished."""

        while self._warmup_jobs:
            await asyncio.gather(*list(self._warmup_jobs), return_exceptions=True)

    async def check_token(self, user_id: str, provided: str | None) -> bool:
        """Users without an addon token accept any request."""

        token = await self._repository.get_addon_token(user_id)
        if not token:
            return True
        return secrets.compare_digest(provided or "", token)

    async def ensure_addon_token(self, user_id: str) -> str:
        return await self._repository.ensure_addon_token(user_id)

    async def get_catalog(
        self, user_id: str, catalog_id: str, request: CatalogRequest
    ) -> CatalogResult:
        """Return one catalog page, from cache when possible.

        Unknown or disabled catalogs yield an empty page. Failures never
        propagate; they degrade to an empty page that is not cached.
        """

        try:
            lists = await self._repository.get_lists(user_id)
            user_settings = await self._repository.get_settings(user_id)
        except Exception as exc:
            logger.exception("Unable to load configuration for user %s: %s", user_id, exc)
            return CatalogResult(page=CatalogPage(entries=()))

        list_config = next(
            (item for item in lists if item.id == catalog_id and item.enabled), None
        )
        spec = FilterSpec.resolve(request, list_config, user_settings)
        key = self._cache.key(user_id, catalog_id, request.skip, spec)

        async def _compute() -> CatalogPage | None:
            if list_config is None:
                logger.info("Catalog %s not enabled for user %s", catalog_id, user_id)
                return CatalogPage(entries=())
            try:
                entries = await self.synthesize(
                    user_id,
                    list_config.url,
                    list_config.media_type,
                    spec,
                    offset=request.skip,
                )
            except Exception as exc:
                logger.exception(
                    "Catalog synthesis failed for %s (user %s): %s", catalog_id, user_id, exc
                )
                return None
            return CatalogPage(entries=tuple(entries))

        return await self._cache.get_or_compute(key, _compute)

    async def synthesize(
        self,
        user_id: str,
        source_ref: str,
        media_kind: ContentType,
        spec: FilterSpec,
        *,
        offset: int = 0,
    ) -> list[CatalogEntry]:
        strategy = select_strategy(spec)
        logger.debug(
            "Synthesising %s offset %s via %s", source_ref, offset, type(strategy).__name__
        )
        request = PageRequest(
            user_id=user_id, source_ref=source_ref, media_kind=media_kind, offset=offset
        )
        return await strategy.collect(self._list_source, request, today=self._today())

    async def preview(
        self,
        user_id: str,
        source_ref: str,
        media_kind: ContentType,
        request: CatalogRequest,
    ) -> list[dict[str, object]]:
        """Render the first entries of an unsaved list through the engine."""

        spec = FilterSpec.resolve(request)
        entries = await self.synthesize(user_id, source_ref, media_kind, spec)
        return [entry.to_meta() for entry in entries[:PREVIEW_LIMIT]]

    async def build_manifest(self, user_id: str) -> dict[str, Any]:
        """Assemble the user's manifest and warm every catalog's first page."""

        lists = await self._repository.get_lists(user_id)
        user_settings = await self._repository.get_settings(user_id)
        revision = await self._revisions.read(user_id)

        type_label = derive_type_label(
            user_settings.catalog_prefix,
            user_settings.addon_name,
            self._settings.default_type_label,
        )
        manifest = build_manifest(
            manifest_id=f"{self._settings.addon_id}.{user_id}",
            revision=revision,
            name=(user_settings.addon_name or "").strip() or self._settings.app_name,
            type_label=type_label,
            lists=lists,
        )
        self._schedule_warmup(user_id, [item.id for item in enabled_lists(lists)])
        return manifest

    def _schedule_warmup(self, user_id: str, catalog_ids: list[str]) -> None:
        for catalog_id in catalog_ids:
            task = asyncio.create_task(self._warm_catalog(user_id, catalog_id))
            self._warmup_jobs.add(task)
            task.add_done_callback(self._warmup_jobs.discard)

    async def _warm_catalog(self, user_id: str, catalog_id: str) -> None:
        try:
            await self.get_catalog(user_id, catalog_id, CatalogRequest())
        except Exception as exc:  # pragma: no cover - background safety net
            logger.exception(
                "Warm-up of catalog %s for user %s failed: %s", catalog_id, user_id, exc
            )

    async def get_configuration(self, user_id: str) -> dict[str, Any]:
        lists = await self._repository.get_lists(user_id)
        user_settings = await self._repository.get_settings(user_id)
        revision = await self._revisions.read(user_id)
        return {
            "lists": [item.to_payload() for item in lists],
            "addonName": user_settings.addon_name or self._settings.app_name,
            "catalogPrefix": user_settings.catalog_prefix or "",
            "hideUnreleasedAll": user_settings.hide_unreleased_all,
            "manifestVersion": version_string(revision),
        }

    async def save_configuration(
        self, user_id: str, update: ConfigurationUpdate
    ) -> int:
        """Persist lists and/or settings, then purge the cache and bump once."""

        if update.is_empty:
            raise ValueError("Nothing to save")
        if update.lists is not None:
            await self._repository.save_lists(user_id, update.lists)
        if update.has_settings:
            await self._repository.update_settings(
                user_id,
                addon_name=update.addon_name,
                catalog_prefix=update.catalog_prefix,
                hide_unreleased_all=update.hide_unreleased_all,
            )
        return await self._after_mutation(user_id)

    async def delete_list(self, user_id: str, list_id: str) -> int | None:
        """Remove one list; ``None`` when the user has no such list."""

        lists = await self._repository.get_lists(user_id)
        remaining = [item for item in lists if item.id != list_id]
        if len(remaining) == len(lists):
            return None
        await self._repository.save_lists(user_id, remaining)
        return await self._after_mutation(user_id)

    async def _after_mutation(self, user_id: str) -> int:
        await self._cache.invalidate_user(user_id)
        return await self._revisions.bump(user_id)
