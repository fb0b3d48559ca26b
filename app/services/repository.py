"""Persistence of user settings and configured lists."""

from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import ListRecord, UserConfig
from ..models import ListConfig, UserSettings

logger = logging.getLogger(__name__)


class InvalidListsError(ValueError):
    """Raised when submitted lists lack a name or a usable source URL."""

    def __init__(self, rows: list[int]):
        super().__init__(f"Invalid list rows: {rows}")
        self.rows = rows


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (TypeError, ValueError):
        return False
    return True


class ConfigRepository:
    """Reads and writes per-user list configuration."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _get_or_create_user(self, session: AsyncSession, user_id: str) -> UserConfig:
        user = await session.get(UserConfig, user_id)
        if user is None:
            user = UserConfig(id=user_id)
            session.add(user)
            await session.flush()
        return user

    async def get_lists(self, user_id: str) -> list[ListConfig]:
        async with self._session_factory() as session:
            stmt = (
                select(ListRecord)
                .where(ListRecord.user_id == user_id)
                .order_by(ListRecord.position, ListRecord.id)
            )
            result = await session.execute(stmt)
            return [self._record_to_config(record) for record in result.scalars()]

    async def save_lists(
        self, user_id: str, lists: Iterable[ListConfig]
    ) -> list[ListConfig]:
        """Replace the user's lists, assigning ids and positions where missing."""

        existing = await self.get_lists(user_id)
        next_order = max((item.order for item in existing), default=-1) + 1
        incoming = list(lists)

        bad_rows = [
            index
            for index, item in enumerate(incoming)
            if not item.name.strip() or len(item.url.strip()) < 3
        ]
        if bad_rows:
            raise InvalidListsError(bad_rows)

        normalised: list[ListConfig] = []
        seen_ids: set[str] = set()
        for item in incoming:
            list_id = item.id if _is_uuid(item.id) and item.id not in seen_ids else str(uuid.uuid4())
            seen_ids.add(list_id)
            order = item.order
            if "order" not in item.model_fields_set:
                order = next_order
                next_order += 1
            normalised.append(
                item.model_copy(
                    update={
                        "id": list_id,
                        "user_id": user_id,
                        "name": item.name.strip(),
                        "url": item.url.strip(),
                        "order": order,
                    }
                )
            )

        now = datetime.utcnow()
        async with self._session_factory() as session:
            await self._get_or_create_user(session, user_id)
            await session.execute(delete(ListRecord).where(ListRecord.user_id == user_id))
            for item in normalised:
                session.add(
                    ListRecord(
                        user_id=user_id,
                        list_id=item.id,
                        name=item.name,
                        url=item.url,
                        media_type=item.media_type,
                        sort_by=item.sort_by,
                        sort_order=item.sort_order,
                        enabled=item.enabled,
                        position=item.order,
                        genre=item.genre,
                        year_min=item.year_min,
                        year_max=item.year_max,
                        rating_min=item.rating_min,
                        rating_max=item.rating_max,
                        hide_unreleased=item.hide_unreleased,
                        created_at=now,
                        updated_at=now,
                    )
                )
            await session.commit()
        logger.info("Saved %s lists for user %s", len(normalised), user_id)
        return normalised

    async def get_settings(self, user_id: str) -> UserSettings:
        async with self._session_factory() as session:
            user = await session.get(UserConfig, user_id)
            if user is None:
                return UserSettings()
            return UserSettings(
                addon_name=user.addon_name,
                catalog_prefix=user.catalog_prefix,
                hide_unreleased_all=bool(user.hide_unreleased_all),
            )

    async def update_settings(
        self,
        user_id: str,
        *,
        addon_name: str | None = None,
        catalog_prefix: str | None = None,
        hide_unreleased_all: bool | None = None,
    ) -> UserSettings:
        """Merge the provided values onto the stored settings."""

        async with self._session_factory() as session:
            user = await self._get_or_create_user(session, user_id)
            if addon_name is not None:
                user.addon_name = addon_name.strip() or None
            if catalog_prefix is not None:
                user.catalog_prefix = catalog_prefix.strip() or None
            if hide_unreleased_all is not None:
                user.hide_unreleased_all = hide_unreleased_all
            await session.commit()
            return UserSettings(
                addon_name=user.addon_name,
                catalog_prefix=user.catalog_prefix,
                hide_unreleased_all=bool(user.hide_unreleased_all),
            )

    async def get_addon_token(self, user_id: str) -> str | None:
        async with self._session_factory() as session:
            user = await session.get(UserConfig, user_id)
            return user.addon_token if user is not None else None

    async def ensure_addon_token(self, user_id: str) -> str:
        async with self._session_factory() as session:
            user = await self._get_or_create_user(session, user_id)
            if not user.addon_token:
                user.addon_token = secrets.token_urlsafe(24)
                await session.commit()
            return user.addon_token

    @staticmethod
    def _record_to_config(record: ListRecord) -> ListConfig:
        return ListConfig(
            id=record.list_id,
            user_id=record.user_id,
            name=record.name,
            url=record.url or "",
            media_type=record.media_type,
            sort_by=record.sort_by,
            sort_order=record.sort_order,
            enabled=bool(record.enabled),
            order=record.position or 0,
            genre=record.genre,
            year_min=record.year_min,
            year_max=record.year_max,
            rating_min=record.rating_min,
            rating_max=record.rating_max,
            hide_unreleased=record.hide_unreleased,
        )
