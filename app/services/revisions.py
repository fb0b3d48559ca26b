"""Per-user manifest revision tracking."""

from __future__ import annotations

import asyncio
import logging
import re
import weakref

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import UserConfig
from ..manifest import version_string

logger = logging.getLogger(__name__)

_BARE_REVISION_RE = re.compile(r"^\d+$")
_SEMVER_RE = re.compile(r"^\d+\.\d+\.(\d+)$")


def parse_legacy_version(value: str | None) -> int | None:
    """Extract a revision from ``"39"`` or ``"1.0.39"`` style strings."""

    if not value:
        return None
    text = value.strip()
    if _BARE_REVISION_RE.match(text):
        return int(text)
    match = _SEMVER_RE.match(text)
    if match:
        return int(match.group(1))
    return None


class RevisionTracker:
    """Monotonic manifest revision per user, starting at 1."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    async def _load(self, session: AsyncSession, user_id: str) -> UserConfig:
        user = await session.get(UserConfig, user_id)
        if user is None:
            user = UserConfig(id=user_id)
            session.add(user)
        if user.manifest_rev is None:
            migrated = parse_legacy_version(user.manifest_version)
            user.manifest_rev = max(migrated or 1, 1)
            if migrated:
                logger.info(
                    "Migrated legacy manifest version %r for user %s",
                    user.manifest_version,
                    user_id,
                )
        return user

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        # Entries vanish once no coroutine holds or awaits the lock.
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    async def read(self, user_id: str) -> int:
        async with self._lock_for(user_id):
            async with self._session_factory() as session:
                user = await self._load(session, user_id)
                revision = user.manifest_rev
                if session.new or session.dirty:
                    await session.commit()
                return revision

    async def bump(self, user_id: str) -> int:
        async with self._lock_for(user_id):
            async with self._session_factory() as session:
                user = await self._load(session, user_id)
                user.manifest_rev = user.manifest_rev + 1
                user.manifest_version = version_string(user.manifest_rev)
                revision = user.manifest_rev
                await session.commit()
        logger.info("Manifest revision for user %s bumped to %s", user_id, revision)
        return revision

    async def version(self, user_id: str) -> str:
        return version_string(await self.read(user_id))
