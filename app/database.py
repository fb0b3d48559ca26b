"""Database utilities for the Trakt Lists service."""

from __future__ import annotations

from sqlalchemy import MetaData, inspect, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base with consistent naming conventions."""

    metadata = MetaData()


class Database:
    """Thin wrapper managing the SQLAlchemy async engine and sessions."""

    def __init__(self, database_url: str):
        self._engine: AsyncEngine = create_async_engine(database_url, future=True)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    async def create_all(self) -> None:
        """Create database tables if they do not yet exist."""

        from . import db_models  # noqa: F401  registers the ORM tables

        async with self._engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
            await connection.run_sync(self._apply_schema_migrations)

    @staticmethod
    def _apply_schema_migrations(sync_connection) -> None:
        """Ensure newly introduced columns are available on existing tables."""

        inspector = inspect(sync_connection)
        table_names = set(inspector.get_table_names())

        def _ensure_columns(
            table: str, columns: tuple[tuple[str, str, str | None], ...]
        ) -> None:
            if table not in table_names:
                return
            existing_columns = {
                column["name"] for column in inspector.get_columns(table)
            }
            for name, ddl, init_sql in columns:
                if name in existing_columns:
                    continue
                sync_connection.execute(text(ddl))
                if init_sql:
                    sync_connection.execute(text(init_sql))
                existing_columns.add(name)

        _ensure_columns(
            "user_configs",
            (
                (
                    "hide_unreleased_all",
                    "ALTER TABLE user_configs ADD COLUMN hide_unreleased_all BOOLEAN DEFAULT 0",
                    "UPDATE user_configs SET hide_unreleased_all = 0 WHERE hide_unreleased_all IS NULL",
                ),
                (
                    "catalog_prefix",
                    "ALTER TABLE user_configs ADD COLUMN catalog_prefix VARCHAR(120)",
                    None,
                ),
                (
                    "manifest_rev",
                    "ALTER TABLE user_configs ADD COLUMN manifest_rev INTEGER",
                    None,
                ),
                (
                    "manifest_version",
                    "ALTER TABLE user_configs ADD COLUMN manifest_version VARCHAR(32)",
                    None,
                ),
            ),
        )
        _ensure_columns(
            "lists",
            tuple(
                (name, f"ALTER TABLE lists ADD COLUMN {name} {sql_type}", None)
                for name, sql_type in (
                    ("genre", "VARCHAR(255)"),
                    ("year_min", "INTEGER"),
                    ("year_max", "INTEGER"),
                    ("rating_min", "FLOAT"),
                    ("rating_max", "FLOAT"),
                    ("hide_unreleased", "BOOLEAN"),
                )
            ),
        )

    async def dispose(self) -> None:
        """Dispose of the underlying database engine."""

        await self._engine.dispose()

