from __future__ import annotations

import asyncio

from sqlalchemy import create_engine, inspect, text

from app.database import Database
from app.services.revisions import RevisionTracker


def _initialise_legacy_schema(database_path: str) -> None:
    """Create legacy tables lacking filter defaults and the revision counter."""

    engine = create_engine(f"sqlite:///{database_path}")
    try:
        with engine.begin() as connection:
            connection.execute(
                text(
                    """
                    CREATE TABLE user_configs (
                        id VARCHAR(64) PRIMARY KEY,
                        addon_name VARCHAR(120),
                        addon_token VARCHAR(128),
                        manifest_version VARCHAR(32),
                        created_at DATETIME,
                        updated_at DATETIME
                    )
                    """
                )
            )
            connection.execute(
                text(
                    """
                    CREATE TABLE lists (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id VARCHAR(64),
                        list_id VARCHAR(64),
                        name VARCHAR(255),
                        url TEXT,
                        media_type VARCHAR(16),
                        sort_by VARCHAR(16),
                        sort_order VARCHAR(8),
                        enabled BOOLEAN,
                        position INTEGER,
                        created_at DATETIME,
                        updated_at DATETIME
                    )
                    """
                )
            )
            connection.execute(
                text(
                    "INSERT INTO user_configs (id, addon_name, manifest_version) "
                    "VALUES ('legacy', 'Old Lists', '1.0.39')"
                )
            )
    finally:
        engine.dispose()


def test_create_all_adds_missing_columns(tmp_path) -> None:
    """Schema migrations should add the filter and revision columns."""

    database_path = tmp_path / "legacy.db"
    _initialise_legacy_schema(str(database_path))

    database = Database(f"sqlite+aiosqlite:///{database_path}")
    asyncio.run(database.create_all())
    asyncio.run(database.dispose())

    inspector_engine = create_engine(f"sqlite:///{database_path}")
    try:
        inspector = inspect(inspector_engine)
        user_columns = {column["name"] for column in inspector.get_columns("user_configs")}
        list_columns = {column["name"] for column in inspector.get_columns("lists")}
        with inspector_engine.connect() as connection:
            hide_all = connection.execute(
                text("SELECT hide_unreleased_all FROM user_configs WHERE id = 'legacy'")
            ).scalar_one()
    finally:
        inspector_engine.dispose()

    assert {"hide_unreleased_all", "catalog_prefix", "manifest_rev"} <= user_columns
    assert {
        "genre",
        "year_min",
        "year_max",
        "rating_min",
        "rating_max",
        "hide_unreleased",
    } <= list_columns
    assert hide_all == 0


def test_migrated_users_keep_their_revision(tmp_path) -> None:
    database_path = tmp_path / "legacy.db"
    _initialise_legacy_schema(str(database_path))

    async def runner() -> tuple[int, int]:
        database = Database(f"sqlite+aiosqlite:///{database_path}")
        await database.create_all()
        tracker = RevisionTracker(database.session_factory)
        try:
            return await tracker.read("legacy"), await tracker.bump("legacy")
        finally:
            await database.dispose()

    assert asyncio.run(runner()) == (39, 40)
