"""SQLAlchemy ORM models backing the persistent state."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


class UserConfig(Base):
    """Per-user addon settings, access token and manifest revision."""

    __tablename__ = "user_configs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    addon_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    catalog_prefix: Mapped[str | None] = mapped_column(String(120), nullable=True)
    hide_unreleased_all: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    addon_token: Mapped[str | None] = mapped_column(String(128), nullable=True)
    manifest_rev: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Older deployments stored the whole semver (or a bare number) here.
    manifest_version: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    lists: Mapped[list["ListRecord"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


class ListRecord(Base):
    """A configured watch list tied to a user."""

    __tablename__ = "lists"
    __table_args__ = (
        UniqueConstraint("user_id", "list_id", name="uq_list_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_configs.id", ondelete="CASCADE")
    )
    list_id: Mapped[str] = mapped_column(String(64))
    name: Mapped[str] = mapped_column(String(255))
    url: Mapped[str] = mapped_column(Text, default="")
    media_type: Mapped[str] = mapped_column(String(16), default="movie")
    sort_by: Mapped[str | None] = mapped_column(String(16), nullable=True)
    sort_order: Mapped[str | None] = mapped_column(String(8), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)
    genre: Mapped[str | None] = mapped_column(String(255), nullable=True)
    year_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    year_max: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rating_min: Mapped[float | None] = mapped_column(Float, nullable=True)
    rating_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    hide_unreleased: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user: Mapped[UserConfig] = relationship(back_populates="lists")
