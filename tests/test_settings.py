"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest

from app.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.catalog_cache_seconds == 300
    assert settings.default_type_label == "MyTrakt"
    assert str(settings.metadata_addon_url).startswith("https://v3-cinemeta.strem.io")
    assert settings.log_level == "INFO"


def test_environment_aliases(monkeypatch: pytest.MonkeyPatch) -> None:
    """Settings should be read from their documented environment names."""

    monkeypatch.setenv("CACHE_TTL", "600")
    monkeypatch.setenv("CACHE_SIZE", "128")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("CINEMETA_API_URL", "https://meta.example.com")

    settings = Settings(_env_file=None)

    assert settings.catalog_cache_seconds == 600
    assert settings.catalog_cache_size == 128
    assert settings.log_level == "DEBUG"
    assert str(settings.metadata_addon_url).startswith("https://meta.example.com")


def test_type_label_is_sanitised() -> None:
    settings = Settings(_env_file=None, DEFAULT_TYPE_LABEL="My Trakt!")

    assert settings.default_type_label == "MyTrakt"


def test_invalid_values_raise() -> None:
    with pytest.raises(ValueError, match="LOG_LEVEL"):
        Settings(_env_file=None, LOG_LEVEL="loud")
    with pytest.raises(ValueError):
        Settings(_env_file=None, CACHE_TTL=1)
    with pytest.raises(ValueError, match="DEFAULT_TYPE_LABEL"):
        Settings(_env_file=None, DEFAULT_TYPE_LABEL="!!!")
