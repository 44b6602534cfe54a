from __future__ import annotations

import os
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="", case_sensitive=False)

    database_url: str = "sqlite:///./data/grimoire.db"

    image_dir: str = "./images"
    public_base_url: str | None = None
    image_width: int = 463
    image_height: int = 595
    image_format: str = "webp"
    image_quality: int = 80

    top_rated_limit: int = 3

    cors_allow_origins: list[str] = ["*"]

    jwt_secret: str = "change-me"
    jwt_expiration_seconds: int = 86400


_CACHE_KEYS = tuple(name.upper() for name in Settings.model_fields)
_cached_settings: Settings | None = None
_cached_signature: tuple[tuple[str, str | None], ...] | None = None


def _build_signature() -> tuple[tuple[str, str | None], ...]:
    return tuple((key, os.getenv(key)) for key in _CACHE_KEYS)


def _load_settings(force: bool = False) -> Settings:
    global _cached_settings, _cached_signature
    signature = _build_signature()
    if force or _cached_settings is None or signature != _cached_signature:
        _cached_settings = Settings()
        _cached_signature = signature
    return _cached_settings


def get_settings(*, reload: bool = False) -> Settings:
    """Return current settings, reloading when environment changes."""

    return _load_settings(force=reload)


def reload_settings() -> Settings:
    """Force settings reload from environment."""

    return _load_settings(force=True)


class _SettingsProxy:
    """Lightweight proxy exposing the current settings instance."""

    def __getattr__(self, item: str) -> Any:
        return getattr(get_settings(), item)

    def __setattr__(self, key: str, value: Any) -> None:
        setattr(get_settings(), key, value)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return repr(get_settings())

    def model_dump(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        return get_settings().model_dump(*args, **kwargs)


settings = _SettingsProxy()

__all__ = ["Settings", "settings", "get_settings", "reload_settings"]
