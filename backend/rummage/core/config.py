"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "RUMMAGE_"
DEFAULT_CONFIG_PATH = Path("~/.config/rummage/config.yaml")
DEFAULT_HASH_SIZE_LIMIT = 50 * 1024 * 1024

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("vector", "enabled"): "vector_extension_enabled",
    ("vector", "extension_path"): "vector_extension_path",
    ("vector", "merge_strategy"): "vector_merge_strategy",
    ("scan", "hash_size_limit"): "hash_size_limit",
    ("scan", "progress_interval"): "progress_interval",
    ("history", "limit"): "history_limit",
}

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path | None = Field(default=Path.home() / ".rummage" / "rummage.db")
    vector_extension_enabled: bool = True
    vector_extension_path: str | None = None
    vector_merge_strategy: str = "text_first"
    hash_size_limit: int = Field(default=DEFAULT_HASH_SIZE_LIMIT, ge=0)
    progress_interval: int = Field(default=10, ge=1)
    history_limit: int = Field(default=10, ge=1)

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path | None:
        if value is None or value == "":
            return None
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("db_path must be a path or string")

    @field_validator("vector_merge_strategy")
    @classmethod
    def _check_merge_strategy(cls, value: str) -> str:
        if value not in {"text_first", "unified"}:
            raise ValueError("vector_merge_strategy must be 'text_first' or 'unified'")
        return value

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map RUMMAGE_ prefixed and legacy vector variables into Settings fields."""
    overrides: dict[str, Any] = {}
    legacy_disable = os.environ.get("DISABLE_VECTOR_EXTENSION")
    if legacy_disable is not None and legacy_disable.strip().lower() in _TRUTHY:
        overrides["vector_extension_enabled"] = False
    legacy_path = os.environ.get("SQLITE_VEC_PATH")
    if legacy_path:
        overrides["vector_extension_path"] = legacy_path
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings", "DEFAULT_HASH_SIZE_LIMIT"]
