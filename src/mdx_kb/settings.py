# SPDX-License-Identifier: AGPL-3.0-or-later
"""Central configuration loader with YAML + environment support."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

_ENV_PREFIX = "MDX_KB_"


def _default_component_map() -> Dict[str, str]:
    return {
        "Note": "aside",
        "Tip": "aside",
        "Info": "aside",
        "Warning": "aside",
        "Callout": "aside",
        "Details": "details",
    }


class RecordDefaults(BaseModel):
    """Values substituted when a document does not provide them."""

    title: str = "Untitled"
    category: str = "General"
    author: str = "Unknown"

    @field_validator("title", "category", "author")
    @classmethod
    def _non_blank(cls, value: str) -> str:  # noqa: D401
        if not value.strip():
            raise ValueError("record defaults must not be blank")
        return value.strip()


class PipelineSettings(BaseModel):
    """Knobs for the repair/normalise stages and the input boundary."""

    eligible_extensions: Tuple[str, ...] = (".md", ".mdx")
    max_size_mb: float = Field(default=50.0, gt=0)
    component_map: Dict[str, str] = Field(default_factory=_default_component_map)
    script_marker: str = "[Script removed]"
    style_marker: str = "[Style removed]"

    @field_validator("eligible_extensions", mode="before")
    @classmethod
    def _normalise_extensions(
        cls, value: Optional[Sequence[str]] | str
    ) -> Tuple[str, ...]:  # noqa: D401
        if value is None:
            return (".md", ".mdx")
        if isinstance(value, str):
            value = value.split(",")
        cleaned = []
        for item in value:
            ext = str(item).strip().lower()
            if not ext:
                continue
            cleaned.append(ext if ext.startswith(".") else f".{ext}")
        return tuple(cleaned)

    @field_validator("script_marker", "style_marker")
    @classmethod
    def _inert_marker(cls, value: str) -> str:  # noqa: D401
        if "<" in value or ">" in value:
            raise ValueError("markers must not contain tag delimiters")
        return value

    def resolve_component(self, name: str) -> Optional[str]:
        if name in self.component_map:
            return self.component_map[name]
        folded = name.casefold()
        for key, tag in self.component_map.items():
            if key.casefold() == folded:
                return tag
        return None


class DistributedSettings(BaseModel):
    """Configuration for concurrent batch execution."""

    default_backend: str = "auto"
    max_workers: Optional[int] = None

    @field_validator("default_backend")
    @classmethod
    def _normalize_backend(cls, value: str) -> str:  # noqa: D401
        return value.strip().lower() or "auto"

    @field_validator("max_workers")
    @classmethod
    def _positive_workers(cls, value: Optional[int]) -> Optional[int]:  # noqa: D401
        if value is not None and value < 0:
            raise ValueError("max_workers must be >= 0")
        return value


class LoggingSettings(BaseModel):
    level: str = "WARNING"

    @field_validator("level")
    @classmethod
    def _upper(cls, value: str) -> str:  # noqa: D401
        return value.strip().upper() or "WARNING"


class AdapterSettings(BaseModel):
    """Composite settings object loaded from YAML + environment variables."""

    defaults: RecordDefaults = Field(default_factory=RecordDefaults)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    distributed: DistributedSettings = Field(default_factory=DistributedSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _default_settings_path() -> Path:
    base_dir = Path(__file__).resolve().parents[2]
    return base_dir / "configs" / "settings.yaml"


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings YAML at {path} must contain a dictionary")
    return data


def _resolve_settings_path(explicit: Optional[str | Path]) -> Path:
    if explicit:
        return Path(explicit).expanduser()
    env_path = os.getenv("MDX_KB_SETTINGS_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return _default_settings_path()


def _resolve_env_path() -> Optional[Path]:
    candidate = os.getenv("MDX_KB_DOTENV")
    if candidate:
        return Path(candidate).expanduser()
    base_dir = Path(__file__).resolve().parents[2]
    default = base_dir / ".env"
    return default if default.exists() else None


def _collect_env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(_ENV_PREFIX):
            continue
        parts = key[len(_ENV_PREFIX) :].split("__")
        if len(parts) < 2:
            # top-level switches such as MDX_KB_SETTINGS_PATH are not settings
            continue
        cursor = overrides
        for idx, part in enumerate(parts):
            normalized = part.lower()
            if idx == len(parts) - 1:
                cursor[normalized] = value
            else:
                cursor = cursor.setdefault(normalized, {})  # type: ignore[assignment]
    return overrides


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


@lru_cache(maxsize=1)
def get_settings(path: Path | None = None) -> AdapterSettings:
    """Load the global adapter settings, caching the resulting object."""

    env_path = _resolve_env_path()
    if env_path is not None:
        load_dotenv(dotenv_path=env_path, override=False)
    data = _read_yaml(_resolve_settings_path(path))
    merged = _deep_merge(data, _collect_env_overrides())
    return AdapterSettings.model_validate(merged)


def reset_settings_cache() -> None:
    """Clear the cached settings instance (useful for tests)."""

    get_settings.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "AdapterSettings",
    "DistributedSettings",
    "LoggingSettings",
    "PipelineSettings",
    "RecordDefaults",
    "get_settings",
    "reset_settings_cache",
]
