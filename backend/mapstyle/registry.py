from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml

from mapstyle.types import StyleDefinition, StyleRegistryConfig
from settings import style_registry_path


def _load_yaml(path: Path) -> dict:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid style registry yaml root: {path}")
    return data


def load_registry(path: Path) -> StyleRegistryConfig:
    cfg = StyleRegistryConfig.model_validate(_load_yaml(path))

    seen: set[str] = set()
    for s in cfg.styles:
        if s.id in seen:
            raise ValueError(f"Duplicate style id {s.id!r} in {path}")
        seen.add(s.id)
        if s.theme and s.theme not in cfg.themes:
            raise ValueError(f"Style {s.id!r} references unknown theme {s.theme!r}: {path}")
    if cfg.defaultStyle not in seen:
        raise ValueError(f"Default style {cfg.defaultStyle!r} is not registered: {path}")
    return cfg


@lru_cache(maxsize=4)
def _registry_for(path: str) -> StyleRegistryConfig:
    return load_registry(Path(path))


def get_registry() -> StyleRegistryConfig:
    # Keyed by path so tests (or a dev session) can point at another file via env.
    return _registry_for(str(style_registry_path()))


def list_styles() -> list[StyleDefinition]:
    return list(get_registry().styles)


def get_style(style_id: str | None) -> StyleDefinition | None:
    return get_registry().get(style_id)


def default_style() -> StyleDefinition:
    return get_registry().default()


def clear_registry_cache() -> None:
    """
    Clear in-memory style registry cache.

    YAML edits are otherwise not picked up until the process restarts.
    """
    _registry_for.cache_clear()
