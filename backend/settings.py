from __future__ import annotations

import logging
import os
from pathlib import Path


def _repo_root() -> Path:
    # .../backend/settings.py -> repo root is 1 level up from backend/
    return Path(__file__).resolve().parents[1]


def mapbox_token() -> str | None:
    v = (os.getenv("MAPSYNC_MAPBOX_TOKEN") or "").strip()
    return v or None


def token_cache_path() -> Path:
    return Path(
        os.getenv("MAPSYNC_TOKEN_CACHE_PATH")
        or (_repo_root() / "data" / "cache" / "mapbox_token")
    )


def token_url() -> str | None:
    v = (os.getenv("MAPSYNC_TOKEN_URL") or "").strip()
    return v or None


def style_registry_path() -> Path:
    return Path(
        os.getenv("MAPSYNC_STYLE_REGISTRY_PATH") or (_repo_root() / "data" / "map_styles.yaml")
    )


def theme_delay_s() -> float:
    # Layers finish registering slightly after `style.load`.
    raw = (os.getenv("MAPSYNC_THEME_DELAY_MS") or "150").strip()
    try:
        return max(0.0, float(raw) / 1000.0)
    except ValueError:
        return 0.15


def log_level() -> str:
    return (os.getenv("MAPSYNC_LOG_LEVEL") or "INFO").strip().upper()


def configure_logging() -> None:
    level = getattr(logging, log_level(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
