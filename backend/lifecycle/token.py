from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from settings import mapbox_token, token_cache_path, token_url

logger = logging.getLogger(__name__)

ERROR_NOT_CONFIGURED = "Mapbox token not configured"
ERROR_NOT_AVAILABLE = "Map configuration not available"
ERROR_FETCH_FAILED = "Failed to load map configuration"


@dataclass(frozen=True)
class TokenResolution:
    """
    Outcome of credential lookup. `token is None` means the host should prompt for one.
    """

    token: str | None
    source: str  # "env" | "cache" | "remote" | "none"
    error: str | None = None

    @property
    def configured(self) -> bool:
        return self.token is not None


def looks_like_public_token(token: str | None) -> bool:
    return (token or "").strip().startswith("pk.")


def resolve_token(*, client: httpx.Client | None = None) -> TokenResolution:
    """
    Look the map credential up: environment, then cached token file, then remote endpoint.

    Never raises: every failure ends up in `TokenResolution.error`.
    """
    env = mapbox_token()
    if env:
        return TokenResolution(token=env, source="env")

    cached = read_cached_token()
    if cached:
        return TokenResolution(token=cached, source="cache")

    url = token_url()
    if not url:
        return TokenResolution(token=None, source="none", error=ERROR_NOT_CONFIGURED)

    try:
        if client is None:
            with httpx.Client(timeout=10.0) as c:
                resp = c.get(url)
        else:
            resp = client.get(url)
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("Error fetching Mapbox token: %s", exc)
        return TokenResolution(token=None, source="none", error=ERROR_FETCH_FAILED)

    token = str((data or {}).get("token") or "").strip() if isinstance(data, dict) else ""
    if not token:
        return TokenResolution(token=None, source="none", error=ERROR_NOT_AVAILABLE)

    save_token(token)
    return TokenResolution(token=token, source="remote")


def read_cached_token() -> str | None:
    p = token_cache_path()
    try:
        v = p.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("Could not read cached token %s: %s", p, exc)
        return None
    return v or None


def save_token(token: str | None) -> str | None:
    """
    Persist a user-supplied token. Returns the stored value (None for blank input).
    """
    t = (token or "").strip()
    if not t:
        return None
    if not looks_like_public_token(t):
        logger.warning("Saving a token that does not look like a public token (pk.*)")
    p = token_cache_path()
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(t, encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not cache token at %s: %s", p, exc)
    return t
