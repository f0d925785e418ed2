import sys
from pathlib import Path

import pytest

# Ensure `backend/` is on sys.path so tests can import local modules
# like `geo.*`, `view.*`, and `main`.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))

from locations.types import LocationEntity  # noqa: E402
from mapstyle.registry import load_registry  # noqa: E402
from surface.headless import HeadlessMapSurface  # noqa: E402
from surface.scheduler import ManualScheduler  # noqa: E402
from view.map_view import MapView  # noqa: E402

STYLE_REGISTRY_PATH = BACKEND_ROOT.parent / "data" / "map_styles.yaml"


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    # Keep tests away from a developer's real token/telemetry configuration.
    for name in ("MAPSYNC_MAPBOX_TOKEN", "MAPSYNC_TOKEN_URL", "MAPSYNC_STYLE_REGISTRY_PATH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MAPSYNC_TOKEN_CACHE_PATH", str(tmp_path / "cache" / "mapbox_token"))
    monkeypatch.setenv("MAPSYNC_TELEMETRY", "0")


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def registry():
    return load_registry(STYLE_REGISTRY_PATH)


@pytest.fixture
def make_location():
    def make(id, lat, lng, *, category="Music Industry", name=None, **kwargs):
        return LocationEntity(
            id=id,
            name=name or f"Location {id}",
            category=category,
            latitude=lat,
            longitude=lng,
            **kwargs,
        )

    return make


@pytest.fixture
def make_view(scheduler, registry):
    """
    Build a MapView over headless surfaces. Every surface built is kept in `view.surfaces_built`.
    """

    def make(*, surface_kwargs=None, **kwargs):
        built = []

        def factory(token, style_url):
            s = HeadlessMapSurface(
                token=token, style_url=style_url, scheduler=scheduler, **(surface_kwargs or {})
            )
            built.append(s)
            return s

        kwargs.setdefault("theme_delay", 0.15)
        view = MapView(factory, scheduler, registry=registry, **kwargs)
        view.surfaces_built = built
        return view

    return make
