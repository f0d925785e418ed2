from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.map_session import ApiPlotRequest, run_plot_session
from lifecycle.token import resolve_token
from mapstyle.registry import get_registry
from settings import configure_logging
from telemetry.singleton import get_store

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Map sync")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/styles")
def styles():
    registry = get_registry()
    return {
        "defaultStyle": registry.defaultStyle,
        "styles": [
            {"id": s.id, "title": s.title, "themed": s.theme is not None, "terrain": s.terrain}
            for s in registry.styles
        ],
    }


@app.get("/token")
def token():
    r = resolve_token()
    # Never echo the credential itself.
    return {"configured": r.configured, "source": r.source, "error": r.error}


@app.post("/plot")
def plot(body: ApiPlotRequest):
    payload, view = run_plot_session(body)

    meta = payload.get("layout", {}).get("meta", {}) or {}
    store = get_store()
    if store is not None and meta.get("stats") is not None:
        b = view.bounds
        store.record(
            endpoint="/plot",
            style=view.style,
            color_mode=view.color_mode.value,
            view_zoom=(payload["layout"].get("mapbox") or {}).get("zoom"),
            bounds=b.as_dict() if b is not None else None,
            stats=meta["stats"],
        )
    return payload


@app.get("/telemetry/summary")
def telemetry_summary(endpoint: str | None = None, style: str | None = None):
    store = get_store()
    if store is None:
        return {"enabled": False, "rows": []}
    return {"enabled": True, "rows": store.summary(endpoint=endpoint, style=style)}
