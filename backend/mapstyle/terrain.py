from __future__ import annotations

import logging

from mapstyle.types import TerrainConfig
from surface.types import MapSurface, StyleLayer

logger = logging.getLogger(__name__)


def first_label_layer_id(layers: list[StyleLayer]) -> str | None:
    for layer in layers:
        if layer.type == "symbol" and layer.layout.get("text-field") is not None:
            return layer.id
    return None


def buildings_layer(cfg: TerrainConfig) -> StyleLayer:
    return StyleLayer(
        id=cfg.buildingsLayerId,
        type="fill-extrusion",
        source="composite",
        source_layer="building",
        filter=["==", "extrude", "true"],
        minzoom=cfg.buildingsMinZoom,
        paint={
            "fill-extrusion-color": "#aaa",
            "fill-extrusion-height": ["get", "height"],
            "fill-extrusion-base": ["get", "min_height"],
            "fill-extrusion-opacity": 0.6,
        },
    )


def sky_layer(cfg: TerrainConfig) -> StyleLayer:
    return StyleLayer(
        id=cfg.skyLayerId,
        type="sky",
        paint={
            "sky-type": "atmosphere",
            "sky-atmosphere-sun": [0.0, 0.0],
            "sky-atmosphere-sun-intensity": 15,
        },
    )


def apply_3d(surface: MapSurface, cfg: TerrainConfig) -> bool:
    """
    Add terrain, extruded buildings (below the first label layer) and a sky layer,
    then tilt the camera. Returns False when the renderer rejected any step.
    """
    try:
        if surface.get_source(cfg.sourceId) is None:
            surface.add_source(
                cfg.sourceId,
                {
                    "type": "raster-dem",
                    "url": cfg.url,
                    "tileSize": cfg.tileSize,
                    "maxzoom": cfg.maxZoom,
                },
            )
        surface.set_terrain({"source": cfg.sourceId, "exaggeration": cfg.exaggeration})

        if surface.get_layer(cfg.buildingsLayerId) is None:
            before = first_label_layer_id(surface.get_style_layers())
            surface.add_layer(buildings_layer(cfg), before_id=before)
        if surface.get_layer(cfg.skyLayerId) is None:
            surface.add_layer(sky_layer(cfg))

        surface.ease_to(pitch=cfg.pitch, bearing=cfg.bearing, duration_ms=cfg.easeMs)
    except Exception as exc:
        logger.warning("Could not apply 3D styling: %s", exc)
        return False
    return True


def remove_3d(surface: MapSurface, cfg: TerrainConfig) -> None:
    """
    Undo `apply_3d`. Missing pieces are ignored.
    """
    for layer_id in (cfg.buildingsLayerId, cfg.skyLayerId):
        try:
            if surface.get_layer(layer_id) is not None:
                surface.remove_layer(layer_id)
        except Exception as exc:
            logger.debug("Could not remove layer %s: %s", layer_id, exc)
    try:
        surface.set_terrain(None)
        surface.ease_to(pitch=0.0, bearing=0.0, duration_ms=cfg.easeMs)
    except Exception as exc:
        logger.debug("Could not reset terrain: %s", exc)
