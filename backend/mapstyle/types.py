from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

ThemedLayerType = Literal["background", "fill", "line", "symbol"]


class ThemeRule(BaseModel):
    """
    Paint overrides for layers of one type whose id contains any of `match`.

    An empty `match` applies to every layer of that type. Rules are tried in order;
    the first match wins. String paint values naming a theme color are resolved
    against `ThemeDefinition.colors`.
    """

    type: ThemedLayerType
    match: list[str] = Field(default_factory=list)
    paint: dict[str, str | float] = Field(default_factory=dict)


class ThemeDefinition(BaseModel):
    colors: dict[str, str] = Field(default_factory=dict)
    rules: list[ThemeRule]


class TerrainConfig(BaseModel):
    sourceId: str = "mapbox-dem"
    url: str = "mapbox://mapbox.mapbox-terrain-dem-v1"
    tileSize: int = 512
    maxZoom: int = 14
    exaggeration: float = Field(default=1.5, gt=0.0)
    buildingsLayerId: str = "3d-buildings"
    buildingsMinZoom: float = 15.0
    skyLayerId: str = "sky"
    pitch: float = Field(default=60.0, ge=0.0, le=85.0)
    bearing: float = -17.6
    easeMs: int = 1000


class CameraCenter(BaseModel):
    lat: float
    lon: float


class CameraConfig(BaseModel):
    center: CameraCenter = Field(default_factory=lambda: CameraCenter(lat=-28.0, lon=153.4))
    zoom: float = Field(default=8.0, ge=0.0, le=24.0)
    # Initial fit-to-data framing.
    fitPadding: float = Field(default=50.0, ge=0.0)
    fitMaxZoom: float = Field(default=12.0, ge=0.0, le=24.0)


class StyleDefinition(BaseModel):
    id: str
    title: str
    url: str
    # Theme applied on top of the base style (see `themes`).
    theme: str | None = None
    # Terrain, building extrusions and sky.
    terrain: bool = False


class StyleRegistryConfig(BaseModel):
    defaultStyle: str = "dark"
    styles: list[StyleDefinition]
    themes: dict[str, ThemeDefinition] = Field(default_factory=dict)
    terrain: TerrainConfig = Field(default_factory=TerrainConfig)
    camera: CameraConfig = Field(default_factory=CameraConfig)

    def get(self, style_id: str | None) -> StyleDefinition | None:
        sid = (style_id or "").strip()
        for s in self.styles:
            if s.id == sid:
                return s
        return None

    def default(self) -> StyleDefinition:
        s = self.get(self.defaultStyle)
        if s is None:
            raise ValueError(f"Default style is not registered: {self.defaultStyle}")
        return s
