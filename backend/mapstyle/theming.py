from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from mapstyle.types import ThemeDefinition, ThemeRule
from surface.types import MapSurface, StyleLayer

logger = logging.getLogger(__name__)


@dataclass
class ThemeReport:
    themed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "themed": len(self.themed),
            "skipped": len(self.skipped),
            "failed": sorted(self.failed),
        }


def rule_for_layer(layer: StyleLayer, theme: ThemeDefinition) -> ThemeRule | None:
    for rule in theme.rules:
        if rule.type != layer.type:
            continue
        if not rule.match or any(s in layer.id for s in rule.match):
            return rule
    return None


def resolve_paint(rule: ThemeRule, colors: dict[str, str]) -> dict[str, Any]:
    return {
        name: colors.get(value, value) if isinstance(value, str) else value
        for name, value in rule.paint.items()
    }


def apply_theme(surface: MapSurface, theme: ThemeDefinition) -> ThemeReport:
    """
    Override paint properties of the loaded style's layers.

    Layers are classified by type and id substring. A layer the renderer refuses to
    modify is recorded in `failed` and skipped; the pass always continues.
    """
    report = ThemeReport()
    try:
        layers = surface.get_style_layers()
    except Exception as exc:
        logger.warning("Could not read style layers: %s", exc)
        return report

    for layer in layers:
        rule = rule_for_layer(layer, theme)
        if rule is None:
            report.skipped.append(layer.id)
            continue
        try:
            for name, value in resolve_paint(rule, theme.colors).items():
                surface.set_paint_property(layer.id, name, value)
        except Exception as exc:
            logger.debug("Could not theme layer %s: %s", layer.id, exc)
            report.failed.append(layer.id)
            continue
        report.themed.append(layer.id)

    logger.info(
        "Applied theme to %d layers (%d skipped, %d failed)",
        len(report.themed),
        len(report.skipped),
        len(report.failed),
    )
    return report
