from __future__ import annotations

from enum import Enum

# 12 distinct colors for the simplified category system.
CATEGORY_COLORS: dict[str, str] = {
    "Music Industry": "#9C27B0",
    "Audio, Production & Post-Production": "#673AB7",
    "Visual Arts, Design & Craft": "#E91E63",
    "Culture, Heritage & Community": "#4CAF50",
    "Events, Festivals & Live Performance": "#FF9800",
    "Media, Content & Communications": "#FFC107",
    "Education, Training & Professional Development": "#CDDC39",
    "Workspaces, Fabrication & Creative Infrastructure": "#795548",
    "Creative Technology & Emerging Media": "#3F51B5",
    "Software, Development & Digital Platforms": "#2196F3",
    "Media Infrastructure & Cloud Technology": "#00BCD4",
    "Business, Logistics & Support Services": "#607D8B",
    # Legacy/unmapped categories.
    "Other": "#9E9E9E",
}

MONO_COLOR = "#6366f1"
HIGH_CONTRAST_COLOR = "#ffffff"


class ColorMode(str, Enum):
    BY_CATEGORY = "category"
    MONOCHROME = "mono"
    HIGH_CONTRAST = "highContrast"


def category_color(category: str) -> str:
    return CATEGORY_COLORS.get(category) or CATEGORY_COLORS["Other"]


def marker_color(category: str, mode: ColorMode, *, lookup=category_color) -> str:
    if mode == ColorMode.MONOCHROME:
        return MONO_COLOR
    if mode == ColorMode.HIGH_CONTRAST:
        return HIGH_CONTRAST_COLOR
    return lookup(category)


_COLOR_MODE_ALIASES: dict[str, ColorMode] = {
    "category": ColorMode.BY_CATEGORY,
    "bycategory": ColorMode.BY_CATEGORY,
    "mono": ColorMode.MONOCHROME,
    "monochrome": ColorMode.MONOCHROME,
    "highcontrast": ColorMode.HIGH_CONTRAST,
    "high_contrast": ColorMode.HIGH_CONTRAST,
}


def parse_color_mode(raw: str | None) -> ColorMode:
    # Unknown values fall back to category colors.
    return _COLOR_MODE_ALIASES.get(str(raw or "").strip().lower(), ColorMode.BY_CATEGORY)
