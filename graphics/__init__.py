"""
graphics package

Color values and color schemes read by the presentation layer.
"""

from graphics.color import Color
from graphics.color_scheme import (
    COLOR_BLIND_SCHEME,
    COLOR_SCHEME,
    CUSTOM_COLOR_SCHEME,
    DARK_SCHEME,
    DEFAULT_SCHEME,
    ActiveSchemeCache,
    ColorKey,
    ColorScheme,
    ColorSchemes,
    SchemeRegistry,
    SchemeType,
    get_active_scheme,
    get_color,
    get_registry,
    reset_registry,
    resolve_scheme,
    update_custom_scheme,
)

__all__ = [
    "Color",
    "ColorKey",
    "ColorScheme",
    "ColorSchemes",
    "SchemeType",
    "SchemeRegistry",
    "ActiveSchemeCache",
    "DEFAULT_SCHEME",
    "DARK_SCHEME",
    "COLOR_BLIND_SCHEME",
    "COLOR_SCHEME",
    "CUSTOM_COLOR_SCHEME",
    "get_active_scheme",
    "get_color",
    "get_registry",
    "reset_registry",
    "resolve_scheme",
    "update_custom_scheme",
]
