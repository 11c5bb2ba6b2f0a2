"""
graphics/color_scheme.py

Color schemes used to paint circuits.

A ColorScheme is an immutable palette holding one color per ColorKey. The
built-in schemes (default, dark, color blind) are created once at import
time; the custom scheme is read from the settings store. The scheme that is
currently selected in the settings is cached in a process-wide
ActiveSchemeCache and recomputed whenever the relevant settings change.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from graphics.color import (
    BLACK,
    BLUE,
    CYAN,
    GRAY,
    GREEN,
    LIGHT_GRAY,
    RED,
    UNSET,
    Color,
)
from settings import SettingKey, SettingsManager, enum_key, get_settings

log = logging.getLogger(__name__)

# Section of the settings file holding the appearance keys
APPEARANCE_SECTION = "appearance"


class ColorKey(Enum):
    """Semantic color roles. The value is the storage index of the role."""
    BACKGROUND = 0
    MAIN = 1
    SELECTED = 2
    WIRE = 3
    WIRE_LOW = 4
    WIRE_HIGH = 5
    WIRE_OUT = 6
    WIRE_VALUE = 7
    WIRE_Z = 8
    PINS = 9
    HIGHLIGHT = 10
    GRID = 11
    PASSED = 12
    ERROR = 13
    DISABLED = 14
    TESTCASE = 15
    ASYNC = 16

    @property
    def ordinal(self) -> int:
        return self.value


COLOR_KEY_COUNT = len(ColorKey)


class SchemeType(Enum):
    """Whether a scheme is light or dark.

    The value is the matching macOS window appearance name.
    """
    DARK = "NSAppearanceNameDarkAqua"
    LIGHT = "NSAppearanceNameAqua"

    @property
    def aqua_theme(self) -> str:
        return self.value


# Theme ids name the application style sheet paired with a scheme
LIGHT_THEME = "Bulma"
DARK_THEME = "Foundation"


class ColorScheme:
    """An immutable color scheme.

    Create instances with ColorScheme.Builder. Two schemes are equal if all
    their colors are equal; theme id and type are not compared.
    """

    __slots__ = ("_colors", "_theme", "_type")

    def __init__(self, colors: Tuple[Color, ...], theme: str, scheme_type: Optional[SchemeType]):
        if len(colors) != COLOR_KEY_COUNT:
            raise ValueError(f"A color scheme needs {COLOR_KEY_COUNT} colors, got {len(colors)}")
        object.__setattr__(self, "_colors", tuple(colors))
        object.__setattr__(self, "_theme", theme)
        object.__setattr__(self, "_type", scheme_type)

    def __setattr__(self, name, value):
        raise AttributeError("ColorScheme is immutable")

    def get_color(self, key: ColorKey) -> Color:
        """Returns the color for the given key."""
        return self._colors[key.ordinal]

    @property
    def colors(self) -> Tuple[Color, ...]:
        return self._colors

    @property
    def theme(self) -> str:
        """Id of the application style sheet paired with this scheme."""
        return self._theme

    @property
    def scheme_type(self) -> Optional[SchemeType]:
        return self._type

    @property
    def aqua_theme(self) -> Optional[str]:
        """The macOS window appearance name, None if the type is unknown."""
        if self._type is None:
            return None
        return self._type.aqua_theme

    def overrides(self, base: "ColorScheme") -> List[ColorKey]:
        """Return the keys whose color differs from the base scheme."""
        return [key for key in ColorKey if self.get_color(key) != base.get_color(key)]

    def as_dict(self) -> Dict[str, str]:
        """Colors as a ``{key name: hex}`` mapping in key order."""
        return {key.name: self.get_color(key).to_hex() for key in ColorKey}

    def __eq__(self, other) -> bool:
        if self is other:
            return True
        if not isinstance(other, ColorScheme):
            return NotImplemented
        return self._colors == other._colors

    def __hash__(self) -> int:
        return hash(self._colors)

    def __repr__(self) -> str:
        kind = self._type.name if self._type else None
        return f"ColorScheme(theme={self._theme!r}, type={kind})"

    class Builder:
        """Mutable staging object used to create a ColorScheme.

        Args:
            base: Optional scheme whose colors, theme and type are copied.
        """

        def __init__(self, base: Optional["ColorScheme"] = None):
            if base is None:
                self._colors: List[Optional[Color]] = [None] * COLOR_KEY_COUNT
                self._theme = DARK_THEME
                self._type: Optional[SchemeType] = None
            else:
                self._colors = list(base.colors)
                self._theme = base.theme
                self._type = base.scheme_type

        def set(self, key: ColorKey, color: Color) -> "ColorScheme.Builder":
            self._colors[key.ordinal] = color
            return self

        def set_scheme(self, scheme: "ColorScheme") -> "ColorScheme.Builder":
            """Copies all colors of the given scheme."""
            for key in ColorKey:
                self._colors[key.ordinal] = scheme.get_color(key)
            return self

        def set_theme(self, theme: str) -> "ColorScheme.Builder":
            self._theme = theme
            return self

        def set_type(self, scheme_type: Optional[SchemeType]) -> "ColorScheme.Builder":
            self._type = scheme_type
            return self

        def get_color(self, key: ColorKey) -> Optional[Color]:
            return self._colors[key.ordinal]

        def build(self) -> "ColorScheme":
            """Create the immutable scheme.

            Keys that were never set get a transparent black color.
            """
            missing = [key.name for key in ColorKey if self._colors[key.ordinal] is None]
            if missing:
                log.warning("Color scheme built without colors for %s", ", ".join(missing))
            colors = tuple(UNSET if c is None else c for c in self._colors)
            return ColorScheme(colors, self._theme, self._type)


def get_color(scheme: ColorScheme, key: ColorKey) -> Color:
    """Returns the color of the given key in the given scheme."""
    return scheme.get_color(key)


# =============================================================================
# Built-in schemes
# =============================================================================

DEFAULT_SCHEME = (
    ColorScheme.Builder()
    .set(ColorKey.BACKGROUND, Color(255, 250, 250))
    .set(ColorKey.MAIN, BLACK)
    .set(ColorKey.SELECTED, Color(208, 208, 208))
    .set(ColorKey.WIRE, BLUE.darker())
    .set(ColorKey.WIRE_LOW, Color(0, 142, 0))
    .set(ColorKey.WIRE_HIGH, Color(102, 255, 102))
    .set(ColorKey.WIRE_OUT, RED.darker())
    .set(ColorKey.WIRE_VALUE, Color(50, 162, 50))
    .set(ColorKey.WIRE_Z, GRAY)
    .set(ColorKey.PINS, GRAY)
    .set(ColorKey.HIGHLIGHT, CYAN)
    .set(ColorKey.GRID, Color(210, 210, 210))
    .set(ColorKey.PASSED, GREEN)
    .set(ColorKey.ERROR, RED)
    .set(ColorKey.DISABLED, LIGHT_GRAY)
    .set(ColorKey.TESTCASE, Color(180, 255, 180, 200))
    .set(ColorKey.ASYNC, Color(255, 180, 180, 200))
    .set_theme(LIGHT_THEME)
    .set_type(SchemeType.LIGHT)
    .build()
)

DARK_SCHEME = (
    ColorScheme.Builder(DEFAULT_SCHEME)
    .set(ColorKey.BACKGROUND, Color(54, 54, 54))
    .set(ColorKey.MAIN, Color(220, 220, 220))
    .set(ColorKey.SELECTED, Color(52, 52, 52))
    .set(ColorKey.GRID, Color(79, 79, 79))
    .set(ColorKey.DISABLED, Color(40, 40, 40))
    .set(ColorKey.WIRE, Color(52, 152, 219))
    .set(ColorKey.HIGHLIGHT, Color(120, 182, 231))
    .set(ColorKey.WIRE_OUT, Color(231, 77, 60))
    .set_theme(DARK_THEME)
    .set_type(SchemeType.DARK)
    .build()
)

COLOR_BLIND_SCHEME = (
    ColorScheme.Builder(DEFAULT_SCHEME)
    .set(ColorKey.WIRE, Color(0, 0, 255))
    .set(ColorKey.WIRE_HIGH, Color(98, 255, 41))
    .set(ColorKey.WIRE_LOW, Color(0, 52, 0))
    .set(ColorKey.WIRE_OUT, Color(250, 165, 0))
    .set(ColorKey.HIGHLIGHT, Color(255, 255, 0))
    .build()
)


class ColorSchemes(Enum):
    """The selectable color schemes."""
    DEFAULT = "default"
    DARK = "dark"
    COLOR_BLIND = "color_blind"
    CUSTOM = "custom"


# =============================================================================
# TOML serialization and settings keys
# =============================================================================

def scheme_to_toml(scheme: ColorScheme) -> Dict[str, Any]:
    """Convert a scheme to a TOML table."""
    table: Dict[str, Any] = {"theme": scheme.theme, "colors": scheme.as_dict()}
    if scheme.scheme_type is not None:
        table["type"] = scheme.scheme_type.name
    return table


def scheme_from_toml(table: Dict[str, Any]) -> ColorScheme:
    """Create a scheme from a TOML table written by scheme_to_toml().

    Colors missing from the table are taken from the default scheme.

    Raises:
        ValueError: If a color or the type is invalid.
        TypeError: If the table has the wrong shape.
    """
    if not isinstance(table, dict):
        raise TypeError(f"Color scheme must be a table, got {type(table).__name__}")
    builder = ColorScheme.Builder(DEFAULT_SCHEME)
    colors = table.get("colors", {})
    if not isinstance(colors, dict):
        raise TypeError("Color scheme 'colors' must be a table")
    for name, value in colors.items():
        try:
            key = ColorKey[name]
        except KeyError:
            log.warning("Ignoring unknown color key '%s'", name)
            continue
        builder.set(key, Color.from_hex(value))
    builder.set_theme(str(table.get("theme", DEFAULT_SCHEME.theme)))
    type_name = table.get("type")
    if type_name is not None:
        try:
            builder.set_type(SchemeType[type_name])
        except KeyError:
            raise ValueError(f"Unknown scheme type: {type_name!r}") from None
    return builder.build()


# The key used to select the color scheme
COLOR_SCHEME = enum_key(
    "colorScheme",
    ColorSchemes.DARK,
    section=APPEARANCE_SECTION,
    requires_repaint=True,
)

# The key used to define the custom color scheme
CUSTOM_COLOR_SCHEME = SettingKey(
    name="customColorScheme",
    default=DEFAULT_SCHEME,
    section=APPEARANCE_SECTION,
    encode=scheme_to_toml,
    decode=scheme_from_toml,
    requires_repaint=True,
    depends_on=COLOR_SCHEME,
    enabled_when=lambda selected: selected == ColorSchemes.CUSTOM,
)


# =============================================================================
# Scheme registry and active scheme cache
# =============================================================================

class ActiveSchemeCache:
    """Holds the scheme currently in effect.

    The reference is only ever replaced, never mutated, so readers always
    see a complete scheme.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._scheme: Optional[ColorScheme] = None

    def get(self) -> Optional[ColorScheme]:
        with self._lock:
            return self._scheme

    def install(self, scheme: ColorScheme) -> None:
        with self._lock:
            self._scheme = scheme

    def invalidate(self) -> None:
        with self._lock:
            self._scheme = None


class SchemeRegistry:
    """Resolves scheme selectors and tracks the selected scheme.

    Args:
        settings_manager: Settings store to read the selector and the custom
            scheme from. Defaults to the global settings manager.
    """

    def __init__(self, settings_manager: Optional[SettingsManager] = None):
        self.settings_manager = settings_manager if settings_manager is not None else get_settings()
        # Serializes the listener path and the direct custom scheme update
        self._lock = threading.RLock()
        self._custom: Optional[ColorScheme] = None
        self._listening = False
        self.cache = ActiveSchemeCache()
        self._resolvers: Dict[ColorSchemes, Callable[[], ColorScheme]] = {
            ColorSchemes.DEFAULT: lambda: DEFAULT_SCHEME,
            ColorSchemes.DARK: lambda: DARK_SCHEME,
            ColorSchemes.COLOR_BLIND: lambda: COLOR_BLIND_SCHEME,
            ColorSchemes.CUSTOM: self._custom_scheme,
        }

    def _custom_scheme(self) -> ColorScheme:
        with self._lock:
            if self._custom is None:
                self._custom = self._fetch_custom()
            return self._custom

    def _fetch_custom(self) -> ColorScheme:
        try:
            scheme = self.settings_manager.get(CUSTOM_COLOR_SCHEME)
        except Exception:
            log.exception("Could not read the custom color scheme, using default")
            return DEFAULT_SCHEME
        if not isinstance(scheme, ColorScheme):
            log.warning("Custom color scheme unavailable, using default")
            return DEFAULT_SCHEME
        return scheme

    def resolve_scheme(self, selector: ColorSchemes) -> ColorScheme:
        """Returns the scheme for the given selector."""
        return self._resolvers[selector]()

    def selected(self) -> ColorSchemes:
        """Returns the selector stored in the settings."""
        try:
            selector = self.settings_manager.get(COLOR_SCHEME)
        except Exception:
            log.exception("Could not read the color scheme selector")
            return COLOR_SCHEME.default
        if not isinstance(selector, ColorSchemes):
            return COLOR_SCHEME.default
        return selector

    def get_active_scheme(self) -> ColorScheme:
        """Returns the selected scheme.

        The first call registers a settings listener that keeps the cached
        scheme up to date.
        """
        scheme = self.cache.get()
        if scheme is not None:
            return scheme
        with self._lock:
            if not self._listening:
                self.settings_manager.add_listener(self._on_settings_changed)
                self._listening = True
            scheme = self.cache.get()
            if scheme is None:
                scheme = self._update_instance()
            return scheme

    def _update_instance(self) -> ColorScheme:
        with self._lock:
            scheme = self.resolve_scheme(self.selected())
            self.cache.install(scheme)
            return scheme

    def _on_settings_changed(self, name: str) -> None:
        if name == COLOR_SCHEME.name:
            self._update_instance()
        elif name == CUSTOM_COLOR_SCHEME.name:
            with self._lock:
                self._custom = None
                if self.selected() == ColorSchemes.CUSTOM:
                    self._update_instance()

    def update_custom_scheme(self, scheme: ColorScheme) -> None:
        """Store an edited custom scheme.

        If the custom scheme is selected, the new scheme is in effect when this
        method returns.
        """
        with self._lock:
            if self._custom is not None and self._custom != scheme:
                self._custom = scheme
            active = self.cache.get()
            # A cache that was never filled is computed on first access
            if active is not None and active != scheme and self.selected() == ColorSchemes.CUSTOM:
                self._custom = scheme
                self.cache.install(scheme)
        self.settings_manager.set(CUSTOM_COLOR_SCHEME, scheme)
        self._persist()

    def select_scheme(self, selector: ColorSchemes) -> None:
        """Store a new selector; listeners update the active scheme."""
        self.settings_manager.set(COLOR_SCHEME, selector)
        self._persist()

    def _persist(self) -> None:
        try:
            self.settings_manager.save()
        except OSError as e:
            log.error("Could not save color scheme settings: %s", e)

    def close(self) -> None:
        """Stop following settings changes."""
        with self._lock:
            if self._listening:
                self.settings_manager.remove_listener(self._on_settings_changed)
                self._listening = False
            self.cache.invalidate()


# Global registry instance (singleton)
_registry: Optional[SchemeRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> SchemeRegistry:
    """Get the global scheme registry, bound to the global settings."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = SchemeRegistry()
        return _registry


def reset_registry() -> None:
    """Drop the global registry; the next access creates a new one."""
    global _registry
    with _registry_lock:
        if _registry is not None:
            _registry.close()
        _registry = None


def resolve_scheme(selector: ColorSchemes) -> ColorScheme:
    return get_registry().resolve_scheme(selector)


def get_active_scheme() -> ColorScheme:
    """Returns the selected color scheme."""
    return get_registry().get_active_scheme()


def update_custom_scheme(scheme: ColorScheme) -> None:
    """Needs to be called if the custom scheme was edited."""
    get_registry().update_custom_scheme(scheme)
