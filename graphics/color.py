"""
graphics/color.py

Immutable RGBA color value used by the color schemes.

Colors are stored as 8-bit channels and exchanged with the settings file
as hex strings (``#rrggbb`` or ``#rrggbbaa``).
"""

from __future__ import annotations

from dataclasses import dataclass

# Channel factor used by darker(), same as java.awt.Color and QColor.darker(143)
DARKER_FACTOR = 0.7


def _clamp(value: int) -> int:
    return max(0, min(255, int(value)))


@dataclass(frozen=True)
class Color:
    """An RGBA color.

    Attributes:
        r: Red channel (0-255).
        g: Green channel (0-255).
        b: Blue channel (0-255).
        a: Alpha channel (0-255), 255 is opaque.
    """
    r: int
    g: int
    b: int
    a: int = 255

    def __post_init__(self):
        for name in ("r", "g", "b", "a"):
            value = getattr(self, name)
            if not isinstance(value, int) or not 0 <= value <= 255:
                raise ValueError(f"Color channel {name} out of range: {value!r}")

    @classmethod
    def from_hex(cls, text: str) -> "Color":
        """Parse a hex color string.

        Accepts ``#rgb``, ``#rrggbb`` and ``#rrggbbaa`` (leading ``#`` optional).

        Args:
            text: The hex string.

        Returns:
            The parsed Color.

        Raises:
            ValueError: If the string is not a valid hex color.
        """
        h = str(text).strip().lstrip("#")
        if len(h) == 3:
            h = "".join(c * 2 for c in h)
        if len(h) not in (6, 8):
            raise ValueError(f"Invalid hex color: {text!r}")
        try:
            channels = [int(h[i:i + 2], 16) for i in range(0, len(h), 2)]
        except ValueError:
            raise ValueError(f"Invalid hex color: {text!r}") from None
        return cls(*channels)

    def to_hex(self) -> str:
        """Format as ``#rrggbb``, or ``#rrggbbaa`` when not fully opaque."""
        if self.a == 255:
            return "#%02x%02x%02x" % (self.r, self.g, self.b)
        return "#%02x%02x%02x%02x" % (self.r, self.g, self.b, self.a)

    def darker(self) -> "Color":
        """Return a darker version of this color, alpha is kept."""
        return Color(
            _clamp(self.r * DARKER_FACTOR),
            _clamp(self.g * DARKER_FACTOR),
            _clamp(self.b * DARKER_FACTOR),
            self.a,
        )

    @property
    def rgba(self):
        return (self.r, self.g, self.b, self.a)

    def __str__(self) -> str:
        return self.to_hex()


# Basic named colors
BLACK = Color(0, 0, 0)
WHITE = Color(255, 255, 255)
BLUE = Color(0, 0, 255)
RED = Color(255, 0, 0)
GREEN = Color(0, 255, 0)
CYAN = Color(0, 255, 255)
GRAY = Color(128, 128, 128)
LIGHT_GRAY = Color(192, 192, 192)

# Value used for scheme entries that were never set
UNSET = Color(0, 0, 0, 0)
