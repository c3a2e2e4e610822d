"""
Color parsing and conversion for report branding.

Branding colors arrive either as hex or as CSS HSL text (the settings UI
stores its defaults as ``hsl(220 70% 50%)``). The renderer only understands
``#rrggbb``, so every color passes through ``normalize_color`` first.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from app.utils.logger import get_logger

logger = get_logger(__name__)

FALLBACK_PRIMARY = "#3b82f6"
FALLBACK_SECONDARY = "#4b5563"

_HEX6 = re.compile(r"^#([0-9a-fA-F]{6})$")
_HEX3 = re.compile(r"^#([0-9a-fA-F]{3})$")

_NUM = r"(-?\d+(?:\.\d+)?)"
# hsl(220 70% 50%), hsl(220deg 70% 50% / 0.5)
_HSL_SPACE = re.compile(
    rf"^hsla?\(\s*{_NUM}(?:deg)?\s+{_NUM}%\s+{_NUM}%\s*(?:/\s*[\d.]+%?\s*)?\)$"
)
# hsl(220, 70%, 50%), hsla(220, 70%, 50%, 0.5)
_HSL_COMMA = re.compile(
    rf"^hsla?\(\s*{_NUM}(?:deg)?\s*,\s*{_NUM}%\s*,\s*{_NUM}%\s*(?:,\s*[\d.]+%?\s*)?\)$"
)


def parse_hsl(value: str) -> Optional[Tuple[float, float, float]]:
    """Parse CSS HSL text into clamped (h, s, l), or None."""
    text = value.strip().lower()
    match = _HSL_SPACE.match(text) or _HSL_COMMA.match(text)
    if not match:
        return None
    h, s, l = (float(part) for part in match.groups())
    return (
        max(0.0, min(360.0, h)),
        max(0.0, min(100.0, s)),
        max(0.0, min(100.0, l)),
    )


def hsl_to_hex(h: float, s: float, l: float) -> str:
    """Convert HSL (degrees, percent, percent) to ``#rrggbb``."""
    h = (h % 360) / 60.0
    s /= 100.0
    l /= 100.0

    c = (1 - abs(2 * l - 1)) * s
    x = c * (1 - abs(h % 2 - 1))
    m = l - c / 2

    if h < 1:
        r, g, b = c, x, 0.0
    elif h < 2:
        r, g, b = x, c, 0.0
    elif h < 3:
        r, g, b = 0.0, c, x
    elif h < 4:
        r, g, b = 0.0, x, c
    elif h < 5:
        r, g, b = x, 0.0, c
    else:
        r, g, b = c, 0.0, x

    def channel(value: float) -> int:
        return max(0, min(255, int(round((value + m) * 255))))

    return "#{:02x}{:02x}{:02x}".format(channel(r), channel(g), channel(b))


def normalize_color(value: object, fallback: str = FALLBACK_PRIMARY) -> str:
    """
    Return ``value`` as lower-case ``#rrggbb``.

    Accepts ``#rrggbb``, ``#rgb`` and HSL/HSLA text. Anything else yields
    ``fallback`` and a configuration warning.
    """
    if isinstance(value, str):
        text = value.strip()
        if _HEX6.match(text):
            return text.lower()

        short = _HEX3.match(text)
        if short:
            return "#" + "".join(ch * 2 for ch in short.group(1)).lower()

        hsl = parse_hsl(text)
        if hsl is not None:
            return hsl_to_hex(*hsl)

    logger.warning(
        "Unrecognized color value, using fallback",
        value=repr(value),
        fallback=fallback,
    )
    return fallback


def to_grayscale(hex_color: str) -> str:
    """Map a ``#rrggbb`` color to the gray of equal luminance."""
    r, g, b = (int(hex_color[i : i + 2], 16) for i in (1, 3, 5))
    gray = int(round(0.299 * r + 0.587 * g + 0.114 * b))
    return "#{0:02x}{0:02x}{0:02x}".format(gray)
