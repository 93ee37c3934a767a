"""Built-in colour themes for MindCanvas nodes."""

import re
from typing import Dict, List, NamedTuple, Tuple


class Theme(NamedTuple):
    """Three-colour palette, indexed by node level."""
    primary: str
    secondary: str
    accent: str

    def color_for_level(self, level: int) -> str:
        """Colour used for nodes at the given depth."""
        return self[level % 3]


DEFAULT_THEME = "default"

THEMES: Dict[str, Theme] = {
    "default": Theme("#667eea", "#764ba2", "#4CAF50"),
    "ocean": Theme("#2196F3", "#21CBF3", "#00BCD4"),
    "forest": Theme("#4CAF50", "#8BC34A", "#FF9800"),
    "sunset": Theme("#FF9800", "#FF5722", "#E91E63"),
    "purple": Theme("#9C27B0", "#E91E63", "#673AB7"),
}

# Palette for suggestion-generated children
SUGGESTION_COLORS = ["#FF6B6B", "#4ECDC4", "#45B7D1", "#96CEB4", "#FFEAA7"]

ROOT_TEXT_COLOR = "#ffffff"
CHILD_TEXT_COLOR = "#333333"


def get_theme(name: str) -> Theme:
    """Get a theme by name, falling back to the default theme."""
    return THEMES.get(name, THEMES[DEFAULT_THEME])


def theme_names() -> List[str]:
    return list(THEMES)


_RGBA_RE = re.compile(
    r"rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+)\s*)?\)"
)


def parse_color(value: str, fallback: Tuple[float, float, float, float] = (0.4, 0.4, 0.4, 1.0)
                ) -> Tuple[float, float, float, float]:
    """Parse '#rgb', '#rrggbb' or 'rgba(r, g, b, a)' into cairo RGBA floats."""
    if not value:
        return fallback
    value = value.strip()
    try:
        if value.startswith("#"):
            color = value.lstrip("#")
            if len(color) == 3:
                color = "".join(c * 2 for c in color)
            r = int(color[0:2], 16) / 255
            g = int(color[2:4], 16) / 255
            b = int(color[4:6], 16) / 255
            return (r, g, b, 1.0)
        match = _RGBA_RE.fullmatch(value)
        if match:
            r, g, b = (float(match.group(i)) / 255 for i in (1, 2, 3))
            a = float(match.group(4)) if match.group(4) is not None else 1.0
            return (r, g, b, a)
    except (ValueError, IndexError):
        pass
    return fallback
