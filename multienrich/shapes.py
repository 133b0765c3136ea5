"""
Node shape registry for multienrich.

Maps node shape names to the matplotlib routines that draw them. The
registry is an ordinary object: build it once with
build_default_shape_registry() and pass it to whatever needs to resolve a
shape name.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Tuple

from matplotlib.axes import Axes
from matplotlib.patches import Circle, Patch, Rectangle, Wedge

logger = logging.getLogger(__name__)

# Node sizes are in 1/200 of the axis span, as in the layout scaler output
SIZE_UNIT = 1 / 200

ShapeDrawer = Callable[[Axes, Tuple[float, float], Mapping[str, Any]], List[Patch]]

CIRCLE = "circle"
PIE = "pie"
COLORED_RECTANGLE = "coloredrectangle"


class ShapeRegistry:
    """Registry that maps node shape names to drawing routines."""

    def __init__(self) -> None:
        self._drawers: Dict[str, ShapeDrawer] = {}

    def register(self, name: str, drawer: ShapeDrawer) -> None:
        """Register a drawing routine under a unique name."""
        key = name.strip().lower()
        if not key:
            raise ValueError("Shape name cannot be empty")
        if key in self._drawers:
            raise ValueError(f"Shape already registered: {name}")
        self._drawers[key] = drawer

    def resolve(self, name: str) -> ShapeDrawer:
        """Return the drawing routine for a shape name."""
        key = name.strip().lower()
        if key not in self._drawers:
            raise KeyError(
                f"Unknown node shape '{name}'. Available: {', '.join(self.available())}"
            )
        return self._drawers[key]

    def available(self) -> List[str]:
        return sorted(self._drawers)

    def __contains__(self, name: str) -> bool:
        return name.strip().lower() in self._drawers


def draw_circle(ax: Axes, xy: Tuple[float, float], attrs: Mapping[str, Any]) -> List[Patch]:
    patch = Circle(xy, radius=attrs.get("size", 1) * SIZE_UNIT, facecolor=attrs.get("color"))
    ax.add_patch(patch)
    return [patch]


def draw_pie(ax: Axes, xy: Tuple[float, float], attrs: Mapping[str, Any]) -> List[Patch]:
    glyph = attrs["glyph"]
    radius = attrs.get("size", 1) * SIZE_UNIT
    total = float(sum(glyph.values)) or 1.0
    patches = []
    start = 90.0
    for value, color in zip(glyph.values, glyph.colors):
        sweep = 360.0 * value / total
        patch = Wedge(xy, radius, start - sweep, start, facecolor=color)
        ax.add_patch(patch)
        patches.append(patch)
        start -= sweep
    return patches


def draw_colored_rectangle(ax: Axes, xy: Tuple[float, float], attrs: Mapping[str, Any]) -> List[Patch]:
    glyph = attrs["glyph"]
    width = 2 * attrs.get("size", 1) * SIZE_UNIT
    height = 2 * attrs.get("size2", attrs.get("size", 1)) * SIZE_UNIT
    cell_w = width / max(glyph.ncol, 1)
    cell_h = height / max(glyph.nrow, 1)
    left = xy[0] - width / 2
    top = xy[1] + height / 2
    patches = []
    for (row, col), color in zip(glyph.cell_positions(), glyph.colors):
        patch = Rectangle(
            (left + col * cell_w, top - (row + 1) * cell_h),
            cell_w,
            cell_h,
            facecolor=color,
            edgecolor="grey",
            linewidth=0.5,
        )
        ax.add_patch(patch)
        patches.append(patch)
    return patches


def build_default_shape_registry() -> ShapeRegistry:
    """Create a registry preloaded with the built-in node shapes."""
    registry = ShapeRegistry()
    registry.register(CIRCLE, draw_circle)
    registry.register(PIE, draw_pie)
    registry.register(COLORED_RECTANGLE, draw_colored_rectangle)
    return registry
