"""
Multi-source glyph module for multienrich.

Handles:
- Attaching per-source color segments (pie glyphs) to graph nodes
- Converting pie glyphs to colored-rectangle grids
- Removing blank segments and collapsing rectangle grids
"""

import logging
from typing import Dict, Optional, Sequence

import networkx as nx
import numpy as np
import pandas as pd

from .colors import is_color_blank
from .config import (
    BLANK_ALPHA_MAX,
    BLANK_C_MAX,
    BLANK_COLOR,
    BLANK_COLORS,
    BLANK_L_MIN,
)
from .errors import ConfigurationError
from .models import Glyph
from .shapes import CIRCLE, COLORED_RECTANGLE, PIE, ShapeRegistry, build_default_shape_registry

logger = logging.getLogger(__name__)

CONSTRAINTS = ("ncol", "nrow", "none")


def _check_shapes(registry: Optional[ShapeRegistry], *names: str) -> None:
    registry = registry if registry is not None else build_default_shape_registry()
    for name in names:
        registry.resolve(name)


def graph_to_pie_graph(
    g: nx.Graph,
    color_matrix: pd.DataFrame,
    registry: Optional[ShapeRegistry] = None,
) -> nx.Graph:
    """
    Attach a pie glyph to every node named in the color matrix.

    Segment order follows the color matrix columns, each with value 1.
    Nodes missing from the matrix keep their scalar color.

    Args:
        g: Graph whose node keys are category or item names
        color_matrix: Node name x source DataFrame of colors
        registry: Shape registry used to validate shape names

    Returns:
        The same graph, modified in place
    """
    _check_shapes(registry, PIE)
    sources = [str(column) for column in color_matrix.columns]
    rows = {name: i for i, name in enumerate(color_matrix.index)}
    values = color_matrix.to_numpy(dtype=object)

    n_matched = 0
    for node in g:
        i = rows.get(node)
        if i is None:
            continue
        attrs = g.nodes[node]
        attrs["glyph"] = Glyph.from_segments(sources, values[i])
        attrs["shape"] = PIE
        attrs.pop("color", None)
        n_matched += 1

    logger.info("  Pie glyphs on %d of %d nodes", n_matched, g.number_of_nodes())
    return g


def rectify_pie_graph(
    g: nx.Graph,
    nrow: int = 1,
    ncol: Optional[int] = None,
    byrow: bool = True,
    registry: Optional[ShapeRegistry] = None,
) -> nx.Graph:
    """
    Convert pie glyphs into colored-rectangle grids.

    ``size2`` is set so that grid cells are square: size * nrow / ncol.

    Args:
        g: Graph with pie nodes
        nrow: Grid rows
        ncol: Grid columns (default: enough columns for every segment)
        byrow: Fill the grid row by row
        registry: Shape registry used to validate shape names

    Returns:
        The same graph, modified in place
    """
    _check_shapes(registry, COLORED_RECTANGLE)
    for node in g:
        attrs = g.nodes[node]
        if attrs.get("shape") != PIE:
            continue
        glyph = attrs["glyph"]
        n_col = ncol if ncol is not None else -(-len(glyph) // nrow)
        if nrow * n_col < len(glyph):
            raise ConfigurationError(
                f"Grid {nrow}x{n_col} cannot hold {len(glyph)} segments for node {node!r}",
                component="MultiSourceGlyphEncoder",
            )
        attrs["glyph"] = glyph.with_grid(nrow, n_col, byrow)
        attrs["shape"] = COLORED_RECTANGLE
        attrs["size2"] = attrs.get("size", 1.0) * nrow / n_col
    return g


def _segment_grid(glyph: Glyph) -> np.ndarray:
    """nrow x ncol array of segment indices, -1 for empty cells."""
    grid = np.full((glyph.nrow, glyph.ncol), -1, dtype=int)
    for i, (row, col) in enumerate(glyph.cell_positions()):
        grid[row, col] = i
    return grid


def _read_grid(grid: np.ndarray, byrow: bool) -> list:
    cells = grid.ravel(order="C" if byrow else "F")
    return [int(i) for i in cells if i >= 0]


def collapse_glyph(
    glyph: Glyph,
    blank_mask: Sequence[bool],
    constrain: str = "ncol",
) -> Optional[Glyph]:
    """
    Remove blank segments from a rectangle glyph.

    Args:
        glyph: Glyph to collapse
        blank_mask: True for each blank segment
        constrain: 'ncol' keeps the column count and drops fully blank rows;
            'nrow' keeps the row count and drops fully blank columns;
            'none' keeps only non-blank segments in a single row (or a
            single column when the glyph has one column)

    Returns:
        Collapsed glyph, the same glyph when nothing is blank, or None when
        every segment is blank
    """
    if constrain not in CONSTRAINTS:
        raise ConfigurationError(
            f"constrain must be one of {CONSTRAINTS}, got {constrain!r}",
            component="MultiSourceGlyphEncoder",
        )
    blank = np.asarray(blank_mask, dtype=bool)
    if len(blank) != len(glyph):
        raise ValueError("blank_mask length must match the glyph segment count")
    if not blank.any():
        return glyph
    if blank.all():
        return None

    if constrain == "none":
        keep = [i for i in range(len(glyph)) if not blank[i]]
        if glyph.ncol == 1:
            nrow, ncol = len(keep), 1
        else:
            nrow, ncol = 1, len(keep)
    else:
        grid = _segment_grid(glyph)
        signal = np.zeros(grid.shape, dtype=bool)
        filled = grid >= 0
        signal[filled] = ~blank[grid[filled]]
        if constrain == "ncol":
            grid = grid[signal.any(axis=1), :]
        else:
            grid = grid[:, signal.any(axis=0)]
        nrow, ncol = grid.shape
        keep = _read_grid(grid, glyph.byrow)

    return Glyph(
        names=tuple(glyph.names[i] for i in keep),
        values=tuple(glyph.values[i] for i in keep),
        colors=tuple(glyph.colors[i] for i in keep),
        nrow=nrow,
        ncol=ncol,
        byrow=glyph.byrow,
    )


def remove_graph_blanks(
    g: nx.Graph,
    constrain: str = "ncol",
    resize_nodes: bool = True,
    blank_colors: Sequence[str] = BLANK_COLORS,
    c_max: float = BLANK_C_MAX,
    l_min: float = BLANK_L_MIN,
    alpha_max: float = BLANK_ALPHA_MAX,
    registry: Optional[ShapeRegistry] = None,
) -> nx.Graph:
    """
    Drop blank glyph segments from every pie and rectangle node.

    Pie nodes keep their non-blank segments. Rectangle nodes collapse with
    collapse_glyph(); with ``resize_nodes`` their size2 is recomputed from the
    collapsed grid so cells stay square. A node whose segments are all blank
    becomes a plain circle with the blank color.

    Args:
        g: Graph with glyph nodes
        constrain: Rectangle collapse mode, see collapse_glyph()
        resize_nodes: Scale size2 to keep cell size constant
        blank_colors: Literal blank colors
        c_max: Maximum chroma of a blank color
        l_min: Minimum luminance of a blank color
        alpha_max: Maximum alpha of a blank color
        registry: Shape registry used to validate shape names

    Returns:
        The same graph, modified in place
    """
    _check_shapes(registry, CIRCLE, PIE, COLORED_RECTANGLE)

    updates: Dict = {}
    for node, attrs in g.nodes(data=True):
        shape = attrs.get("shape")
        if shape not in (PIE, COLORED_RECTANGLE):
            continue
        glyph = attrs["glyph"]
        blank = is_color_blank(
            glyph.colors,
            blank_colors=blank_colors,
            c_max=c_max,
            l_min=l_min,
            alpha_max=alpha_max,
        )
        new = collapse_glyph(glyph, blank, "none" if shape == PIE else constrain)
        if new is not glyph:
            updates[node] = new

    n_reverted = 0
    for node, new in updates.items():
        attrs = g.nodes[node]
        if new is None:
            attrs.pop("glyph")
            attrs["shape"] = CIRCLE
            attrs["color"] = BLANK_COLOR
            n_reverted += 1
            continue
        attrs["glyph"] = new
        if attrs["shape"] == COLORED_RECTANGLE and resize_nodes and "size2" in attrs:
            attrs["size2"] = attrs.get("size", 1.0) * new.nrow / new.ncol

    logger.info(
        "  Removed blank segments on %d nodes (%d fully blank)", len(updates), n_reverted
    )
    return g
