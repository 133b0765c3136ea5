"""
Data models shared across multienrich components.

Handles:
- EnrichmentSource: one named, colored enrichment table
- Glyph: the multi-segment color encoding attached to graph nodes
"""

from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from .errors import ConfigurationError


@dataclass
class EnrichmentSource:
    """A named enrichment result table.

    ``universe`` optionally lists every item tested for this source; when it
    is missing the items are taken from the table's gene column.
    """

    name: str
    table: pd.DataFrame
    color: Optional[str] = None
    label: Optional[str] = None
    universe: Optional[List[str]] = None

    def __post_init__(self):
        if not isinstance(self.table, pd.DataFrame):
            raise ConfigurationError(
                f"Source '{self.name}' table must be a pandas DataFrame, "
                f"got {type(self.table).__name__}; convert it with "
                f"as_enrichment_frame() first",
                component="EnrichmentSource",
            )
        if self.label is None:
            self.label = self.name


@dataclass(frozen=True)
class Glyph:
    """Ordered per-source color segments for one node.

    Segment ``i`` belongs to source ``names[i]``. ``nrow``/``ncol``/``byrow``
    describe how segments fill a grid when drawn as a colored rectangle.
    """

    names: Tuple[str, ...]
    values: Tuple[float, ...]
    colors: Tuple[str, ...]
    nrow: int = 1
    ncol: int = 0
    byrow: bool = True

    def __post_init__(self):
        if not (len(self.names) == len(self.values) == len(self.colors)):
            raise ValueError("Glyph names, values and colors must have equal length")
        if self.ncol == 0:
            object.__setattr__(self, "ncol", len(self.colors))
        if self.nrow * self.ncol < len(self.colors):
            raise ValueError(
                f"Glyph grid {self.nrow}x{self.ncol} cannot hold "
                f"{len(self.colors)} segments"
            )

    def __len__(self) -> int:
        return len(self.colors)

    @classmethod
    def from_segments(
        cls,
        names: Iterable[str],
        colors: Iterable[str],
        values: Optional[Iterable[float]] = None,
        **grid,
    ) -> "Glyph":
        names = tuple(names)
        colors = tuple(colors)
        values = tuple(values) if values is not None else (1.0,) * len(colors)
        return cls(names=names, values=values, colors=colors, **grid)

    def with_grid(self, nrow: int, ncol: int, byrow: bool) -> "Glyph":
        return replace(self, nrow=nrow, ncol=ncol, byrow=byrow)

    def cell_positions(self) -> List[Tuple[int, int]]:
        """(row, column) of each segment in fill order."""
        positions = []
        for i in range(len(self.colors)):
            if self.byrow:
                positions.append((i // self.ncol, i % self.ncol))
            else:
                positions.append((i % self.nrow, i // self.nrow))
        return positions


@dataclass
class GridShape:
    """Requested glyph grid for colored rectangle nodes."""

    nrow: int
    ncol: int
    byrow: bool = False

    @classmethod
    def resolve(
        cls,
        n_sources: int,
        nrow: Optional[int] = None,
        ncol: Optional[int] = None,
        byrow: bool = False,
    ) -> "GridShape":
        """
        Fill in a missing grid dimension so the grid holds every source.

        Args:
            n_sources: Number of sources (segments per glyph)
            nrow: Requested row count, or None
            ncol: Requested column count, or None
            byrow: Whether segments fill the grid row by row

        Returns:
            GridShape with nrow * ncol >= n_sources
        """
        if n_sources < 1:
            raise ConfigurationError("At least one source is required", component="GridShape")
        if nrow is None:
            if ncol is None:
                nrow, ncol = 1, n_sources
            else:
                nrow = -(-n_sources // ncol)
        elif ncol is None:
            ncol = -(-n_sources // nrow)
        elif nrow * ncol < n_sources:
            ncol = -(-n_sources // nrow)
        return cls(nrow=int(nrow), ncol=int(ncol), byrow=byrow)
