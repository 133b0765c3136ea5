"""
Layout scaling module for multienrich.

Handles:
- Axis ranges that either keep the requested limits or snap to the layout
- Node size, label and edge width scaling relative to the axis span
- Per-group scaling rules keyed on node or edge attributes
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, Union

import networkx as nx
import numpy as np

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

NODE = "node"
EDGE = "edge"

# Drawing defaults for nodes and edges without explicit attributes
DEFAULT_NODE_SIZE = 15.0
DEFAULT_LABEL_DIST = 0.0
DEFAULT_LABEL_CEX = 1.0
DEFAULT_EDGE_WIDTH = 1.0

# Label distance uses a quarter of the x span, sizes use half
LABEL_DIST_DIVISOR = 4
SIZE_DIVISOR = 2


# ============================================================================
# SCALING PARAMETERS
# ============================================================================

def _entity_attrs(g: nx.Graph, entity: str) -> List[Mapping[str, Any]]:
    if entity == NODE:
        return [attrs for _, attrs in g.nodes(data=True)]
    if entity == EDGE:
        return [attrs for _, _, attrs in g.edges(data=True)]
    raise ValueError(f"entity must be '{NODE}' or '{EDGE}', got {entity!r}")


@dataclass(frozen=True)
class Scalar:
    """Multiply every value by one factor."""

    factor: float

    def apply(self, g: nx.Graph, values: np.ndarray, entity: str) -> np.ndarray:
        return np.asarray(values) * self.factor


@dataclass(frozen=True)
class Function:
    """Pass the whole value vector through a function."""

    func: Callable[[np.ndarray], Any]

    def apply(self, g: nx.Graph, values: np.ndarray, entity: str) -> np.ndarray:
        return np.asarray(self.func(np.asarray(values)))


@dataclass(frozen=True)
class Multiply:
    factor: float

    def __call__(self, values: np.ndarray) -> np.ndarray:
        return values * self.factor


@dataclass(frozen=True)
class Replace:
    value: Any

    def __call__(self, values: np.ndarray) -> np.ndarray:
        return np.full(len(values), self.value)


@dataclass(frozen=True)
class Apply:
    func: Callable[[np.ndarray], Any]

    def __call__(self, values: np.ndarray) -> np.ndarray:
        return np.asarray(self.func(values))


Effect = Union[Multiply, Replace, Apply]


@dataclass(frozen=True)
class GroupRule:
    """Apply ``effect`` to entities whose attribute ``attr`` equals ``value``."""

    attr: str
    value: Any
    effect: Effect


@dataclass(frozen=True)
class GroupRules:
    """Ordered group rules; later rules act on the output of earlier ones."""

    rules: Tuple[GroupRule, ...] = field(default_factory=tuple)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Mapping[Any, Any]]) -> "GroupRules":
        """
        Convert ``{attr: {value: effect}}`` into rules.

        Numbers become Multiply, callables become Apply, anything else
        becomes Replace.

        Example:
            GroupRules.from_mapping({"kind": {"Item": 2, "Category": 3}})
        """
        rules = []
        for attr, effects in mapping.items():
            if not isinstance(effects, Mapping):
                raise ConfigurationError(
                    f"Group rules for {attr!r} must map attribute values to effects",
                    component="LayoutScaler",
                )
            for value, effect in effects.items():
                rules.append(GroupRule(attr, value, _as_effect(effect)))
        return cls(tuple(rules))

    def apply(self, g: nx.Graph, values: np.ndarray, entity: str) -> np.ndarray:
        attrs = _entity_attrs(g, entity)
        values = np.asarray(values)
        for rule in self.rules:
            mask = np.array([a.get(rule.attr) == rule.value for a in attrs], dtype=bool)
            if not mask.any():
                continue
            updated = rule.effect(values[mask])
            if updated.dtype.kind not in "biuf" and values.dtype != object:
                values = values.astype(object)
            else:
                values = values.copy()
            values[mask] = updated
        return values


Scaling = Union[Scalar, Function, GroupRules]


def _as_effect(effect: Any) -> Effect:
    if isinstance(effect, (Multiply, Replace, Apply)):
        return effect
    if isinstance(effect, (int, float, np.number)) and not isinstance(effect, bool):
        return Multiply(float(effect))
    if callable(effect):
        return Apply(effect)
    return Replace(effect)


def as_scaling(value: Any) -> Optional[Scaling]:
    """
    Convert a user-facing scaling argument to a scaling object.

    Numbers become Scalar, callables become Function, mappings become
    GroupRules; None stays None.
    """
    if value is None or isinstance(value, (Scalar, Function, GroupRules)):
        return value
    if isinstance(value, (int, float, np.number)) and not isinstance(value, bool):
        return Scalar(float(value))
    if isinstance(value, Mapping):
        return GroupRules.from_mapping(value)
    if callable(value):
        return Function(value)
    raise ConfigurationError(
        f"Unsupported scaling parameter of type {type(value).__name__}",
        component="LayoutScaler",
    )


# ============================================================================
# LAYOUT SCALING
# ============================================================================

@dataclass
class ScaledParams:
    """Drawing parameters after scaling to the axis ranges."""

    xlim: Tuple[float, float]
    ylim: Tuple[float, float]
    node_size: np.ndarray
    node_size2: np.ndarray
    label_dist: np.ndarray
    label_cex: np.ndarray
    edge_width: np.ndarray


def layout_to_array(g: nx.Graph, pos: Mapping[Any, Sequence[float]]) -> np.ndarray:
    """
    Convert a networkx position dict into an (N x 2) array in node order.

    Args:
        g: Graph whose node order defines the rows
        pos: Mapping of node -> (x, y), e.g. from nx.spring_layout()

    Returns:
        Array of coordinates
    """
    missing = [node for node in g if node not in pos]
    if missing:
        raise ConfigurationError(
            f"Layout has no coordinates for {len(missing)} nodes, e.g. {missing[:3]}",
            component="LayoutScaler",
        )
    if g.number_of_nodes() == 0:
        return np.zeros((0, 2))
    return np.array([[float(pos[node][0]), float(pos[node][1])] for node in g])


def resolve_axis_range(
    requested: Sequence[float],
    coords: np.ndarray,
    expand: float = 0.03,
) -> Tuple[Tuple[float, float], bool]:
    """
    Pick the axis range for one layout dimension.

    The requested range is used as-is when it encloses every coordinate;
    otherwise the range snaps to the coordinates and expands by ``expand``
    times the span on each side.

    Args:
        requested: (min, max) requested range
        coords: Layout coordinates on this axis
        expand: Fractional expansion of a snapped range

    Returns:
        Tuple of ((min, max), used_as_is)
    """
    low, high = float(min(requested)), float(max(requested))
    coords = np.asarray(coords, dtype=float)
    if coords.size == 0 or (low <= coords.min() and high >= coords.max()):
        return (low, high), True
    low, high = float(coords.min()), float(coords.max())
    span = high - low
    return (low - span * expand, high + span * expand), False


def _attr_values(g: nx.Graph, entity: str, attr: str, default: float, fallback: str = None) -> np.ndarray:
    values = []
    for attrs in _entity_attrs(g, entity):
        value = attrs.get(attr)
        if value is None and fallback is not None:
            value = attrs.get(fallback)
        values.append(default if value is None else value)
    return np.asarray(values, dtype=float)


def _apply(g: nx.Graph, values: np.ndarray, entity: str, *scalings: Any) -> np.ndarray:
    for scaling in scalings:
        scaling = as_scaling(scaling)
        if scaling is not None:
            values = scaling.apply(g, values, entity)
    return values


def scale_graph_params(
    g: nx.Graph,
    layout: Union[np.ndarray, Mapping[Any, Sequence[float]]],
    xlim: Sequence[float] = (-1, 1),
    ylim: Sequence[float] = (-1, 1),
    expand: float = 0.03,
    node_factor: Any = 1,
    node_factor_l: Any = None,
    edge_factor: Any = 1,
    edge_factor_l: Any = None,
    label_factor: Any = 1,
    label_factor_l: Any = None,
    label_dist_factor: Any = 1,
    label_dist_factor_l: Any = None,
) -> ScaledParams:
    """
    Scale node and edge drawing parameters to a layout.

    Each factor is applied first, then its ``*_l`` group rules, then node
    sizes are multiplied by half the x span and label distances by a quarter
    of the x span.

    Args:
        g: Graph with optional 'size', 'size2', 'label_dist', 'label_cex'
            node attributes and 'width' edge attributes
        layout: (N x 2) coordinates in node order, or a position dict
        xlim: Requested x range
        ylim: Requested y range
        expand: Fractional expansion when a range snaps to the layout
        node_factor: Scaling for node size and size2
        node_factor_l: Group rules for node size and size2
        edge_factor: Scaling for edge width
        edge_factor_l: Group rules for edge width
        label_factor: Scaling for label size
        label_factor_l: Group rules for label size
        label_dist_factor: Scaling for label distance
        label_dist_factor_l: Group rules for label distance

    Returns:
        ScaledParams
    """
    if isinstance(layout, Mapping):
        layout = layout_to_array(g, layout)
    layout = np.asarray(layout, dtype=float)
    if layout.shape != (g.number_of_nodes(), 2):
        raise ConfigurationError(
            f"Layout shape {layout.shape} does not match {g.number_of_nodes()} nodes",
            component="LayoutScaler",
        )

    size = _attr_values(g, NODE, "size", DEFAULT_NODE_SIZE)
    size2 = _attr_values(g, NODE, "size2", DEFAULT_NODE_SIZE, fallback="size")
    label_dist = _attr_values(g, NODE, "label_dist", DEFAULT_LABEL_DIST)
    label_cex = _attr_values(g, NODE, "label_cex", DEFAULT_LABEL_CEX)
    width = _attr_values(g, EDGE, "width", DEFAULT_EDGE_WIDTH)

    size = _apply(g, size, NODE, node_factor, node_factor_l)
    size2 = _apply(g, size2, NODE, node_factor, node_factor_l)
    label_cex = _apply(g, label_cex, NODE, label_factor, label_factor_l)
    label_dist = _apply(g, label_dist, NODE, label_dist_factor, label_dist_factor_l)
    width = _apply(g, width, EDGE, edge_factor, edge_factor_l)

    xlim, x_asis = resolve_axis_range(xlim, layout[:, 0], expand)
    ylim, y_asis = resolve_axis_range(ylim, layout[:, 1], expand)

    # Node sizes follow the x range before expansion
    x_span = xlim[1] - xlim[0]
    if not x_asis:
        x_span = x_span / (1 + 2 * expand)
    size = size * x_span / SIZE_DIVISOR
    size2 = size2 * x_span / SIZE_DIVISOR
    label_dist = label_dist * x_span / LABEL_DIST_DIVISOR

    logger.debug(
        "Scaled layout: xlim=%s (as-is %s), ylim=%s (as-is %s)",
        xlim, x_asis, ylim, y_asis,
    )
    return ScaledParams(
        xlim=xlim,
        ylim=ylim,
        node_size=size,
        node_size2=size2,
        label_dist=label_dist,
        label_cex=label_cex,
        edge_width=width,
    )
