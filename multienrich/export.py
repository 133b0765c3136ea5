"""
Graph export module for multienrich.

Handles:
- Converting glyph-encoded graphs into JSON-ready node and edge records
- Writing the records to a JSON file for an external renderer
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import networkx as nx
import numpy as np
import pandas as pd

from .layout import layout_to_array
from .models import Glyph

logger = logging.getLogger(__name__)


def _json_value(value: Any) -> Any:
    """Plain Python value for JSON; NaN and infinities become None."""
    if isinstance(value, Glyph):
        return glyph_to_record(value)
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (np.floating, float)):
        return None if not np.isfinite(value) else round(float(value), 6)
    if isinstance(value, (np.bool_,)):
        return bool(value)
    if isinstance(value, (list, tuple, np.ndarray)):
        return [_json_value(v) for v in value]
    if value is None or isinstance(value, (str, int, bool)):
        return value
    if pd.isna(value):
        return None
    return str(value)


def glyph_to_record(glyph: Glyph) -> Dict[str, Any]:
    return {
        'sources': list(glyph.names),
        'values': [float(v) for v in glyph.values],
        'colors': list(glyph.colors),
        'nrow': glyph.nrow,
        'ncol': glyph.ncol,
        'byrow': glyph.byrow,
    }


def graph_to_records(
    g: nx.Graph,
    layout: Optional[Union[np.ndarray, Mapping[Any, Sequence[float]]]] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Prepare graph data for JSON export to a renderer.

    Args:
        g: Enrichment map or concept network
        layout: Optional (N x 2) coordinates in node order, or position dict

    Returns:
        Dict with 'nodes' and 'edges' lists of plain dictionaries
    """
    coords = None
    if layout is not None:
        coords = layout_to_array(g, layout) if isinstance(layout, Mapping) else np.asarray(layout, dtype=float)

    nodes = []
    for i, (node, attrs) in enumerate(g.nodes(data=True)):
        record = {'id': _json_value(node)}
        for key, value in attrs.items():
            record[str(key)] = _json_value(value)
        if coords is not None:
            record['x'] = round(float(coords[i, 0]), 4)
            record['y'] = round(float(coords[i, 1]), 4)
        nodes.append(record)

    edges = []
    for source, target, attrs in g.edges(data=True):
        record = {'source': _json_value(source), 'target': _json_value(target)}
        for key, value in attrs.items():
            record[str(key)] = _json_value(value)
        edges.append(record)

    return {'nodes': nodes, 'edges': edges}


def write_graph_json(
    g: nx.Graph,
    output_path: Union[str, Path],
    layout: Optional[Union[np.ndarray, Mapping[Any, Sequence[float]]]] = None,
) -> Path:
    """Write graph_to_records() output to a JSON file."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    records = graph_to_records(g, layout)
    with open(output_path, 'w') as f:
        json.dump(records, f, indent=2)
    logger.info("Saved graph with %d nodes to %s", len(records['nodes']), output_path)
    return output_path
