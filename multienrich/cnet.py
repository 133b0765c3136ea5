"""
Concept network module for multienrich.

Handles:
- Bipartite Category <-> Item graph from the merged enrichment table
- Subsetting by category/item names and by node degree
"""

import logging
from typing import Callable, Iterable, Optional

import networkx as nx
import numpy as np
import pandas as pd

from .config import (
    CATEGORY_COLOR,
    CATEGORY_KIND,
    CNET_CATEGORY_SIZE_FACTOR,
    CNET_ITEM_SIZE,
    DEFAULT_BINDINGS,
    ITEM_COLOR,
    ITEM_KIND,
    ColumnBindings,
)
from .data_loader import fix_set_label, split_genes
from .errors import ConfigurationError, DataShapeError
from .merge import ALL_GENE_HITS

logger = logging.getLogger(__name__)


def cnet_graph(
    unified: pd.DataFrame,
    bindings: ColumnBindings = DEFAULT_BINDINGS,
    count_column: Optional[str] = None,
    label_func: Callable[[str], str] = fix_set_label,
) -> nx.Graph:
    """
    Build the concept network.

    Category nodes come first, in table order, followed by Item nodes in
    first-seen order. Each Category is connected to every Item in its
    gene list.

    Args:
        unified: Merged enrichment table
        bindings: Column bindings
        count_column: Gene count column driving category size
            (default: bindings.gene_hits, then allGeneHits)
        label_func: Converts category names to display labels

    Returns:
        Undirected bipartite graph with 'kind' node attributes
    """
    if len(unified) == 0:
        raise DataShapeError("no enriched categories", component="ConceptGraphBuilder")
    if count_column is None:
        count_column = bindings.gene_hits if bindings.gene_hits in unified.columns else ALL_GENE_HITS

    counts = pd.to_numeric(unified[count_column], errors="coerce").fillna(0).to_numpy(dtype=float)
    sizes = np.sqrt(counts) * CNET_CATEGORY_SIZE_FACTOR

    g = nx.Graph()
    categories = unified[bindings.name].tolist()
    for i, (_, row) in enumerate(unified.iterrows()):
        g.add_node(categories[i])
        g.nodes[categories[i]].update(row.to_dict())
        g.nodes[categories[i]].update(
            kind=CATEGORY_KIND,
            name=categories[i],
            label=label_func(categories[i]),
            size=float(sizes[i]),
            color=CATEGORY_COLOR,
        )

    memberships = [
        split_genes(value, bindings.gene_delim) for value in unified[bindings.genes]
    ]
    items = list(dict.fromkeys(item for members in memberships for item in members))
    collisions = sorted(set(items) & set(categories), key=str)
    if collisions:
        raise ConfigurationError(
            f"Item names also used as category names: {collisions[:5]}",
            component="ConceptGraphBuilder",
        )

    for item in items:
        g.add_node(item, kind=ITEM_KIND, name=item, label=item, size=CNET_ITEM_SIZE, color=ITEM_COLOR)

    for category, members in zip(categories, memberships):
        for item in members:
            g.add_edge(category, item, weight=1.0, width=1.0)

    logger.info(
        "  Cnet graph: %d categories, %d items, %d edges",
        len(categories), len(items), g.number_of_edges(),
    )
    return g


def _upper(values: Iterable) -> set:
    if isinstance(values, str):
        values = [values]
    return {str(value).upper() for value in values}


def _induced(g: nx.Graph, keep: Iterable) -> nx.Graph:
    """Induced subgraph keeping the node and edge order of ``g``."""
    keep = set(keep)
    h = g.__class__()
    h.graph.update(g.graph)
    h.add_nodes_from((n, dict(d)) for n, d in g.nodes(data=True) if n in keep)
    h.add_edges_from(
        (u, v, dict(d)) for u, v, d in g.edges(data=True) if u in keep and v in keep
    )
    return h


def _drop_low_degree(g: nx.Graph, kind: str, min_degree: Optional[int]) -> nx.Graph:
    if not min_degree:
        return g
    drop = {
        node for node, degree in g.degree()
        if g.nodes[node].get("kind") == kind and degree < min_degree
    }
    if not drop:
        return g
    logger.info("  Dropping %d %s nodes with degree below %d", len(drop), kind, min_degree)
    return _induced(g, (node for node in g if node not in drop))


def subset_cnet_graph(
    g: nx.Graph,
    include_sets: Optional[Iterable[str]] = None,
    include_items: Optional[Iterable[str]] = None,
    remove_singlets: bool = True,
    min_set_degree: Optional[int] = 1,
    min_item_degree: Optional[int] = 1,
) -> nx.Graph:
    """
    Subset a concept network.

    Steps, each on the result of the previous one with degrees recomputed:
    1. include_sets: keep matching Category nodes and their neighbors
    2. include_items: keep all Category nodes and matching Item nodes
    3. drop Category nodes with degree below min_set_degree
    4. drop Item nodes with degree below min_item_degree
    5. remove_singlets: drop nodes with no edges

    Names match node 'name' or 'label', case-insensitive.

    Args:
        g: Concept network
        include_sets: Category names or labels to keep
        include_items: Item names or labels to keep
        remove_singlets: Drop nodes left without edges
        min_set_degree: Minimum degree of Category nodes
        min_item_degree: Minimum degree of Item nodes

    Returns:
        New graph; the input is not modified
    """
    result = g.copy()

    def matches(node, wanted: set) -> bool:
        attrs = result.nodes[node]
        return (
            str(attrs.get("name", node)).upper() in wanted
            or str(attrs.get("label", "")).upper() in wanted
        )

    if include_sets:
        wanted = _upper(include_sets)
        selected = [
            node for node in result
            if result.nodes[node].get("kind") == CATEGORY_KIND and matches(node, wanted)
        ]
        keep = set(selected)
        for node in selected:
            keep.update(result.neighbors(node))
        logger.info(
            "  Filtered %d categories down to %d using include_sets",
            sum(1 for n in result if result.nodes[n].get("kind") == CATEGORY_KIND),
            len(selected),
        )
        result = _induced(result, (node for node in result if node in keep))

    if include_items:
        wanted = _upper(include_items)
        keep = {
            node for node in result
            if result.nodes[node].get("kind") == CATEGORY_KIND
            or (result.nodes[node].get("kind") == ITEM_KIND and matches(node, wanted))
        }
        result = _induced(result, (node for node in result if node in keep))

    result = _drop_low_degree(result, CATEGORY_KIND, min_set_degree)
    result = _drop_low_degree(result, ITEM_KIND, min_item_degree)

    if remove_singlets:
        singlets = {node for node, degree in result.degree() if degree == 0}
        if singlets:
            logger.info("  Removing %d nodes with no connections", len(singlets))
            result = _induced(result, (node for node in result if node not in singlets))

    return result
