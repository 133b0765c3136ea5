"""
Similarity network module for multienrich.

Handles:
- Jaccard similarity between category gene sets (sparse intersection counts)
- Category-similarity ("enrichment map") graph construction
- Edge pruning by overlap threshold, node size/color by significance
"""

import logging
from typing import Callable, List, Optional, Sequence, Set

import networkx as nx
import numpy as np
import pandas as pd
from scipy.sparse import csr_matrix

from .colors import values_to_colors
from .config import (
    CATEGORY_KIND,
    DEFAULT_BINDINGS,
    EDGE_WIDTH_FACTOR,
    ENRICH_MAP_SIZE_FACTOR,
    MAX_ENRICH_MAP_NODES,
    OVERLAP_THRESHOLD,
    SIGNIFICANCE_BASELINE,
    SIGNIFICANCE_COLORMAP,
    SIGNIFICANCE_LENS,
    SIGNIFICANCE_NUM_LIMIT,
    ColumnBindings,
)
from .data_loader import fix_set_label, split_genes
from .errors import DataShapeError
from .merge import ALL_GENE_HITS

logger = logging.getLogger(__name__)


def compute_jaccard_matrix(gene_sets: List[Set[str]]) -> np.ndarray:
    """
    Compute pairwise Jaccard similarity matrix for gene sets.

    Equivalent to 1 - binary distance between membership rows:
    Jaccard = |A intersection B| / |A union B|

    Args:
        gene_sets: List of gene sets (as Python sets)

    Returns:
        Similarity matrix (N x N), diagonal 1
    """
    n = len(gene_sets)
    logger.info("Computing Jaccard similarity matrix for %d categories...", n)

    # Build binary gene x category matrix
    all_genes = set()
    for gs in gene_sets:
        all_genes.update(gs)

    gene_to_idx = {g: i for i, g in enumerate(sorted(all_genes))}
    n_genes = len(gene_to_idx)
    logger.info("  Total unique genes: %d", n_genes)

    rows, cols, data = [], [], []
    for category_idx, gs in enumerate(gene_sets):
        for gene in gs:
            rows.append(gene_to_idx[gene])
            cols.append(category_idx)
            data.append(1)

    binary_matrix = csr_matrix((data, (rows, cols)), shape=(n_genes, n))

    intersection = (binary_matrix.T @ binary_matrix).toarray()

    # Union = |A| + |B| - |A intersection B|
    category_sizes = np.asarray(binary_matrix.sum(axis=0)).flatten()
    union = category_sizes[:, np.newaxis] + category_sizes[np.newaxis, :] - intersection
    union = np.maximum(union, 1)

    jaccard_sim = intersection / union
    np.fill_diagonal(jaccard_sim, 1.0)
    return jaccard_sim


def top_categories(unified: pd.DataFrame, n: int, pvalue_column: str) -> pd.DataFrame:
    """Top ``n`` rows by p-value; ties keep table order."""
    ranked = unified.sort_values(pvalue_column, kind="mergesort")
    return ranked.head(n)


def _node_label_column(unified: pd.DataFrame, candidates: Sequence[str]) -> str:
    for column in candidates:
        if column in unified.columns:
            return column
    raise DataShapeError(
        f"No node label column among {list(candidates)}",
        component="SimilarityGraphBuilder",
    )


def significance_colors(pvalues: Sequence[float]) -> List[str]:
    """Node colors from -log10 p-value on the significance ramp."""
    with np.errstate(divide="ignore"):
        scores = -np.log10(np.asarray(pvalues, dtype=float))
    return values_to_colors(
        scores,
        SIGNIFICANCE_COLORMAP,
        baseline=SIGNIFICANCE_BASELINE,
        limit=SIGNIFICANCE_NUM_LIMIT,
        lens=SIGNIFICANCE_LENS,
    )


def enrichment_map(
    unified: pd.DataFrame,
    bindings: ColumnBindings = DEFAULT_BINDINGS,
    n: int = MAX_ENRICH_MAP_NODES,
    overlap_threshold: float = OVERLAP_THRESHOLD,
    count_column: Optional[str] = None,
    node_label: Sequence[str] = (),
    label_func: Callable[[str], str] = fix_set_label,
) -> nx.Graph:
    """
    Build the category-similarity network.

    Args:
        unified: Merged enrichment table
        bindings: Column bindings
        n: Number of most significant categories used
        overlap_threshold: Edges with lower Jaccard overlap are dropped
        count_column: Gene count column driving node size
            (default: bindings.gene_hits, then allGeneHits)
        node_label: Columns tried in order for node names (default: name)
        label_func: Converts node names to display labels

    Returns:
        Undirected graph of Category nodes with 'overlap' edges
    """
    y = top_categories(unified, n, bindings.pvalue)
    if len(y) == 0:
        raise DataShapeError("no enriched categories", component="SimilarityGraphBuilder")

    name_column = _node_label_column(y, list(node_label) + [bindings.name])
    if count_column is None:
        count_column = bindings.gene_hits if bindings.gene_hits in y.columns else ALL_GENE_HITS

    names = y[name_column].tolist()
    counts = pd.to_numeric(y[count_column], errors="coerce").to_numpy(dtype=float)
    # Zero or missing counts draw at the smallest size
    counts = np.clip(np.nan_to_num(counts, nan=1.0), 1, None)
    sizes = np.log10(counts) * ENRICH_MAP_SIZE_FACTOR
    colors = significance_colors(y[bindings.pvalue])

    g = nx.Graph()
    for i, (_, row) in enumerate(y.iterrows()):
        attrs = row.to_dict()
        attrs.update(
            kind=CATEGORY_KIND,
            name=names[i],
            label=label_func(names[i]),
            size=float(sizes[i]),
            color=colors[i],
        )
        g.add_node(names[i])
        g.nodes[names[i]].update(attrs)

    if len(y) == 1:
        logger.info("  Single category, no similarity computed")
        return g

    gene_sets = [set(split_genes(value, bindings.gene_delim)) for value in y[bindings.genes]]
    similarity = compute_jaccard_matrix(gene_sets)

    n_nodes = len(names)
    n_kept = 0
    for i in range(n_nodes):
        for j in range(i + 1, n_nodes):
            overlap = float(similarity[i, j])
            if overlap <= 0 or overlap < overlap_threshold:
                continue
            g.add_edge(
                names[i],
                names[j],
                overlap=overlap,
                weight=overlap,
                width=float(np.sqrt(overlap * EDGE_WIDTH_FACTOR)),
            )
            n_kept += 1

    logger.info(
        "  Enrichment map: %d nodes, %d edges (overlap >= %g)",
        g.number_of_nodes(), n_kept, overlap_threshold,
    )
    return g
