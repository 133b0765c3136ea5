"""
Main orchestration module for multienrich.

Coordinates the pipeline:
1. Validate sources, colors and glyph grid shape
2. Prepare each enrichment table
3. Build gene hit lists (optionally keep top categories per source)
4. Gene and category incidence matrices with colors
5. Filter categories by best p-value
6. Merge tables into one unified table
7. Similarity and concept networks with multi-source glyphs
"""

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import networkx as nx
import pandas as pd

from .cnet import cnet_graph
from .colors import matrix_to_heat_colors, neg_log10, rainbow_colors
from .config import (
    CUTOFF_ROW_MIN_P,
    DEFAULT_BINDINGS,
    ENRICH_BASELINE,
    ENRICH_LENS,
    ENRICH_NUM_LIMIT,
    GENE_BASELINE,
    GENE_NUM_LIMIT,
    MAX_ENRICH_MAP_NODES,
    OVERLAP_THRESHOLD,
    PVALUE_FLOOR,
    ColumnBindings,
)
from .data_loader import (
    curate_descriptions,
    gene_hit_list,
    natural_sort_key,
    prepare_enrichment_table,
    split_genes,
    top_enrich_by_source,
)
from .errors import ConfigurationError, DataShapeError
from .glyphs import graph_to_pie_graph, rectify_pie_graph, remove_graph_blanks
from .incidence import named_values_to_incidence, row_reduce, sets_to_incidence, union_keys
from .merge import CategoryGenes, count_value, merge_enrichment_tables
from .models import EnrichmentSource, GridShape
from .similarity import enrichment_map

logger = logging.getLogger(__name__)


@dataclass
class MultiEnrichResult:
    """Everything produced by one multi_enrich_map() run.

    Graph fields are None when the corresponding step raised a
    DataShapeError; the message is kept in ``graph_errors``.
    """

    colors: Dict[str, str]
    labels: Dict[str, str]
    grid: GridShape
    bindings: ColumnBindings
    gene_count_column: str
    gene_hit_list: Dict[str, List[str]]
    gene_im: pd.DataFrame
    gene_im_colors: pd.DataFrame
    enrich_im: pd.DataFrame
    enrich_im_colors: pd.DataFrame
    enrich_im_gene_count: pd.DataFrame
    tables: Dict[str, pd.DataFrame]
    unified: Optional[pd.DataFrame] = None
    member_im: Optional[pd.DataFrame] = None
    enrichment_map: Optional[nx.Graph] = None
    enrichment_map_pie: Optional[nx.Graph] = None
    enrichment_map_rect: Optional[nx.Graph] = None
    enrichment_map_collapsed: Optional[nx.Graph] = None
    cnet: Optional[nx.Graph] = None
    cnet_pie: Optional[nx.Graph] = None
    cnet_rect: Optional[nx.Graph] = None
    cnet_collapsed: Optional[nx.Graph] = None
    graph_errors: Dict[str, str] = field(default_factory=dict)

    @property
    def column_names(self) -> Dict[str, str]:
        return self.bindings.as_dict()


def _per_source(value: Any, names: List[str], what: str) -> Dict[str, Any]:
    """Spread a mapping or a recycled sequence over source names."""
    if value is None:
        return {}
    if isinstance(value, Mapping):
        unknown = [key for key in value if key not in names]
        if unknown:
            raise ConfigurationError(
                f"{what} given for unknown source(s): {unknown}",
                component="PipelineOrchestrator",
            )
        return dict(value)
    if isinstance(value, str):
        value = [value]
    value = list(value)
    if not value:
        return {}
    return {name: value[i % len(value)] for i, name in enumerate(names)}


def sources_from_tables(
    tables: Mapping[str, pd.DataFrame],
    colors: Optional[Union[Mapping[str, str], Sequence[str]]] = None,
    labels: Optional[Mapping[str, str]] = None,
    universes: Optional[Mapping[str, Sequence[str]]] = None,
) -> List[EnrichmentSource]:
    """
    Wrap an ordered mapping of tables as EnrichmentSource objects.

    Args:
        tables: Ordered mapping of source name -> enrichment table
        colors: Colors by source name, or a sequence recycled over sources
        labels: Display labels by source name
        universes: Tested items by source name

    Returns:
        List of EnrichmentSource in mapping order
    """
    names = list(tables)
    colors = _per_source(colors, names, "Colors")
    labels = _per_source(labels, names, "Labels")
    universes = dict(universes or {})
    return [
        EnrichmentSource(
            name=name,
            table=tables[name],
            color=colors.get(name),
            label=labels.get(name),
            universe=list(universes[name]) if name in universes else None,
        )
        for name in names
    ]


def resolve_gene_count_column(columns: Sequence[str], bindings: ColumnBindings) -> str:
    """
    Find the gene count column of an enrichment table.

    Patterns are tried in order, case-insensitive: the gene hits column
    exactly, any column containing it, then '^geneHits', 'geneCount' and
    'GeneRatio'.
    """
    patterns = [
        f"^{re.escape(bindings.gene_hits)}$",
        re.escape(bindings.gene_hits),
        "^geneHits",
        "geneCount",
        re.escape(bindings.gene_ratio),
    ]
    for pattern in patterns:
        for column in columns:
            if re.search(pattern, str(column), flags=re.IGNORECASE):
                return column
    raise ConfigurationError(
        f"No gene count column found; expected {bindings.gene_hits!r} "
        f"or {bindings.gene_ratio!r}",
        component="PipelineOrchestrator",
    )


def _validate_sources(sources: Sequence[EnrichmentSource]) -> None:
    if len(sources) == 0:
        raise ConfigurationError("At least one enrichment source is required", component="PipelineOrchestrator")
    names = [source.name for source in sources]
    duplicated = sorted({name for name in names if names.count(name) > 1})
    if duplicated:
        raise ConfigurationError(
            f"Duplicate source names: {duplicated}", component="PipelineOrchestrator"
        )


def _graph_step(result: MultiEnrichResult, name: str, build: Callable[[], None]) -> None:
    try:
        build()
    except DataShapeError as e:
        logger.warning("Skipping %s: %s", name, e)
        result.graph_errors[name] = str(e)


def multi_enrich_map(
    sources: Union[Sequence[EnrichmentSource], Mapping[str, pd.DataFrame]],
    bindings: ColumnBindings = DEFAULT_BINDINGS,
    nrow: Optional[int] = None,
    ncol: Optional[int] = None,
    byrow: bool = False,
    overlap_threshold: float = OVERLAP_THRESHOLD,
    cutoff_row_min_p: float = CUTOFF_ROW_MIN_P,
    enrich_baseline: float = ENRICH_BASELINE,
    enrich_lens: float = ENRICH_LENS,
    enrich_num_limit: float = ENRICH_NUM_LIMIT,
    n_em: int = MAX_ENRICH_MAP_NODES,
    top_enrich_n: Optional[int] = None,
    top_enrich_sources: Sequence[str] = ("Category", "Source"),
    top_enrich_curate_from: Sequence[str] = ("CP:.*",),
    top_enrich_curate_to: Sequence[str] = ("CP",),
    top_enrich_source_subset: Optional[Sequence[str]] = None,
    top_enrich_description_grep: Optional[str] = None,
    top_enrich_name_grep: Optional[str] = None,
    description_curate_from: Sequence[str] = ("^Genes annotated by the GO term ",),
    description_curate_to: Sequence[str] = ("",),
    category_genes: Optional[CategoryGenes] = None,
) -> MultiEnrichResult:
    """
    Aggregate enrichment results from several sources.

    Args:
        sources: EnrichmentSource list, or an ordered mapping of source
            name -> enrichment table
        bindings: Column bindings shared by every table
        nrow: Glyph grid rows (default: resolved from ncol, else 1)
        ncol: Glyph grid columns (default: enough for every source)
        byrow: Fill glyph grids row by row
        overlap_threshold: Minimum Jaccard overlap in the similarity network
        cutoff_row_min_p: Keep categories with p-value <= cutoff in at
            least one source
        enrich_baseline: -log10(p) at or below which category colors are blank
        enrich_lens: Color ramp warp for category colors
        enrich_num_limit: -log10(p) at which category colors saturate
        n_em: Most significant categories used in the similarity network
        top_enrich_n: Keep only the top N categories per category source
            in each table (default: keep all)
        top_enrich_sources: Columns that define the category source
        top_enrich_curate_from: Regex patterns applied to source values
        top_enrich_curate_to: Replacements for top_enrich_curate_from
        top_enrich_source_subset: Curated source values to keep
        top_enrich_description_grep: Regex the description must match
        top_enrich_name_grep: Regex the name must match
        description_curate_from: Regex patterns applied to descriptions
        description_curate_to: Replacements for description_curate_from
        category_genes: Optional mapping or function from category
            identifier to its full gene membership

    Returns:
        MultiEnrichResult
    """
    if isinstance(sources, Mapping):
        sources = sources_from_tables(sources)
    sources = list(sources)

    # 1. Validate sources and grid
    _validate_sources(sources)
    names = [source.name for source in sources]
    grid = GridShape.resolve(len(sources), nrow=nrow, ncol=ncol, byrow=byrow)
    logger.info("Multi-enrichment map for %d sources (grid %dx%d)", len(sources), grid.nrow, grid.ncol)

    default_colors = rainbow_colors(len(sources))
    colors = OrderedDict(
        (source.name, source.color or default_colors[i]) for i, source in enumerate(sources)
    )
    labels = OrderedDict((source.name, source.label) for source in sources)

    # 2. Prepare tables
    tables = OrderedDict(
        (source.name, prepare_enrichment_table(source.table, bindings, source.name))
        for source in sources
    )
    gene_count_column = resolve_gene_count_column(list(tables[names[0]].columns), bindings)
    logger.info("  Gene count column: %s", gene_count_column)

    # 3. Gene hit lists, before any category filtering
    hits = gene_hit_list(tables, bindings)
    for source in sources:
        if source.universe is not None:
            hits[source.name] = sorted(dict.fromkeys(source.universe), key=natural_sort_key)

    if top_enrich_n:
        logger.info("Keeping top %d categories per source...", top_enrich_n)
        tables = OrderedDict(
            (name, top_enrich_by_source(
                df,
                n=top_enrich_n,
                source_columns=top_enrich_sources,
                pvalue_column=bindings.pvalue,
                curate_from=top_enrich_curate_from,
                curate_to=top_enrich_curate_to,
                source_subset=top_enrich_source_subset,
                description_grep=top_enrich_description_grep,
                name_grep=top_enrich_name_grep,
                description_column=bindings.description,
                name_column=bindings.name,
            ))
            for name, df in tables.items()
        )

    # 4. Incidence matrices and colors
    logger.info("Building incidence matrices...")
    gene_im = sets_to_incidence(hits)
    gene_im_colors = matrix_to_heat_colors(
        gene_im, colors, baseline=GENE_BASELINE, limit=GENE_NUM_LIMIT
    )

    category_names = union_keys(df[bindings.name].tolist() for df in tables.values())
    enrich_im = named_values_to_incidence(
        OrderedDict(
            (name, pd.Series(
                pd.to_numeric(df[bindings.pvalue], errors="coerce").clip(lower=PVALUE_FLOOR).to_numpy(),
                index=df[bindings.name].tolist(),
            ))
            for name, df in tables.items()
        ),
        fill=1,
    ).reindex(index=category_names, columns=names, fill_value=1.0)
    enrich_im_gene_count = named_values_to_incidence(
        OrderedDict(
            (name, pd.Series(
                df[gene_count_column].map(count_value).to_numpy(),
                index=df[bindings.name].tolist(),
            ))
            for name, df in tables.items()
        ),
        fill=0,
    ).reindex(index=category_names, columns=names, fill_value=0.0)
    enrich_im_colors = matrix_to_heat_colors(
        enrich_im,
        colors,
        transform=neg_log10,
        baseline=enrich_baseline,
        limit=enrich_num_limit,
        lens=enrich_lens,
    )

    # 5. Keep categories significant in at least one source
    keep = enrich_im.index[(row_reduce(enrich_im, "min") <= cutoff_row_min_p).to_numpy()].tolist()
    logger.info(
        "  Categories with P-value <= %g in any source: %d of %d",
        cutoff_row_min_p, len(keep), len(enrich_im),
    )
    if len(keep) < len(enrich_im):
        tables = OrderedDict(
            (name, df[df[bindings.name].isin(keep)]) for name, df in tables.items()
        )
        enrich_im = enrich_im.loc[keep]
        enrich_im_colors = enrich_im_colors.loc[keep]
        enrich_im_gene_count = enrich_im_gene_count.loc[keep]

    result = MultiEnrichResult(
        colors=dict(colors),
        labels=dict(labels),
        grid=grid,
        bindings=bindings,
        gene_count_column=gene_count_column,
        gene_hit_list=hits,
        gene_im=gene_im,
        gene_im_colors=gene_im_colors,
        enrich_im=enrich_im,
        enrich_im_colors=enrich_im_colors,
        enrich_im_gene_count=enrich_im_gene_count,
        tables=dict(tables),
    )

    if not keep:
        error = DataShapeError(
            f"no categories with {bindings.pvalue} <= {cutoff_row_min_p}",
            component="PipelineOrchestrator",
        )
        for name in ("enrichment_map", "cnet"):
            logger.warning("Skipping %s: %s", name, error)
            result.graph_errors[name] = str(error)
        return result

    # 6. Merge
    unified = merge_enrichment_tables(
        tables,
        bindings,
        gene_count_column=gene_count_column,
        category_genes=category_genes,
    )
    if bindings.description in unified.columns:
        unified[f"{bindings.description}Full"] = unified[bindings.description]
        unified[bindings.description] = curate_descriptions(
            unified[bindings.description],
            curate_from=description_curate_from,
            curate_to=description_curate_to,
        )
    result.unified = unified
    result.member_im = sets_to_incidence(OrderedDict(
        (name, split_genes(genes, bindings.gene_delim))
        for name, genes in zip(unified[bindings.name], unified[bindings.genes])
    ))

    # 7. Networks
    def build_enrichment_maps():
        logger.info("Building similarity network...")
        result.enrichment_map = enrichment_map(
            unified, bindings, n=n_em, overlap_threshold=overlap_threshold
        )
        result.enrichment_map_pie = graph_to_pie_graph(result.enrichment_map.copy(), enrich_im_colors)
        result.enrichment_map_rect = rectify_pie_graph(
            result.enrichment_map_pie.copy(), grid.nrow, grid.ncol, grid.byrow
        )
        result.enrichment_map_collapsed = remove_graph_blanks(result.enrichment_map_rect.copy())

    def build_cnets():
        logger.info("Building concept network...")
        result.cnet = cnet_graph(unified, bindings)
        pie = graph_to_pie_graph(result.cnet.copy(), enrich_im_colors)
        result.cnet_pie = graph_to_pie_graph(pie, gene_im_colors)
        result.cnet_rect = rectify_pie_graph(
            result.cnet_pie.copy(), grid.nrow, grid.ncol, grid.byrow
        )
        result.cnet_collapsed = remove_graph_blanks(result.cnet_rect.copy())

    _graph_step(result, "enrichment_map", build_enrichment_maps)
    _graph_step(result, "cnet", build_cnets)

    logger.info(
        "Done: %d unified categories, %d genes, %d graph errors",
        len(unified), len(gene_im), len(result.graph_errors),
    )
    return result
