"""
multienrich - Multi-Source Gene Set Enrichment Aggregation.

A modular package for combining gene set enrichment results from several
sources (experiments, contrasts, gene lists) into one view.

Features:
- Per-source incidence matrices of genes and categories with heat colors
- Merged enrichment table with best p-value and counts per category
- Category similarity network (Jaccard overlap of category genes)
- Concept network linking categories to their genes
- Multi-source glyphs: pie or colored-rectangle segments, one per source
- Blank segment removal and degree-based network subsetting
- Layout-aware scaling of node sizes, labels and edge widths

Usage:
    from multienrich import multi_enrich_map
    result = multi_enrich_map({"up": up_df, "down": down_df}, ncol=2)
    result.cnet_collapsed
"""

from .cnet import cnet_graph, subset_cnet_graph
from .colors import (
    color_to_hcl,
    is_color_blank,
    matrix_to_heat_colors,
    rainbow_colors,
    values_to_colors,
)
from .config import (
    DEFAULT_BINDINGS,
    ColumnBindings,
    load_pipeline_settings,
    load_yaml_config,
)
from .data_loader import (
    as_enrichment_frame,
    curate_descriptions,
    fix_set_label,
    gene_hit_list,
    load_enrichment_table,
    natural_sort_key,
    prepare_enrichment_table,
    top_enrich_by_source,
)
from .errors import ConfigurationError, DataShapeError, MultiEnrichError
from .export import graph_to_records, write_graph_json
from .glyphs import collapse_glyph, graph_to_pie_graph, rectify_pie_graph, remove_graph_blanks
from .incidence import named_values_to_incidence, row_reduce, sets_to_incidence
from .layout import (
    Apply,
    Function,
    GroupRule,
    GroupRules,
    Multiply,
    Replace,
    Scalar,
    layout_to_array,
    scale_graph_params,
)
from .merge import merge_enrichment_tables
from .models import EnrichmentSource, Glyph, GridShape
from .pipeline import MultiEnrichResult, multi_enrich_map, sources_from_tables
from .shapes import ShapeRegistry, build_default_shape_registry
from .similarity import compute_jaccard_matrix, enrichment_map

__version__ = "0.1.0"
__all__ = [
    # Main entry points
    "multi_enrich_map",
    "sources_from_tables",
    "MultiEnrichResult",
    # Models
    "EnrichmentSource",
    "Glyph",
    "GridShape",
    # Config
    "ColumnBindings",
    "DEFAULT_BINDINGS",
    "load_yaml_config",
    "load_pipeline_settings",
    # Errors
    "MultiEnrichError",
    "ConfigurationError",
    "DataShapeError",
    # Data loading
    "load_enrichment_table",
    "as_enrichment_frame",
    "prepare_enrichment_table",
    "gene_hit_list",
    "top_enrich_by_source",
    "fix_set_label",
    "curate_descriptions",
    "natural_sort_key",
    # Incidence and merge
    "named_values_to_incidence",
    "sets_to_incidence",
    "row_reduce",
    "merge_enrichment_tables",
    # Colors
    "values_to_colors",
    "matrix_to_heat_colors",
    "rainbow_colors",
    "color_to_hcl",
    "is_color_blank",
    # Networks
    "compute_jaccard_matrix",
    "enrichment_map",
    "cnet_graph",
    "subset_cnet_graph",
    # Glyphs
    "graph_to_pie_graph",
    "rectify_pie_graph",
    "collapse_glyph",
    "remove_graph_blanks",
    "ShapeRegistry",
    "build_default_shape_registry",
    # Layout
    "scale_graph_params",
    "layout_to_array",
    "Scalar",
    "Function",
    "GroupRule",
    "GroupRules",
    "Multiply",
    "Replace",
    "Apply",
    # Export
    "graph_to_records",
    "write_graph_json",
]
