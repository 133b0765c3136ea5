"""
Configuration module for multienrich.

Handles:
- Column-name bindings for enrichment tables
- YAML config loading
- Thresholds and visual constants (colors, blank detection, glyph sizes)
"""

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


# ============================================================================
# COLUMN BINDINGS
# ============================================================================

@dataclass(frozen=True)
class ColumnBindings:
    """Column names used to read each enrichment table.

    Every field names a column in the input tables. ``gene_delim`` is a
    regular expression used to split the gene column into items.
    """

    key: str = "itemsetID"
    name: str = "Name"
    description: str = "Description"
    pvalue: str = "P-value"
    genes: str = "geneNames"
    gene_hits: str = "geneHits"
    path_genes: str = "pathGenes"
    gene_ratio: str = "GeneRatio"
    gene_delim: str = r"[,/ ]+"

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, str]] = None) -> "ColumnBindings":
        """Build bindings from a plain mapping, rejecting unknown names."""
        values = dict(values or {})
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown column binding(s): {sorted(unknown)}. "
                f"Known bindings: {sorted(known)}",
                component="ColumnBindings",
            )
        return replace(cls(), **values)

    def as_dict(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


DEFAULT_BINDINGS = ColumnBindings()


# ============================================================================
# YAML CONFIG LOADING
# ============================================================================

def load_yaml_config(config_path: Union[str, Path]) -> dict:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Configuration dictionary (empty when the file is empty)
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError(
            f"Config file not found: {config_path}", component="config"
        )

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Config file must contain a mapping at top level: {config_path}",
            component="config",
        )
    logger.info("Loaded configuration from %s", config_path)
    return config


# Keyword arguments of multi_enrich_map() that may be set from YAML.
PIPELINE_SETTINGS: Tuple[str, ...] = (
    "nrow",
    "ncol",
    "byrow",
    "overlap_threshold",
    "cutoff_row_min_p",
    "enrich_baseline",
    "enrich_lens",
    "enrich_num_limit",
    "n_em",
    "top_enrich_n",
    "top_enrich_sources",
    "top_enrich_curate_from",
    "top_enrich_curate_to",
    "top_enrich_source_subset",
    "top_enrich_description_grep",
    "top_enrich_name_grep",
    "description_curate_from",
    "description_curate_to",
)


def load_pipeline_settings(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read pipeline keyword arguments from a YAML file.

    The file may hold a ``columns`` mapping (turned into ``bindings``) and
    any of the names in ``PIPELINE_SETTINGS``.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Dictionary of keyword arguments for ``multi_enrich_map()``
    """
    config = load_yaml_config(config_path)
    settings: Dict[str, Any] = {}

    columns = config.pop("columns", None)
    if columns is not None:
        settings["bindings"] = ColumnBindings.from_mapping(columns)

    unknown = set(config) - set(PIPELINE_SETTINGS)
    if unknown:
        raise ConfigurationError(
            f"Unknown pipeline setting(s) in {config_path}: {sorted(unknown)}",
            component="config",
        )
    settings.update(config)
    return settings


# ============================================================================
# FILTER THRESHOLDS
# ============================================================================

CUTOFF_ROW_MIN_P: float = 0.05  # Keep categories significant in at least one source
OVERLAP_THRESHOLD: float = 0.1  # Minimum Jaccard overlap to keep an edge
MAX_ENRICH_MAP_NODES: int = 500  # Top categories used for the similarity network
PVALUE_FLOOR: float = 1e-200  # Lowest p-value kept during merge


# ============================================================================
# VISUAL ENCODING
# ============================================================================

BLANK_COLOR: str = "#FFFFFF"

# Category p-value colors: -log10(P) ramp per source
ENRICH_BASELINE: float = 1.5
ENRICH_LENS: float = 0
ENRICH_NUM_LIMIT: float = 4

# Gene hit colors: 0/1 incidence ramp per source
GENE_BASELINE: float = 0
GENE_NUM_LIMIT: float = 2

# Similarity network node colors
SIGNIFICANCE_COLORMAP: str = "Reds"
SIGNIFICANCE_BASELINE: float = 0
SIGNIFICANCE_NUM_LIMIT: float = 4
SIGNIFICANCE_LENS: float = 2

# Default palette for sources without an assigned color
SOURCE_COLORMAP: str = "rainbow"

# Node and edge geometry
ENRICH_MAP_SIZE_FACTOR: float = 10  # size = log10(gene count) * factor
EDGE_WIDTH_FACTOR: float = 20  # width = sqrt(overlap * factor)
CNET_CATEGORY_SIZE_FACTOR: float = 3  # size = sqrt(gene count) * factor
CNET_ITEM_SIZE: float = 5
CATEGORY_COLOR: str = "#E41A1C"
ITEM_COLOR: str = "#E5C494"


# ============================================================================
# BLANK COLOR DETECTION
# ============================================================================

BLANK_COLORS: Tuple[str, ...] = ("#FFFFFF", "#FFFFFFFF", "transparent")
BLANK_C_MAX: float = 7  # HCL chroma, 0-100
BLANK_L_MIN: float = 95  # HCL luminance, 0-100
BLANK_ALPHA_MAX: float = 0.1


# ============================================================================
# NODE KINDS
# ============================================================================

CATEGORY_KIND: str = "Category"
ITEM_KIND: str = "Item"
