"""
Data loading module for multienrich.

Handles:
- Enrichment table loading (CSV/TSV) and explicit conversion of record lists
- Column binding validation
- GeneRatio ("hits/background") parsing and derivation
- Gene list splitting and natural sorting
- Top-N selection per category source
- Set label and description cleaning for display
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .config import DEFAULT_BINDINGS, ColumnBindings
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

_RATIO_PATTERN = re.compile(r"^\s*(\d+)\s*/\s*(\d+)\s*$")
MISSING_TEXT = frozenset({"", "nan", "NaN", "NA", "None"})


# ============================================================================
# LOADING
# ============================================================================

def load_enrichment_table(data_path: Union[str, Path], **read_kwargs) -> pd.DataFrame:
    """
    Load one enrichment result table.

    Args:
        data_path: Path to a .csv, .tsv or .txt file (tab-delimited unless .csv)
        **read_kwargs: Passed to pandas.read_csv()

    Returns:
        DataFrame as read from disk
    """
    data_file = Path(data_path)
    if not data_file.exists():
        raise FileNotFoundError(f"No enrichment table found at {data_file}")

    sep = "," if data_file.suffix.lower() == ".csv" else "\t"
    read_kwargs.setdefault("sep", sep)
    logger.info("Loading enrichment table from %s...", data_file)
    df = pd.read_csv(data_file, **read_kwargs)
    logger.info("  Total entries: %d", len(df))
    return df


def as_enrichment_frame(records: Union[pd.DataFrame, Sequence[Mapping], Mapping[str, Sequence]]) -> pd.DataFrame:
    """
    Convert list-like enrichment results to a DataFrame.

    Accepts a list of row mappings or a mapping of column -> values. A
    DataFrame is returned as a copy.
    """
    if isinstance(records, pd.DataFrame):
        return records.copy()
    return pd.DataFrame(records)


# ============================================================================
# VALIDATION AND PREPARATION
# ============================================================================

def validate_columns(
    df: pd.DataFrame,
    bindings: ColumnBindings = DEFAULT_BINDINGS,
    source: str = "",
) -> bool:
    """
    Check that the required bound columns exist.

    Args:
        df: Enrichment table
        bindings: Column bindings
        source: Source name used in error messages

    Returns:
        True if valid, raises ConfigurationError if not
    """
    required = {
        "key": bindings.key,
        "name": bindings.name,
        "pvalue": bindings.pvalue,
        "genes": bindings.genes,
    }
    missing = {role: column for role, column in required.items() if column not in df.columns}
    if missing:
        raise ConfigurationError(
            f"Source '{source}' is missing required column(s) "
            f"{', '.join(f'{role}={column!r}' for role, column in missing.items())}. "
            f"Available: {df.columns.tolist()}",
            component="EnrichmentTableIngestion",
        )

    has_counts = bindings.gene_hits in df.columns and bindings.path_genes in df.columns
    if not has_counts and bindings.gene_ratio not in df.columns:
        raise ConfigurationError(
            f"Source '{source}' must have columns {bindings.gene_hits!r} and "
            f"{bindings.path_genes!r}, or {bindings.gene_ratio!r}",
            component="EnrichmentTableIngestion",
        )
    return True


def parse_gene_ratio(value, column: str = "GeneRatio") -> tuple:
    """
    Parse a "hits/background" string.

    Returns:
        (hits, background) integers
    """
    match = _RATIO_PATTERN.match(str(value))
    if match is None:
        raise ConfigurationError(
            f"Malformed {column} value {value!r}; expected '<hits>/<background>'",
            component="EnrichmentTableIngestion",
        )
    return int(match.group(1)), int(match.group(2))


def _count_column(df: pd.DataFrame, column: str, source: str) -> pd.Series:
    """Integer counts of ``column``; missing or non-numeric values are rejected."""
    counts = pd.to_numeric(df[column], errors="coerce")
    bad = ~np.isfinite(counts.to_numpy(dtype=float))
    if bad.any():
        raise ConfigurationError(
            f"Source '{source}' has {int(bad.sum())} missing or non-numeric "
            f"{column!r} values, e.g. {df[column][bad].tolist()[:3]}",
            component="EnrichmentTableIngestion",
        )
    return counts.astype(int)


def prepare_enrichment_table(
    df: pd.DataFrame,
    bindings: ColumnBindings = DEFAULT_BINDINGS,
    source: str = "",
) -> pd.DataFrame:
    """
    Return a validated copy of one enrichment table.

    Fills in gene hits and pathway size from the gene ratio when needed,
    derives the gene ratio from hits and pathway size when it is absent, and
    normalizes gene delimiters to ','.

    Args:
        df: Enrichment table
        bindings: Column bindings
        source: Source name used in messages

    Returns:
        Prepared DataFrame copy
    """
    if not isinstance(df, pd.DataFrame):
        raise ConfigurationError(
            f"Source '{source}' must be a pandas DataFrame; "
            f"convert it with as_enrichment_frame() first",
            component="EnrichmentTableIngestion",
        )
    validate_columns(df, bindings, source)
    df = df.reset_index(drop=True)

    if bindings.gene_ratio in df.columns:
        needs_hits = bindings.gene_hits not in df.columns
        needs_size = bindings.path_genes not in df.columns
        if needs_hits or needs_size:
            parsed = [parse_gene_ratio(v, bindings.gene_ratio) for v in df[bindings.gene_ratio]]
            if needs_hits:
                logger.debug("  %s: deriving %s from %s", source, bindings.gene_hits, bindings.gene_ratio)
                df[bindings.gene_hits] = [hits for hits, _ in parsed]
            if needs_size:
                logger.debug("  %s: deriving %s from %s", source, bindings.path_genes, bindings.gene_ratio)
                df[bindings.path_genes] = [size for _, size in parsed]
    else:
        hits = _count_column(df, bindings.gene_hits, source)
        size = _count_column(df, bindings.path_genes, source)
        df[bindings.gene_ratio] = hits.astype(str) + "/" + size.astype(str)

    df[bindings.genes] = [
        ",".join(split_genes(value, bindings.gene_delim)) for value in df[bindings.genes]
    ]

    duplicated = df[bindings.name][df[bindings.name].duplicated()].unique().tolist()
    if duplicated:
        raise ConfigurationError(
            f"Source '{source}' has duplicate {bindings.name!r} values "
            f"{duplicated[:5]}; please resolve",
            component="EnrichmentTableIngestion",
        )
    return df


# ============================================================================
# GENES
# ============================================================================

def split_genes(value, delim: str = DEFAULT_BINDINGS.gene_delim) -> List[str]:
    """Split a delimited gene string, dropping empty and missing entries."""
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return []
    text = str(value)
    if text in MISSING_TEXT:
        return []
    return [gene for gene in re.split(delim, text) if gene]


def natural_sort_key(value) -> tuple:
    """Sort key treating digit runs as numbers ('GENE2' < 'GENE10')."""
    parts = re.split(r"(\d+)", str(value))
    key = tuple((0, int(part), "") if part.isdigit() else (1, 0, part.lower()) for part in parts)
    return key, str(value)


def gene_hit_list(
    tables: Mapping[str, pd.DataFrame],
    bindings: ColumnBindings = DEFAULT_BINDINGS,
) -> Dict[str, List[str]]:
    """
    Genes observed in each table, unique and naturally sorted.

    Args:
        tables: Ordered mapping of source name -> enrichment table
        bindings: Column bindings

    Returns:
        Dict of source name -> gene list
    """
    hits = {}
    for source, df in tables.items():
        genes = {
            gene
            for value in df[bindings.genes]
            for gene in split_genes(value, bindings.gene_delim)
        }
        hits[source] = sorted(genes, key=natural_sort_key)
        logger.debug("  %s: %d genes", source, len(hits[source]))
    return hits


# ============================================================================
# TOP CATEGORIES PER SOURCE
# ============================================================================

def top_enrich_by_source(
    df: pd.DataFrame,
    n: int = 15,
    source_columns: Sequence[str] = ("Category", "Source"),
    pvalue_column: str = DEFAULT_BINDINGS.pvalue,
    curate_from: Sequence[str] = (),
    curate_to: Sequence[str] = (),
    source_subset: Optional[Sequence[str]] = None,
    description_grep: Optional[str] = None,
    name_grep: Optional[str] = None,
    description_column: str = DEFAULT_BINDINGS.description,
    name_column: str = DEFAULT_BINDINGS.name,
) -> pd.DataFrame:
    """
    Keep the top ``n`` categories per category source.

    Rows are grouped by the values of ``source_columns`` (those present),
    joined with '_' after applying the ``curate_from``/``curate_to`` regex
    replacements, e.g. 'CP:KEGG' -> 'CP'. Within each group rows are ranked
    by p-value, ties kept in input order.

    Args:
        df: Enrichment table
        n: Rows kept per group
        source_columns: Columns that define the category source
        pvalue_column: Column ranked ascending
        curate_from: Regex patterns applied to source values
        curate_to: Replacements for curate_from
        source_subset: Only keep these curated source values
        description_grep: Optional regex the description must match
        name_grep: Optional regex the name must match
        description_column: Column searched by description_grep
        name_column: Column searched by name_grep

    Returns:
        Filtered DataFrame in the original row order
    """
    if len(curate_from) != len(curate_to):
        raise ConfigurationError(
            "curate_from and curate_to must have the same length",
            component="top_enrich_by_source",
        )
    df = df.copy()
    use_columns = [column for column in source_columns if column in df.columns]

    if use_columns:
        curated = df[use_columns].astype(str)
        for pattern, replacement in zip(curate_from, curate_to):
            curated = curated.replace(pattern, replacement, regex=True)
        group_key = curated.agg("_".join, axis=1)
    else:
        group_key = pd.Series("all", index=df.index)

    keep = pd.Series(True, index=df.index)
    if source_subset:
        keep &= group_key.isin(source_subset)
    if description_grep and description_column in df.columns:
        keep &= df[description_column].astype(str).str.contains(description_grep, case=False, regex=True)
    if name_grep and name_column in df.columns:
        keep &= df[name_column].astype(str).str.contains(name_grep, case=False, regex=True)

    subset = df[keep]
    ranked = subset.assign(_group=group_key[keep]).sort_values(pvalue_column, kind="mergesort")
    top_index = ranked.groupby("_group", sort=False).head(n).index
    result = df.loc[df.index.isin(top_index)]

    logger.info("  Top %d per source: %d -> %d rows", n, len(df), len(result))
    return result


# ============================================================================
# LABELS
# ============================================================================

FIXED_WORDS: Dict[str, str] = {
    "als": "ALS", "ii": "II", "iii": "III", "iv": "IV", "v": "V",
    "tgf": "TGF", "nfkb": "NFKB", "trna": "tRNA", "rrna": "rRNA",
    "mirna": "miRNA", "mrna": "mRNA", "snrna": "snRNA", "snorna": "snoRNA",
    "scrna": "scRNA", "lincrna": "lincRNA",
}


def fix_set_label(
    name,
    remove_pattern: str = r"^(KEGG|PID|REACTOME|BIOCARTA|NABA|SA|SIG|ST)[_.]",
    adjust_case: bool = True,
    fixed_words: Mapping[str, str] = FIXED_WORDS,
    max_length: Optional[int] = None,
    suffix: str = "...",
) -> str:
    """
    Clean a gene set name for display.

    Args:
        name: Raw set name
        remove_pattern: Regex removed from the start (source prefixes)
        adjust_case: Lowercase then capitalize the first letter
        fixed_words: Words restored to a fixed spelling after case changes
        max_length: Maximum label length, or None
        suffix: Appended to truncated labels

    Returns:
        Display label
    """
    if pd.isna(name):
        return "Unknown"

    label = re.sub(remove_pattern, "", str(name), flags=re.IGNORECASE).replace("_", " ")
    if adjust_case and label:
        label = label.lower()
        label = label[0].upper() + label[1:]
    for word, fixed in fixed_words.items():
        label = re.sub(rf"\b{re.escape(word)}\b", fixed, label, flags=re.IGNORECASE)

    if max_length is not None and len(label) > max_length:
        label = label[:max_length - len(suffix)] + suffix
    return label


def curate_descriptions(
    values: Iterable,
    curate_from: Sequence[str] = ("^Genes annotated by the GO term ",),
    curate_to: Sequence[str] = ("",),
) -> List:
    """Apply regex replacements in order to each description."""
    if len(curate_from) != len(curate_to):
        raise ConfigurationError(
            "description curate_from and curate_to must have the same length",
            component="curate_descriptions",
        )
    curated = []
    for value in values:
        if isinstance(value, str):
            for pattern, replacement in zip(curate_from, curate_to):
                value = re.sub(pattern, replacement, value)
        curated.append(value)
    return curated
