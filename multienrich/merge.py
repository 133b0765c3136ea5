"""
Enrichment merge module for multienrich.

Combines per-source enrichment tables into one table with one row per
category name:
- numeric columns keep the best value across sources (lowest p-value,
  highest counts)
- annotation columns keep the first non-missing value in source order
- gene lists are the ordered, deduplicated union across sources
"""

import logging
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Union

import numpy as np
import pandas as pd

from .config import DEFAULT_BINDINGS, PVALUE_FLOOR, ColumnBindings
from .data_loader import MISSING_TEXT, split_genes
from .errors import ConfigurationError
from .incidence import named_values_to_incidence, row_reduce, union_keys

logger = logging.getLogger(__name__)

ALL_GENE_HITS = "allGeneHits"

CategoryGenes = Union[Mapping[str, Iterable[str]], Callable[[str], Optional[Iterable[str]]]]


def is_missing(value) -> bool:
    """True for None, NaN and the placeholder strings in MISSING_TEXT."""
    if isinstance(value, str):
        return value in MISSING_TEXT
    return bool(np.ndim(value) == 0 and pd.isna(value))


def count_value(value) -> float:
    """Numeric count, taking the hits part of 'hits/background' strings."""
    if isinstance(value, str) and "/" in value:
        value = value.split("/", 1)[0]
    return pd.to_numeric(value, errors="coerce")


def numeric_roles(
    bindings: ColumnBindings,
    gene_count_column: Optional[str] = None,
) -> "OrderedDict[str, str]":
    """Numeric columns merged by best value: column -> 'lo' or 'hi'."""
    roles = OrderedDict()
    roles[bindings.pvalue] = "lo"
    roles.setdefault(bindings.path_genes, "hi")
    roles.setdefault(bindings.gene_hits, "hi")
    if gene_count_column:
        roles.setdefault(gene_count_column, "hi")
    return roles


def _validate_tables(tables: Mapping[str, pd.DataFrame], bindings: ColumnBindings) -> None:
    if not tables:
        raise ConfigurationError("No enrichment tables to merge", component="EnrichmentMerger")

    for source, df in tables.items():
        for role in ("name", "pvalue", "genes"):
            column = getattr(bindings, role)
            if column not in df.columns:
                raise ConfigurationError(
                    f"Source '{source}' has no {role} column {column!r}",
                    component="EnrichmentMerger",
                )
        names = df[bindings.name]
        duplicated = names[names.duplicated()].unique().tolist()
        if duplicated:
            raise ConfigurationError(
                f"There are duplicate values in source '{source}' column "
                f"{bindings.name!r}: {duplicated[:5]}; please resolve",
                component="EnrichmentMerger",
            )


def best_values(
    tables: Mapping[str, pd.DataFrame],
    column: str,
    how: str,
    key_column: str,
    pvalue_floor: float = PVALUE_FLOOR,
) -> pd.Series:
    """
    Best value of one numeric column per category across sources.

    Args:
        tables: Ordered mapping of source name -> table
        column: Numeric column to merge
        how: 'lo' (minimum, missing = 1) or 'hi' (maximum, missing = 0)
        key_column: Column holding category names
        pvalue_floor: Lower bound applied to 'lo' columns

    Returns:
        Series indexed by category name
    """
    values_by_source = {}
    for source, df in tables.items():
        if column not in df.columns:
            continue
        if how == "lo":
            values = pd.to_numeric(df[column], errors="coerce")
            floored = int((values < pvalue_floor).sum())
            if floored:
                logger.info(
                    "  %s: %d %s values below %g set to the floor",
                    source, floored, column, pvalue_floor,
                )
            values = values.clip(lower=pvalue_floor)
        else:
            values = df[column].map(count_value)
        values_by_source[source] = pd.Series(values.to_numpy(), index=df[key_column].tolist())

    fill = 1 if how == "lo" else 0
    matrix = named_values_to_incidence(values_by_source, fill=fill)
    return row_reduce(matrix, "min" if how == "lo" else "max")


def annotation_columns(
    tables: Mapping[str, pd.DataFrame],
    bindings: ColumnBindings,
    exclude: Iterable[str],
) -> List[str]:
    """Passthrough columns: everything not numeric, not a name/gene column."""
    exclude = set(exclude) | {bindings.name, bindings.genes}
    columns = union_keys(df.columns for df in tables.values())
    return [
        column for column in columns
        if column not in exclude and "gene" not in str(column).lower()
    ]


def first_available_annotations(
    tables: Mapping[str, pd.DataFrame],
    names: List,
    columns: List[str],
    key_column: str,
) -> Dict[str, List]:
    """
    First non-missing value per category and column, scanning sources in order.

    Later sources never overwrite a resolved value; when they disagree the
    conflict is logged and the earliest value is kept.
    """
    position = {name: i for i, name in enumerate(names)}
    resolved = {column: [None] * len(names) for column in columns}
    origin = {column: [None] * len(names) for column in columns}

    for source, df in tables.items():
        present = [column for column in columns if column in df.columns]
        for row in df[[key_column] + present].itertuples(index=False, name=None):
            i = position.get(row[0])
            if i is None:
                continue
            for column, value in zip(present, row[1:]):
                if is_missing(value):
                    continue
                current = resolved[column][i]
                if current is None:
                    resolved[column][i] = value
                    origin[column][i] = source
                elif current != value:
                    logger.warning(
                        "Conflicting %r for %r: keeping %r from '%s', ignoring %r from '%s'",
                        column, row[0], current, origin[column][i], value, source,
                    )
    return resolved


def union_gene_lists(
    tables: Mapping[str, pd.DataFrame],
    names: List,
    bindings: ColumnBindings,
) -> Dict:
    """Ordered, deduplicated union of each category's genes across sources."""
    genes = {name: {} for name in names}
    for df in tables.values():
        for name, value in zip(df[bindings.name], df[bindings.genes]):
            if name in genes:
                genes[name].update(dict.fromkeys(split_genes(value, bindings.gene_delim)))
    return {name: list(members) for name, members in genes.items()}


def _provider_lookup(category_genes: CategoryGenes) -> Callable[[str], Optional[Iterable[str]]]:
    if isinstance(category_genes, Mapping):
        return category_genes.get
    return category_genes


def merge_enrichment_tables(
    tables: Mapping[str, pd.DataFrame],
    bindings: ColumnBindings = DEFAULT_BINDINGS,
    gene_count_column: Optional[str] = None,
    category_genes: Optional[CategoryGenes] = None,
    pvalue_floor: float = PVALUE_FLOOR,
) -> pd.DataFrame:
    """
    Merge per-source enrichment tables into one table.

    Args:
        tables: Ordered mapping of source name -> enrichment table
        bindings: Column bindings shared by all tables
        gene_count_column: Extra count column merged by maximum
        category_genes: Optional mapping or function from category identifier
            to its full gene membership; genes are restricted to those seen
            in the tables
        pvalue_floor: Lowest p-value kept

    Returns:
        DataFrame with one row per category name in first-seen order:
        name, merged numeric columns, allGeneHits, annotation columns, genes
    """
    _validate_tables(tables, bindings)
    logger.info("Merging %d enrichment tables...", len(tables))

    roles = numeric_roles(bindings, gene_count_column)
    roles = OrderedDict(
        (column, how) for column, how in roles.items()
        if any(column in df.columns for df in tables.values())
    )
    names = union_keys(df[bindings.name].tolist() for df in tables.values())

    merged = pd.DataFrame({bindings.name: names})
    for column, how in roles.items():
        values = best_values(tables, column, how, bindings.name, pvalue_floor)
        values = values.reindex(names).to_numpy()
        merged[column] = values if how == "lo" else values.astype(int)

    gene_lists = union_gene_lists(tables, names, bindings)
    columns = annotation_columns(tables, bindings, exclude=roles)
    annotations = first_available_annotations(tables, names, columns, bindings.name)

    if category_genes is not None:
        lookup = _provider_lookup(category_genes)
        observed = {gene for members in gene_lists.values() for gene in members}
        identifiers = annotations.get(bindings.key, [None] * len(names))
        for name, identifier in zip(names, identifiers):
            members = lookup(identifier) if identifier is not None else None
            if members is None:
                logger.debug("  No gene membership for %r, using observed genes", identifier)
                continue
            gene_lists[name] = [gene for gene in dict.fromkeys(members) if gene in observed]

    merged[ALL_GENE_HITS] = [len(gene_lists[name]) for name in names]
    for column in columns:
        merged[column] = annotations[column]
    merged[bindings.genes] = [",".join(gene_lists[name]) for name in names]

    logger.info("  Unified categories: %d", len(merged))
    return merged
