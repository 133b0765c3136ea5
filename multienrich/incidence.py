"""
Incidence matrix module for multienrich.

Handles:
- Named value mappings -> entity x source matrix with fill values
- Named sets -> 0/1 membership matrix
- Row reduction (best value across sources)
"""

import logging
from typing import Dict, Hashable, Iterable, List, Mapping, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

KeyValues = Union[Mapping[Hashable, float], Sequence[Tuple[Hashable, float]], pd.Series]


def _as_pairs(values: KeyValues) -> List[Tuple[Hashable, float]]:
    if isinstance(values, pd.Series):
        return list(zip(values.index, values.to_numpy()))
    if isinstance(values, Mapping):
        return list(values.items())
    return [tuple(pair) for pair in values]


def union_keys(key_lists: Iterable[Iterable[Hashable]]) -> List[Hashable]:
    """Union of keys in first-seen order."""
    return list(dict.fromkeys(key for keys in key_lists for key in keys))


def named_values_to_incidence(
    values_by_source: Mapping[str, KeyValues],
    fill: float = 0,
) -> pd.DataFrame:
    """
    Build an entity x source incidence matrix.

    Rows are the union of entity keys in first-seen order, columns are the
    source names in input order. Entities absent from a source get ``fill``;
    use ``fill=1`` for p-values, where 1 means no enrichment.

    Args:
        values_by_source: Ordered mapping of source name -> key/value pairs
        fill: Value for entities a source does not contain

    Returns:
        DataFrame with one column per source
    """
    pairs_by_source: Dict[str, List[Tuple[Hashable, float]]] = {}
    for source, values in values_by_source.items():
        pairs = _as_pairs(values)
        keys = [key for key, _ in pairs]
        duplicated = pd.Index(keys)[pd.Index(keys).duplicated()].unique().tolist()
        if duplicated:
            raise ConfigurationError(
                f"Source '{source}' has duplicate keys {duplicated[:5]}; "
                f"resolve them before building the matrix",
                component="IncidenceMatrixBuilder",
            )
        pairs_by_source[source] = pairs

    rows = union_keys([key for key, _ in pairs] for pairs in pairs_by_source.values())
    matrix = pd.DataFrame(
        fill,
        index=pd.Index(rows, dtype=object),
        columns=list(pairs_by_source),
        dtype=float,
    )
    for source, pairs in pairs_by_source.items():
        if not pairs:
            continue
        keys, vals = zip(*pairs)
        column = pd.to_numeric(pd.Series(vals, index=list(keys)), errors="coerce")
        matrix.loc[list(keys), source] = column.fillna(fill).to_numpy(dtype=float)

    logger.debug("  Incidence matrix: %d rows x %d sources", *matrix.shape)
    return matrix


def sets_to_incidence(sets_by_name: Mapping[str, Iterable[Hashable]]) -> pd.DataFrame:
    """
    Build a 0/1 membership matrix.

    Args:
        sets_by_name: Ordered mapping of set name -> members

    Returns:
        DataFrame with members as rows (first-seen order) and one integer
        column per set
    """
    membership = {
        name: [(member, 1) for member in dict.fromkeys(members)]
        for name, members in sets_by_name.items()
    }
    return named_values_to_incidence(membership, fill=0).astype(int)


def row_reduce(matrix: pd.DataFrame, how: str = "min") -> pd.Series:
    """
    Reduce each row to its best value across sources.

    Args:
        matrix: Incidence matrix
        how: 'min' (p-values) or 'max' (counts)

    Returns:
        Series indexed like the matrix rows
    """
    if how == "min":
        return matrix.min(axis=1)
    if how == "max":
        return matrix.max(axis=1)
    raise ValueError(f"Unknown row reduction: {how!r}")


def incidence_to_sets(matrix: pd.DataFrame) -> Dict[str, List[Hashable]]:
    """Members with a nonzero value per column, in row order."""
    values = matrix.to_numpy()
    return {
        column: matrix.index[np.flatnonzero(values[:, j])].tolist()
        for j, column in enumerate(matrix.columns)
    }
