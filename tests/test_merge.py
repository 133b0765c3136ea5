import logging
from collections import OrderedDict

import pandas as pd
import pytest

from multienrich.errors import ConfigurationError
from multienrich.merge import ALL_GENE_HITS, count_value, merge_enrichment_tables


def test_best_value_rule(table_factory) -> None:
    a = table_factory([("ID1", "SET_X", "x", 0.04, "G1,G2,G3")])
    b = table_factory([("ID1", "SET_X", "x", 0.1, "G1,G2,G3,G4,G5,G6,G7")])

    merged = merge_enrichment_tables(OrderedDict([("A", a), ("B", b)]))

    row = merged.iloc[0]
    assert row["P-value"] == 0.04
    assert row["geneHits"] == 7


def test_missing_categories_are_tolerated(tables) -> None:
    merged = merge_enrichment_tables(tables)

    assert merged["Name"].tolist() == ["SET_A", "SET_B", "SET_C", "SET_D"]
    assert merged["P-value"].tolist() == [0.001, 0.01, 0.2, 0.0001]
    assert merged["geneHits"].tolist() == [3, 3, 2, 2]


def test_gene_lists_are_unioned_in_first_seen_order(tables) -> None:
    merged = merge_enrichment_tables(tables).set_index("Name")

    assert merged.loc["SET_B", "geneNames"] == "G2,G3,G4,G7"
    assert merged.loc["SET_B", ALL_GENE_HITS] == 4
    assert merged.loc["SET_C", "geneNames"] == "G5,G6"


def test_annotation_takes_first_non_missing_value(table_factory) -> None:
    a = table_factory([("ID1", "SET_X", "x", 0.01, "G1")]).assign(Source=[None])
    b = table_factory([("ID1", "SET_X", "x", 0.02, "G1")]).assign(Source=["KEGG"])

    merged = merge_enrichment_tables(OrderedDict([("A", a), ("B", b)]))
    assert merged.loc[0, "Source"] == "KEGG"


@pytest.mark.parametrize("placeholder", ["", "NA", "nan", "None"])
def test_placeholder_text_is_missing_for_annotations_and_genes(table_factory, placeholder) -> None:
    a = table_factory([("ID1", "SET_X", "x", 0.01, "G1")]).assign(Source=[placeholder])
    b = table_factory([("ID1", "SET_X", "x", 0.02, "G2")]).assign(Source=["KEGG"])
    b["geneNames"] = [placeholder]

    merged = merge_enrichment_tables(OrderedDict([("A", a), ("B", b)]))
    assert merged.loc[0, "Source"] == "KEGG"
    assert merged.loc[0, "geneNames"] == "G1"


def test_annotation_conflict_keeps_earliest_and_logs(table_factory, caplog) -> None:
    a = table_factory([("ID1", "SET_X", "first", 0.01, "G1")])
    b = table_factory([("ID1", "SET_X", "second", 0.02, "G1")])

    with caplog.at_level(logging.INFO, logger="multienrich.merge"):
        merged = merge_enrichment_tables(OrderedDict([("A", a), ("B", b)]))

    assert merged.loc[0, "Description"] == "first"
    conflicts = [r for r in caplog.records if "Conflicting" in r.getMessage()]
    assert [r.levelno for r in conflicts] == [logging.WARNING]


def test_gene_columns_are_not_annotations(tables) -> None:
    merged = merge_enrichment_tables(tables)
    assert "pathGenes" in merged.columns
    assert [c for c in merged.columns if "gene" in c.lower()] == [
        "pathGenes", "geneHits", ALL_GENE_HITS, "geneNames"
    ]


def test_pvalue_floor(table_factory) -> None:
    a = table_factory([("ID1", "SET_X", "x", 0.0, "G1")])
    merged = merge_enrichment_tables({"A": a})
    assert merged.loc[0, "P-value"] == 1e-200


def test_duplicate_names_are_rejected(table_factory) -> None:
    a = table_factory([("ID1", "SET_X", "x", 0.01, "G1"), ("ID2", "SET_X", "y", 0.02, "G2")])
    with pytest.raises(ConfigurationError, match="EnrichmentMerger"):
        merge_enrichment_tables({"A": a})


def test_no_tables() -> None:
    with pytest.raises(ConfigurationError):
        merge_enrichment_tables({})


def test_category_gene_provider_is_restricted_to_observed(tables) -> None:
    provider = {"GO:1": ["G3", "G1", "G99"]}
    merged = merge_enrichment_tables(tables, category_genes=provider).set_index("Name")

    assert merged.loc["SET_A", "geneNames"] == "G3,G1"
    assert merged.loc["SET_A", ALL_GENE_HITS] == 2
    assert merged.loc["SET_B", "geneNames"] == "G2,G3,G4,G7"


def test_category_gene_provider_as_function(tables) -> None:
    merged = merge_enrichment_tables(
        tables, category_genes=lambda key: ["G9"] if key == "GO:4" else None
    ).set_index("Name")
    assert merged.loc["SET_D", "geneNames"] == "G9"


def test_gene_ratio_counts_merge_by_hits(table_factory) -> None:
    a = table_factory([("ID1", "SET_X", "x", 0.01, "G1")]).assign(GeneRatio=["3/50"])
    b = table_factory([("ID1", "SET_X", "x", 0.02, "G1")]).assign(GeneRatio=["5/50"])

    merged = merge_enrichment_tables(OrderedDict([("A", a), ("B", b)]), gene_count_column="GeneRatio")
    assert merged.loc[0, "GeneRatio"] == 5
    assert count_value("12/40") == 12
    assert pd.isna(count_value("x"))
