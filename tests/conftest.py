from collections import OrderedDict

import pandas as pd
import pytest


def make_table(rows, path_genes: int = 100) -> pd.DataFrame:
    """Enrichment table from (itemsetID, Name, Description, P-value, genes) rows."""
    records = []
    for key, name, description, pvalue, genes in rows:
        records.append({
            "itemsetID": key,
            "Name": name,
            "Description": description,
            "P-value": pvalue,
            "geneHits": len(genes.split(",")) if genes else 0,
            "pathGenes": path_genes,
            "geneNames": genes,
        })
    return pd.DataFrame(records)


@pytest.fixture
def up_table() -> pd.DataFrame:
    return make_table([
        ("GO:1", "SET_A", "Genes annotated by the GO term alpha", 0.001, "G1,G2,G3"),
        ("GO:2", "SET_B", "beta", 0.01, "G2,G3,G4"),
        ("GO:3", "SET_C", "gamma", 0.2, "G5,G6"),
    ])


@pytest.fixture
def down_table() -> pd.DataFrame:
    return make_table([
        ("GO:2", "SET_B", "beta", 0.04, "G3,G4,G7"),
        ("GO:4", "SET_D", "delta", 0.0001, "G8,G9"),
        ("GO:3", "SET_C", "gamma", 0.5, "G5"),
    ])


@pytest.fixture
def tables(up_table, down_table) -> "OrderedDict[str, pd.DataFrame]":
    return OrderedDict([("up", up_table), ("down", down_table)])


@pytest.fixture
def table_factory():
    return make_table
