import json

import numpy as np
import pandas as pd
import pytest

from multienrich.config import CATEGORY_KIND
from multienrich.errors import DataShapeError
from multienrich.export import write_graph_json
from multienrich.merge import merge_enrichment_tables
from multienrich.similarity import compute_jaccard_matrix, enrichment_map, top_categories


def test_jaccard_example() -> None:
    similarity = compute_jaccard_matrix([{"a", "b", "c"}, {"b", "c", "d"}, {"x"}])

    assert similarity[0, 1] == pytest.approx(0.5)
    assert similarity[1, 0] == pytest.approx(0.5)
    assert similarity[0, 2] == 0
    assert np.diag(similarity).tolist() == [1.0, 1.0, 1.0]


def test_enrichment_map_nodes_and_edges(tables) -> None:
    unified = merge_enrichment_tables(tables)
    g = enrichment_map(unified)

    # sorted by p-value
    assert list(g.nodes) == ["SET_D", "SET_A", "SET_B", "SET_C"]
    assert list(g.edges) == [("SET_A", "SET_B")]

    edge = g.edges["SET_A", "SET_B"]
    assert edge["overlap"] == pytest.approx(2 / 5)
    assert edge["width"] == pytest.approx(np.sqrt(0.4 * 20))

    node = g.nodes["SET_A"]
    assert node["kind"] == CATEGORY_KIND
    assert node["size"] == pytest.approx(np.log10(3) * 10)
    assert node["Description"] == "Genes annotated by the GO term alpha"
    assert node["label"] == "Set a"
    assert node["color"].startswith("#")


def test_overlap_threshold_drops_edges(tables) -> None:
    unified = merge_enrichment_tables(tables)
    g = enrichment_map(unified, overlap_threshold=0.5)
    assert g.number_of_edges() == 0
    assert g.number_of_nodes() == 4


def test_top_n_is_stable() -> None:
    df = pd.DataFrame({"Name": ["a", "b", "c"], "P-value": [0.1, 0.01, 0.1]})
    assert top_categories(df, 2, "P-value")["Name"].tolist() == ["b", "a"]


def test_single_category(table_factory) -> None:
    unified = merge_enrichment_tables({"A": table_factory([("ID1", "SET_X", "x", 0.01, "G1,G2")])})
    g = enrichment_map(unified)

    assert list(g.nodes) == ["SET_X"]
    assert g.number_of_edges() == 0
    assert g.nodes["SET_X"]["size"] == pytest.approx(np.log10(2) * 10)


def test_no_categories(tables) -> None:
    unified = merge_enrichment_tables(tables).iloc[0:0]
    with pytest.raises(DataShapeError, match="no enriched categories"):
        enrichment_map(unified)


def test_more_significant_nodes_are_darker(tables) -> None:
    unified = merge_enrichment_tables(tables)
    g = enrichment_map(unified)
    darkest = g.nodes["SET_D"]["color"]
    lightest = g.nodes["SET_C"]["color"]
    assert sum(int(darkest[i:i + 2], 16) for i in (1, 3, 5)) < sum(int(lightest[i:i + 2], 16) for i in (1, 3, 5))


def _reject_constant(token):
    raise ValueError(f"non-finite JSON constant {token}")


def test_zero_count_category_has_finite_size(table_factory, tmp_path) -> None:
    unified = merge_enrichment_tables({"A": table_factory([
        ("ID1", "SET_X", "x", 0.01, "G1,G2"),
        ("ID2", "SET_Y", "y", 0.02, ""),
    ])})
    g = enrichment_map(unified)

    assert g.nodes["SET_Y"]["size"] == 0.0
    assert np.isfinite([size for _, size in g.nodes(data="size")]).all()

    path = write_graph_json(g, tmp_path / "emap.json")
    data = json.loads(path.read_text(), parse_constant=_reject_constant)
    sizes = {node["id"]: node["size"] for node in data["nodes"]}
    assert sizes["SET_Y"] == 0.0
