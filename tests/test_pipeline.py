import pytest

from multienrich.config import BLANK_COLOR, ColumnBindings
from multienrich.errors import ConfigurationError
from multienrich.models import EnrichmentSource, GridShape
from multienrich.pipeline import multi_enrich_map, resolve_gene_count_column, sources_from_tables
from multienrich.shapes import COLORED_RECTANGLE, PIE


@pytest.fixture
def result(tables):
    return multi_enrich_map(tables)


def test_grid_and_colors(result) -> None:
    assert (result.grid.nrow, result.grid.ncol) == (1, 2)
    assert list(result.colors) == ["up", "down"]
    assert result.colors["up"] != result.colors["down"]
    assert result.labels == {"up": "up", "down": "down"}
    assert result.gene_count_column == "geneHits"
    assert result.column_names["pvalue"] == "P-value"


def test_gene_matrices(result) -> None:
    assert result.gene_hit_list["down"] == ["G3", "G4", "G5", "G7", "G8", "G9"]
    assert result.gene_im.index.tolist() == ["G1", "G2", "G3", "G4", "G5", "G6", "G7", "G8", "G9"]
    assert result.gene_im.loc["G1"].tolist() == [1, 0]
    assert result.gene_im_colors.loc["G1", "down"] == BLANK_COLOR
    assert result.gene_im_colors.loc["G1", "up"] != BLANK_COLOR


def test_category_matrices_are_filtered(result) -> None:
    assert result.enrich_im.index.tolist() == ["SET_A", "SET_B", "SET_D"]
    assert result.enrich_im.loc["SET_D", "up"] == 1.0
    assert result.enrich_im.loc["SET_B"].tolist() == [0.01, 0.04]
    assert result.enrich_im_gene_count.loc["SET_B"].tolist() == [3.0, 3.0]
    assert result.enrich_im_gene_count.loc["SET_D", "up"] == 0.0
    assert result.enrich_im_colors.loc["SET_A", "down"] == BLANK_COLOR
    assert result.enrich_im_colors.loc["SET_D", "down"] != BLANK_COLOR
    assert result.tables["up"]["Name"].tolist() == ["SET_A", "SET_B"]
    assert result.tables["down"]["Name"].tolist() == ["SET_B", "SET_D"]


def test_unified_table(result) -> None:
    unified = result.unified.set_index("Name")

    assert unified.index.tolist() == ["SET_A", "SET_B", "SET_D"]
    assert unified.loc["SET_B", "P-value"] == 0.01
    assert unified.loc["SET_A", "Description"] == "alpha"
    assert unified.loc["SET_A", "DescriptionFull"] == "Genes annotated by the GO term alpha"
    assert result.member_im.loc["G7"].tolist() == [0, 1, 0]


def test_graphs(result) -> None:
    assert result.graph_errors == {}
    assert list(result.enrichment_map.nodes) == ["SET_D", "SET_A", "SET_B"]
    assert list(result.enrichment_map.edges) == [("SET_A", "SET_B")]
    assert result.enrichment_map_pie.nodes["SET_A"]["shape"] == PIE
    assert result.enrichment_map_rect.nodes["SET_A"]["shape"] == COLORED_RECTANGLE

    assert result.cnet.number_of_nodes() == 10
    assert "glyph" not in result.cnet.nodes["SET_A"]
    assert result.cnet_pie.nodes["SET_A"]["glyph"].colors == tuple(result.enrich_im_colors.loc["SET_A"])
    assert result.cnet_pie.nodes["G1"]["glyph"].colors == tuple(result.gene_im_colors.loc["G1"])
    assert all(attrs["shape"] == COLORED_RECTANGLE for _, attrs in result.cnet_rect.nodes(data=True))


def test_blank_rows_collapse_in_two_row_grid(tables) -> None:
    result = multi_enrich_map(tables, nrow=2)

    assert (result.grid.nrow, result.grid.ncol) == (2, 1)
    rect = result.cnet_rect.nodes["SET_A"]
    collapsed = result.cnet_collapsed.nodes["SET_A"]
    assert (rect["glyph"].nrow, rect["glyph"].ncol) == (2, 1)
    assert collapsed["glyph"].names == ("up",)
    assert collapsed["size2"] == pytest.approx(rect["size2"] / 2)
    assert len(result.cnet_collapsed.nodes["G3"]["glyph"]) == 2


def test_no_significant_categories(tables) -> None:
    result = multi_enrich_map(tables, cutoff_row_min_p=1e-6)

    assert result.enrich_im.empty
    assert result.unified is None
    assert result.cnet is None
    assert set(result.graph_errors) == {"enrichment_map", "cnet"}
    assert "no categories" in result.graph_errors["cnet"]
    assert len(result.gene_im) == 9


def test_top_enrich_per_source(tables) -> None:
    result = multi_enrich_map(tables, top_enrich_n=1)
    assert result.enrich_im.index.tolist() == ["SET_A", "SET_D"]


def test_sources_with_colors_labels_and_universe(tables) -> None:
    sources = sources_from_tables(
        tables,
        colors=["#1B9E77"],
        labels={"up": "Up-regulated"},
        universes={"down": ["G10", "G3", "G3"]},
    )
    result = multi_enrich_map(sources)

    assert result.colors == {"up": "#1B9E77", "down": "#1B9E77"}
    assert result.labels == {"up": "Up-regulated", "down": "down"}
    assert result.gene_hit_list["down"] == ["G3", "G10"]


def test_source_validation(up_table) -> None:
    with pytest.raises(ConfigurationError):
        multi_enrich_map([])
    with pytest.raises(ConfigurationError, match="Duplicate"):
        multi_enrich_map([EnrichmentSource("up", up_table), EnrichmentSource("up", up_table)])
    with pytest.raises(ConfigurationError):
        sources_from_tables({"up": up_table}, colors={"other": "red"})
    with pytest.raises(ConfigurationError, match="DataFrame"):
        EnrichmentSource("up", up_table.to_dict("records"))


def test_custom_bindings(tables) -> None:
    renamed = {
        name: df.rename(columns={"Name": "Term", "geneNames": "genes"})
        for name, df in tables.items()
    }
    result = multi_enrich_map(renamed, bindings=ColumnBindings(name="Term", genes="genes"))
    assert result.unified["Term"].tolist() == ["SET_A", "SET_B", "SET_D"]


def test_resolve_gene_count_column() -> None:
    bindings = ColumnBindings()
    assert resolve_gene_count_column(["Name", "geneHits", "allGeneHits"], bindings) == "geneHits"
    assert resolve_gene_count_column(["Name", "geneCount"], bindings) == "geneCount"
    assert resolve_gene_count_column(["Name", "GeneRatio"], bindings) == "GeneRatio"
    with pytest.raises(ConfigurationError):
        resolve_gene_count_column(["Name"], bindings)


def test_grid_resolution() -> None:
    assert (GridShape.resolve(5).nrow, GridShape.resolve(5).ncol) == (1, 5)
    assert (GridShape.resolve(5, ncol=2).nrow, GridShape.resolve(5, ncol=2).ncol) == (3, 2)
    assert GridShape.resolve(5, nrow=2).ncol == 3
    assert GridShape.resolve(5, nrow=2, ncol=2).ncol == 3
    assert GridShape.resolve(4, nrow=2, ncol=2).ncol == 2
