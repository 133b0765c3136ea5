import networkx as nx
import numpy as np
import pytest

from multienrich.errors import ConfigurationError
from multienrich.layout import (
    Apply,
    Function,
    GroupRule,
    GroupRules,
    Multiply,
    Replace,
    Scalar,
    as_scaling,
    layout_to_array,
    resolve_axis_range,
    scale_graph_params,
)


@pytest.fixture
def graph() -> nx.Graph:
    g = nx.Graph()
    g.add_node("S1", kind="Category", size=10.0, label_dist=1.0)
    g.add_node("G1", kind="Item", size=4.0)
    g.add_node("G2", kind="Item", size=4.0, size2=2.0)
    g.add_edge("S1", "G1", width=2.0)
    g.add_edge("S1", "G2")
    return g


def test_enclosing_range_is_kept_as_is() -> None:
    coords = np.array([-0.5, 0.2, 0.9])
    limits, as_is = resolve_axis_range((-1, 1), coords, expand=0.03)
    assert limits == (-1.0, 1.0)
    assert as_is


def test_non_enclosing_range_snaps_and_expands() -> None:
    coords = np.array([-2.0, 0.0, 3.0])
    limits, as_is = resolve_axis_range((-1, 1), coords, expand=0.1)
    assert limits == pytest.approx((-2.5, 3.5))
    assert not as_is


def test_scale_within_default_range(graph) -> None:
    layout = np.array([[0.0, 0.0], [0.5, 0.5], [-0.5, -0.5]])
    params = scale_graph_params(graph, layout)

    assert params.xlim == (-1.0, 1.0)
    assert params.ylim == (-1.0, 1.0)
    # span 2 -> sizes x1, label distance x0.5
    assert params.node_size.tolist() == [10.0, 4.0, 4.0]
    assert params.node_size2.tolist() == [10.0, 4.0, 2.0]
    assert params.label_dist.tolist() == [0.5, 0.0, 0.0]
    assert params.edge_width.tolist() == [2.0, 1.0]


def test_scale_with_snapped_range(graph) -> None:
    layout = np.array([[0.0, 0.0], [4.0, 1.0], [-4.0, -1.0]])
    params = scale_graph_params(graph, layout, expand=0.05)

    assert params.xlim == pytest.approx((-4.4, 4.4))
    assert params.ylim == (-1.0, 1.0)
    # unexpanded span 8 -> sizes x4
    assert params.node_size.tolist() == pytest.approx([40.0, 16.0, 16.0])
    assert params.label_dist.tolist() == pytest.approx([2.0, 0.0, 0.0])


def test_group_rules_apply_in_order(graph) -> None:
    rules = GroupRules.from_mapping({"kind": {"Item": 2, "Category": lambda v: v + 1}})
    layout = np.zeros((3, 2))
    params = scale_graph_params(graph, layout, node_factor=0.5, node_factor_l=rules)

    assert params.node_size.tolist() == pytest.approx([6.0, 4.0, 4.0])


def test_group_rule_effects(graph) -> None:
    values = np.array([1.0, 2.0, 3.0])
    rules = GroupRules((
        GroupRule("kind", "Item", Multiply(10)),
        GroupRule("kind", "Category", Replace(7.0)),
        GroupRule("kind", "Item", Apply(np.negative)),
    ))
    assert rules.apply(graph, values, "node").tolist() == [7.0, -20.0, -30.0]


def test_edge_group_rules(graph) -> None:
    params = scale_graph_params(
        graph, np.zeros((3, 2)), edge_factor=2, edge_factor_l={"width": {2.0: 3}}
    )
    assert params.edge_width.tolist() == [12.0, 2.0]


def test_label_factor_function(graph) -> None:
    params = scale_graph_params(graph, np.zeros((3, 2)), label_factor=lambda v: v * 0.8)
    assert params.label_cex.tolist() == pytest.approx([0.8, 0.8, 0.8])


def test_as_scaling() -> None:
    assert as_scaling(2) == Scalar(2.0)
    assert isinstance(as_scaling(np.sqrt), Function)
    assert isinstance(as_scaling({"kind": {"Item": 2}}), GroupRules)
    assert as_scaling(None) is None
    with pytest.raises(ConfigurationError):
        as_scaling("big")
    with pytest.raises(ConfigurationError):
        GroupRules.from_mapping({"kind": 2})


def test_layout_from_position_dict(graph) -> None:
    pos = {"S1": (0, 0), "G1": (1, 2), "G2": (3, 4)}
    assert layout_to_array(graph, pos).tolist() == [[0, 0], [1, 2], [3, 4]]
    params = scale_graph_params(graph, pos)
    assert params.xlim == pytest.approx((-0.09, 3.09))

    with pytest.raises(ConfigurationError):
        layout_to_array(graph, {"S1": (0, 0)})


def test_layout_shape_must_match(graph) -> None:
    with pytest.raises(ConfigurationError):
        scale_graph_params(graph, np.zeros((2, 2)))
