from __future__ import annotations

import pytest

from carbonflow_lca.core.flows import (
    DataQualityIndicators,
    EmissionFlow,
    EnergyFlow,
    FlowDirection,
    MaterialFlow,
    flow_from_dict,
    parse_flow_registry,
)
from carbonflow_lca.core.json_utils import coerce_bool, coerce_float
from carbonflow_lca.core.nodes import (
    ManufacturingNodeData,
    NodeType,
    ProductNodeData,
    find_cycles,
    isolated_node_ids,
    node_from_dict,
    parse_edges,
    parse_nodes,
)
from carbonflow_lca.factors import GWP


def test_coercion_accepts_string_numbers():
    assert coerce_float(" 1,250.5 ") == 1250.5
    assert coerce_float("abc") is None
    assert coerce_float(float("nan")) is None
    assert coerce_float(True) is None
    assert coerce_bool("是") is True
    assert coerce_bool("no") is False


def test_node_variant_follows_lifecycle_stage():
    node = node_from_dict(
        {
            "id": "p1",
            "data": {
                "label": "Steel coil",
                "lifecycleStage": "原材料获取阶段",
                "carbonFactor": "2.3",
                "quantity": "100",
                "recycledContentPercentage": "15",
                "isMainProduct": "true",
            },
        }
    )

    assert isinstance(node.data, ProductNodeData)
    assert node.node_type is NodeType.PRODUCT
    assert node.data.recycled_content_percentage == 15.0
    assert node.data.is_main
    assert node.data.footprint == pytest.approx(230.0)


def test_explicit_node_type_wins_over_stage():
    node = node_from_dict({"id": "m1", "type": "manufacturing", "data": {"lifecycleStage": "use", "energyType": "coal"}})

    assert isinstance(node.data, ManufacturingNodeData)
    assert node.data.energy_type == "coal"


def test_declared_footprint_takes_precedence():
    node = node_from_dict({"id": "n", "data": {"carbonFootprint": 12, "carbonFactor": 1, "quantity": 100}})

    assert node.data.footprint == 12.0
    assert node.label == "n"


def test_main_product_via_category():
    node = node_from_dict({"id": "n", "data": {"productCategory": "Main"}})

    assert node.data.is_main


def test_node_flow_references_and_overrides():
    node = node_from_dict(
        {
            "id": "n",
            "data": {
                "allocationInfo": {"ratio": 0.4},
                "lcaFlows": {
                    "emissionFlows": [
                        {"flowId": "f1", "direction": "OUTPUT", "localOverrides": {"quantity": 3, "emissionFactor": 0.7}}
                    ],
                    "energyFlows": [{"flowId": "f2", "quantity": 8, "unit": "MJ"}],
                },
            },
        }
    )

    references = dict((reference.flow_id, reference) for _, reference in node.data.lca_flows.iter_references())
    assert node.data.allocation_ratio == 0.4
    assert references["f1"].direction is FlowDirection.OUTPUT
    assert references["f1"].resolved_quantity(10) == 3
    assert references["f1"].local_emission_factor == 0.7
    assert references["f2"].resolved_quantity(10) == 8
    assert references["f2"].resolved_unit("kWh") == "MJ"


def test_node_requires_an_id():
    with pytest.raises(ValueError):
        node_from_dict({"data": {}})


def test_flow_registry_builds_typed_flows(flow_registry):
    registry = parse_flow_registry(flow_registry)

    assert isinstance(registry["f-steel"], MaterialFlow)
    assert isinstance(registry["f-power"], EnergyFlow)
    assert isinstance(registry["f-co2"], EmissionFlow)
    assert registry["f-co2"].direction is FlowDirection.OUTPUT
    assert registry["f-power"].data_quality.overall == 1.0
    assert registry["f-steel"].data_quality is None


def test_emission_flow_characterization_overrides():
    flow = flow_from_dict(
        {"id": "e", "category": "emission", "name": "Refrigerant leak", "globalWarmingPotential": "1430"}
    )

    assert flow.substance == "Refrigerant leak"
    assert flow.characterization_overrides == {GWP: 1430.0}


def test_energy_flow_grid_name():
    flow = flow_from_dict({"id": "g", "category": "energy", "name": "Power", "source": {"grid": "coal"}})

    assert flow.matching_name == "electricity_coal"


def test_unknown_flow_category():
    with pytest.raises(ValueError, match="Unknown flow category"):
        flow_from_dict({"id": "x", "category": "vibes"})


@pytest.mark.parametrize("score", [0, 6])
def test_data_quality_range(score):
    with pytest.raises(ValueError):
        DataQualityIndicators(reliability=score)


def test_data_quality_rejects_out_of_range_records():
    with pytest.raises(ValueError):
        flow_from_dict({"id": "q", "category": "material", "dataQuality": {"completeness": 9}})


def test_graph_helpers():
    nodes = parse_nodes([{"id": name, "data": {}} for name in ("a", "b", "c", "d")])
    edges = parse_edges(
        [
            {"source": "a", "target": "b"},
            {"source": "b", "target": "c"},
            {"source": "c", "target": "a"},
        ]
    )

    assert isolated_node_ids(nodes, edges) == ["d"]
    assert find_cycles(nodes, edges) == [["a", "b", "c", "a"]]
    assert find_cycles(nodes, edges[:2]) == []
    assert isolated_node_ids(nodes[:1], []) == []


def test_edge_requires_endpoints():
    with pytest.raises(ValueError):
        parse_edges([{"source": "a"}])
