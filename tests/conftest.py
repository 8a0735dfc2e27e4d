from __future__ import annotations

from typing import Any

import pytest

from carbonflow_lca.assessment import LCAService
from carbonflow_lca.calculation import LCACalculationEngine
from carbonflow_lca.core.config import Settings
from carbonflow_lca.core.flows import parse_flow_registry
from carbonflow_lca.core.models import CalculationContext, FunctionalUnit, ReferenceFlow
from carbonflow_lca.core.nodes import parse_edges, parse_nodes
from carbonflow_lca.flow_matching import FlowMatchingService
from carbonflow_lca.methodology import LCACalculationConfig, LCAConfigFactory


@pytest.fixture
def settings() -> Settings:
    return Settings(
        monte_carlo_seed=42,
        max_concurrent_sessions=2,
        max_retries=1,
        retry_backoff=0.1,
        wait_timeout=60,
    )


@pytest.fixture
def matching_service(settings: Settings):
    service = FlowMatchingService(settings)
    yield service
    service.close()


@pytest.fixture
def engine(settings: Settings):
    calculation_engine = LCACalculationEngine(settings)
    yield calculation_engine
    calculation_engine.close()


@pytest.fixture
def lca_service(settings: Settings):
    service = LCAService(settings)
    yield service
    service.close()


@pytest.fixture
def functional_unit() -> dict[str, Any]:
    return {"value": 10, "unit": "kg", "description": "10 kg of finished widgets"}


@pytest.fixture
def single_node() -> list[dict[str, Any]]:
    return [
        {
            "id": "widget",
            "data": {
                "label": "Widget",
                "lifecycleStage": "manufacturing",
                "isMainProduct": True,
                "carbonFactor": "1.0",
                "quantity": "10",
            },
        }
    ]


@pytest.fixture
def flow_registry() -> dict[str, dict[str, Any]]:
    return {
        "f-steel": {"id": "f-steel", "category": "material", "name": "钢材", "quantity": 100, "unit": "kg"},
        "f-power": {
            "id": "f-power",
            "category": "energy",
            "name": "Grid electricity",
            "energyType": "electricity",
            "quantity": 50,
            "unit": "kWh",
            "dataQuality": {
                "reliability": 1,
                "completeness": 1,
                "temporalCorrelation": 1,
                "geographicalCorrelation": 1,
                "technologicalCorrelation": 1,
            },
        },
        "f-co2": {"id": "f-co2", "category": "emission", "name": "Carbon dioxide", "substance": "CO2", "quantity": 20, "unit": "kg"},
        "f-ch4": {"id": "f-ch4", "category": "emission", "name": "Methane", "substance": "CH4", "quantity": 1, "unit": "kg"},
    }


@pytest.fixture
def flow_nodes() -> list[dict[str, Any]]:
    return [
        {
            "id": "raw",
            "data": {
                "label": "Steel sheet",
                "lifecycleStage": "raw_materials",
                "quantity": 100,
                "carbonFactor": 2.3,
                "activitydataSource": "supplier invoice",
                "verificationStatus": "verified",
                "lcaFlows": {
                    "materialFlows": [{"flowId": "f-steel"}],
                    "emissionFlows": [{"flowId": "f-co2", "localOverrides": {"quantity": 230}}],
                },
            },
        },
        {
            "id": "assembly",
            "data": {
                "label": "Assembly",
                "lifecycleStage": "manufacturing",
                "isMainProduct": True,
                "quantity": 50,
                "carbonFactor": 0.5,
                "lcaFlows": {
                    "energyFlows": [{"flowId": "f-power"}],
                    "emissionFlows": [{"flowId": "f-ch4"}],
                },
            },
        },
    ]


@pytest.fixture
def flow_edges() -> list[dict[str, str]]:
    return [{"id": "e1", "source": "raw", "target": "assembly"}]


def make_context(
    nodes: list[dict[str, Any]],
    *,
    edges: list[dict[str, Any]] | None = None,
    flows: dict[str, Any] | None = None,
    config: LCACalculationConfig | None = None,
    functional_unit: FunctionalUnit | None = None,
) -> CalculationContext:
    node_list = parse_nodes(nodes)
    unit = functional_unit or FunctionalUnit(10, "kg")
    main = next((node.id for node in node_list if node.data.is_main), "")
    return CalculationContext(
        nodes=node_list,
        edges=parse_edges(edges),
        flows=parse_flow_registry(flows),
        config=config or LCAConfigFactory.basic(),
        functional_unit=unit,
        reference_flow=ReferenceFlow(node_id=main, value=unit.value, unit=unit.unit),
    )


@pytest.fixture
def context_factory():
    return make_context
