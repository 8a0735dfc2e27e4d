"""Life cycle inventory: node flow references to typed inventory records."""

from __future__ import annotations

from typing import Callable, Iterable, Mapping

from carbonflow_lca.core.exceptions import ComputationError
from carbonflow_lca.core.flows import EmissionFlow, EnergyFlow, Flow, MaterialFlow, ResourceFlow, WasteFlow
from carbonflow_lca.core.logging import get_logger
from carbonflow_lca.core.models import CalculationContext
from carbonflow_lca.core.nodes import FlowReference, ProcessNode
from carbonflow_lca.core.results import (
    EmissionInventory,
    EnergyInventory,
    InventoryResult,
    MaterialInventory,
    WasteInventory,
)
from carbonflow_lca.factors.table import GWP, CharacterizationFactorTable

LOGGER = get_logger(__name__)

STEP_ID = "inventory_analysis"

SubstanceResolver = Callable[[str], str | None]
FlowSynthesizer = Callable[[ProcessNode], Iterable[Flow]]


def build_inventory(
    context: CalculationContext,
    *,
    synthesize: FlowSynthesizer,
    resolve_substance: SubstanceResolver,
) -> InventoryResult:
    """Resolve every node's flows, apply overrides and allocation, then sum totals.

    Nodes without flow references fall back to ``synthesize``, which builds flows from the
    node's flat quantity and carbon factor fields.
    """
    table = context.config.methodology.characterization_factors
    global_factor = context.config.allocation.allocation_factor
    inventory = InventoryResult()

    for node in context.nodes:
        ratio = node.data.allocation_ratio * global_factor
        if ratio < 0:
            raise ComputationError(STEP_ID, f"Node {node.id} has a negative allocation ratio")
        for flow, reference in _node_flows(node, context.flows, synthesize):
            base_quantity = reference.resolved_quantity(flow.quantity) if reference else flow.quantity
            unit = reference.resolved_unit(flow.unit) if reference else flow.unit
            quantity = base_quantity * ratio
            uncertainty = 0.1 * flow.data_quality.reliability if flow.data_quality else None

            if isinstance(flow, EmissionFlow):
                factors = _emission_factors(flow, reference, table, resolve_substance)
                inventory.emissions.append(
                    EmissionInventory(
                        substance_id=flow.id,
                        substance_name=flow.substance,
                        quantity=quantity,
                        unit=unit or "kg",
                        compartment=flow.compartment,
                        characterization_factors=factors,
                        node_id=node.id,
                        uncertainty=uncertainty,
                    )
                )
            elif isinstance(flow, (MaterialFlow, ResourceFlow)):
                inventory.material_inputs.append(
                    MaterialInventory(
                        material_id=flow.id,
                        material_name=flow.name,
                        quantity=quantity,
                        unit=unit or "kg",
                        category=_material_category(flow),
                        source=node.label,
                        node_id=node.id,
                        uncertainty=uncertainty,
                    )
                )
            elif isinstance(flow, EnergyFlow):
                inventory.energy_inputs.append(
                    EnergyInventory(
                        energy_id=flow.id,
                        energy_type=flow.energy_type,
                        quantity=quantity,
                        unit=unit or "kWh",
                        source=flow.provider or flow.grid or node.label,
                        renewable_content=_fraction(flow.renewable_percentage),
                        carbon_intensity=flow.carbon_intensity or 0.0,
                        node_id=node.id,
                        uncertainty=uncertainty,
                    )
                )
            elif isinstance(flow, WasteFlow):
                inventory.wastes.append(
                    WasteInventory(
                        waste_id=flow.id,
                        waste_type=flow.waste_type,
                        quantity=quantity,
                        unit=unit or "kg",
                        treatment_method=flow.treatment_method,
                        recycling_content=_fraction(flow.recycling_content),
                        node_id=node.id,
                        uncertainty=uncertainty,
                    )
                )
            else:
                LOGGER.debug("lca_inventory.flow_skipped", node_id=node.id, flow_id=flow.id, category=flow.category.value)

    inventory.total_mass = sum(item.quantity for item in inventory.material_inputs)
    inventory.total_energy = sum(item.quantity for item in inventory.energy_inputs)
    LOGGER.info(
        "lca_inventory.completed",
        materials=len(inventory.material_inputs),
        energy=len(inventory.energy_inputs),
        emissions=len(inventory.emissions),
        wastes=len(inventory.wastes),
    )
    return inventory


def _node_flows(
    node: ProcessNode,
    registry: Mapping[str, Flow],
    synthesize: FlowSynthesizer,
) -> list[tuple[Flow, FlowReference | None]]:
    if not node.data.has_flow_references:
        return [(flow, None) for flow in synthesize(node)]
    resolved: list[tuple[Flow, FlowReference | None]] = []
    for _, reference in node.data.lca_flows.iter_references():
        flow = registry.get(reference.flow_id)
        if flow is None:
            raise ComputationError(STEP_ID, f"Node {node.id} references unknown flow {reference.flow_id}")
        resolved.append((flow, reference))
    return resolved


def _emission_factors(
    flow: EmissionFlow,
    reference: FlowReference | None,
    table: CharacterizationFactorTable,
    resolve_substance: SubstanceResolver,
) -> dict[str, float]:
    substance = resolve_substance(flow.substance) or flow.substance
    factors: dict[str, float] = {}
    for category in table.categories():
        if category == GWP and reference is not None and reference.local_emission_factor is not None:
            factors[category] = reference.local_emission_factor
            continue
        if category in flow.characterization_overrides:
            factors[category] = flow.characterization_overrides[category]
            continue
        value = table.factor(substance, category)
        if value is None and substance != flow.substance:
            value = table.factor(flow.substance, category)
        if value is not None:
            factors[category] = value
    return factors


def _material_category(flow: MaterialFlow | ResourceFlow) -> str:
    if isinstance(flow, MaterialFlow) and "recycl" in (flow.material_type or "").lower():
        return "recycled"
    return "renewable" if (flow.renewability or "").lower() == "renewable" else "non_renewable"


def _fraction(value: float | None) -> float:
    if not value:
        return 0.0
    return value / 100.0 if value > 1 else value
