"""Contribution breakdowns by lifecycle stage, process, material and energy."""

from __future__ import annotations

from typing import Iterable, Mapping

from carbonflow_lca.core.nodes import ProcessNode
from carbonflow_lca.core.results import ContributionAnalysis, ContributionResult, InventoryResult
from carbonflow_lca.factors.table import CATEGORY_METADATA, GWP

UNSPECIFIED_STAGE = "unspecified"


def analyze_contributions(
    nodes: Iterable[ProcessNode],
    inventory: InventoryResult,
    allocation_factor: float = 1.0,
) -> ContributionAnalysis:
    node_list = list(nodes)
    carbon_unit = CATEGORY_METADATA[GWP].unit

    by_stage: dict[str, float] = {}
    by_process: dict[str, float] = {}
    for node in node_list:
        footprint = node.data.allocated_footprint(allocation_factor)
        stage = node.data.lifecycle_stage or UNSPECIFIED_STAGE
        by_stage[stage] = by_stage.get(stage, 0.0) + footprint
        by_process[node.id] = by_process.get(node.id, 0.0) + footprint

    materials: dict[str, float] = {}
    material_units: dict[str, str] = {}
    for item in inventory.material_inputs:
        materials[item.material_name] = materials.get(item.material_name, 0.0) + item.quantity
        material_units.setdefault(item.material_name, item.unit)

    energy: dict[str, float] = {}
    energy_units: dict[str, str] = {}
    for item in inventory.energy_inputs:
        energy[item.energy_type] = energy.get(item.energy_type, 0.0) + item.quantity
        energy_units.setdefault(item.energy_type, item.unit)

    return ContributionAnalysis(
        by_lifecycle_stage=build_breakdown(by_stage, carbon_unit),
        by_process=build_breakdown(by_process, carbon_unit),
        by_material=build_breakdown(materials, material_units),
        by_energy=build_breakdown(energy, energy_units),
    )


def build_breakdown(values: Mapping[str, float], unit: str | Mapping[str, str]) -> dict[str, ContributionResult]:
    """Rank ``values`` by magnitude and attach shares of the absolute total.

    Shares use absolute values so negative entries (carbon sinks) still yield shares in
    [0, 1] that sum to one. A zero total yields an empty breakdown.
    """
    total = sum(abs(value) for value in values.values())
    if total == 0:
        return {}
    ordered = sorted(values.items(), key=lambda item: abs(item[1]), reverse=True)
    breakdown: dict[str, ContributionResult] = {}
    for rank, (key, value) in enumerate(ordered, start=1):
        breakdown[key] = ContributionResult(
            absolute_value=value,
            relative_contribution=abs(value) / total,
            unit=unit if isinstance(unit, str) else unit.get(key, ""),
            rank=rank,
        )
    return breakdown
