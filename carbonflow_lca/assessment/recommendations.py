"""Rule tables and text for carbon, hotspot and improvement-plan recommendations."""

from __future__ import annotations

from dataclasses import dataclass

from carbonflow_lca.core.nodes import NodeType, ProcessNode
from carbonflow_lca.core.results import DataQualityResult, LCAResult

NODE_RECOMMENDATIONS: dict[NodeType, tuple[str, ...]] = {
    NodeType.MANUFACTURING: (
        "Improve manufacturing efficiency",
        "Switch to renewable energy",
        "Optimize the production process",
    ),
    NodeType.PRODUCT: (
        "Choose lower-carbon materials",
        "Reduce material usage",
        "Increase the recycled material share",
    ),
    NodeType.DISTRIBUTION: (
        "Optimize transport routes",
        "Choose lower-carbon transport modes",
        "Increase load factors",
    ),
}

MATERIAL_ALTERNATIVES: dict[str, tuple[str, ...]] = {
    "钢材": ("铝合金", "复合材料", "再生钢"),
    "steel": ("aluminium alloy", "composite materials", "recycled steel"),
    "塑料": ("生物塑料", "再生塑料", "纸质材料"),
    "plastic": ("bioplastics", "recycled plastics", "paper-based materials"),
    "水泥": ("高炉矿渣水泥", "粉煤灰水泥", "地聚合物"),
    "cement": ("blast furnace slag cement", "fly ash cement", "geopolymers"),
    "玻璃": ("再生玻璃", "轻质玻璃", "塑料替代品"),
    "glass": ("recycled glass", "lightweight glass", "plastic substitutes"),
}
DEFAULT_MATERIAL_ALTERNATIVES = ("Consider renewable materials", "Increase recycling rates")

ENERGY_IMPROVEMENTS: dict[str, tuple[str, ...]] = {
    "电力": ("使用可再生能源", "提高能源效率", "安装节能设备"),
    "electricity": ("Use renewable electricity", "Improve energy efficiency", "Install energy-saving equipment"),
    "天然气": ("提高燃烧效率", "考虑可再生替代品", "余热回收"),
    "natural_gas": ("Improve combustion efficiency", "Consider renewable substitutes", "Recover waste heat"),
    "煤炭": ("替换为清洁能源", "提高燃烧效率", "碳捕获技术"),
    "coal": ("Switch to clean energy", "Improve combustion efficiency", "Apply carbon capture"),
    "石油": ("替换为生物燃料", "提高设备效率", "减少能源消耗"),
    "oil": ("Switch to biofuels", "Improve equipment efficiency", "Reduce energy consumption"),
}
DEFAULT_ENERGY_IMPROVEMENTS = ("Improve energy efficiency", "Consider renewable energy")

DATA_QUALITY_NOTE = "Improving data quality will yield a more accurate carbon footprint"
POOR_QUALITY_THRESHOLD = 3


@dataclass(slots=True, frozen=True)
class ImprovementAction:
    priority: str
    dimension: str
    action: str
    expected_improvement: str
    effort: str


_PLAN_ACTIONS: dict[str, tuple[str, str, str]] = {
    "reliability": ("Add data verification and supporting evidence", "Raise the reliability score to 2 or better", "medium"),
    "completeness": ("Fill in missing required fields", "Raise data completeness above 80%", "low"),
    "temporal_correlation": ("Replace outdated activity data", "Bring data within the temporal threshold", "medium"),
    "geographical_correlation": ("Use region-specific emission factors", "Match data geography to the study region", "medium"),
    "technology_correlation": ("Collect process-specific measurements", "Replace industry averages with primary data", "high"),
}
_CORE_DIMENSIONS = ("reliability", "completeness")


def node_recommendations(node: ProcessNode | None) -> list[str]:
    if node is None or node.node_type is None:
        return []
    return list(NODE_RECOMMENDATIONS.get(node.node_type, ()))


def material_alternatives(material: str) -> list[str]:
    return list(_lookup(MATERIAL_ALTERNATIVES, material) or DEFAULT_MATERIAL_ALTERNATIVES)


def energy_improvements(energy_type: str) -> list[str]:
    return list(_lookup(ENERGY_IMPROVEMENTS, energy_type) or DEFAULT_ENERGY_IMPROVEMENTS)


def carbon_recommendations(result: LCAResult, nodes: list[ProcessNode] | None = None) -> list[str]:
    """Call out the dominant stage and process, and flag weak data quality."""
    recommendations: list[str] = []
    stages = result.contributions.by_lifecycle_stage
    if stages:
        stage, contribution = next(iter(stages.items()))
        recommendations.append(
            f"Focus on the {stage} stage, which contributes {contribution.relative_contribution * 100:.1f}% of emissions"
        )
    processes = result.contributions.by_process
    if processes:
        process_id, contribution = next(iter(processes.items()))
        label = next((node.label for node in nodes or () if node.id == process_id), process_id)
        recommendations.append(
            f"Process {label} is the largest single source ({contribution.relative_contribution * 100:.1f}%)"
        )
    if result.data_quality.overall_score > POOR_QUALITY_THRESHOLD:
        recommendations.append(DATA_QUALITY_NOTE)
    return recommendations


def improvement_plan(quality: DataQualityResult) -> list[ImprovementAction]:
    """Prioritized actions: weak reliability or completeness first, then other weak dimensions."""
    plan: list[ImprovementAction] = []
    for dimension, score in quality.dimensions.items():
        if dimension in _CORE_DIMENSIONS:
            if score.score >= 4:
                priority = "high"
            elif score.score == POOR_QUALITY_THRESHOLD:
                priority = "medium"
            else:
                continue
        elif score.score >= POOR_QUALITY_THRESHOLD:
            priority = "low"
        else:
            continue
        action, expected, effort = _PLAN_ACTIONS[dimension]
        plan.append(ImprovementAction(priority, dimension, action, expected, effort))
    order = {"high": 0, "medium": 1, "low": 2}
    plan.sort(key=lambda item: order[item.priority])
    return plan


def _lookup(table: dict[str, tuple[str, ...]], key: str) -> tuple[str, ...] | None:
    if key in table:
        return table[key]
    normalized = key.strip().lower().replace(" ", "_")
    for candidate, values in table.items():
        if candidate in normalized:
            return values
    return None
