"""Contextual factor guesses from a node's lifecycle stage and emission type."""

from __future__ import annotations

from dataclasses import dataclass

from carbonflow_lca.core.models import FactorCandidate
from carbonflow_lca.core.nodes import NodeData
from carbonflow_lca.factors.table import CharacterizationFactorTable

MANUFACTURING_STAGES = frozenset({"制造阶段", "生产制造阶段", "生产阶段", "生产制造", "manufacturing", "production"})
RAW_MATERIAL_TYPES = frozenset({"原材料", "raw_material", "raw material", "material"})


@dataclass(slots=True, frozen=True)
class ContextRule:
    substance: str
    confidence: float
    keywords: tuple[str, ...]
    stages: frozenset[str] = frozenset()
    emission_types: frozenset[str] = frozenset()

    def applies(self, name: str, node: NodeData) -> bool:
        if self.stages and _clean(node.lifecycle_stage) not in self.stages:
            return False
        if self.emission_types and _clean(node.emission_type) not in self.emission_types:
            return False
        lowered = name.lower()
        return any(keyword in lowered for keyword in self.keywords)


DEFAULT_CONTEXT_RULES: tuple[ContextRule, ...] = (
    ContextRule(
        substance="electricity_coal",
        confidence=0.8,
        keywords=("电", "electric", "power"),
        stages=MANUFACTURING_STAGES,
    ),
    ContextRule(
        substance="steel_primary",
        confidence=0.9,
        keywords=("钢", "steel"),
        emission_types=RAW_MATERIAL_TYPES,
    ),
)


def contextual_candidates(
    name: str,
    node: NodeData | None,
    table: CharacterizationFactorTable,
    rules: tuple[ContextRule, ...] = DEFAULT_CONTEXT_RULES,
) -> list[FactorCandidate]:
    if node is None or not name:
        return []
    candidates: list[FactorCandidate] = []
    for rule in rules:
        if not rule.applies(name, node):
            continue
        factors = table.factors_for(rule.substance)
        if not factors:
            continue
        candidates.append(
            FactorCandidate(
                factor_id=rule.substance,
                confidence=rule.confidence,
                factors=factors,
                source="context",
            )
        )
    return candidates


def _clean(value: str | None) -> str:
    return (value or "").strip().lower()
