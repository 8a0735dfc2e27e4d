"""Flow to characterization factor matching."""

from __future__ import annotations

import threading
from typing import Any, Mapping

from carbonflow_lca.core.config import Settings, get_settings
from carbonflow_lca.core.exceptions import FactorLookupError
from carbonflow_lca.core.flows import (
    DataQualityIndicators,
    EmissionFlow,
    EnergyFlow,
    Flow,
    FlowDirection,
    MaterialFlow,
)
from carbonflow_lca.core.json_utils import coerce_str
from carbonflow_lca.core.logging import get_logger
from carbonflow_lca.core.models import (
    FactorCandidate,
    FlowMatchResult,
    MatchStatus,
    NodeFlowSet,
    NodeMatchSummary,
)
from carbonflow_lca.core.nodes import NodeData, ProcessNode
from carbonflow_lca.factors.naming import normalize_substance_name
from carbonflow_lca.factors.remote import RemoteFactorClient
from carbonflow_lca.factors.table import GWP, CharacterizationFactorTable, default_factor_table
from carbonflow_lca.flow_matching.context import DEFAULT_CONTEXT_RULES, RAW_MATERIAL_TYPES, ContextRule, contextual_candidates
from carbonflow_lca.flow_matching.similarity import (
    SIMILARITY_THRESHOLD,
    SimilarityScorer,
    positional_similarity,
    similarity_candidates,
)

LOGGER = get_logger(__name__)

LOW_CONFIDENCE_THRESHOLD = 0.8
MAX_ALTERNATIVES = 3
REMOTE_CONFIDENCE_CEILING = 0.99

ENERGY_TYPES = frozenset({"能耗", "energy", "energy_consumption"})

FlowLike = Flow | Mapping[str, Any] | str


class FlowMatchingService:
    """Resolves flows to characterization factors with confidence scores."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        factor_table: CharacterizationFactorTable | None = None,
        remote_client: RemoteFactorClient | None = None,
        scorer: SimilarityScorer | None = None,
        context_rules: tuple[ContextRule, ...] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._table = factor_table or default_factor_table()
        self._remote = remote_client
        self._scorer = scorer or positional_similarity
        self._rules = context_rules if context_rules is not None else DEFAULT_CONTEXT_RULES
        self._user_mappings: dict[str, str] = {}
        self._flow_overrides: dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def factor_table(self) -> CharacterizationFactorTable:
        return self._table

    def match_flow_factors(self, flow: FlowLike, node_context: NodeData | ProcessNode | None = None) -> FlowMatchResult:
        flow_id, name = _flow_identity(flow)
        node = node_context.data if isinstance(node_context, ProcessNode) else node_context

        with self._lock:
            override = self._flow_overrides.get(flow_id)
            mapped = self._user_mappings.get(normalize_substance_name(name))

        if override is not None:
            return FlowMatchResult(
                flow_id=flow_id,
                match_status=MatchStatus.MANUAL_OVERRIDE,
                confidence=min(self._settings.manual_override_confidence, REMOTE_CONFIDENCE_CEILING),
                matched_factors=self._table.factors_for(override),
                substance=override,
                recommendations=[f"Factor manually assigned to {override}"],
            )

        if not normalize_substance_name(name):
            return self._no_match(flow_id, name)

        canonical = mapped or self._table.resolve(name)
        if canonical is not None:
            factors = self._table.factors_for(canonical)
            if factors:
                recommendations = ["Exact characterization factor match found"]
                if mapped:
                    recommendations.append(f"Resolved through saved user mapping to {canonical}")
                LOGGER.debug("flow_matching.perfect_match", flow_id=flow_id, substance=canonical)
                return FlowMatchResult(
                    flow_id=flow_id,
                    match_status=MatchStatus.PERFECT_MATCH,
                    confidence=1.0,
                    matched_factors=factors,
                    substance=canonical,
                    recommendations=recommendations,
                )

        fuzzy = self._fuzzy_candidates(name, node)
        if fuzzy:
            best = fuzzy[0]
            LOGGER.debug(
                "flow_matching.partial_match",
                flow_id=flow_id,
                substance=best.factor_id,
                confidence=best.confidence,
                candidate_count=len(fuzzy),
            )
            return FlowMatchResult(
                flow_id=flow_id,
                match_status=MatchStatus.PARTIAL_MATCH,
                confidence=best.confidence,
                matched_factors=dict(best.factors),
                substance=best.factor_id,
                alternative_matches=fuzzy[1 : 1 + MAX_ALTERNATIVES],
                recommendations=_match_recommendations(best),
            )

        remote = self._remote_candidate(name, node)
        if remote is not None:
            return FlowMatchResult(
                flow_id=flow_id,
                match_status=MatchStatus.PARTIAL_MATCH,
                confidence=remote.confidence,
                matched_factors=dict(remote.factors),
                substance=remote.factor_id,
                recommendations=[*_match_recommendations(remote), "Factor sourced from the remote factor service"],
            )
        return self._no_match(flow_id, name)

    def batch_match_node_flows(
        self,
        node: ProcessNode,
        flows: Mapping[str, Flow] | None = None,
    ) -> NodeMatchSummary:
        registry = flows or {}
        targets: list[FlowLike] = []
        if node.data.has_flow_references:
            for category, reference in node.data.lca_flows.iter_references():
                flow = registry.get(reference.flow_id)
                if flow is None:
                    LOGGER.warning(
                        "flow_matching.unresolved_reference",
                        node_id=node.id,
                        flow_id=reference.flow_id,
                        category=category.value,
                    )
                    targets.append({"id": reference.flow_id, "name": reference.flow_id})
                else:
                    targets.append(flow)
        else:
            targets.extend(self.create_flows_from_node(node).all_flows())

        results = [self.match_flow_factors(target, node.data) for target in targets]
        matched = sum(1 for result in results if result.is_matched)
        LOGGER.info("flow_matching.node_summary", node_id=node.id, total_flows=len(results), matched_flows=matched)
        return NodeMatchSummary(
            node_id=node.id,
            total_flows=len(results),
            matched_flows=matched,
            results=results,
            suggestions=_node_suggestions(results),
        )

    def create_flows_from_node(self, node: ProcessNode) -> NodeFlowSet:
        """Synthesize typed flows from a legacy node that only carries quantity and carbon factor."""
        data = node.data
        flow_set = NodeFlowSet()
        label = data.label or node.id
        emission_type = (data.emission_type or "").strip().lower()
        quality = DataQualityIndicators()

        if data.quantity is not None and emission_type in RAW_MATERIAL_TYPES:
            flow_set.material_flows.append(
                MaterialFlow(
                    id=f"material_{node.id}",
                    name=label,
                    quantity=data.quantity,
                    unit=data.activity_unit or "kg",
                    direction=FlowDirection.INPUT,
                    data_quality=quality,
                    substance=label,
                )
            )
        if data.quantity is not None and emission_type in ENERGY_TYPES:
            flow_set.energy_flows.append(
                EnergyFlow(
                    id=f"energy_{node.id}",
                    name=label,
                    quantity=data.quantity,
                    unit=data.activity_unit or "kWh",
                    direction=FlowDirection.INPUT,
                    data_quality=quality,
                    energy_type="electricity",
                    renewable_percentage=0.15,
                    carbon_intensity=data.carbon_factor if data.carbon_factor is not None else 0.85,
                )
            )
        footprint = data.footprint
        if footprint:
            flow_set.emission_flows.append(
                EmissionFlow(
                    id=f"emission_{node.id}",
                    name=f"{label}_CO2",
                    quantity=footprint,
                    unit="kg",
                    direction=FlowDirection.OUTPUT,
                    data_quality=quality,
                    substance="CO2",
                    compartment="air",
                    characterization_overrides={GWP: 1.0},
                )
            )
        return flow_set

    def resolve_substance(self, name: str) -> str | None:
        """Resolve ``name`` through user mappings, then exact and alias lookup."""
        with self._lock:
            mapped = self._user_mappings.get(normalize_substance_name(name))
        return mapped or self._table.resolve(name)

    def save_user_mapping(self, original: str, mapped: str) -> None:
        canonical = self._table.resolve(mapped)
        if canonical is None:
            raise ValueError(f"Cannot map '{original}' to unknown substance '{mapped}'")
        key = normalize_substance_name(original)
        if not key:
            raise ValueError("Original substance name is empty")
        with self._lock:
            self._user_mappings[key] = canonical
        LOGGER.info("flow_matching.user_mapping_saved", original=original, mapped=canonical)

    def remove_user_mapping(self, original: str) -> bool:
        with self._lock:
            return self._user_mappings.pop(normalize_substance_name(original), None) is not None

    def override_flow(self, flow_id: str, substance: str) -> None:
        canonical = self._table.resolve(substance)
        if canonical is None:
            raise ValueError(f"Cannot override flow '{flow_id}' with unknown substance '{substance}'")
        with self._lock:
            self._flow_overrides[flow_id] = canonical
        LOGGER.info("flow_matching.flow_override_saved", flow_id=flow_id, substance=canonical)

    def database_info(self) -> dict[str, Any]:
        with self._lock:
            mapping_count = len(self._user_mappings)
            override_count = len(self._flow_overrides)
        return {
            "name": self._table.name,
            "version": self._table.version,
            "categories": list(self._table.categories()),
            "total_factors": self._table.factor_count,
            "user_mappings": mapping_count,
            "flow_overrides": override_count,
            "remote_lookup": self._remote is not None,
        }

    def close(self) -> None:
        if self._remote is not None:
            self._remote.close()

    def __enter__(self) -> "FlowMatchingService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _fuzzy_candidates(self, name: str, node: NodeData | None) -> list[FactorCandidate]:
        merged = [
            *contextual_candidates(name, node, self._table, self._rules),
            *similarity_candidates(name, self._table, scorer=self._scorer, threshold=SIMILARITY_THRESHOLD),
        ]
        unique: dict[str, FactorCandidate] = {}
        for candidate in merged:
            unique.setdefault(candidate.factor_id, candidate)
        return sorted(unique.values(), key=lambda candidate: candidate.confidence, reverse=True)

    def _remote_candidate(self, name: str, node: NodeData | None) -> FactorCandidate | None:
        if self._remote is None:
            return None
        labels = [name]
        if node is not None and node.node_type is not None:
            labels.append(node.node_type.value)
        try:
            matches = self._remote.match(labels)
        except FactorLookupError as exc:
            LOGGER.warning("flow_matching.remote_failed", substance=name, error=str(exc))
            return None
        if not matches:
            return None
        best = matches[0]
        score = best.score if best.score is not None else self._settings.factor_api_min_score
        return FactorCandidate(
            factor_id=best.activity_name,
            confidence=max(0.0, min(score, REMOTE_CONFIDENCE_CEILING)),
            factors={GWP: best.kg_co2eq},
            source=best.data_source or "remote",
        )

    def _no_match(self, flow_id: str, name: str) -> FlowMatchResult:
        LOGGER.warning("flow_matching.no_match", flow_id=flow_id, substance=name)
        return FlowMatchResult(
            flow_id=flow_id,
            match_status=MatchStatus.NO_MATCH,
            confidence=0.0,
            recommendations=[
                "No matching characterization factor found",
                "Configure the factor manually or ask the database administrator to add this substance",
                f"Substance identifier: {normalize_substance_name(name) or name}",
            ],
        )


def match_flow_factors(
    flow: FlowLike,
    node_context: NodeData | ProcessNode | None = None,
    *,
    settings: Settings | None = None,
) -> FlowMatchResult:
    """Functional helper around :class:`FlowMatchingService`."""
    service = FlowMatchingService(settings=settings)
    try:
        return service.match_flow_factors(flow, node_context)
    finally:
        service.close()


def _flow_identity(flow: FlowLike) -> tuple[str, str]:
    if isinstance(flow, Flow):
        return flow.id, flow.matching_name
    if isinstance(flow, Mapping):
        name = coerce_str(flow.get("substance")) or coerce_str(flow.get("name")) or ""
        return coerce_str(flow.get("id")) or name, name
    text = str(flow or "").strip()
    return text, text


def _match_recommendations(candidate: FactorCandidate) -> list[str]:
    recommendations = [
        f"Use {candidate.factor_id} as the characterization factor",
        f"Match confidence: {candidate.confidence * 100:.1f}%",
    ]
    if candidate.confidence < LOW_CONFIDENCE_THRESHOLD:
        recommendations.append("Review this match manually before relying on it")
    return recommendations


def _node_suggestions(results: list[FlowMatchResult]) -> list[str]:
    suggestions: list[str] = []
    unmatched = sum(1 for result in results if result.match_status is MatchStatus.NO_MATCH)
    if unmatched:
        suggestions.append(f"{unmatched} flow(s) have no matching characterization factor")
        suggestions.append("Refine the substance names or add them to the factor database")
    low_confidence = sum(1 for result in results if result.confidence < LOW_CONFIDENCE_THRESHOLD)
    if low_confidence:
        suggestions.append(f"{low_confidence} flow(s) matched with low confidence")
        suggestions.append("Review the low-confidence matches manually")
    return suggestions
