"""Data quality scoring on the 1 (best) to 5 (worst) pedigree scale."""

from __future__ import annotations

from typing import Mapping, Sequence

from carbonflow_lca.core.flows import DataQualityIndicators, Flow
from carbonflow_lca.core.nodes import ProcessNode
from carbonflow_lca.core.results import DataQualityResult, DataQualityScore

RELIABILITY_BANDS = (0.9, 0.7, 0.5, 0.3)
COMPLETENESS_BANDS = (0.95, 0.8, 0.6, 0.4)
REQUIRED_FIELDS = ("carbon_factor", "quantity", "activity_data_source")
PLACEHOLDER_SCORE = 2

DESCRIPTIONS = {
    "reliability": "Share of nodes with verified activity data",
    "completeness": "Share of required node fields (carbon factor, quantity, data source) that are filled",
    "temporal_correlation": "Age of the data relative to the study period",
    "geographical_correlation": "Fit between data geography and the study region",
    "technology_correlation": "Fit between data technology and the studied processes",
}

SUGGESTIONS = {
    "reliability": ("Verify activity data against invoices, meter readings or audited reports",),
    "completeness": ("Fill in missing carbon factors, quantities and data sources for every node",),
    "temporal_correlation": ("Replace data older than the temporal threshold with recent measurements",),
    "geographical_correlation": ("Use region-specific factors for the production location",),
    "technology_correlation": ("Use process-specific data instead of industry averages",),
}


def score_from_ratio(ratio: float, bands: Sequence[float]) -> int:
    """Map a 0..1 ratio to 1..5, where ``bands`` are the lower bounds for scores 1 to 4."""
    for score, lower_bound in enumerate(bands, start=1):
        if ratio >= lower_bound:
            return score
    return len(bands) + 1


def missing_fields(node: ProcessNode) -> list[str]:
    """Required fields left unset on ``node``; zero counts as filled."""
    return [name for name in REQUIRED_FIELDS if getattr(node.data, name) in (None, "")]


def assess_data_quality(nodes: Sequence[ProcessNode], flows: Mapping[str, Flow]) -> DataQualityResult:
    if nodes:
        verified_ratio = sum(1 for node in nodes if node.data.is_verified) / len(nodes)
        filled = sum(len(REQUIRED_FIELDS) - len(missing_fields(node)) for node in nodes)
        completeness_ratio = filled / (len(nodes) * len(REQUIRED_FIELDS))
    else:
        verified_ratio = 0.0
        completeness_ratio = 0.0

    indicators = _referenced_indicators(nodes, flows)
    return DataQualityResult(
        reliability=_score("reliability", score_from_ratio(verified_ratio, RELIABILITY_BANDS)),
        completeness=_score("completeness", score_from_ratio(completeness_ratio, COMPLETENESS_BANDS)),
        temporal_correlation=_score("temporal_correlation", _indicator_score(indicators, "temporal_correlation")),
        geographical_correlation=_score(
            "geographical_correlation", _indicator_score(indicators, "geographical_correlation")
        ),
        technology_correlation=_score("technology_correlation", _indicator_score(indicators, "technology_correlation")),
    )


def _referenced_indicators(nodes: Sequence[ProcessNode], flows: Mapping[str, Flow]) -> list[DataQualityIndicators]:
    indicators: list[DataQualityIndicators] = []
    for node in nodes:
        if not node.data.has_flow_references:
            continue
        for _, reference in node.data.lca_flows.iter_references():
            flow = flows.get(reference.flow_id)
            if flow is not None and flow.data_quality is not None:
                indicators.append(flow.data_quality)
    return indicators


def _indicator_score(indicators: list[DataQualityIndicators], dimension: str) -> int:
    # Flows carrying pedigree scores refine the placeholder; otherwise keep it.
    if not indicators:
        return PLACEHOLDER_SCORE
    mean = sum(getattr(item, dimension) for item in indicators) / len(indicators)
    return min(5, max(1, int(round(mean))))


def _score(dimension: str, score: int) -> DataQualityScore:
    suggestions = SUGGESTIONS[dimension] if score > 2 else ()
    return DataQualityScore(score=score, description=DESCRIPTIONS[dimension], improvement_suggestions=suggestions)
