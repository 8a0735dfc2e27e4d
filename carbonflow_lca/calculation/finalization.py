"""Assembly of the final LCA result."""

from __future__ import annotations

from uuid import uuid4

from carbonflow_lca.calculation.impact import weighted_score
from carbonflow_lca.core.models import CalculationContext, utcnow
from carbonflow_lca.core.results import (
    ContributionAnalysis,
    DataQualityResult,
    ImpactResult,
    InventoryResult,
    LCAResult,
    SystemInfo,
    UncertaintyResult,
)


def build_result(
    context: CalculationContext,
    *,
    inventory: InventoryResult,
    impacts: dict[str, ImpactResult],
    contributions: ContributionAnalysis,
    data_quality: DataQualityResult,
    uncertainty: UncertaintyResult | None = None,
) -> LCAResult:
    reference_node = context.node(context.reference_flow.node_id)
    reference_label = f"{context.reference_flow}"
    if reference_node is not None:
        reference_label = f"{reference_label} of {reference_node.label}"
    system_info = SystemInfo(
        study_id=f"lca-{uuid4().hex[:12]}",
        functional_unit=str(context.functional_unit),
        system_boundary=context.config.system_boundary.describe(),
        reference_flow=reference_label,
        calculation_timestamp=utcnow(),
    )
    return LCAResult(
        system_info=system_info,
        inventory=inventory,
        impacts=impacts,
        contributions=contributions,
        data_quality=data_quality,
        uncertainty=uncertainty,
        weighted_score=weighted_score(impacts, context.config.methodology.weighting_factors),
    )
