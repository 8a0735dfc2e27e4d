"""Life cycle impact assessment over the emission inventory."""

from __future__ import annotations

from typing import Mapping

from carbonflow_lca.core.results import ImpactResult, InventoryResult
from carbonflow_lca.factors.table import category_info
from carbonflow_lca.methodology.config import Methodology


def assess_impacts(inventory: InventoryResult, methodology: Methodology) -> dict[str, ImpactResult]:
    """Characterize every emission for each configured category.

    Categories without an applicable emission still get a zero-valued result.
    """
    results: dict[str, ImpactResult] = {}
    for category in methodology.characterization_factors.categories():
        total = 0.0
        by_substance: dict[str, float] = {}
        for emission in inventory.emissions:
            factor = emission.characterization_factors.get(category)
            if factor is None:
                continue
            contribution = emission.quantity * factor
            total += contribution
            by_substance[emission.substance_name] = by_substance.get(emission.substance_name, 0.0) + contribution
        info = category_info(category, methodology.impact_method)
        normalization = methodology.normalization_factors.get(category)
        results[category] = ImpactResult(
            category=category,
            value=total,
            unit=info.unit,
            method=info.method,
            contribution_by_substance=by_substance,
            normalized_value=total / normalization if normalization else None,
        )
    return results


def weighted_score(impacts: Mapping[str, ImpactResult], weights: Mapping[str, float]) -> float | None:
    """Sum of normalized results times weights, over categories that carry both."""
    terms = [
        impact.normalized_value * weights[category]
        for category, impact in impacts.items()
        if impact.normalized_value is not None and category in weights
    ]
    return sum(terms) if terms else None
