"""Monte Carlo uncertainty and one-at-a-time sensitivity analysis."""

from __future__ import annotations

from statistics import NormalDist
from typing import Callable, Sequence

import numpy as np

from carbonflow_lca.core.exceptions import ComputationError
from carbonflow_lca.core.logging import get_logger
from carbonflow_lca.core.nodes import ProcessNode
from carbonflow_lca.core.results import SensitivityResult, UncertaintyResult

LOGGER = get_logger(__name__)

STEP_ID = "uncertainty_analysis"
FACTOR_PERTURBATION = 0.1
MIN_ITERATIONS = 2

ProgressCallback = Callable[[float], None]


def run_monte_carlo(
    nodes: Sequence[ProcessNode],
    *,
    iterations: int,
    confidence_level: float = 0.95,
    allocation_factor: float = 1.0,
    sensitivity: bool = False,
    rng: np.random.Generator | None = None,
    chunk_size: int = 1000,
    checkpoint: Callable[[], None] | None = None,
    on_progress: ProgressCallback | None = None,
) -> UncertaintyResult:
    """Sample the total footprint with every node's carbon factor drawn from +/-10% uniform noise.

    A node's footprint is linear in its carbon factor, so scaling the footprint by
    ``1 + noise`` equals recomputing ``quantity x perturbed factor``. Samples are drawn in
    chunks; ``checkpoint`` runs between chunks and may raise to abort the run. A confidence
    level of 1.0 reports the sampled range as the interval.
    """
    if iterations < MIN_ITERATIONS:
        raise ComputationError(STEP_ID, f"Monte Carlo needs at least {MIN_ITERATIONS} iterations, got {iterations}")
    if not 0 < confidence_level <= 1:
        raise ComputationError(STEP_ID, f"Confidence level must be within (0, 1], got {confidence_level}")

    generator = rng or np.random.default_rng()
    base = np.array([node.data.allocated_footprint(allocation_factor) for node in nodes], dtype=float)
    step = max(1, chunk_size)
    totals = np.empty(iterations, dtype=float)

    drawn = 0
    while drawn < iterations:
        if checkpoint is not None:
            checkpoint()
        size = min(step, iterations - drawn)
        noise = generator.uniform(-FACTOR_PERTURBATION, FACTOR_PERTURBATION, size=(size, base.size))
        totals[drawn : drawn + size] = (base * (1.0 + noise)).sum(axis=1)
        drawn += size
        if on_progress is not None:
            on_progress(drawn / iterations)

    mean = float(totals.mean())
    std = float(totals.std(ddof=1))
    minimum = float(totals.min())
    maximum = float(totals.max())
    if confidence_level < 1:
        z_score = NormalDist().inv_cdf(0.5 + confidence_level / 2)
        interval = (mean - z_score * std, mean + z_score * std)
    else:
        interval = (minimum, maximum)
    LOGGER.info("lca_uncertainty.completed", iterations=iterations, mean=mean, standard_deviation=std)
    return UncertaintyResult(
        iterations=iterations,
        mean=mean,
        standard_deviation=std,
        confidence_level=confidence_level,
        confidence_interval=interval,
        minimum=minimum,
        maximum=maximum,
        sensitivity=sensitivity_analysis(nodes, allocation_factor=allocation_factor) if sensitivity else [],
    )


def sensitivity_analysis(
    nodes: Sequence[ProcessNode],
    perturbation: float = FACTOR_PERTURBATION,
    *,
    allocation_factor: float = 1.0,
) -> list[SensitivityResult]:
    """Perturb each node's carbon factor alone and report the relative change of the total."""
    footprints = [(node, node.data.allocated_footprint(allocation_factor)) for node in nodes]
    total = sum(value for _, value in footprints)
    results: list[SensitivityResult] = []
    for node, footprint in footprints:
        if footprint == 0:
            continue
        change = (footprint * perturbation / total) if total else 0.0
        results.append(
            SensitivityResult(
                parameter_id=node.id,
                parameter_name=f"{node.label} carbon factor",
                base_value=node.data.carbon_factor if node.data.carbon_factor is not None else footprint,
                perturbation=perturbation * 100,
                result_change=change * 100,
                sensitivity_index=change / perturbation,
            )
        )
    results.sort(key=lambda item: abs(item.sensitivity_index), reverse=True)
    return results
