"""Product-level LCA operations built on the calculation engine and config presets."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence
from uuid import uuid4

from carbonflow_lca.assessment.recommendations import (
    ImprovementAction,
    carbon_recommendations,
    energy_improvements,
    improvement_plan,
    material_alternatives,
    node_recommendations,
)
from carbonflow_lca.calculation.data_quality import missing_fields
from carbonflow_lca.calculation.engine import LCACalculationEngine
from carbonflow_lca.calculation.validation import MAIN_PRODUCT_ERROR, dangling_references, main_product_nodes
from carbonflow_lca.core.config import Settings, get_settings
from carbonflow_lca.core.exceptions import ConfigurationError
from carbonflow_lca.core.flows import parse_flow_registry
from carbonflow_lca.core.json_utils import coerce_float, coerce_str
from carbonflow_lca.core.logging import get_logger
from carbonflow_lca.core.models import CalculationContext, CalculationSession, FunctionalUnit, ReferenceFlow
from carbonflow_lca.core.nodes import Edge, ProcessNode, find_cycles, isolated_node_ids, parse_edges, parse_nodes
from carbonflow_lca.core.results import (
    AlternativeResult,
    DataQualityScore,
    LCAComparison,
    LCAResult,
    Tradeoff,
)
from carbonflow_lca.factors.table import GWP
from carbonflow_lca.methodology.config import LCACalculationConfig
from carbonflow_lca.methodology.factory import LCAConfigFactory

LOGGER = get_logger(__name__)

PRESET_NAMES = ("basic", "professional", "research", "carbon_footprint")
TOP_PROCESSES = 5
TOP_MATERIALS = 3
TOP_ENERGY = 3

NodesInput = Iterable[ProcessNode | Mapping[str, Any]]
EdgesInput = Iterable[Edge | Mapping[str, Any]] | None
FlowsInput = Mapping[str, Any] | Iterable[Any] | None
FunctionalUnitInput = FunctionalUnit | Mapping[str, Any]


@dataclass(slots=True)
class ProductSystem:
    """One product's process graph, flow registry and functional unit."""

    nodes: list[ProcessNode | Mapping[str, Any]]
    edges: list[Edge | Mapping[str, Any]] = field(default_factory=list)
    flows: Mapping[str, Any] = field(default_factory=dict)
    functional_unit: FunctionalUnitInput = field(default_factory=lambda: FunctionalUnit(1.0, "unit"))
    id: str = "baseline"
    name: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(slots=True)
class CarbonFootprintReport:
    total: float
    unit: str
    by_lifecycle_stage: dict[str, float]
    by_process: dict[str, float]
    by_material: dict[str, float]
    recommendations: list[str]
    result: LCAResult


@dataclass(slots=True)
class BatchCalculationResult:
    product_id: str
    product_name: str
    status: str
    result: LCAResult | None = None
    error: str | None = None


@dataclass(slots=True, frozen=True)
class ProcessHotspot:
    node_id: str
    label: str
    contribution: float
    percentage: float
    recommendations: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class MaterialHotspot:
    material: str
    contribution: float
    percentage: float
    alternatives: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class EnergyHotspot:
    energy_type: str
    contribution: float
    percentage: float
    improvements: tuple[str, ...]


@dataclass(slots=True)
class HotspotAnalysis:
    carbon_hotspots: list[ProcessHotspot]
    material_hotspots: list[MaterialHotspot]
    energy_hotspots: list[EnergyHotspot]


@dataclass(slots=True)
class DataQualityReport:
    overall_score: float
    detailed_scores: dict[str, DataQualityScore]
    improvement_plan: list[ImprovementAction]


@dataclass(slots=True)
class InputValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


class LCAService:
    """Facade translating product-level requests into engine sessions."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        engine: LCACalculationEngine | None = None,
        config_factory: type[LCAConfigFactory] = LCAConfigFactory,
    ) -> None:
        self._settings = settings or get_settings()
        self._owns_engine = engine is None
        self._engine = engine or LCACalculationEngine(self._settings)
        self._factory = config_factory
        self._configs: dict[str, LCACalculationConfig] = {name: config_factory.preset(name) for name in PRESET_NAMES}
        self._lock = threading.Lock()

    @property
    def engine(self) -> LCACalculationEngine:
        return self._engine

    def config(self, config_id: str) -> LCACalculationConfig:
        with self._lock:
            config = self._configs.get(config_id)
        if config is None:
            raise ConfigurationError(f"Unknown configuration: {config_id}")
        return config

    def quick_assessment(
        self,
        nodes: NodesInput,
        edges: EdgesInput,
        flows: FlowsInput,
        functional_unit: FunctionalUnitInput,
    ) -> LCAResult:
        return self.assess(nodes, edges, flows, functional_unit, "basic")

    def professional_assessment(
        self,
        nodes: NodesInput,
        edges: EdgesInput,
        flows: FlowsInput,
        functional_unit: FunctionalUnitInput,
        custom_config: Mapping[str, Any] | None = None,
    ) -> LCAResult:
        config = self.config("professional")
        if custom_config:
            config = self._factory.create_custom_config(config, custom_config, name="professional")
        return self.assess(nodes, edges, flows, functional_unit, config)

    def assess(
        self,
        nodes: NodesInput,
        edges: EdgesInput,
        flows: FlowsInput,
        functional_unit: FunctionalUnitInput,
        config: str | LCACalculationConfig = "basic",
    ) -> LCAResult:
        """Run one calculation with a registered config id or an explicit config."""
        context = self.build_calculation_context(nodes, edges, flows, functional_unit, config)
        session = self._engine.start_calculation(context)
        return self.wait_for_completion(session)

    def compare_products(
        self,
        baseline: ProductSystem,
        alternatives: Sequence[ProductSystem],
        config_type: str = "professional",
    ) -> LCAComparison:
        """Assess a baseline and its alternatives; improvement % is relative to the baseline."""
        config = self.config(config_type)
        baseline_session = self._start(baseline, config)
        alternative_sessions = [(product, self._start(product, config)) for product in alternatives]

        baseline_result = self.wait_for_completion(baseline_session)
        alternative_results: list[AlternativeResult] = []
        for product, session in alternative_sessions:
            result = self.wait_for_completion(session)
            alternative_results.append(
                AlternativeResult(
                    id=product.id,
                    name=product.display_name,
                    result=result,
                    improvements=_improvements(baseline_result, result),
                )
            )

        comparison = LCAComparison(
            baseline_result=baseline_result,
            alternative_results=alternative_results,
            dominating_alternative=_dominating_alternative(alternative_results),
            tradeoffs=_tradeoffs(alternative_results),
        )
        LOGGER.info(
            "lca_service.comparison.completed",
            alternatives=len(alternative_results),
            dominating=comparison.dominating_alternative,
            tradeoffs=len(comparison.tradeoffs),
        )
        return comparison

    def calculate_carbon_footprint(
        self,
        nodes: NodesInput,
        edges: EdgesInput,
        flows: FlowsInput,
        functional_unit: FunctionalUnitInput,
    ) -> CarbonFootprintReport:
        node_list = parse_nodes(nodes)
        result = self.assess(node_list, edges, flows, functional_unit, "carbon_footprint")
        carbon = result.impacts.get(GWP)
        contributions = result.contributions
        return CarbonFootprintReport(
            total=carbon.value if carbon else 0.0,
            unit=carbon.unit if carbon else "kg CO2-eq",
            by_lifecycle_stage={key: item.absolute_value for key, item in contributions.by_lifecycle_stage.items()},
            by_process={key: item.absolute_value for key, item in contributions.by_process.items()},
            by_material={key: item.absolute_value for key, item in contributions.by_material.items()},
            recommendations=carbon_recommendations(result, node_list),
            result=result,
        )

    def batch_calculation(
        self,
        products: Sequence[ProductSystem],
        config_type: str = "basic",
    ) -> list[BatchCalculationResult]:
        """Assess every product; a failing product is recorded without stopping the batch."""
        config = self.config(config_type)
        pending: list[tuple[ProductSystem, CalculationSession | None, str | None]] = []
        for product in products:
            try:
                pending.append((product, self._start(product, config), None))
            except (ValueError, TypeError) as exc:
                pending.append((product, None, str(exc)))

        outcomes: list[BatchCalculationResult] = []
        for product, session, error in pending:
            if session is not None:
                try:
                    result = self.wait_for_completion(session)
                except Exception as exc:  # pylint: disable=broad-except
                    error = str(exc)
                else:
                    outcomes.append(
                        BatchCalculationResult(product.id, product.display_name, "completed", result=result)
                    )
                    continue
            LOGGER.warning("lca_service.batch.product_failed", product_id=product.id, error=error)
            outcomes.append(BatchCalculationResult(product.id, product.display_name, "failed", error=error))

        LOGGER.info(
            "lca_service.batch.completed",
            products=len(outcomes),
            failed=sum(1 for item in outcomes if item.status == "failed"),
        )
        return outcomes

    def get_hotspot_analysis(self, product: ProductSystem, result: LCAResult | None = None) -> HotspotAnalysis:
        """Rank the largest process, material and energy contributors.

        Runs a professional assessment unless ``result`` is supplied.
        """
        nodes = parse_nodes(product.nodes)
        if result is None:
            result = self.professional_assessment(nodes, product.edges, product.flows, product.functional_unit)
        by_id = {node.id: node for node in nodes}
        contributions = result.contributions

        carbon = [
            ProcessHotspot(
                node_id=node_id,
                label=by_id[node_id].label if node_id in by_id else node_id,
                contribution=item.absolute_value,
                percentage=item.relative_contribution * 100,
                recommendations=tuple(node_recommendations(by_id.get(node_id))),
            )
            for node_id, item in contributions.by_process.items()
        ]
        materials = [
            MaterialHotspot(
                material=name,
                contribution=item.absolute_value,
                percentage=item.relative_contribution * 100,
                alternatives=tuple(material_alternatives(name)),
            )
            for name, item in contributions.by_material.items()
        ]
        energy = [
            EnergyHotspot(
                energy_type=name,
                contribution=item.absolute_value,
                percentage=item.relative_contribution * 100,
                improvements=tuple(energy_improvements(name)),
            )
            for name, item in contributions.by_energy.items()
        ]
        return HotspotAnalysis(
            carbon_hotspots=_top(carbon, TOP_PROCESSES),
            material_hotspots=_top(materials, TOP_MATERIALS),
            energy_hotspots=_top(energy, TOP_ENERGY),
        )

    def get_data_quality_report(self, subject: ProductSystem | LCAResult) -> DataQualityReport:
        if isinstance(subject, LCAResult):
            result = subject
        else:
            result = self.professional_assessment(subject.nodes, subject.edges, subject.flows, subject.functional_unit)
        quality = result.data_quality
        return DataQualityReport(
            overall_score=quality.overall_score,
            detailed_scores=quality.dimensions,
            improvement_plan=improvement_plan(quality),
        )

    def validate_input_data(
        self,
        nodes: NodesInput,
        edges: EdgesInput,
        flows: FlowsInput,
        functional_unit: FunctionalUnitInput,
    ) -> InputValidationResult:
        """Pre-flight structural checks; never raises for malformed records."""
        errors: list[str] = []
        warnings: list[str] = []
        suggestions: list[str] = []
        try:
            node_list = parse_nodes(nodes)
            edge_list = parse_edges(edges)
            registry = parse_flow_registry(flows)
        except (ValueError, TypeError) as exc:
            return InputValidationResult(is_valid=False, errors=[f"Malformed input: {exc}"])

        if not node_list:
            errors.append("At least one process node is required")
        main_nodes = main_product_nodes(node_list)
        if len(main_nodes) != 1:
            errors.append(f"{MAIN_PRODUCT_ERROR} (found {len(main_nodes)})")

        unit = _functional_unit(functional_unit)
        if unit.value is None or unit.value <= 0:
            errors.append("Functional unit value must be greater than 0")
        if not (unit.unit or "").strip():
            errors.append("Functional unit must specify a unit")

        for node_id, flow_id in dangling_references(node_list, registry):
            errors.append(f"Node {node_id} references unknown flow {flow_id}")

        incomplete = [node for node in node_list if missing_fields(node)]
        if incomplete:
            warnings.append(f"{len(incomplete)} node(s) are missing a carbon factor, quantity or data source")
            suggestions.append("Complete carbon factors, activity data and data sources for every node")

        isolated = isolated_node_ids(node_list, edge_list)
        if isolated:
            warnings.append(f"Found {len(isolated)} isolated node(s): {', '.join(isolated)}")
            suggestions.append("Connect every process node to the product system")

        for cycle in find_cycles(node_list, edge_list):
            warnings.append(f"Circular process dependency: {' -> '.join(cycle)}")
        if any(message.startswith("Circular") for message in warnings):
            suggestions.append("Break circular dependencies so each process feeds the product once")

        return InputValidationResult(is_valid=not errors, errors=errors, warnings=warnings, suggestions=suggestions)

    def create_custom_config(self, base: str, customizations: Mapping[str, Any] | None = None) -> str:
        """Register a config derived from ``base`` and return its id."""
        config_id = f"custom-{uuid4().hex[:12]}"
        config = self._factory.create_custom_config(self.config(base), customizations or {}, name=config_id)
        validation = self._factory.validate_config(config)
        for warning in validation.warnings:
            LOGGER.warning("lca_service.config.warning", config_id=config_id, warning=warning)
        with self._lock:
            self._configs[config_id] = config
        return config_id

    def build_calculation_context(
        self,
        nodes: NodesInput,
        edges: EdgesInput,
        flows: FlowsInput,
        functional_unit: FunctionalUnitInput,
        config: str | LCACalculationConfig,
    ) -> CalculationContext:
        """Parse raw records and anchor the reference flow on the main product node.

        A missing main product leaves the reference flow without a node so that the
        session's validation step reports it.
        """
        resolved = config if isinstance(config, LCACalculationConfig) else self.config(config)
        node_list = parse_nodes(nodes)
        unit = _functional_unit(functional_unit)
        main_nodes = main_product_nodes(node_list)
        return CalculationContext(
            nodes=node_list,
            edges=parse_edges(edges),
            flows=parse_flow_registry(flows),
            config=resolved,
            functional_unit=unit,
            reference_flow=ReferenceFlow(
                node_id=main_nodes[0].id if main_nodes else "",
                value=unit.value,
                unit=unit.unit,
            ),
        )

    def wait_for_completion(self, session: CalculationSession) -> LCAResult:
        return self._engine.wait_for_completion(session)

    def close(self) -> None:
        if self._owns_engine:
            self._engine.close()

    def __enter__(self) -> "LCAService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _start(self, product: ProductSystem, config: LCACalculationConfig) -> CalculationSession:
        context = self.build_calculation_context(
            product.nodes, product.edges, product.flows, product.functional_unit, config
        )
        return self._engine.start_calculation(context)


def _functional_unit(value: FunctionalUnitInput) -> FunctionalUnit:
    if isinstance(value, FunctionalUnit):
        return value
    return FunctionalUnit(
        value=coerce_float(value.get("value")) or 0.0,
        unit=coerce_str(value.get("unit")) or "",
        description=coerce_str(value.get("description")) or "",
    )


def _improvements(baseline: LCAResult, alternative: LCAResult) -> dict[str, float]:
    improvements: dict[str, float] = {}
    for category, impact in baseline.impacts.items():
        other = alternative.impacts.get(category)
        if other is not None and impact.value > 0:
            improvements[category] = (impact.value - other.value) / impact.value * 100
    return improvements


def _dominating_alternative(alternatives: list[AlternativeResult]) -> str | None:
    scored = [(item.mean_improvement, item.name) for item in alternatives if item.mean_improvement is not None]
    if not scored:
        return None
    return max(scored, key=lambda pair: pair[0])[1]


def _tradeoffs(alternatives: list[AlternativeResult]) -> list[Tradeoff]:
    tradeoffs: list[Tradeoff] = []
    for item in alternatives:
        better = [category for category, value in item.improvements.items() if value > 0]
        worse = [category for category, value in item.improvements.items() if value < 0]
        if better and worse:
            tradeoffs.append(
                Tradeoff(
                    alternative=item.name,
                    category1=better[0],
                    category2=worse[0],
                    description=f"{item.name} performs better on {better[0]} but worse on {worse[0]}",
                )
            )
    return tradeoffs


def _top(items: list, limit: int) -> list:
    return sorted(items, key=lambda item: item.contribution, reverse=True)[:limit]
