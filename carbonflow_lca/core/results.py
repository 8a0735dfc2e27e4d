"""Result records produced by the calculation pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


@dataclass(slots=True)
class MaterialInventory:
    material_id: str
    material_name: str
    quantity: float
    unit: str
    category: str
    source: str
    node_id: str
    uncertainty: float | None = None


@dataclass(slots=True)
class EnergyInventory:
    energy_id: str
    energy_type: str
    quantity: float
    unit: str
    source: str
    renewable_content: float
    carbon_intensity: float
    node_id: str
    uncertainty: float | None = None


@dataclass(slots=True)
class EmissionInventory:
    substance_id: str
    substance_name: str
    quantity: float
    unit: str
    compartment: str
    characterization_factors: dict[str, float]
    node_id: str
    uncertainty: float | None = None


@dataclass(slots=True)
class WasteInventory:
    waste_id: str
    waste_type: str
    quantity: float
    unit: str
    treatment_method: str
    recycling_content: float
    node_id: str
    uncertainty: float | None = None


@dataclass(slots=True)
class InventoryResult:
    material_inputs: list[MaterialInventory] = field(default_factory=list)
    energy_inputs: list[EnergyInventory] = field(default_factory=list)
    emissions: list[EmissionInventory] = field(default_factory=list)
    wastes: list[WasteInventory] = field(default_factory=list)
    total_mass: float = 0.0
    total_energy: float = 0.0


@dataclass(slots=True)
class ImpactResult:
    category: str
    value: float
    unit: str
    method: str
    contribution_by_substance: dict[str, float] = field(default_factory=dict)
    normalized_value: float | None = None


@dataclass(slots=True, frozen=True)
class ContributionResult:
    absolute_value: float
    relative_contribution: float
    unit: str
    rank: int


@dataclass(slots=True)
class ContributionAnalysis:
    by_lifecycle_stage: dict[str, ContributionResult] = field(default_factory=dict)
    by_process: dict[str, ContributionResult] = field(default_factory=dict)
    by_material: dict[str, ContributionResult] = field(default_factory=dict)
    by_energy: dict[str, ContributionResult] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class SensitivityResult:
    parameter_id: str
    parameter_name: str
    base_value: float
    perturbation: float
    result_change: float
    sensitivity_index: float


@dataclass(slots=True)
class UncertaintyResult:
    iterations: int
    mean: float
    standard_deviation: float
    confidence_level: float
    confidence_interval: tuple[float, float]
    minimum: float
    maximum: float
    sensitivity: list[SensitivityResult] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class DataQualityScore:
    score: int
    description: str
    improvement_suggestions: tuple[str, ...] = ()


@dataclass(slots=True)
class DataQualityResult:
    reliability: DataQualityScore
    completeness: DataQualityScore
    temporal_correlation: DataQualityScore
    geographical_correlation: DataQualityScore
    technology_correlation: DataQualityScore

    @property
    def dimensions(self) -> dict[str, DataQualityScore]:
        return {
            "reliability": self.reliability,
            "completeness": self.completeness,
            "temporal_correlation": self.temporal_correlation,
            "geographical_correlation": self.geographical_correlation,
            "technology_correlation": self.technology_correlation,
        }

    @property
    def overall_score(self) -> float:
        scores = [dimension.score for dimension in self.dimensions.values()]
        return sum(scores) / len(scores)


@dataclass(slots=True, frozen=True)
class SystemInfo:
    study_id: str
    functional_unit: str
    system_boundary: str
    reference_flow: str
    calculation_timestamp: datetime


@dataclass(slots=True)
class LCAResult:
    system_info: SystemInfo
    inventory: InventoryResult
    impacts: dict[str, ImpactResult]
    contributions: ContributionAnalysis
    data_quality: DataQualityResult
    uncertainty: UncertaintyResult | None = None
    weighted_score: float | None = None

    def impact_value(self, category: str) -> float:
        impact = self.impacts.get(category)
        return impact.value if impact else 0.0

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["data_quality"]["overall_score"] = self.data_quality.overall_score
        return _plain(payload)


@dataclass(slots=True)
class AlternativeResult:
    id: str
    name: str
    result: LCAResult
    improvements: dict[str, float]

    @property
    def mean_improvement(self) -> float | None:
        if not self.improvements:
            return None
        return sum(self.improvements.values()) / len(self.improvements)


@dataclass(slots=True, frozen=True)
class Tradeoff:
    alternative: str
    category1: str
    category2: str
    description: str


@dataclass(slots=True)
class LCAComparison:
    baseline_result: LCAResult
    alternative_results: list[AlternativeResult]
    dominating_alternative: str | None
    tradeoffs: list[Tradeoff] = field(default_factory=list)


def _plain(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value
