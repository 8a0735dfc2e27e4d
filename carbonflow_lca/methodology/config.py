"""Immutable LCA calculation configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal, Mapping

from carbonflow_lca.factors.table import CharacterizationFactorTable

ImpactMethod = Literal["ReCiPe", "CML", "TRACI", "EF", "custom"]
AllocationMethod = Literal["mass", "economic", "physical", "causal"]
UncertaintyMethod = Literal["monte_carlo", "analytical", "fuzzy"]


def _freeze(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(slots=True, frozen=True)
class Methodology:
    impact_method: ImpactMethod | None
    characterization_factors: CharacterizationFactorTable
    normalization_factors: Mapping[str, float] = field(default_factory=dict)
    weighting_factors: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "normalization_factors", _freeze(self.normalization_factors))
        object.__setattr__(self, "weighting_factors", _freeze(self.weighting_factors))


@dataclass(slots=True, frozen=True)
class SystemBoundary:
    included_stages: tuple[str, ...]
    cutoff_criteria: float
    geographical_scope: str = ""
    temporal_scope: str = ""
    technology_scope: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "included_stages", tuple(self.included_stages))

    def describe(self) -> str:
        return ", ".join(self.included_stages)


@dataclass(slots=True, frozen=True)
class AllocationSettings:
    default_method: AllocationMethod = "mass"
    process_specific_methods: Mapping[str, str] = field(default_factory=dict)
    avoid_allocation: bool = False
    allocation_factor: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "process_specific_methods", _freeze(self.process_specific_methods))


@dataclass(slots=True, frozen=True)
class UncertaintySettings:
    enabled: bool = False
    method: UncertaintyMethod = "monte_carlo"
    iterations: int | None = None
    confidence_level: float = 0.95
    sensitivity_analysis: bool = False


@dataclass(slots=True, frozen=True)
class DataQualityRequirements:
    minimum_score: int = 3
    require_uncertainty_data: bool = False
    temporal_threshold: int = 5
    geographical_relevance: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "geographical_relevance", tuple(self.geographical_relevance))


@dataclass(slots=True, frozen=True)
class LCACalculationConfig:
    """Methodology, boundary, allocation, uncertainty and data quality settings for one study."""

    methodology: Methodology
    system_boundary: SystemBoundary
    allocation: AllocationSettings = field(default_factory=AllocationSettings)
    uncertainty: UncertaintySettings | None = None
    data_quality_requirements: DataQualityRequirements = field(default_factory=DataQualityRequirements)
    name: str = "custom"

    @property
    def uncertainty_enabled(self) -> bool:
        return self.uncertainty is not None and self.uncertainty.enabled

    def to_dict(self) -> dict[str, Any]:
        """Return a plain nested dict; ``from_dict`` rebuilds an equal config."""
        methodology = self.methodology
        boundary = self.system_boundary
        allocation = self.allocation
        requirements = self.data_quality_requirements
        payload: dict[str, Any] = {
            "name": self.name,
            "methodology": {
                "impact_method": methodology.impact_method,
                "factor_table": {
                    "name": methodology.characterization_factors.name,
                    "version": methodology.characterization_factors.version,
                },
                "characterization_factors": methodology.characterization_factors.as_dict(),
                "normalization_factors": dict(methodology.normalization_factors),
                "weighting_factors": dict(methodology.weighting_factors),
            },
            "system_boundary": {
                "included_stages": list(boundary.included_stages),
                "cutoff_criteria": boundary.cutoff_criteria,
                "geographical_scope": boundary.geographical_scope,
                "temporal_scope": boundary.temporal_scope,
                "technology_scope": boundary.technology_scope,
            },
            "allocation": {
                "default_method": allocation.default_method,
                "process_specific_methods": dict(allocation.process_specific_methods),
                "avoid_allocation": allocation.avoid_allocation,
                "allocation_factor": allocation.allocation_factor,
            },
            "uncertainty": None,
            "data_quality_requirements": {
                "minimum_score": requirements.minimum_score,
                "require_uncertainty_data": requirements.require_uncertainty_data,
                "temporal_threshold": requirements.temporal_threshold,
                "geographical_relevance": list(requirements.geographical_relevance),
            },
        }
        if self.uncertainty is not None:
            payload["uncertainty"] = {
                "enabled": self.uncertainty.enabled,
                "method": self.uncertainty.method,
                "iterations": self.uncertainty.iterations,
                "confidence_level": self.uncertainty.confidence_level,
                "sensitivity_analysis": self.uncertainty.sensitivity_analysis,
            }
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "LCACalculationConfig":
        methodology = payload.get("methodology") or {}
        table_meta = methodology.get("factor_table") or {}
        table = CharacterizationFactorTable.from_dict(
            methodology.get("characterization_factors") or {},
            name=table_meta.get("name", "custom"),
            version=table_meta.get("version", "1.0"),
        )
        uncertainty = payload.get("uncertainty")
        return cls(
            name=payload.get("name", "custom"),
            methodology=Methodology(
                impact_method=methodology.get("impact_method"),
                characterization_factors=table,
                normalization_factors=methodology.get("normalization_factors") or {},
                weighting_factors=methodology.get("weighting_factors") or {},
            ),
            system_boundary=SystemBoundary(**(payload.get("system_boundary") or {})),
            allocation=AllocationSettings(**(payload.get("allocation") or {})),
            uncertainty=UncertaintySettings(**uncertainty) if uncertainty else None,
            data_quality_requirements=DataQualityRequirements(**(payload.get("data_quality_requirements") or {})),
        )


@dataclass(slots=True)
class ConfigValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
