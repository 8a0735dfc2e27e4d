"""Preset and custom LCA calculation configurations."""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Literal, Mapping, Sequence

from carbonflow_lca.core.exceptions import ConfigurationError
from carbonflow_lca.core.logging import get_logger
from carbonflow_lca.factors.table import (
    ACIDIFICATION,
    ECOTOXICITY,
    EUTROPHICATION,
    GWP,
    HUMAN_TOXICITY,
    LAND_USE,
    OZONE_DEPLETION,
    WATER_USE,
    CharacterizationFactorTable,
)
from carbonflow_lca.methodology.config import (
    AllocationSettings,
    ConfigValidationResult,
    DataQualityRequirements,
    LCACalculationConfig,
    Methodology,
    SystemBoundary,
    UncertaintySettings,
)

LOGGER = get_logger(__name__)

PresetName = Literal["basic", "professional", "research", "carbon_footprint"]
Purpose = Literal["quick_assessment", "product_comparison", "certification", "research"]

MICROPLASTICS = "microplastics"
NANOMATERIALS = "nanomaterials"
BIODIVERSITY = "biodiversity_impact"

BASIC_FACTORS: dict[str, dict[str, float]] = {
    GWP: {"CO2": 1, "CH4": 28, "N2O": 265, "SF6": 23500, "HFC-134a": 1300, "PFC-14": 6630},
    ACIDIFICATION: {"SO2": 1, "NH3": 1.88, "NOx": 0.7, "HCl": 0.88},
    EUTROPHICATION: {"PO4": 1, "NH3": 0.35, "NOx": 0.13, "N2O": 0.27},
}

PROFESSIONAL_FACTORS: dict[str, dict[str, float]] = {
    GWP: {
        "CO2": 1,
        "CH4": 28,
        "N2O": 265,
        "SF6": 23500,
        "HFC-134a": 1300,
        "HFC-32": 677,
        "HFC-125": 3170,
        "PFC-14": 6630,
        "PFC-116": 11100,
    },
    ACIDIFICATION: {"SO2": 1, "NH3": 1.88, "NOx": 0.7, "HCl": 0.88, "HF": 1.6, "H2S": 1.88},
    EUTROPHICATION: {"PO4": 1, "NH3": 0.35, "NOx": 0.13, "N2O": 0.27, "NH4": 0.33, "NO3": 0.1},
    OZONE_DEPLETION: {
        "CFC-11": 1,
        "CFC-12": 0.73,
        "CFC-113": 0.85,
        "HCFC-22": 0.034,
        "HCFC-141b": 0.086,
        "HCFC-142b": 0.043,
    },
    HUMAN_TOXICITY: {"Arsenic": 2.5, "Cadmium": 9.9, "Chromium VI": 0.5, "Lead": 5.1, "Mercury": 13},
    ECOTOXICITY: {"Copper": 1.9, "Zinc": 0.74, "Nickel": 2.6, "PAH": 170},
}

RESEARCH_EXTRA_FACTORS: dict[str, dict[str, float]] = {
    MICROPLASTICS: {"PE_microplastic": 0.001, "PP_microplastic": 0.001, "PET_microplastic": 0.002},
    NANOMATERIALS: {"TiO2_nano": 0.1, "SiO2_nano": 0.05, "Ag_nano": 50},
    BIODIVERSITY: {"land_occupation": 1.0, "land_transformation": 10.0, "habitat_fragmentation": 5.0},
}

CARBON_FOOTPRINT_FACTORS: dict[str, dict[str, float]] = {
    GWP: {
        **BASIC_FACTORS[GWP],
        "CO2_biogenic": 0,
        "CO2_fossil": 1,
        "CO2_electricity": 1,
        "CO2_heat": 1,
    },
}

BASIC_NORMALIZATION = {GWP: 1.13e13, ACIDIFICATION: 5.98e10, EUTROPHICATION: 1.95e10}
PROFESSIONAL_NORMALIZATION = {
    **BASIC_NORMALIZATION,
    OZONE_DEPLETION: 9.86e7,
    HUMAN_TOXICITY: 1.84e12,
    ECOTOXICITY: 8.57e12,
    LAND_USE: 2.34e10,
    WATER_USE: 1.15e12,
}
RESEARCH_NORMALIZATION = {**PROFESSIONAL_NORMALIZATION, MICROPLASTICS: 1.0e8, NANOMATERIALS: 5.0e7, BIODIVERSITY: 2.3e9}

BASIC_WEIGHTING = {GWP: 0.4, ACIDIFICATION: 0.2, EUTROPHICATION: 0.2, OZONE_DEPLETION: 0.1, HUMAN_TOXICITY: 0.1}
PROFESSIONAL_WEIGHTING = {
    GWP: 0.25,
    ACIDIFICATION: 0.15,
    EUTROPHICATION: 0.15,
    OZONE_DEPLETION: 0.05,
    HUMAN_TOXICITY: 0.2,
    ECOTOXICITY: 0.1,
    LAND_USE: 0.05,
    WATER_USE: 0.05,
}
RESEARCH_WEIGHTING = {
    GWP: 0.2,
    ACIDIFICATION: 0.1,
    EUTROPHICATION: 0.1,
    OZONE_DEPLETION: 0.05,
    HUMAN_TOXICITY: 0.15,
    ECOTOXICITY: 0.15,
    LAND_USE: 0.1,
    WATER_USE: 0.05,
    MICROPLASTICS: 0.05,
    NANOMATERIALS: 0.02,
    BIODIVERSITY: 0.03,
}

BASIC_STAGES = ("raw_materials", "manufacturing", "use", "disposal")
PROFESSIONAL_STAGES = (
    "raw_material_extraction",
    "raw_material_processing",
    "manufacturing",
    "packaging",
    "distribution",
    "use",
    "maintenance",
    "disposal",
    "recycling",
)
RESEARCH_STAGES = (
    "raw_material_extraction",
    "raw_material_transport",
    "raw_material_processing",
    "manufacturing",
    "manufacturing_waste_treatment",
    "packaging",
    "packaging_transport",
    "distribution",
    "retail",
    "use",
    "maintenance",
    "repair",
    "disposal",
    "recycling",
    "final_disposal",
)
CARBON_FOOTPRINT_STAGES = ("raw_materials", "manufacturing", "transport", "use", "disposal")

CUSTOM_UNCERTAINTY = UncertaintySettings(
    enabled=True,
    method="monte_carlo",
    iterations=1000,
    confidence_level=0.95,
    sensitivity_analysis=True,
)


class LCAConfigFactory:
    """Builds immutable calculation configurations."""

    @staticmethod
    def basic() -> LCACalculationConfig:
        return LCACalculationConfig(
            name="basic",
            methodology=Methodology(
                impact_method="ReCiPe",
                characterization_factors=_table("basic", BASIC_FACTORS),
                normalization_factors=BASIC_NORMALIZATION,
                weighting_factors=BASIC_WEIGHTING,
            ),
            system_boundary=SystemBoundary(
                included_stages=BASIC_STAGES,
                cutoff_criteria=0.01,
                geographical_scope="China",
                temporal_scope="2020-2025",
                technology_scope="current technology",
            ),
            allocation=AllocationSettings(default_method="mass"),
            uncertainty=None,
            data_quality_requirements=DataQualityRequirements(
                minimum_score=3,
                require_uncertainty_data=False,
                temporal_threshold=5,
                geographical_relevance=("China", "Asia"),
            ),
        )

    @staticmethod
    def professional() -> LCACalculationConfig:
        return LCACalculationConfig(
            name="professional",
            methodology=Methodology(
                impact_method="ReCiPe",
                characterization_factors=_table("professional", PROFESSIONAL_FACTORS),
                normalization_factors=PROFESSIONAL_NORMALIZATION,
                weighting_factors=PROFESSIONAL_WEIGHTING,
            ),
            system_boundary=SystemBoundary(
                included_stages=PROFESSIONAL_STAGES,
                cutoff_criteria=0.005,
                geographical_scope="global",
                temporal_scope="2020-2030",
                technology_scope="best available technology",
            ),
            allocation=AllocationSettings(
                default_method="causal",
                process_specific_methods={
                    "electricity_generation": "physical",
                    "multi_product_process": "economic",
                },
                avoid_allocation=True,
            ),
            uncertainty=UncertaintySettings(
                enabled=True,
                method="monte_carlo",
                iterations=10000,
                confidence_level=0.95,
                sensitivity_analysis=True,
            ),
            data_quality_requirements=DataQualityRequirements(
                minimum_score=2,
                require_uncertainty_data=True,
                temporal_threshold=3,
                geographical_relevance=("global", "region specific"),
            ),
        )

    @staticmethod
    def research() -> LCACalculationConfig:
        factors = {**PROFESSIONAL_FACTORS, **RESEARCH_EXTRA_FACTORS}
        return LCACalculationConfig(
            name="research",
            methodology=Methodology(
                impact_method="ReCiPe",
                characterization_factors=_table("research", factors),
                normalization_factors=RESEARCH_NORMALIZATION,
                weighting_factors=RESEARCH_WEIGHTING,
            ),
            system_boundary=SystemBoundary(
                included_stages=RESEARCH_STAGES,
                cutoff_criteria=0.001,
                geographical_scope="multi-region comparison",
                temporal_scope="2020-2050",
                technology_scope="technology scenario analysis",
            ),
            allocation=AllocationSettings(
                default_method="causal",
                process_specific_methods={
                    "electricity_generation": "physical",
                    "heat_production": "physical",
                    "multi_product_chemical": "economic",
                    "waste_treatment": "causal",
                    "recycling_process": "causal",
                },
                avoid_allocation=True,
            ),
            uncertainty=UncertaintySettings(
                enabled=True,
                method="monte_carlo",
                iterations=50000,
                confidence_level=0.99,
                sensitivity_analysis=True,
            ),
            data_quality_requirements=DataQualityRequirements(
                minimum_score=1,
                require_uncertainty_data=True,
                temporal_threshold=2,
                geographical_relevance=("multi-region", "technology specific"),
            ),
        )

    @staticmethod
    def carbon_footprint() -> LCACalculationConfig:
        return LCACalculationConfig(
            name="carbon_footprint",
            methodology=Methodology(
                impact_method="TRACI",
                characterization_factors=_table("carbon_footprint", CARBON_FOOTPRINT_FACTORS),
                normalization_factors={GWP: BASIC_NORMALIZATION[GWP]},
                weighting_factors={GWP: 1.0},
            ),
            system_boundary=SystemBoundary(
                included_stages=CARBON_FOOTPRINT_STAGES,
                cutoff_criteria=0.01,
                geographical_scope="China",
                temporal_scope="current",
                technology_scope="average technology",
            ),
            allocation=AllocationSettings(default_method="mass"),
            uncertainty=None,
            data_quality_requirements=DataQualityRequirements(
                minimum_score=3,
                require_uncertainty_data=False,
                temporal_threshold=5,
                geographical_relevance=("China",),
            ),
        )

    @classmethod
    def preset(cls, name: str) -> LCACalculationConfig:
        builders = {
            "basic": cls.basic,
            "professional": cls.professional,
            "research": cls.research,
            "carbon_footprint": cls.carbon_footprint,
        }
        builder = builders.get(name)
        if builder is None:
            raise ConfigurationError(f"Unknown configuration preset: {name}")
        return builder()

    @classmethod
    def create_custom_config(
        cls,
        base: str | LCACalculationConfig = "basic",
        overrides: Mapping[str, Any] | None = None,
        *,
        impact_method: str | None = None,
        stages: Sequence[str] | None = None,
        cutoff: float | None = None,
        geography: str | None = None,
        timeframe: str | None = None,
        uncertainty_analysis: bool | None = None,
        data_quality_level: Literal["basic", "professional", "research"] | None = None,
        name: str = "custom",
    ) -> LCACalculationConfig:
        """Deep-merge keyword options and ``overrides`` over a base preset."""
        base_config = base if isinstance(base, LCACalculationConfig) else cls.preset(base)
        payload = base_config.to_dict()
        payload["name"] = name

        if impact_method:
            payload["methodology"]["impact_method"] = impact_method
        boundary = payload["system_boundary"]
        if stages:
            boundary["included_stages"] = list(stages)
        if cutoff is not None:
            boundary["cutoff_criteria"] = cutoff
        if geography:
            boundary["geographical_scope"] = geography
        if timeframe:
            boundary["temporal_scope"] = timeframe
        if uncertainty_analysis is True:
            payload["uncertainty"] = {
                "enabled": CUSTOM_UNCERTAINTY.enabled,
                "method": CUSTOM_UNCERTAINTY.method,
                "iterations": CUSTOM_UNCERTAINTY.iterations,
                "confidence_level": CUSTOM_UNCERTAINTY.confidence_level,
                "sensitivity_analysis": CUSTOM_UNCERTAINTY.sensitivity_analysis,
            }
        elif uncertainty_analysis is False:
            payload["uncertainty"] = None

        requirements = payload["data_quality_requirements"]
        if data_quality_level == "professional":
            payload["methodology"]["characterization_factors"] = deepcopy(PROFESSIONAL_FACTORS)
            requirements["minimum_score"] = 2
        elif data_quality_level == "research":
            payload["methodology"]["characterization_factors"] = {**deepcopy(PROFESSIONAL_FACTORS), **deepcopy(RESEARCH_EXTRA_FACTORS)}
            requirements["minimum_score"] = 1
            requirements["require_uncertainty_data"] = True

        if overrides:
            normalized = _normalize_override_keys(overrides)
            # An uncertainty block added over a preset without one switches the analysis on.
            if payload.get("uncertainty") is None and isinstance(normalized.get("uncertainty"), Mapping):
                payload["uncertainty"] = {"enabled": True}
            payload = deep_merge(payload, normalized)
        try:
            config = LCACalculationConfig.from_dict(payload)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration overrides: {exc}") from exc
        LOGGER.debug("lca_config.custom_created", base=base_config.name, name=name)
        return config

    @staticmethod
    def validate_config(config: LCACalculationConfig) -> ConfigValidationResult:
        errors: list[str] = []
        warnings: list[str] = []

        if not config.methodology.impact_method:
            errors.append("Impact assessment method is not specified")
        if not config.system_boundary.included_stages:
            errors.append("System boundary does not include any lifecycle stage")
        cutoff = config.system_boundary.cutoff_criteria
        if cutoff is None or not 0 <= cutoff <= 1:
            errors.append("Cutoff criteria must be within [0, 1]")
        if GWP not in config.methodology.characterization_factors.categories():
            warnings.append("No global warming potential characterization factors provided")
        if config.uncertainty is not None:
            if not 0.5 <= config.uncertainty.confidence_level <= 1:
                errors.append("Confidence level must be within [0.5, 1]")
            if config.uncertainty.enabled and (not config.uncertainty.iterations or config.uncertainty.iterations < 100):
                warnings.append("Monte Carlo simulation should run at least 100 iterations")

        return ConfigValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

    @classmethod
    def recommended_config(cls, purpose: Purpose | str) -> LCACalculationConfig:
        if purpose == "product_comparison":
            return cls.professional()
        if purpose == "certification":
            return cls.create_custom_config(
                "professional",
                {"system_boundary": {"cutoff_criteria": 0.001}, "data_quality_requirements": {"minimum_score": 1}},
                name="certification",
            )
        if purpose == "research":
            return cls.research()
        return cls.basic()


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``overrides`` merged in; nested mappings merge, other values replace."""
    merged: dict[str, Any] = deepcopy(dict(base))
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


_OVERRIDE_ALIASES = {
    "uncertainty_analysis": "uncertainty",
    "uncertaintyAnalysis": "uncertainty",
    "systemBoundary": "system_boundary",
    "dataQualityRequirements": "data_quality_requirements",
}


def _normalize_override_keys(overrides: Mapping[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in overrides.items():
        target = _OVERRIDE_ALIASES.get(key, key)
        if target == "uncertainty" and isinstance(value, bool):
            value = {"enabled": value}
        normalized[target] = value
    return normalized


def _table(name: str, factors: Mapping[str, Mapping[str, float]]) -> CharacterizationFactorTable:
    return CharacterizationFactorTable(name=name, version="1.0", factors=factors)
