from __future__ import annotations

from dataclasses import FrozenInstanceError, replace

import pytest

from carbonflow_lca.core.exceptions import ConfigurationError
from carbonflow_lca.factors import GWP, CharacterizationFactorTable
from carbonflow_lca.methodology import (
    LCACalculationConfig,
    LCAConfigFactory,
    SystemBoundary,
    UncertaintySettings,
    deep_merge,
)


@pytest.mark.parametrize(
    ("name", "iterations", "cutoff", "confidence"),
    [
        ("basic", None, 0.01, None),
        ("professional", 10000, 0.005, 0.95),
        ("research", 50000, 0.001, 0.99),
        ("carbon_footprint", None, 0.01, None),
    ],
)
def test_presets(name, iterations, cutoff, confidence):
    config = LCAConfigFactory.preset(name)

    assert config.name == name
    assert config.system_boundary.cutoff_criteria == cutoff
    if iterations is None:
        assert config.uncertainty is None
        assert not config.uncertainty_enabled
    else:
        assert config.uncertainty.iterations == iterations
        assert config.uncertainty.confidence_level == confidence
    assert LCAConfigFactory.validate_config(config).is_valid


def test_presets_differ_in_depth():
    basic = LCAConfigFactory.basic()
    professional = LCAConfigFactory.professional()
    research = LCAConfigFactory.research()

    assert len(basic.system_boundary.included_stages) < len(professional.system_boundary.included_stages)
    assert len(professional.system_boundary.included_stages) < len(research.system_boundary.included_stages)
    assert "microplastics" in research.methodology.characterization_factors.categories()
    assert LCAConfigFactory.carbon_footprint().methodology.characterization_factors.categories() == (GWP,)
    assert LCAConfigFactory.carbon_footprint().methodology.impact_method == "TRACI"


def test_unknown_preset():
    with pytest.raises(ConfigurationError):
        LCAConfigFactory.preset("deluxe")


def test_configs_are_immutable():
    config = LCAConfigFactory.basic()

    with pytest.raises(FrozenInstanceError):
        config.name = "changed"  # type: ignore[misc]
    with pytest.raises(TypeError):
        config.methodology.weighting_factors[GWP] = 1.0  # type: ignore[index]


def test_custom_config_keyword_options():
    config = LCAConfigFactory.create_custom_config(
        "basic",
        stages=["manufacturing"],
        cutoff=0.02,
        geography="EU",
        uncertainty_analysis=True,
        data_quality_level="professional",
        name="eu-study",
    )

    assert config.name == "eu-study"
    assert config.system_boundary.included_stages == ("manufacturing",)
    assert config.system_boundary.geographical_scope == "EU"
    assert config.uncertainty.iterations == 1000
    assert config.uncertainty.sensitivity_analysis
    assert config.data_quality_requirements.minimum_score == 2
    assert config.methodology.characterization_factors.factor("HFC-32", GWP) == 677


def test_custom_config_deep_merges_overrides():
    config = LCAConfigFactory.create_custom_config(
        "professional",
        {"system_boundary": {"cutoff_criteria": 0.02}, "uncertainty": {"iterations": 500}},
    )

    assert config.system_boundary.cutoff_criteria == 0.02
    assert config.system_boundary.geographical_scope == "global"
    assert config.uncertainty.iterations == 500
    assert config.uncertainty.confidence_level == 0.95


def test_custom_config_rejects_unknown_fields():
    with pytest.raises(ConfigurationError):
        LCAConfigFactory.create_custom_config("basic", {"system_boundary": {"colour": "green"}})


def test_uncertainty_override_can_disable():
    config = LCAConfigFactory.create_custom_config("professional", uncertainty_analysis=False)

    assert config.uncertainty is None


def test_validate_config_reports_errors_and_warnings():
    basic = LCAConfigFactory.basic()
    broken = replace(
        basic,
        system_boundary=SystemBoundary(included_stages=(), cutoff_criteria=1.5),
        uncertainty=UncertaintySettings(enabled=True, iterations=50, confidence_level=0.3),
        methodology=replace(
            basic.methodology,
            impact_method=None,
            characterization_factors=CharacterizationFactorTable.from_dict({"acidification_potential": {"SO2": 1}}),
        ),
    )

    validation = LCAConfigFactory.validate_config(broken)

    assert not validation.is_valid
    assert len(validation.errors) == 4
    assert len(validation.warnings) == 2


@pytest.mark.parametrize(
    ("purpose", "expected"),
    [
        ("quick_assessment", "basic"),
        ("product_comparison", "professional"),
        ("certification", "certification"),
        ("research", "research"),
        ("anything else", "basic"),
    ],
)
def test_recommended_config(purpose, expected):
    assert LCAConfigFactory.recommended_config(purpose).name == expected


def test_certification_tightens_cutoff():
    config = LCAConfigFactory.recommended_config("certification")

    assert config.system_boundary.cutoff_criteria == 0.001
    assert config.data_quality_requirements.minimum_score == 1


def test_dict_round_trip_preserves_settings():
    config = LCAConfigFactory.research()

    rebuilt = LCACalculationConfig.from_dict(config.to_dict())

    assert rebuilt.to_dict() == config.to_dict()
    assert rebuilt.methodology.characterization_factors.name == "research"


def test_deep_merge_leaves_inputs_untouched():
    base = {"a": {"b": 1, "c": 2}, "d": [1]}

    merged = deep_merge(base, {"a": {"b": 5}, "d": [2]})

    assert merged == {"a": {"b": 5, "c": 2}, "d": [2]}
    assert base == {"a": {"b": 1, "c": 2}, "d": [1]}


def test_uncertainty_override_enables_analysis_on_presets_without_it():
    config = LCAConfigFactory.create_custom_config("basic", {"uncertainty": {"iterations": 5000}})

    assert config.uncertainty_enabled
    assert config.uncertainty.iterations == 5000
    assert config.uncertainty.confidence_level == 0.95


def test_uncertainty_override_keeps_explicit_disable():
    config = LCAConfigFactory.create_custom_config("basic", {"uncertainty": {"enabled": False, "iterations": 5000}})

    assert not config.uncertainty_enabled
