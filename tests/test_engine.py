from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import numpy as np
import pytest

from carbonflow_lca.calculation import (
    STEP_DEFINITIONS,
    CompletedOlderThan,
    FinishedOlderThan,
    LCACalculationEngine,
    SessionStore,
)
from carbonflow_lca.core.exceptions import (
    CalculationCancelledError,
    ComputationError,
    SessionNotFoundError,
    ValidationError,
)
from carbonflow_lca.core.models import CalculationSession, FunctionalUnit, SessionStatus, StepStatus
from carbonflow_lca.factors import GWP
from carbonflow_lca.methodology import LCAConfigFactory, SystemBoundary


def test_single_node_footprint(engine, context_factory, single_node):
    session = engine.start_calculation(context_factory(single_node))
    result = engine.wait_for_completion(session.session_id)

    assert result.impact_value(GWP) == pytest.approx(10.0)
    assert session.status is SessionStatus.COMPLETED
    assert session.final_result is result
    assert session.error is None
    assert [step.step_id for step in session.steps] == [step_id for step_id, _ in STEP_DEFINITIONS]
    assert all(step.status is StepStatus.COMPLETED for step in session.steps)
    assert session.step("validation").result == {"errors": [], "warnings": []}
    assert session.metadata["config"] == "basic"
    assert session.progress == pytest.approx(100.0)


def test_missing_main_product_fails_validation(engine, context_factory, single_node):
    single_node[0]["data"]["isMainProduct"] = False
    session = engine.start_calculation(context_factory(single_node))

    with pytest.raises(ValidationError):
        engine.wait_for_completion(session)

    assert session.status is SessionStatus.FAILED
    assert "must have exactly one main product" in session.error
    assert session.final_result is None
    assert session.end_time is not None
    assert session.step("validation").status is StepStatus.ERROR
    assert session.step("inventory_analysis").status is StepStatus.PENDING


def test_monte_carlo_brackets_the_point_estimate(engine, context_factory):
    nodes = [{"id": "n1", "data": {"label": "Widget", "isMainProduct": True, "carbonFootprint": 100}}]
    config = LCAConfigFactory.create_custom_config("basic", uncertainty_analysis=True)

    result = engine.run_calculation(context_factory(nodes, config=config))

    uncertainty = result.uncertainty
    assert uncertainty is not None
    assert uncertainty.iterations == 1000
    assert abs(uncertainty.mean - 100) < 1.5
    low, high = uncertainty.confidence_interval
    assert low < uncertainty.mean < high
    assert uncertainty.minimum >= 90 and uncertainty.maximum <= 110
    assert uncertainty.sensitivity[0].parameter_id == "n1"


def test_uncertainty_step_is_skipped_when_disabled(engine, context_factory, single_node):
    session = engine.start_calculation(context_factory(single_node))
    result = engine.wait_for_completion(session)

    assert result.uncertainty is None
    assert session.step("uncertainty_analysis").status is StepStatus.COMPLETED


def test_cancellation_stops_the_session(settings, context_factory):
    nodes = [{"id": "n1", "data": {"isMainProduct": True, "carbonFootprint": 5}}]
    config = LCAConfigFactory.create_custom_config("basic", uncertainty_analysis=True)
    engines: list[LCACalculationEngine] = []

    def cancelling_rng():
        current = engines[0]
        for session in current.get_all_sessions():
            current.cancel_session(session.session_id)
        return np.random.default_rng(0)

    with LCACalculationEngine(settings, rng_factory=cancelling_rng) as engine:
        engines.append(engine)
        session = engine.start_calculation(context_factory(nodes, config=config))
        with pytest.raises(CalculationCancelledError):
            engine.wait_for_completion(session)

        assert session.status is SessionStatus.FAILED
        assert session.step("uncertainty_analysis").status is StepStatus.ERROR
        assert session.step("data_quality").status is StepStatus.PENDING
        assert engine.cancel_session(session.session_id) is False


def test_dangling_flow_reference_fails_inventory(engine, context_factory):
    nodes = [
        {
            "id": "n1",
            "data": {"isMainProduct": True, "lcaFlows": {"emissionFlows": [{"flowId": "missing"}]}},
        }
    ]
    session = engine.start_calculation(context_factory(nodes, flows={}))

    with pytest.raises(ComputationError, match="missing"):
        engine.wait_for_completion(session)

    assert session.step("inventory_analysis").status is StepStatus.ERROR


def test_flow_based_system(engine, context_factory, flow_nodes, flow_edges, flow_registry):
    result = engine.run_calculation(context_factory(flow_nodes, edges=flow_edges, flows=flow_registry))

    assert result.impact_value(GWP) == pytest.approx(258.0)
    assert result.impacts[GWP].contribution_by_substance == pytest.approx({"CO2": 230.0, "CH4": 28.0})
    assert result.inventory.total_mass == pytest.approx(100.0)
    assert result.inventory.total_energy == pytest.approx(50.0)

    stages = result.contributions.by_lifecycle_stage
    assert list(stages) == ["raw_materials", "manufacturing"]
    assert stages["raw_materials"].rank == 1
    assert sum(item.relative_contribution for item in stages.values()) == pytest.approx(1.0)
    assert stages["manufacturing"].absolute_value == pytest.approx(25.0)
    assert set(result.contributions.by_process) == {"raw", "assembly"}

    quality = result.data_quality
    scores = [dimension.score for dimension in quality.dimensions.values()]
    assert quality.overall_score == pytest.approx(sum(scores) / 5)
    assert all(1 <= score <= 5 for score in scores)
    assert quality.temporal_correlation.score == 1


def test_zero_footprint_gives_empty_breakdowns(engine, context_factory):
    nodes = [{"id": "n1", "data": {"isMainProduct": True, "quantity": 10, "carbonFactor": 0}}]

    result = engine.run_calculation(context_factory(nodes))

    assert result.impact_value(GWP) == 0.0
    assert result.contributions.by_lifecycle_stage == {}
    assert result.contributions.by_process == {}


def test_result_serializes_to_plain_data(engine, context_factory, single_node):
    payload = engine.run_calculation(context_factory(single_node)).as_dict()

    assert isinstance(payload["system_info"]["calculation_timestamp"], str)
    assert payload["system_info"]["functional_unit"] == "10 kg"
    assert "overall_score" in payload["data_quality"]
    assert payload["impacts"][GWP]["value"] == pytest.approx(10.0)


def test_unknown_session_raises(engine):
    with pytest.raises(SessionNotFoundError):
        engine.get_session("session-unknown")


def test_cleanup_keeps_recent_sessions(engine, context_factory, single_node):
    session = engine.start_calculation(context_factory(single_node))
    engine.wait_for_completion(session)

    assert engine.cleanup_completed_sessions() == 0
    assert engine.get_session(session.session_id) is session
    assert len(engine.get_all_sessions()) == 1


def test_session_store_eviction_policies(context_factory, single_node):
    context = context_factory(single_node)
    done = CalculationSession(session_id="done", context=context, steps=[], status=SessionStatus.COMPLETED)
    failed = CalculationSession(session_id="failed", context=context, steps=[], status=SessionStatus.FAILED)
    running = CalculationSession(session_id="running", context=context, steps=[], status=SessionStatus.RUNNING)
    for session in (done, failed, running):
        session.end_time = session.start_time
    store = SessionStore()
    for session in (done, failed, running):
        store.add(session)

    later = done.start_time + timedelta(hours=25)
    assert store.evict(CompletedOlderThan(24), now=done.start_time) == []
    assert store.evict(CompletedOlderThan(24), now=later) == ["done"]
    assert store.evict(FinishedOlderThan(24), now=later) == ["failed"]
    assert "running" in store
    assert len(store) == 1
    with pytest.raises(SessionNotFoundError):
        store.require("done")


def test_allocation_ratio_scales_inventory(engine, context_factory, single_node):
    single_node[0]["data"]["allocationRatio"] = 0.5

    result = engine.run_calculation(context_factory(single_node))

    assert result.impact_value(GWP) == pytest.approx(5.0)
    assert result.inventory.emissions[0].quantity == pytest.approx(5.0)


def test_normalization_and_weighting(engine, context_factory, single_node):
    result = engine.run_calculation(context_factory(single_node))

    assert result.impacts[GWP].normalized_value == pytest.approx(10.0 / 1.13e13)
    assert result.weighted_score == pytest.approx(10.0 / 1.13e13 * 0.4)


def test_allocation_applies_to_contributions_and_monte_carlo(engine, context_factory, single_node):
    single_node[0]["data"]["allocationRatio"] = 0.5
    config = LCAConfigFactory.create_custom_config("basic", uncertainty_analysis=True)

    result = engine.run_calculation(context_factory(single_node, config=config))

    assert result.impact_value(GWP) == pytest.approx(5.0)
    assert result.contributions.by_process["widget"].absolute_value == pytest.approx(5.0)
    assert result.contributions.by_lifecycle_stage["manufacturing"].absolute_value == pytest.approx(5.0)
    low, high = result.uncertainty.confidence_interval
    assert low < 5.0 < high
    assert abs(result.uncertainty.mean - 5.0) < 0.1


def test_full_confidence_level_reports_sampled_range(engine, context_factory, single_node):
    config = LCAConfigFactory.create_custom_config(
        "professional",
        {"uncertainty": {"confidence_level": 1.0, "iterations": 200}},
    )
    assert LCAConfigFactory.validate_config(config).is_valid

    session = engine.start_calculation(context_factory(single_node, config=config))
    result = engine.wait_for_completion(session)

    assert session.status is SessionStatus.COMPLETED
    assert result.uncertainty.confidence_interval == (result.uncertainty.minimum, result.uncertainty.maximum)


def test_two_main_products_fail_before_inventory(engine, context_factory, single_node):
    second = {"id": "gadget", "data": {"label": "Gadget", "isMainProduct": True, "carbonFootprint": 3}}
    session = engine.start_calculation(context_factory(single_node + [second]))

    with pytest.raises(ValidationError, match="found 2"):
        engine.wait_for_completion(session)

    assert session.status is SessionStatus.FAILED
    assert session.step("validation").status is StepStatus.ERROR
    assert session.step("inventory_analysis").status is StepStatus.PENDING


def test_incomplete_functional_unit_fails_the_session(engine, context_factory, single_node):
    session = engine.start_calculation(context_factory(single_node, functional_unit=FunctionalUnit(0, "kg")))

    with pytest.raises(ValidationError) as excinfo:
        engine.wait_for_completion(session)

    assert any(message.startswith("Functional unit incomplete") for message in excinfo.value.errors)
    assert session.step("inventory_analysis").status is StepStatus.PENDING


def test_empty_system_boundary_fails_goal_scope(engine, context_factory, single_node):
    basic = LCAConfigFactory.basic()
    config = replace(basic, system_boundary=SystemBoundary(included_stages=(), cutoff_criteria=0.01))
    session = engine.start_calculation(context_factory(single_node, config=config))

    with pytest.raises(ValidationError, match="lifecycle stage"):
        engine.wait_for_completion(session)

    assert session.step("validation").status is StepStatus.COMPLETED
    assert session.step("goal_scope").status is StepStatus.ERROR
    assert session.step("inventory_analysis").status is StepStatus.PENDING
