from __future__ import annotations

import httpx
import pytest

from carbonflow_lca.core.config import Settings
from carbonflow_lca.core.flows import EmissionFlow, MaterialFlow
from carbonflow_lca.core.models import FactorCandidate, FlowMatchResult, MatchStatus
from carbonflow_lca.core.nodes import node_from_dict
from carbonflow_lca.factors.remote import RemoteFactorClient
from carbonflow_lca.factors.table import GWP, default_factor_table
from carbonflow_lca.flow_matching import FlowMatchingService, match_flow_factors, positional_similarity
from carbonflow_lca.flow_matching.similarity import sequence_similarity, similarity_candidates


def test_chinese_alias_resolves_to_perfect_match(matching_service):
    result = matching_service.match_flow_factors({"name": "钢材"})

    assert result.match_status is MatchStatus.PERFECT_MATCH
    assert result.confidence == 1.0
    assert result.substance == "steel_primary"
    assert result.matched_factors[GWP] == pytest.approx(2.3)


def test_every_known_substance_matches_exactly(matching_service):
    for substance in default_factor_table().substances():
        result = matching_service.match_flow_factors({"id": substance, "name": substance})
        assert result.match_status is MatchStatus.PERFECT_MATCH, substance
        assert result.confidence == 1.0


def test_repeated_matching_is_stable(matching_service):
    first = matching_service.match_flow_factors({"name": "dieselx"})
    second = matching_service.match_flow_factors({"name": "dieselx"})

    assert (first.match_status, first.confidence) == (second.match_status, second.confidence)


def test_fuzzy_match_lists_weaker_alternatives(matching_service):
    result = matching_service.match_flow_factors({"id": "f1", "name": "dieselx"})

    assert result.match_status is MatchStatus.PARTIAL_MATCH
    assert result.substance == "diesel"
    assert 0.6 < result.confidence < 1.0
    assert len(result.alternative_matches) <= 3
    assert all(item.confidence <= result.confidence for item in result.alternative_matches)


def test_contextual_match_uses_manufacturing_stage(matching_service):
    node = node_from_dict({"id": "n1", "data": {"lifecycleStage": "生产制造阶段"}})

    result = matching_service.match_flow_factors({"id": "power", "name": "电力消耗"}, node)

    assert result.match_status is MatchStatus.PARTIAL_MATCH
    assert result.substance == "electricity_coal"
    assert result.confidence == pytest.approx(0.8)


def test_unknown_substance_is_not_an_error(matching_service):
    result = matching_service.match_flow_factors({"id": "x", "name": "未知物质"})

    assert result.match_status is MatchStatus.NO_MATCH
    assert result.confidence == 0.0
    assert result.matched_factors == {}
    assert result.recommendations


def test_empty_name_is_no_match(matching_service):
    assert matching_service.match_flow_factors("").match_status is MatchStatus.NO_MATCH


def test_typed_flow_uses_its_name(matching_service):
    flow = EmissionFlow(id="e1", name="Methane", quantity=1.0, substance="CH4")
    material = MaterialFlow(id="m1", name="Recycled steel")

    assert matching_service.match_flow_factors(flow).substance == "CH4"
    assert matching_service.match_flow_factors(material).substance == "steel_secondary"


def test_user_mapping_turns_no_match_into_exact_match(matching_service):
    assert matching_service.match_flow_factors({"name": "Q235 plate"}).match_status is MatchStatus.NO_MATCH

    matching_service.save_user_mapping("Q235 plate", "钢材")
    result = matching_service.match_flow_factors({"name": "q235  PLATE"})

    assert result.match_status is MatchStatus.PERFECT_MATCH
    assert result.substance == "steel_primary"
    assert matching_service.database_info()["user_mappings"] == 1

    assert matching_service.remove_user_mapping("Q235 plate")
    assert matching_service.match_flow_factors({"name": "Q235 plate"}).match_status is MatchStatus.NO_MATCH


def test_user_mapping_rejects_unknown_target(matching_service):
    with pytest.raises(ValueError):
        matching_service.save_user_mapping("widget", "unobtainium")


def test_flow_override_is_below_perfect_confidence(matching_service):
    matching_service.override_flow("flow-7", "natural gas")

    result = matching_service.match_flow_factors({"id": "flow-7", "name": "anything"})

    assert result.match_status is MatchStatus.MANUAL_OVERRIDE
    assert result.confidence == pytest.approx(0.95)
    assert result.matched_factors[GWP] == pytest.approx(1.94)


def test_batch_match_counts_legacy_node_flows(matching_service):
    node = node_from_dict(
        {
            "id": "n1",
            "data": {"label": "钢板", "emissionType": "原材料", "quantity": 5, "carbonFactor": 2.0},
        }
    )

    summary = matching_service.batch_match_node_flows(node)

    assert summary.total_flows == 2
    assert summary.matched_flows == 2
    assert {result.flow_id for result in summary.results} == {"material_n1", "emission_n1"}


def test_batch_match_reports_unmatched_references(matching_service):
    node = node_from_dict(
        {"id": "n2", "data": {"lcaFlows": {"emissionFlows": [{"flowId": "flow-404"}]}}}
    )

    summary = matching_service.batch_match_node_flows(node, {})

    assert summary.matched_flows == 0
    assert any("no matching" in suggestion for suggestion in summary.suggestions)


def test_create_flows_from_legacy_node(matching_service):
    node = node_from_dict(
        {"id": "n3", "data": {"label": "Mains power", "emissionType": "能耗", "quantity": 100, "carbonFactor": 0.6}}
    )

    flow_set = matching_service.create_flows_from_node(node)

    assert [flow.id for flow in flow_set.energy_flows] == ["energy_n3"]
    assert flow_set.emission_flows[0].quantity == pytest.approx(60.0)
    assert flow_set.emission_flows[0].characterization_overrides == {GWP: 1.0}
    assert flow_set.material_flows == []


def test_database_info_reports_table_metadata(matching_service):
    info = matching_service.database_info()

    assert info["name"] == "ReCiPe 2016"
    assert info["version"] == "v1.1"
    assert GWP in info["categories"]
    assert info["total_factors"] == default_factor_table().factor_count


def test_functional_wrapper_matches(settings):
    assert match_flow_factors("CO2", settings=settings).match_status is MatchStatus.PERFECT_MATCH


def test_match_result_rejects_inconsistent_confidence():
    with pytest.raises(ValueError):
        FlowMatchResult(flow_id="f", match_status=MatchStatus.PARTIAL_MATCH, confidence=1.0)
    with pytest.raises(ValueError):
        FlowMatchResult(flow_id="f", match_status=MatchStatus.NO_MATCH, confidence=0.3)
    with pytest.raises(ValueError):
        FlowMatchResult(
            flow_id="f",
            match_status=MatchStatus.PARTIAL_MATCH,
            confidence=0.7,
            alternative_matches=[FactorCandidate(f"c{i}", 0.6, {}) for i in range(4)],
        )


def test_similarity_scores():
    assert positional_similarity("steel", "steel") == 1.0
    assert positional_similarity("steel", "steal") == pytest.approx(0.8)
    assert positional_similarity("", "") == 1.0
    assert sequence_similarity("diesel", "dieselx") > sequence_similarity("diesel", "glass")


def test_similarity_candidates_respect_threshold():
    candidates = similarity_candidates("glas", default_factor_table(), scorer=positional_similarity)

    assert [candidate.factor_id for candidate in candidates] == ["glass"]
    assert candidates[0].confidence == pytest.approx(0.8)


def _remote_settings() -> Settings:
    return Settings(factor_api_url="https://factors.example.com/match", max_retries=1)


def test_remote_lookup_fills_local_gaps():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "success": True,
                "results": [
                    {
                        "query_label": "未知物质",
                        "matches": [
                            {"activity_name": "specialty alloy", "kg_co2eq": 4.2, "score": 0.72, "data_source": "ecoinvent"}
                        ],
                    }
                ],
            },
        )

    settings = _remote_settings()
    client = RemoteFactorClient(settings, http_client=httpx.Client(transport=httpx.MockTransport(handler)))
    service = FlowMatchingService(settings, remote_client=client)

    result = service.match_flow_factors({"id": "x", "name": "未知物质"})

    assert result.match_status is MatchStatus.PARTIAL_MATCH
    assert result.substance == "specialty alloy"
    assert result.confidence == pytest.approx(0.72)
    assert result.matched_factors == {GWP: 4.2}


def test_remote_failure_keeps_no_match():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"detail": "unavailable"})

    settings = _remote_settings()
    client = RemoteFactorClient(settings, http_client=httpx.Client(transport=httpx.MockTransport(handler)))
    service = FlowMatchingService(settings, remote_client=client)

    result = service.match_flow_factors({"id": "x", "name": "未知物质"})

    assert result.match_status is MatchStatus.NO_MATCH


def test_match_result_exports_plain_values(matching_service):
    payload = matching_service.match_flow_factors({"id": "f", "name": "dieselx"}).as_dict()

    assert payload["match_status"] == "partial_match"
    assert all(isinstance(item["factors"], dict) for item in payload["alternative_matches"])


def test_injected_scorer_tolerates_dropped_characters(settings, matching_service):
    assert matching_service.match_flow_factors({"name": "disel"}).match_status is MatchStatus.NO_MATCH

    with FlowMatchingService(settings, scorer=sequence_similarity) as service:
        result = service.match_flow_factors({"name": "disel"})

    assert result.match_status is MatchStatus.PARTIAL_MATCH
    assert result.substance == "diesel"
