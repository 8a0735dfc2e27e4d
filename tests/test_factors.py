from __future__ import annotations

import logging

import httpx
import pytest
import structlog

from carbonflow_lca.core import configure_logging
from carbonflow_lca.core.config import Settings, _load_settings_overrides
from carbonflow_lca.core.exceptions import FactorLookupError
from carbonflow_lca.factors import (
    GWP,
    CharacterizationFactorTable,
    RemoteFactorClient,
    default_aliases,
    default_factor_table,
    normalize_substance_name,
)


def test_normalize_substance_name():
    assert normalize_substance_name("  Carbon Dioxide (fossil) ") == "carbon_dioxide_fossil"
    assert normalize_substance_name("HFC-134a") == "hfc_134a"
    assert normalize_substance_name("钢材 / 热轧") == "钢材_热轧"
    assert normalize_substance_name(None) == ""
    assert normalize_substance_name("---") == ""


def test_aliases_prefer_exact_then_longest_contained():
    aliases = default_aliases()

    assert aliases.resolve("钢材") == "steel_primary"
    assert aliases.resolve("recycled steel") == "steel_secondary"
    assert aliases.resolve("热轧钢材卷") == "steel_primary"
    assert aliases.resolve("unknown") is None
    assert "甲烷" in aliases.aliases_for("CH4")


def test_table_lookup_is_case_insensitive():
    table = default_factor_table()

    assert table.factor("co2", GWP) == 1.0
    assert table.factor("Methane", GWP) == 28.0
    assert table.factor("CO2", "no_such_category") is None
    assert table.resolve("二氧化碳") == "CO2"


def test_factors_for_spans_categories():
    factors = default_factor_table().factors_for("NOx")

    assert set(factors) == {
        "acidification_potential",
        "eutrophication_potential",
        "photochemical_oxidation_potential",
    }


def test_table_is_read_only():
    table = default_factor_table()

    with pytest.raises(TypeError):
        table.factors[GWP]["CO2"] = 2.0  # type: ignore[index]


def test_extended_table_leaves_original_untouched():
    base = CharacterizationFactorTable.from_dict({GWP: {"CO2": 1.0}}, name="tiny")

    extended = base.extended({GWP: {"CH4": 27.0}}, version="2.0")

    assert extended.factor("CH4", GWP) == 27.0
    assert base.factor("CH4", GWP) is None
    assert extended.version == "2.0"
    assert extended.factor_count == 2


def test_remote_client_requires_url():
    with pytest.raises(FactorLookupError):
        RemoteFactorClient(Settings(factor_api_url=None))


def test_remote_client_sends_search_body():
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = request.read()
        captured["auth"] = request.headers.get("Authorization")
        return httpx.Response(
            200,
            json={
                "results": [
                    {
                        "query_label": "cement",
                        "matches": [
                            {
                                "activity_name": "cement production, Portland",
                                "kg_co2eq": "0.91",
                                "reference_product_unit": "kg",
                                "geography": "CN",
                                "score": 0.88,
                            },
                            {"activity_name": "broken", "kg_co2eq": None},
                        ],
                    },
                    {"query_label": "nothing", "error": "no hits"},
                ]
            },
        )

    settings = Settings(factor_api_url="https://factors.example.com/match", factor_api_key="secret", max_retries=1)
    http_client = httpx.Client(transport=httpx.MockTransport(handler), headers=settings.factor_api_headers())
    with RemoteFactorClient(settings, http_client=http_client) as client:
        matches = client.match(["cement", " "], top_k=2)

    assert b'"search_method":"script_score"' in captured["body"].replace(b" ", b"")
    assert b'"top_k":2' in captured["body"].replace(b" ", b"")
    assert captured["auth"] == "Bearer secret"
    assert len(matches) == 1
    assert matches[0].kg_co2eq == pytest.approx(0.91)
    assert matches[0].geography == "CN"


def test_remote_client_maps_timeouts():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    settings = Settings(factor_api_url="https://factors.example.com/match", max_retries=1)
    client = RemoteFactorClient(settings, http_client=httpx.Client(transport=httpx.MockTransport(handler)))

    with pytest.raises(FactorLookupError, match="timed out"):
        client.match(["steel"])


def test_secrets_file_overrides(tmp_path):
    secrets = tmp_path / "secrets.toml"
    secrets.write_text(
        "\n".join(
            [
                "[climateseal]",
                'url = "https://factors.example.com/match"',
                'authorization = "Bearer abc123"',
                "timeout = 12",
                "top_k = 5",
                "",
                "[carbonflow]",
                "session_ttl_hours = 6",
                'unknown_key = "ignored"',
            ]
        ),
        encoding="utf-8",
    )

    overrides = _load_settings_overrides(secrets)
    settings = Settings(**overrides)

    assert str(settings.factor_api_url) == "https://factors.example.com/match"
    assert settings.factor_api_key == "abc123"
    assert settings.request_timeout == 12.0
    assert settings.factor_api_top_k == 5
    assert settings.session_ttl_hours == 6
    assert "unknown_key" not in overrides


def test_settings_profiles():
    assert Settings(engine_profile="debug").profile.concurrency == 1
    assert Settings(engine_profile="debug").profile.seed == 0
    assert Settings(engine_profile="batch", max_concurrent_sessions=2).profile.concurrency == 8
    assert Settings(max_concurrent_sessions=16).profile.concurrency == 4


def test_configure_logging_applies_settings_level():
    previous = logging.getLogger().level
    try:
        configure_logging(settings=Settings(log_level="DEBUG"))
        assert logging.getLogger().level == logging.DEBUG
        configure_logging("warning")
        assert logging.getLogger().level == logging.WARNING
    finally:
        logging.getLogger().setLevel(previous)
        structlog.reset_defaults()


def test_remote_client_retries_follow_settings_profile():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    settings = Settings(factor_api_url="https://factors.example.com/match", engine_profile="debug", max_retries=5)
    client = RemoteFactorClient(settings, http_client=httpx.Client(transport=httpx.MockTransport(handler)))

    with pytest.raises(FactorLookupError):
        client.match(["steel"])

    assert len(calls) == settings.profile.retry_attempts == 1
