"""HTTP client for a remote carbon factor matching service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from carbonflow_lca.core.config import Settings, get_settings
from carbonflow_lca.core.exceptions import FactorLookupError
from carbonflow_lca.core.json_utils import coerce_float, coerce_str
from carbonflow_lca.core.logging import get_logger

LOGGER = get_logger(__name__)

TIMEOUT_ERRORS = (httpx.TimeoutException, TimeoutError)
RETRYABLE_ERRORS = (httpx.TransportError, TimeoutError)


@dataclass(slots=True, frozen=True)
class RemoteFactorMatch:
    query_label: str
    activity_name: str
    kg_co2eq: float
    unit: str | None = None
    geography: str | None = None
    activity_id: str | None = None
    data_source: str | None = None
    score: float | None = None


class RemoteFactorClient:
    """Queries a ``/match`` endpoint for carbon factors by free-text label."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        if self._settings.factor_api_url is None:
            raise FactorLookupError("Remote factor lookup requires factor_api_url to be configured")
        self._url = str(self._settings.factor_api_url)
        self._timeout = self._settings.request_timeout
        self._max_attempts = max(1, self._settings.profile.retry_attempts)
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(
            timeout=self._timeout,
            headers=self._settings.factor_api_headers(),
        )

    def match(
        self,
        labels: Sequence[str],
        *,
        top_k: int | None = None,
        min_score: float | None = None,
    ) -> list[RemoteFactorMatch]:
        """Return remote matches for ``labels``, best first per label."""
        cleaned = [label.strip() for label in labels if label and label.strip()]
        if not cleaned:
            return []
        body = {
            "labels": cleaned,
            "top_k": top_k or self._settings.factor_api_top_k,
            "min_score": self._settings.factor_api_min_score if min_score is None else min_score,
            "embedding_model": self._settings.factor_api_embedding_model,
            "search_method": "script_score",
        }
        LOGGER.info("factor_api.request", labels=cleaned, top_k=body["top_k"])
        payload = self._call_with_retry(body)
        if not isinstance(payload, dict) or not payload.get("success", True):
            LOGGER.warning("factor_api.unsuccessful", payload_type=type(payload).__name__)
            return []
        matches = self._normalize_results(payload.get("results"))
        LOGGER.info("factor_api.response", match_count=len(matches))
        return matches

    def _call_with_retry(self, body: dict[str, Any]) -> Any:
        retryer = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(
                multiplier=max(self._settings.retry_backoff, 0.1),
                min=0.5,
                max=8,
            ),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        )
        try:
            for attempt in retryer:
                with attempt:
                    response = self._client.post(self._url, json=body)
                    response.raise_for_status()
                    return response.json()
        except TIMEOUT_ERRORS as exc:  # type: ignore[misc]
            attempts = max(int(retryer.statistics.get("attempt_number") or self._max_attempts), 1)
            LOGGER.error("factor_api.timeout", attempts=attempts, timeout=self._timeout, url=self._url)
            message = "Remote factor lookup timed out"
            if attempts > 1:
                message += f" after {attempts} attempts"
            raise FactorLookupError(message) from exc
        except httpx.HTTPStatusError as exc:
            LOGGER.error("factor_api.http_error", status_code=exc.response.status_code, url=self._url)
            raise FactorLookupError(f"Remote factor lookup failed with HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            LOGGER.error("factor_api.transport_error", error=str(exc), url=self._url)
            raise FactorLookupError("Remote factor lookup failed") from exc
        except ValueError as exc:
            raise FactorLookupError("Remote factor lookup returned malformed JSON") from exc

    @staticmethod
    def _normalize_results(results: Any) -> list[RemoteFactorMatch]:
        if not isinstance(results, list):
            return []
        matches: list[RemoteFactorMatch] = []
        for entry in results:
            if not isinstance(entry, dict) or entry.get("error"):
                continue
            label = coerce_str(entry.get("query_label")) or ""
            for item in entry.get("matches") or []:
                if not isinstance(item, dict):
                    continue
                factor = coerce_float(item.get("kg_co2eq"))
                if factor is None:
                    continue
                matches.append(
                    RemoteFactorMatch(
                        query_label=label,
                        activity_name=coerce_str(item.get("activity_name")) or label,
                        kg_co2eq=factor,
                        unit=coerce_str(item.get("reference_product_unit")),
                        geography=coerce_str(item.get("geography")),
                        activity_id=coerce_str(item.get("activity_uuid_product_uuid")),
                        data_source=coerce_str(item.get("data_source")),
                        score=coerce_float(item.get("score")),
                    )
                )
        return matches

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "RemoteFactorClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
