"""Application configuration primitives."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import SettingsProfile

DEFAULT_SECRETS_PATH = Path(".secrets/secrets.toml")


def _authorization_header(
    api_key: str | None,
    header_name: str | None = None,
    prefix: str | None = None,
) -> dict[str, str]:
    if not api_key:
        return {}
    header = (header_name or "Authorization").strip()
    if not header:
        return {}
    if prefix is None:
        prefix = "Bearer"
    prefix = prefix.strip()
    if prefix:
        value = f"{prefix} {api_key}".strip()
    else:
        value = api_key
    return {header: value}


class Settings(BaseSettings):
    """Central configuration for the LCA calculation core."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    engine_profile: Literal["default", "batch", "debug"] = "default"

    max_concurrent_sessions: int = 4
    session_ttl_hours: float = 24.0
    wait_timeout: float | None = None

    monte_carlo_seed: int | None = None
    monte_carlo_chunk_size: int = 1000
    default_iterations: int = 1000

    manual_override_confidence: float = 0.95

    factor_api_url: HttpUrl | None = None
    factor_api_key: str | None = None
    factor_api_top_k: int = 3
    factor_api_min_score: float = 0.3
    factor_api_embedding_model: str = "dashscope_v3"

    request_timeout: float = 30.0
    max_retries: int = 3
    retry_backoff: float = 0.5

    model_config = SettingsConfigDict(env_prefix="CARBONFLOW_", env_file=(), extra="ignore")

    @property
    def profile(self) -> SettingsProfile:
        """Expose derived profile information for engine policies."""
        if self.engine_profile == "batch":
            return SettingsProfile(
                concurrency=max(self.max_concurrent_sessions, 8),
                retry_attempts=self.max_retries + 2,
                seed=self.monte_carlo_seed,
                profile_name="batch",
            )
        if self.engine_profile == "debug":
            return SettingsProfile(
                concurrency=1,
                retry_attempts=1,
                seed=self.monte_carlo_seed if self.monte_carlo_seed is not None else 0,
                profile_name="debug",
            )
        return SettingsProfile(
            concurrency=max(1, min(self.max_concurrent_sessions, 4)),
            retry_attempts=self.max_retries,
            seed=self.monte_carlo_seed,
            profile_name="default",
        )

    def factor_api_headers(self) -> dict[str, str]:
        """Return request headers for the remote factor service."""
        headers = {"Content-Type": "application/json"}
        headers.update(_authorization_header(self.factor_api_key))
        return headers


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""
    overrides = _load_settings_overrides()
    return Settings(**overrides)


def _load_settings_overrides(secrets_path: Path = DEFAULT_SECRETS_PATH) -> dict[str, Any]:
    """Load configuration overrides from the secrets TOML file."""
    if not secrets_path.exists():
        return {}
    data = _read_toml(secrets_path)
    overrides: dict[str, Any] = {}

    factor_cfg = _extract_section(data, "factor_api", "climateseal")
    if factor_cfg:
        overrides["factor_api_url"] = factor_cfg.get("url")
        api_key = _sanitize_api_key(factor_cfg.get("api_key") or factor_cfg.get("authorization"))
        if api_key is not None:
            overrides["factor_api_key"] = api_key
        timeout_value = _coerce_float(factor_cfg.get("timeout"))
        if timeout_value is not None:
            overrides["request_timeout"] = timeout_value
        min_score = _coerce_float(factor_cfg.get("min_score"))
        if min_score is not None:
            overrides["factor_api_min_score"] = min_score
        if isinstance(factor_cfg.get("top_k"), int):
            overrides["factor_api_top_k"] = factor_cfg["top_k"]
        if factor_cfg.get("embedding_model"):
            overrides["factor_api_embedding_model"] = str(factor_cfg["embedding_model"])

    general_cfg = data.get("carbonflow") or {}
    overrides.update({key: value for key, value in general_cfg.items() if key in Settings.model_fields})
    return {key: value for key, value in overrides.items() if value is not None}


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _extract_section(data: dict[str, Any], *candidates: str) -> dict[str, Any] | None:
    for key in candidates:
        section = data.get(key)
        if isinstance(section, dict):
            return section
    return None


def _sanitize_api_key(value: str | None, prefix: str | None = None) -> str | None:
    if not value:
        return None
    token = value.strip()
    prefix_text = "Bearer" if prefix is None else prefix.strip()
    if prefix_text and token.lower().startswith(f"{prefix_text.lower()} "):
        token = token[len(prefix_text) + 1 :].strip()
    return token or None


def _coerce_float(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            return None
    return None
